"""Orchestrator configuration. Env prefix: ORCH_."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from contractscope.llm.types import ModelConfig

DEFAULT_FALLBACK_MESSAGE = (
    "Could not generate a valid analysis of the contract. The document may be empty or corrupted, "
    "or the language model could not process it correctly."
)


class OrchestratorSettings(BaseSettings):
    """Run deadlines, result reuse and the empty-result placeholder."""

    model_config = SettingsConfigDict(
        env_prefix="ORCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    local_run_deadline_s: float = Field(default=2700.0, gt=0, description="Whole-run deadline for local models")
    online_run_deadline_s: float = Field(default=1800.0, gt=0, description="Whole-run deadline for online models")
    reuse_completed_results: bool = Field(
        default=False,
        description="Return a completed record's stored result on hash hit instead of re-analyzing",
    )
    fallback_message: str = Field(
        default=DEFAULT_FALLBACK_MESSAGE,
        min_length=1,
        description="Reported as the result when the final answer comes back empty",
    )

    def deadline_for(self, config: ModelConfig) -> float:
        return self.online_run_deadline_s if config.is_online else self.local_run_deadline_s
