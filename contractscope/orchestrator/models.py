"""DTOs used by the orchestrator and its collaborators (not DB ORM models)."""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from contractscope.llm.types import ModelConfig


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStage(str, Enum):
    """Per-run state machine, logged on every transition."""

    VALIDATING = "validating"
    CACHE_CHECK = "cache_check"
    CONNECTION_TEST = "connection_test"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    CONSOLIDATING = "consolidating"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisFragmentResult(BaseModel):
    """Cleaned map-phase answer for fragment `index` of `total`."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)
    total: int = Field(ge=1)
    text: str

    def render(self) -> str:
        return f"PART {self.index}/{self.total}:\n{self.text}"


class TokenForecast(BaseModel):
    """Pre-flight cost estimate. Pure function of (text, requested output tokens)."""

    model_config = ConfigDict(frozen=True)

    character_count: int
    estimated_tokens: int
    chunks: int
    system_prompt_tokens: int
    phase1_tokens: int
    phase2_input_tokens: int
    phase2_output_tokens: int
    total_tokens: int
    recommended_max_tokens: int
    warning: str | None = None

    @property
    def single_request(self) -> bool:
        return self.phase1_tokens == 0


class AnalysisOutcome(BaseModel):
    """User-visible result of one run: consolidated text or a single descriptive error."""

    success: bool
    content: str | None = None
    error: str | None = None
    error_code: str | None = None
    duration_s: float = 0.0
    fragment_count: int = 0
    record_id: int | None = None
    reused: bool = False

    @classmethod
    def failed(cls, exc: Exception, *, duration_s: float, record_id: int | None = None) -> "AnalysisOutcome":
        return cls(
            success=False,
            error=str(exc) or type(exc).__name__,
            error_code=getattr(exc, "code", "INTERNAL"),
            duration_s=duration_s,
            record_id=record_id,
        )


class ConnectionCheck(BaseModel):
    """Result of an explicit connection test."""

    success: bool
    message: str
    provider: str | None = None
    model_name: str | None = None
    error_code: str | None = None
    latency_ms: int = 0


class ContractRecord(BaseModel):
    """Collaborator-side record of one analyzed document, keyed by content hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    filename: str
    file_hash: str
    file_size: int = 0
    status: RecordStatus = RecordStatus.PENDING
    llm_type: str = ""
    llm_model: str = ""
    max_tokens: int = 0
    analysis_result: str = ""
    character_count: int = 0
    estimated_tokens: int = 0
    chunks_count: int = 0
    processing_time_seconds: float = 0.0
    error_message: str = ""
    uploaded_at: datetime = Field(default_factory=_utcnow)
    analyzed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def new(cls, filename: str, file_hash: str, file_size: int, config: ModelConfig) -> "ContractRecord":
        return cls(
            filename=filename,
            file_hash=file_hash,
            file_size=file_size,
            llm_type=config.provider.value,
            llm_model=config.model_name,
            max_tokens=config.max_output_tokens,
        )

    def mark_analyzing(self) -> None:
        self.status = RecordStatus.ANALYZING
        self.updated_at = _utcnow()

    def mark_completed(
        self,
        result: str,
        *,
        character_count: int,
        estimated_tokens: int,
        chunks_count: int,
        processing_time_seconds: float,
    ) -> None:
        now = _utcnow()
        self.status = RecordStatus.COMPLETED
        self.analysis_result = result
        self.character_count = character_count
        self.estimated_tokens = estimated_tokens
        self.chunks_count = chunks_count
        self.processing_time_seconds = processing_time_seconds
        self.error_message = ""
        self.analyzed_at = now
        self.updated_at = now

    def mark_failed(self, error_message: str) -> None:
        self.status = RecordStatus.FAILED
        self.error_message = error_message
        self.updated_at = _utcnow()


class RecordStats(BaseModel):
    """Aggregate history figures."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    total_processing_seconds: float = 0.0
    average_processing_seconds: float = 0.0
    last_analysis_at: datetime | None = None


@dataclass(frozen=True)
class AnalysisRequest:
    """One document to analyze. `config` may be a validated ModelConfig or an untrusted mapping."""

    file_path: Path
    filename: str
    file_hash: str
    file_size: int
    config: ModelConfig | Mapping[str, Any]

    def with_config(self, config: ModelConfig) -> "AnalysisRequest":
        return replace(self, config=config)
