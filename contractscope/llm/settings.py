"""Model gateway configuration. Env prefix: LLM_."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Timeouts, throughput assumptions and retry policy. All overridable via LLM_* env vars."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    local_timeout_s: float = Field(default=120.0, gt=0, description="Base timeout for local providers")
    online_timeout_s: float = Field(default=300.0, gt=0, description="Base timeout for online providers")
    local_tokens_per_second: float = Field(default=10.0, gt=0, description="Assumed local throughput")
    online_tokens_per_second: float = Field(default=15.0, gt=0, description="Assumed online throughput")
    local_margin: float = Field(default=3.0, ge=1.0, description="Safety multiplier for local estimates")
    online_margin: float = Field(default=4.0, ge=1.0, description="Safety multiplier for online estimates")
    network_overhead_s: float = Field(default=30.0, ge=0, description="Fixed overhead added to dynamic timeouts")

    connection_test_timeout_s: float = Field(default=10.0, gt=0, description="Timeout for the pre-flight probe")
    connection_test_max_tokens: int = Field(default=10, ge=1, description="Output budget for the probe")

    max_attempts: int = Field(default=3, ge=1, description="Total attempts per request (first + retries)")
    retry_delay_s: float = Field(default=2.0, ge=0, description="Base delay; attempt n waits delay * n")
    log_previews: bool = Field(default=False, description="Log redacted response previews at debug level")
