"""Text extraction configuration. Env prefix: EXTRACT_."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractionSettings(BaseSettings):
    """Input limits and conversion guardrails."""

    model_config = SettingsConfigDict(
        env_prefix="EXTRACT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_file_size_bytes: int = Field(default=10 * 1024 * 1024, gt=0, description="Reject larger files (10 MB)")
    max_num_pages: int = Field(default=500, gt=0, description="Max pages passed to DocumentConverter")
    plain_text_suffixes: list[str] = Field(
        default=[".txt", ".md"],
        description="Read directly as UTF-8 instead of converting",
    )
    parse_timeout_seconds: float = Field(default=300.0, gt=0, description="Timeout for one conversion")
