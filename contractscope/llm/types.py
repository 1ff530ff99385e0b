"""Typed model configuration, chat messages and normalized responses (Pydantic v2)."""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from contractscope.llm.errors import LLMConfigurationError
from contractscope.text.budget import LOCAL_CONTEXT_WINDOW, ONLINE_CONTEXT_WINDOW


class LLMProvider(str, Enum):
    """Provider family: self-hosted endpoint or third-party hosted API."""

    LOCAL = "local"
    ONLINE = "online"


class LocalEndpoint(BaseModel):
    """Self-hosted inference endpoint (Ollama-style)."""

    model_config = ConfigDict(frozen=True)

    provider: ClassVar[LLMProvider] = LLMProvider.LOCAL
    max_tokens_field: ClassVar[str] = "max_tokens"
    context_window: ClassVar[int] = LOCAL_CONTEXT_WINDOW

    kind: Literal["local"] = "local"
    endpoint_url: str = Field(min_length=1, description="Chat endpoint URL")

    def authorization_header(self) -> str | None:
        return None


class OnlineEndpoint(BaseModel):
    """Hosted API endpoint (OpenAI-style). Key is never rendered in repr."""

    model_config = ConfigDict(frozen=True)

    provider: ClassVar[LLMProvider] = LLMProvider.ONLINE
    max_tokens_field: ClassVar[str] = "max_completion_tokens"
    context_window: ClassVar[int] = ONLINE_CONTEXT_WINDOW

    kind: Literal["online"] = "online"
    endpoint_url: str = Field(min_length=1, description="Chat completions URL")
    api_key: str = Field(min_length=1, repr=False, description="Bearer token")

    def authorization_header(self) -> str | None:
        return f"Bearer {self.api_key}"


Endpoint = Annotated[Union[LocalEndpoint, OnlineEndpoint], Field(discriminator="kind")]


class ModelConfig(BaseModel):
    """Validated, immutable model configuration for one analysis run."""

    model_config = ConfigDict(frozen=True)

    endpoint: Endpoint
    model_name: str = ""
    max_output_tokens: int = Field(gt=0, description="Requested output tokens for the final answer")

    @model_validator(mode="after")
    def validate_online_model(self) -> "ModelConfig":
        if isinstance(self.endpoint, OnlineEndpoint) and not self.model_name.strip():
            raise ValueError("model_name is required for online providers")
        return self

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "ModelConfig":
        """Validate untrusted input. Raises LLMConfigurationError (never pydantic errors)."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise LLMConfigurationError(f"Invalid model configuration: {e}", details=str(e)) from e

    @classmethod
    def local(cls, endpoint_url: str, model_name: str, max_output_tokens: int) -> "ModelConfig":
        return cls.parse(
            {
                "endpoint": {"kind": "local", "endpoint_url": endpoint_url},
                "model_name": model_name,
                "max_output_tokens": max_output_tokens,
            }
        )

    @classmethod
    def online(cls, endpoint_url: str, api_key: str, model_name: str, max_output_tokens: int) -> "ModelConfig":
        return cls.parse(
            {
                "endpoint": {"kind": "online", "endpoint_url": endpoint_url, "api_key": api_key},
                "model_name": model_name,
                "max_output_tokens": max_output_tokens,
            }
        )

    @property
    def provider(self) -> LLMProvider:
        return self.endpoint.provider

    @property
    def is_online(self) -> bool:
        return self.endpoint.provider == LLMProvider.ONLINE

    @property
    def endpoint_url(self) -> str:
        return self.endpoint.endpoint_url

    @property
    def context_window(self) -> int:
        return self.endpoint.context_window


class ChatMessage(BaseModel):
    """Single message in OpenAI-style format."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class LLMResponse(BaseModel):
    """Normalized response from any provider."""

    text: str
    raw_text: str
    provider: LLMProvider
    model: str
    latency_ms: int
    attempts: int = 1
    streamed: bool = False

    @property
    def retries(self) -> int:
        return self.attempts - 1
