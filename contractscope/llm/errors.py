"""Error taxonomy for the model gateway. All map to stable codes for persistence and outcome reporting."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contractscope.llm.types import LLMProvider


class LLMError(Exception):
    """Base for all gateway errors. code is stable for persistence; details must not leak secrets."""

    # Set by the orchestrator once the run has a history record.
    record_id: int | None = None

    def __init__(
        self,
        message: str,
        *,
        code: str = "UNKNOWN",
        retryable: bool = False,
        provider: "LLMProvider | None" = None,
        details: str | None = None,
        status_code: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable
        self.provider = provider
        self.details = details or ""
        self.status_code = status_code
        self.attempts = attempts

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)


class LLMConfigurationError(LLMError):
    """Invalid or incomplete model configuration. Never retried."""

    def __init__(self, message: str = "LLM configuration invalid", **kwargs: object) -> None:
        super().__init__(message, code="CONFIGURATION", retryable=False, **kwargs)


class LLMConnectionError(LLMError):
    """Pre-flight connection test failed."""

    def __init__(self, message: str = "Failed to connect to LLM", **kwargs: object) -> None:
        super().__init__(message, code="CONNECTION_FAILED", retryable=False, **kwargs)


class LLMTimeout(LLMError):
    """Request deadline exceeded."""

    def __init__(self, message: str = "LLM request timed out", **kwargs: object) -> None:
        super().__init__(message, code="TIMEOUT", retryable=True, **kwargs)


class LLMTransportError(LLMError):
    """Network failure other than a timeout (DNS, refused connection, reset)."""

    def __init__(self, message: str = "LLM transport error", **kwargs: object) -> None:
        super().__init__(message, code="TRANSPORT", retryable=True, **kwargs)


class LLMServerError(LLMError):
    """Server answered with 5xx."""

    def __init__(self, message: str = "LLM server error", **kwargs: object) -> None:
        super().__init__(message, code="SERVER_ERROR", retryable=True, **kwargs)


class LLMClientError(LLMError):
    """Server answered with a non-success status below 500. Never retried."""

    def __init__(self, message: str = "LLM client error", **kwargs: object) -> None:
        super().__init__(message, code="CLIENT_ERROR", retryable=False, **kwargs)


class LLMParseError(LLMError):
    """Response body matched no known schema."""

    def __init__(self, message: str = "LLM response could not be parsed", **kwargs: object) -> None:
        super().__init__(message, code="PARSE_ERROR", retryable=False, **kwargs)


class LLMEmptyResponse(LLMError):
    """Response parsed but carried blank content."""

    def __init__(self, message: str = "LLM returned an empty response", **kwargs: object) -> None:
        super().__init__(message, code="EMPTY_RESPONSE", retryable=False, **kwargs)
