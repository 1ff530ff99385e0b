"""Observability: redaction, structured logging, metrics. No ad hoc logs of prompts or keys."""
from __future__ import annotations

import hashlib
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

# Redaction: patterns to mask (never log or store raw)
_SECRET_PATTERNS = [
    re.compile(r"\b(?:sk-[a-zA-Z0-9_-]{20,})\b", re.IGNORECASE),  # OpenAI-style
    re.compile(r"\bBearer\s+[a-zA-Z0-9_.-]+\b", re.IGNORECASE),
]
_PII_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b")  # email
_PREVIEW_MAX_CHARS = 200


def redact_preview(text: str) -> str:
    """Redact secrets and PII, then truncate. Use for response previews."""
    if not text:
        return ""
    out = text
    for pat in _SECRET_PATTERNS:
        out = pat.sub("[REDACTED]", out)
    out = _PII_PATTERN.sub("[EMAIL]", out)
    if len(out) > _PREVIEW_MAX_CHARS:
        out = out[:_PREVIEW_MAX_CHARS] + "..."
    return out


def log_llm_call(
    *,
    provider: str,
    model: str,
    endpoint: str,
    latency_ms: int,
    status: str,
    attempts: int,
    max_tokens: int,
    streamed: bool = False,
    error_code: str | None = None,
) -> None:
    """Emit structured log for one gateway call. Never log prompt text or API keys."""
    extra: dict[str, Any] = {
        "provider": provider,
        "model": model,
        "endpoint": redact_preview(endpoint),
        "latency_ms": latency_ms,
        "status": status,
        "attempts": attempts,
        "max_tokens": max_tokens,
        "streamed": streamed,
    }
    if error_code is not None:
        extra["error_code"] = error_code
    logger.info("llm_call", extra=extra)


def emit_latency_metric(provider: str, model: str, latency_ms: float) -> None:
    logger.debug("metric llm_latency_ms %s %s %s", provider, model, latency_ms)


def emit_retry_metric(provider: str, attempt: int, reason: str) -> None:
    logger.debug("metric llm_retries %s %s %s", provider, attempt, reason)


def emit_error_metric(provider: str, code: str) -> None:
    logger.debug("metric llm_errors %s %s", provider, code)


def stable_hash(content: str) -> str:
    """SHA256 hex digest for prompt/response fingerprints in logs."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
