"""
Model gateway: chat requests over httpx with adaptive timeouts, retries and response normalization.

Error mapping (transport/status -> LLMError):
  - httpx.TimeoutException            -> LLMTimeout (retried)
  - other httpx.TransportError        -> LLMTransportError (retried)
  - status >= 500                     -> LLMServerError (retried)
  - non-2xx status < 500              -> LLMClientError (returned at once, never retried)
  - body matches no schema            -> LLMParseError
  - blank content                     -> LLMEmptyResponse
asyncio.CancelledError is never caught: an outer deadline aborts the in-flight call and any retry sleep.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Sequence

import httpx

from contractscope.llm.errors import (
    LLMClientError,
    LLMConfigurationError,
    LLMConnectionError,
    LLMEmptyResponse,
    LLMError,
    LLMServerError,
    LLMTimeout,
    LLMTransportError,
)
from contractscope.llm.parsing import StreamAccumulator, decode_response, post_process
from contractscope.llm.settings import LLMSettings
from contractscope.llm.telemetry import (
    emit_error_metric,
    emit_latency_metric,
    emit_retry_metric,
    log_llm_call,
    redact_preview,
    stable_hash,
)
from contractscope.llm.timeouts import request_timeout
from contractscope.llm.types import ChatMessage, LLMProvider, LLMResponse, ModelConfig

logger = logging.getLogger(__name__)

_ERROR_BODY_MAX_CHARS = 500


def build_payload(
    config: ModelConfig,
    messages: Sequence[ChatMessage],
    max_tokens: int,
    *,
    stream: bool = False,
) -> dict[str, Any]:
    """Request body with the provider's output-token field name."""
    payload: dict[str, Any] = {
        "model": config.model_name,
        "messages": [m.model_dump() for m in messages],
        "stream": stream,
    }
    if max_tokens > 0:
        payload[config.endpoint.max_tokens_field] = max_tokens
    return payload


def build_headers(config: ModelConfig) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    auth = config.endpoint.authorization_header()
    if auth:
        headers["Authorization"] = auth
    return headers


def _status_error(status_code: int, body: str, *, provider: LLMProvider, attempts: int) -> LLMError:
    snippet = body[:_ERROR_BODY_MAX_CHARS]
    if status_code >= 500:
        return LLMServerError(
            f"Server error ({status_code}): {snippet}",
            provider=provider,
            status_code=status_code,
            attempts=attempts,
        )
    return LLMClientError(
        f"Request rejected ({status_code}): {snippet}",
        provider=provider,
        status_code=status_code,
        attempts=attempts,
    )


class ModelGateway:
    """Async chat client for local (Ollama-style) and online (OpenAI-style) endpoints."""

    def __init__(
        self,
        settings: LLMSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or LLMSettings()
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def send_chat(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        *,
        stream: bool = False,
    ) -> LLMResponse:
        """Send one chat request and return the normalized answer. Raises LLMError on failure."""
        if not config.model_name.strip():
            raise LLMConfigurationError(
                "No model configured: set an explicit model name before sending requests",
                provider=config.provider,
            )
        provider = config.provider
        payload = build_payload(config, messages, max_tokens, stream=stream)
        headers = build_headers(config)
        timeout = request_timeout(self._settings, provider, max_tokens)
        logger.info(
            "Sending request to %s (model=%s, %s=%d, timeout=%.0fs%s)",
            config.endpoint_url,
            config.model_name,
            config.endpoint.max_tokens_field,
            max_tokens,
            timeout,
            ", streaming" if stream else "",
        )
        logger.debug("Prompt fingerprint %s", stable_hash(payload["messages"][-1]["content"] if messages else ""))

        t0 = time.perf_counter()
        attempts = 1
        try:
            if stream:
                raw = await self._stream_chat(config.endpoint_url, payload, headers, timeout, provider)
            else:
                resp, attempts = await self._post_with_retry(
                    config.endpoint_url,
                    payload,
                    headers,
                    timeout,
                    max_attempts=self._settings.max_attempts,
                    provider=provider,
                )
                raw = self._read_content(resp, provider=provider, attempts=attempts)
        except LLMError as e:
            emit_error_metric(provider.value, e.code)
            log_llm_call(
                provider=provider.value,
                model=config.model_name,
                endpoint=config.endpoint_url,
                latency_ms=int((time.perf_counter() - t0) * 1000),
                status="FAILED",
                attempts=e.attempts or attempts,
                max_tokens=max_tokens,
                streamed=stream,
                error_code=e.code,
            )
            raise

        text = post_process(raw)
        latency_ms = int((time.perf_counter() - t0) * 1000)
        emit_latency_metric(provider.value, config.model_name, float(latency_ms))
        log_llm_call(
            provider=provider.value,
            model=config.model_name,
            endpoint=config.endpoint_url,
            latency_ms=latency_ms,
            status="SUCCEEDED",
            attempts=attempts,
            max_tokens=max_tokens,
            streamed=stream,
        )
        if self._settings.log_previews:
            logger.debug("Response preview: %s", redact_preview(text))
        return LLMResponse(
            text=text,
            raw_text=raw,
            provider=provider,
            model=config.model_name,
            latency_ms=latency_ms,
            attempts=attempts,
            streamed=stream,
        )

    async def test_connection(self, config: ModelConfig) -> None:
        """Minimal single-attempt probe. Only transport failures and 5xx count as unreachable."""
        provider = config.provider
        logger.info("Testing connection to %s (%s)", config.endpoint_url, provider.value)
        payload = build_payload(
            config,
            [ChatMessage(role="user", content="test")],
            self._settings.connection_test_max_tokens,
        )
        try:
            await self._post_with_retry(
                config.endpoint_url,
                payload,
                build_headers(config),
                self._settings.connection_test_timeout_s,
                max_attempts=1,
                provider=provider,
            )
        except LLMServerError as e:
            raise LLMConnectionError(
                f"LLM server is not available (status: {e.status_code})",
                provider=provider,
                status_code=e.status_code,
                details=e.code,
                attempts=e.attempts,
            ) from e
        except LLMError as e:
            raise LLMConnectionError(
                f"Could not connect to LLM: {e}",
                provider=provider,
                details=e.code,
                attempts=e.attempts,
            ) from e
        logger.info("Connection to %s OK", config.endpoint_url)

    async def _post_with_retry(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
        *,
        max_attempts: int,
        provider: LLMProvider,
    ) -> tuple[httpx.Response, int]:
        """POST with retries on 5xx/transport errors. Returns (response with status < 500, attempts)."""
        last_error: LLMError | None = None
        async with self._client(timeout) as client:
            for attempt in range(1, max_attempts + 1):
                if attempt > 1:
                    delay = self._settings.retry_delay_s * (attempt - 1)
                    logger.warning(
                        "Request failed (attempt %d/%d): %s; retrying in %.1fs",
                        attempt - 1,
                        max_attempts,
                        last_error,
                        delay,
                    )
                    emit_retry_metric(provider.value, attempt, last_error.code if last_error else "")
                    await asyncio.sleep(delay)
                try:
                    # httpx limits each phase separately; this bounds the whole attempt.
                    resp = await asyncio.wait_for(client.post(url, json=payload, headers=headers), timeout)
                except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                    last_error = LLMTimeout(
                        f"No response within {timeout:.0f}s",
                        provider=provider,
                        details=type(e).__name__,
                        attempts=attempt,
                    )
                    continue
                except httpx.TransportError as e:
                    last_error = LLMTransportError(
                        str(e) or type(e).__name__,
                        provider=provider,
                        details=type(e).__name__,
                        attempts=attempt,
                    )
                    continue
                if resp.status_code < 500:
                    return resp, attempt
                last_error = _status_error(resp.status_code, resp.text, provider=provider, attempts=attempt)

        if isinstance(last_error, LLMTimeout):
            raise LLMTimeout(
                f"Timed out after {max_attempts} attempt(s): the server did not respond. "
                "Check the endpoint URL and that the server is available",
                provider=provider,
                details=last_error.details,
                attempts=max_attempts,
            )
        if last_error is not None:
            raise type(last_error)(
                f"Failed after {max_attempts} attempt(s): {last_error}",
                provider=provider,
                details=last_error.details,
                status_code=last_error.status_code,
                attempts=max_attempts,
            )
        raise LLMTransportError("No attempts were made", provider=provider)

    def _read_content(self, resp: httpx.Response, *, provider: LLMProvider, attempts: int) -> str:
        body = resp.text
        if not resp.is_success:
            raise _status_error(resp.status_code, body, provider=provider, attempts=attempts)
        try:
            result = decode_response(body)
        except LLMError as e:
            e.provider = provider
            e.attempts = attempts
            raise
        logger.debug("Response decoded by %s decoder (%d chars)", result.decoder, len(result.content or ""))
        content = result.content or ""
        if not content.strip():
            raise LLMEmptyResponse(provider=provider, attempts=attempts)
        return content

    async def _stream_chat(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
        provider: LLMProvider,
    ) -> str:
        """Single-attempt streaming request; accumulates `data: ` events."""
        accumulator = StreamAccumulator()
        async with self._client(timeout) as client:
            try:
                async with client.stream("POST", url, json=payload, headers=headers) as resp:
                    if not resp.is_success:
                        body = (await resp.aread()).decode("utf-8", errors="replace")
                        raise _status_error(resp.status_code, body, provider=provider, attempts=1)
                    async for line in resp.aiter_lines():
                        if accumulator.feed_line(line):
                            break
            except httpx.TimeoutException as e:
                raise LLMTimeout(
                    f"Stream stalled for more than {timeout:.0f}s",
                    provider=provider,
                    details=type(e).__name__,
                    attempts=1,
                ) from e
            except httpx.TransportError as e:
                raise LLMTransportError(
                    f"Streaming request failed: {e}",
                    provider=provider,
                    details=type(e).__name__,
                    attempts=1,
                ) from e
        if accumulator.skipped_lines:
            logger.warning("Skipped %d malformed stream line(s)", accumulator.skipped_lines)
        content = accumulator.text
        if not content.strip():
            raise LLMEmptyResponse("No content received from stream", provider=provider, attempts=1)
        logger.info("Streaming completed: %d chars", len(content))
        return content
