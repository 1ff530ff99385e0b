"""Gateway retry, status mapping, streaming and probe tests over httpx.MockTransport (no network)."""
import asyncio
import json

import httpx
import pytest

from contractscope.llm.errors import (
    LLMClientError,
    LLMConfigurationError,
    LLMConnectionError,
    LLMEmptyResponse,
    LLMParseError,
    LLMServerError,
    LLMTimeout,
)
from contractscope.llm.gateway import ModelGateway, build_payload
from contractscope.llm.settings import LLMSettings
from contractscope.llm.types import ChatMessage, ModelConfig

LOCAL_URL = "http://localhost:11434/api/chat"
ONLINE_URL = "https://api.example.test/v1/chat/completions"


def _settings(**overrides) -> LLMSettings:
    return LLMSettings(retry_delay_s=0.0, **overrides)


def _local() -> ModelConfig:
    return ModelConfig.local(LOCAL_URL, "qwen3:8b", 2000)


def _online() -> ModelConfig:
    return ModelConfig.online(ONLINE_URL, "sk-test-key", "gpt-4o-mini", 2000)


def _messages() -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content="You are a contract analyst."),
        ChatMessage(role="user", content="Summarize this contract."),
    ]


def _local_body(content: str) -> dict:
    return {"message": {"role": "assistant", "content": content}, "done": True}


def _online_body(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class _Recorder:
    """Replays scripted responses and records the requests it saw."""

    def __init__(self, *responses) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.mark.asyncio
async def test_local_request_uses_max_tokens_field_and_no_auth() -> None:
    rec = _Recorder(httpx.Response(200, json=_local_body("Summary text")))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    resp = await gw.send_chat(_local(), _messages(), 1200)
    assert resp.text == "Summary text"
    assert resp.attempts == 1
    sent = json.loads(rec.requests[0].content)
    assert sent["max_tokens"] == 1200
    assert "max_completion_tokens" not in sent
    assert sent["model"] == "qwen3:8b"
    assert sent["stream"] is False
    assert [m["role"] for m in sent["messages"]] == ["system", "user"]
    assert "authorization" not in rec.requests[0].headers


@pytest.mark.asyncio
async def test_online_request_uses_completion_field_and_bearer() -> None:
    rec = _Recorder(httpx.Response(200, json=_online_body("Online answer")))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    resp = await gw.send_chat(_online(), _messages(), 2000)
    assert resp.text == "Online answer"
    sent = json.loads(rec.requests[0].content)
    assert sent["max_completion_tokens"] == 2000
    assert "max_tokens" not in sent
    assert rec.requests[0].headers["authorization"] == "Bearer sk-test-key"


@pytest.mark.asyncio
async def test_two_server_errors_then_success_reports_two_retries() -> None:
    rec = _Recorder(
        httpx.Response(503, text="busy"),
        httpx.Response(503, text="busy"),
        httpx.Response(200, json=_local_body("Recovered")),
    )
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    resp = await gw.send_chat(_local(), _messages(), 500)
    assert resp.text == "Recovered"
    assert resp.attempts == 3
    assert resp.retries == 2
    assert len(rec.requests) == 3


@pytest.mark.asyncio
async def test_client_error_is_not_retried() -> None:
    rec = _Recorder(httpx.Response(404, text="model not found"))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    with pytest.raises(LLMClientError) as exc:
        await gw.send_chat(_local(), _messages(), 500)
    assert exc.value.status_code == 404
    assert exc.value.attempts == 1
    assert "model not found" in str(exc.value)
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_server_errors_exhaust_attempts() -> None:
    rec = _Recorder(*[httpx.Response(500, text="boom") for _ in range(3)])
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    with pytest.raises(LLMServerError) as exc:
        await gw.send_chat(_local(), _messages(), 500)
    assert exc.value.attempts == 3
    assert exc.value.status_code == 500
    assert len(rec.requests) == 3


@pytest.mark.asyncio
async def test_repeated_timeouts_surface_as_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    gw = ModelGateway(_settings(max_attempts=2), transport=httpx.MockTransport(handler))
    with pytest.raises(LLMTimeout) as exc:
        await gw.send_chat(_online(), _messages(), 500)
    assert exc.value.attempts == 2
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_slow_response_is_bounded_by_wall_clock_timeout() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200, json=_local_body("too late"))

    settings = _settings(max_attempts=1, local_timeout_s=0.05, network_overhead_s=0.0)
    gw = ModelGateway(settings, transport=httpx.MockTransport(handler))
    with pytest.raises(LLMTimeout) as exc:
        await gw.send_chat(_local(), _messages(), 0)
    assert exc.value.attempts == 1


@pytest.mark.asyncio
async def test_cancellation_during_retry_sleep_stops_retrying() -> None:
    rec = _Recorder(*[httpx.Response(503, text="busy") for _ in range(3)])
    gw = ModelGateway(LLMSettings(retry_delay_s=5.0), transport=httpx.MockTransport(rec))
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(gw.send_chat(_local(), _messages(), 500), 0.3)
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_unknown_body_raises_parse_error_with_raw_body() -> None:
    rec = _Recorder(httpx.Response(200, text='{"unexpected": "shape"}'))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    with pytest.raises(LLMParseError) as exc:
        await gw.send_chat(_local(), _messages(), 500)
    assert '{"unexpected": "shape"}' in str(exc.value)


@pytest.mark.asyncio
async def test_blank_content_raises_empty_response() -> None:
    rec = _Recorder(httpx.Response(200, json=_online_body("   ")))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    with pytest.raises(LLMEmptyResponse):
        await gw.send_chat(_online(), _messages(), 500)


@pytest.mark.asyncio
async def test_blank_model_name_is_rejected_before_any_request() -> None:
    rec = _Recorder()
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    config = ModelConfig.local(LOCAL_URL, "", 500)
    with pytest.raises(LLMConfigurationError):
        await gw.send_chat(config, _messages(), 500)
    assert rec.requests == []


@pytest.mark.asyncio
async def test_answer_is_post_processed() -> None:
    raw = "<think>internal reasoning</think>\n## Summary\nThe contract is a lease."
    rec = _Recorder(httpx.Response(200, json=_local_body(raw)))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    resp = await gw.send_chat(_local(), _messages(), 500)
    assert resp.text == "Summary\nThe contract is a lease."
    assert resp.raw_text == raw


@pytest.mark.asyncio
async def test_streaming_accumulates_events_until_done() -> None:
    lines = [
        'data: {"choices": [{"delta": {"content": "Hello "}}]}',
        "",
        "data: not-json",
        'data: {"choices": [{"delta": {"content": "world"}}]}',
        "data: [DONE]",
        'data: {"choices": [{"delta": {"content": "ignored"}}]}',
    ]
    rec = _Recorder(httpx.Response(200, content=("\n".join(lines) + "\n").encode()))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    resp = await gw.send_chat(_online(), _messages(), 500, stream=True)
    assert resp.text == "Hello world"
    assert resp.streamed is True
    assert json.loads(rec.requests[0].content)["stream"] is True


@pytest.mark.asyncio
async def test_streaming_error_status_is_not_retried() -> None:
    rec = _Recorder(httpx.Response(502, text="bad gateway"))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    with pytest.raises(LLMServerError):
        await gw.send_chat(_local(), _messages(), 500, stream=True)
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_connection_probe_accepts_client_errors() -> None:
    rec = _Recorder(httpx.Response(401, text="unauthorized"))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    await gw.test_connection(_online())
    sent = json.loads(rec.requests[0].content)
    assert sent["messages"] == [{"role": "user", "content": "test"}]
    assert sent["max_completion_tokens"] == 10


@pytest.mark.asyncio
async def test_connection_probe_fails_on_server_error_without_retry() -> None:
    rec = _Recorder(httpx.Response(503, text="down"))
    gw = ModelGateway(_settings(), transport=httpx.MockTransport(rec))
    with pytest.raises(LLMConnectionError) as exc:
        await gw.test_connection(_local())
    assert exc.value.status_code == 503
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_connection_probe_fails_on_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gw = ModelGateway(_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(LLMConnectionError) as exc:
        await gw.test_connection(_local())
    assert exc.value.details == "TRANSPORT"


def test_build_payload_omits_non_positive_token_budget() -> None:
    payload = build_payload(_local(), _messages(), 0)
    assert "max_tokens" not in payload
