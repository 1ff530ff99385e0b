"""
Response normalization: ordered decoder cascade, SSE stream accumulation, answer post-processing.

Decoder order matters. A body that validates against both schemas resolves to the local
(Ollama-style) field, so the local decoder always runs first.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable

from pydantic import BaseModel, Field, ValidationError

from contractscope.llm.errors import LLMParseError

logger = logging.getLogger(__name__)

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"
_MIN_THINKING_ANSWER_CHARS = 100
_JSON_ANSWER_FIELDS = ("text", "response", "content")
_HEADING = re.compile(r"#+ ")
_RAW_BODY_MAX_CHARS = 2000


class MessagePayload(BaseModel):
    role: str = ""
    content: str | None = None


class LocalChatResponse(BaseModel):
    """Ollama-style body: {"message": {"role", "content"}, "done"}."""

    message: MessagePayload
    done: bool = False


class Choice(BaseModel):
    message: MessagePayload | None = None
    delta: MessagePayload | None = None


class OnlineChatResponse(BaseModel):
    """OpenAI-style body: {"choices": [{"message": {...}}]}."""

    choices: list[Choice] = Field(min_length=1)


class StreamEvent(BaseModel):
    """One `data:` payload. Local streams send message/done; online streams send choices[].delta."""

    message: MessagePayload | None = None
    choices: list[Choice] = Field(default_factory=list)
    done: bool = False


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of one decoder: content on success, reason on failure."""

    decoder: str
    content: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.content)


def decode_local(body: str) -> DecodeResult:
    try:
        parsed = LocalChatResponse.model_validate_json(body)
    except ValidationError as e:
        return DecodeResult("local", error=f"not a local response: {e.error_count()} validation error(s)")
    if not parsed.message.content:
        return DecodeResult("local", error="local response has no content")
    return DecodeResult("local", content=parsed.message.content)


def decode_online(body: str) -> DecodeResult:
    try:
        parsed = OnlineChatResponse.model_validate_json(body)
    except ValidationError as e:
        return DecodeResult("online", error=f"not an online response: {e.error_count()} validation error(s)")
    first = parsed.choices[0].message
    if first is None or not first.content:
        return DecodeResult("online", error="online response has no content")
    return DecodeResult("online", content=first.content)


RESPONSE_DECODERS: tuple[Callable[[str], DecodeResult], ...] = (decode_local, decode_online)


def decode_response(body: str) -> DecodeResult:
    """Run the cascade; first success wins. Raises LLMParseError with the raw body on exhaustion."""
    failures: list[str] = []
    for decoder in RESPONSE_DECODERS:
        result = decoder(body)
        if result.ok:
            if failures:
                logger.debug("Response decoded by %s decoder after: %s", result.decoder, "; ".join(failures))
            return result
        failures.append(result.error or result.decoder)
    raw = body if len(body) <= _RAW_BODY_MAX_CHARS else body[:_RAW_BODY_MAX_CHARS] + "..."
    raise LLMParseError(
        f"Unrecognized response shape ({'; '.join(failures)}). Body: {raw}",
        details="; ".join(failures),
    )


def event_content(event: StreamEvent) -> str:
    """Content of one stream event: local message first, then online delta/message."""
    if event.message is not None and event.message.content:
        return event.message.content
    if event.choices:
        first = event.choices[0]
        for payload in (first.delta, first.message):
            if payload is not None and payload.content:
                return payload.content
    return ""


class StreamAccumulator:
    """Collects content from `data: ` framed lines until [DONE] or done=true."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self.finished = False
        self.skipped_lines = 0

    def feed_line(self, line: str) -> bool:
        """Consume one line. Returns True once the stream has signalled completion."""
        if self.finished or not line.startswith("data: "):
            return self.finished
        data = line[len("data: "):].strip()
        if data == "[DONE]":
            self.finished = True
            return True
        try:
            event = StreamEvent.model_validate_json(data)
        except ValidationError:
            self.skipped_lines += 1
            logger.warning("Skipping malformed stream line (%d chars)", len(data))
            return False
        content = event_content(event)
        if content:
            self._parts.append(content)
        if event.done:
            self.finished = True
        return self.finished

    @property
    def text(self) -> str:
        return "".join(self._parts)


def extract_after_thinking(content: str) -> str:
    """Answer after the last </think>; falls back to a long thinking interior when nothing follows."""
    if THINK_CLOSE not in content:
        return content
    after = content.rsplit(THINK_CLOSE, 1)[1].strip()
    if after:
        return after
    start = content.find(THINK_OPEN)
    if start != -1:
        end = content.find(THINK_CLOSE, start)
        interior = content[start + len(THINK_OPEN):end]
        if len(interior) > _MIN_THINKING_ANSWER_CHARS:
            return interior.strip()
    return after


def unwrap_json_answer(content: str) -> str:
    """If the answer is a single JSON object, prefer its text/response/content string field."""
    stripped = content.strip()
    if not (stripped.startswith("{") and stripped.endswith("}")):
        return content
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        return content
    if not isinstance(payload, dict):
        return content
    for field in _JSON_ANSWER_FIELDS:
        value = payload.get(field)
        if isinstance(value, str) and value:
            return value
    return content


def strip_markdown(content: str) -> str:
    """Drop heading markers; drop every asterisk when they exceed 10% of the text."""
    content = _HEADING.sub("", content)
    if content.count("*") > len(content) // 10:
        content = content.replace("*", "")
    return content.strip()


def post_process(content: str) -> str:
    """Normalize an accepted answer. Never turns non-empty content into an empty string."""
    processed = extract_after_thinking(content)
    processed = unwrap_json_answer(processed)
    processed = strip_markdown(processed)
    if not processed.strip() and content.strip():
        logger.warning("Content became empty after post-processing; returning original content")
        return content
    return processed
