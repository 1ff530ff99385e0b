"""Fixed-window splitting at natural boundaries. Deterministic; same input -> same fragments."""
from __future__ import annotations

import re
from dataclasses import dataclass

from contractscope.text.budget import MIN_CHUNK_SIZE

_SENTENCE_END = re.compile(r"[.!?]")
_WHITESPACE = re.compile(r"\s")


@dataclass(frozen=True, slots=True)
class TextFragment:
    """Contiguous slice of the source document. index is 1-based."""

    index: int
    text: str


def _last_match(pattern: re.Pattern[str], window: str) -> int:
    last = -1
    for m in pattern.finditer(window):
        last = m.start()
    return last


def _find_split_point(text: str, max_size: int) -> int:
    """Break position for a full window: blank line, sentence end, whitespace, else max_size."""
    search_start = (max_size * 7) // 10
    window = text[search_start:max_size]

    idx = window.rfind("\n\n")
    if idx != -1:
        return search_start + idx + 2
    idx = _last_match(_SENTENCE_END, window)
    if idx != -1:
        return search_start + idx + 1
    idx = _last_match(_WHITESPACE, window)
    if idx != -1:
        return search_start + idx + 1
    return max_size


def _split_strings(text: str, max_size: int) -> list[str]:
    text = text.strip()
    if not text:
        return []
    max_size = max(max_size, MIN_CHUNK_SIZE)
    if len(text) <= max_size:
        return [text]

    parts: list[str] = []
    while text:
        if len(text) > max_size:
            split_point = _find_split_point(text, max_size)
        else:
            split_point = len(text)
        part = text[:split_point].strip()
        if part:
            parts.append(part)
        text = text[split_point:].strip()
    return parts


def split_text(text: str, max_size: int) -> list[TextFragment]:
    """
    Split text into ordered fragments of at most max_size chars (raised to MIN_CHUNK_SIZE).
    Text that fits is returned verbatim (trimmed) as a single fragment; blank text yields none.
    """
    return [TextFragment(index=i, text=part) for i, part in enumerate(_split_strings(text, max_size), start=1)]
