"""Fragment cleaner: strip markdown noise and emojis from model output."""
from __future__ import annotations

_HEADING_MARKERS = ("###", "##", "#")
_EMOJIS = ("📄", "✅", "❌", "⚠️", "⚠", "🔍", "📊", "💡", "🎯", "🚀", "⚡", "🔧")
_RULES = ("---", "***", "===")


def _clean_once(text: str) -> str:
    for marker in _HEADING_MARKERS:
        text = text.replace(marker, "")
    for emoji in _EMOJIS:
        text = text.replace(emoji, "")
    for rule in _RULES:
        text = text.replace(rule, "")
    while "  " in text:
        text = text.replace("  ", " ")
    while "\n\n\n" in text:
        text = text.replace("\n\n\n", "\n\n")
    return text.strip()


def clean_fragment(text: str) -> str:
    """
    Remove heading markers, a fixed emoji set and rule lines; collapse repeated spaces and blank lines.

    Runs to a fixed point: removing "***" from "--***-" leaves a new "---", so a single
    pass is not idempotent. Every pass shortens the text or leaves it unchanged.
    """
    current = text
    while True:
        cleaned = _clean_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned
