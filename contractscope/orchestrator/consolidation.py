"""
Reduce-phase helpers: per-fragment truncation, single-pass grouping, prompt assembly and output budgets.

Grouping is applied at most once. A grouped list that still exceeds MAX_FRAGMENTS is passed on as is;
the prompt budget then decides how many groups reach the model.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from contractscope.orchestrator.models import AnalysisFragmentResult
from contractscope.text.budget import (
    CHARS_PER_TOKEN,
    GROUP_SIZE,
    LOCAL_MAX_INPUT_TOKENS,
    MAX_CHARS_PER_FRAGMENT,
    MAX_FRAGMENTS,
    MAX_OUTPUT_TOKENS,
    MIN_CONSOLIDATION_TOKENS,
    MIN_OUTPUT_TOKENS,
    ONLINE_CONTEXT_WINDOW,
    SAFETY_MARGIN,
    clamp,
)
from contractscope.text.cleaner import clean_fragment

logger = logging.getLogger(__name__)

REMAINDER_OMITTED = "\n[Remainder omitted]"
FRAGMENTS_OMITTED = "\n\n[Additional fragments omitted due to token limit]"
_SEPARATOR = "\n\n"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + REMAINDER_OMITTED


@dataclass(frozen=True, slots=True)
class FragmentGroup:
    """Fragments `start`..`end` (1-based, inclusive) joined, cleaned and truncated."""

    start: int
    end: int
    text: str

    def render(self) -> str:
        return f"GROUP {self.start}-{self.end}:\n{self.text}"


def prepare_fragments(results: Sequence[AnalysisFragmentResult]) -> list[str]:
    """Render, clean and cap each map-phase result."""
    return [truncate(clean_fragment(r.render()), MAX_CHARS_PER_FRAGMENT) for r in results]


def group_fragments(
    fragments: Sequence[str],
    group_size: int = GROUP_SIZE,
    max_chars: int = MAX_CHARS_PER_FRAGMENT * 2,
) -> list[FragmentGroup]:
    """Consecutive groups of `group_size` in original order; the last group may be shorter."""
    groups: list[FragmentGroup] = []
    for start in range(0, len(fragments), group_size):
        end = min(start + group_size, len(fragments))
        text = clean_fragment(_SEPARATOR.join(fragments[start:end]))
        groups.append(FragmentGroup(start=start + 1, end=end, text=truncate(text, max_chars)))
    logger.info("Hierarchical consolidation: %d fragments -> %d groups", len(fragments), len(groups))
    return groups


def reduce_inputs(results: Sequence[AnalysisFragmentResult]) -> list[str]:
    """Fragment texts ready for the consolidation prompt, grouped once when there are too many."""
    prepared = prepare_fragments(results)
    if len(prepared) > MAX_FRAGMENTS:
        return [g.render() for g in group_fragments(prepared)]
    return prepared


def build_consolidation_prompt(instruction: str, fragments: Sequence[str]) -> str:
    """Instruction plus whole fragments, in order, while they fit the local input budget."""
    max_chars = LOCAL_MAX_INPUT_TOKENS * CHARS_PER_TOKEN
    total = len(instruction)
    parts: list[str] = []
    for i, fragment in enumerate(fragments):
        if total + len(fragment) + 4 > max_chars:
            logger.warning("Omitting fragments %d-%d: consolidation prompt limit reached", i + 1, len(fragments))
            parts.append(FRAGMENTS_OMITTED)
            break
        parts.append(fragment + _SEPARATOR)
        total += len(fragment) + len(_SEPARATOR)
    return f"{instruction}{_SEPARATOR}{''.join(parts)}"


def consolidation_output_tokens(prompt_tokens: int, context_window: int) -> int:
    return clamp(context_window - prompt_tokens - SAFETY_MARGIN, MIN_CONSOLIDATION_TOKENS, MAX_OUTPUT_TOKENS)


def single_request_output_tokens(input_tokens: int) -> int:
    return clamp(ONLINE_CONTEXT_WINDOW - input_tokens - SAFETY_MARGIN, MIN_OUTPUT_TOKENS, MAX_OUTPUT_TOKENS)
