"""Token budget model: character-based estimates and chunk-size ceilings. No tokenizer, no I/O."""
from __future__ import annotations

# Context windows (tokens). Local sizing targets a small self-hosted model.
LOCAL_CONTEXT_WINDOW = 8000
ONLINE_CONTEXT_WINDOW = 128_000
SAFETY_MARGIN = 1000
MAX_OUTPUT_TOKENS = 2000
LOCAL_MAX_INPUT_TOKENS = LOCAL_CONTEXT_WINDOW - MAX_OUTPUT_TOKENS - SAFETY_MARGIN

# Chunking (characters)
DEFAULT_CHUNK_SIZE = 3000
MIN_CHUNK_SIZE = 500
CHARS_PER_TOKEN = 3

# Output caps (tokens)
PHASE1_MAX_TOKENS = 1200
MIN_OUTPUT_TOKENS = 800
MIN_CONSOLIDATION_TOKENS = 1800
USER_INSTRUCTION_TOKENS = 50

# Consolidation
MAX_FRAGMENTS = 4
MAX_CHARS_PER_FRAGMENT = 2500
GROUP_SIZE = 3

WARNING_VERY_LARGE = (
    "Very large document. The analysis may take more than 20 minutes. "
    "Consider splitting the document."
)
WARNING_LARGE = "Large document. The analysis may take 10-20 minutes."
WARNING_HIGH_USAGE = (
    "High token usage. Consider a model with a larger context window or a lower max tokens setting."
)


def estimate_tokens(text: str) -> int:
    """Conservative token estimate: floor(len / CHARS_PER_TOKEN)."""
    return len(text) // CHARS_PER_TOKEN


def clamp(value: int, low: int, high: int) -> int:
    """Clamp into [low, high]; the upper bound wins if the range is inverted."""
    return min(high, max(low, value))


def max_chunk_chars(system_prompt: str) -> int:
    """
    Largest fragment (chars) that fits one local-model request next to the system prompt.
    Always sized against the local budget so the result is safe for either provider.
    """
    available = LOCAL_MAX_INPUT_TOKENS - estimate_tokens(system_prompt) - USER_INSTRUCTION_TOKENS
    return clamp(available * CHARS_PER_TOKEN, MIN_CHUNK_SIZE, DEFAULT_CHUNK_SIZE)


def single_request_token_limit() -> int:
    return ONLINE_CONTEXT_WINDOW - SAFETY_MARGIN - MAX_OUTPUT_TOKENS


def fits_single_request(text: str) -> bool:
    """True when the whole document fits one online-model request."""
    return estimate_tokens(text) < single_request_token_limit()


def recommended_max_tokens(chunks: int, char_count: int) -> int:
    """Step function; later rules override earlier ones."""
    recommended = 800
    if chunks > 10:
        recommended = 1000
    if chunks > 20:
        recommended = 1500
    if char_count > 50_000:
        recommended = 2000
    return recommended


def forecast_warning(chunks: int, total_tokens: int) -> str | None:
    """First matching threshold wins: chunk counts before token usage."""
    if chunks > 30:
        return WARNING_VERY_LARGE
    if chunks > 15:
        return WARNING_LARGE
    if total_tokens > 100_000:
        return WARNING_HIGH_USAGE
    return None
