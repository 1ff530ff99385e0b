"""Text module: token budget model, splitter, fragment cleaner. Pure functions only."""
from contractscope.text.budget import estimate_tokens, max_chunk_chars
from contractscope.text.cleaner import clean_fragment
from contractscope.text.splitter import TextFragment, split_text

__all__ = [
    "TextFragment",
    "clean_fragment",
    "estimate_tokens",
    "max_chunk_chars",
    "split_text",
]
