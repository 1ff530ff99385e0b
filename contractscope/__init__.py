"""Map/reduce analysis of long legal contracts against token-limited language models."""

__version__ = "0.1.0"
