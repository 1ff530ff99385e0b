"""Text extraction adapter and content hashing."""
from contractscope.extraction.extractor import DoclingTextExtractor
from contractscope.extraction.hashing import compute_sha256
from contractscope.extraction.settings import ExtractionSettings

__all__ = ["DoclingTextExtractor", "ExtractionSettings", "compute_sha256"]
