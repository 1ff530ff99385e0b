"""Document -> plain text. Only module that imports docling."""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from contractscope.extraction.settings import ExtractionSettings
from contractscope.orchestrator.errors import ExtractionError

logger = logging.getLogger(__name__)

# Lazy converter singleton per process
_converter_instance: Any = None


def _get_converter() -> Any:
    global _converter_instance
    if _converter_instance is not None:
        return _converter_instance
    from docling.document_converter import DocumentConverter
    _converter_instance = DocumentConverter()
    return _converter_instance


class DoclingTextExtractor:
    """TextExtractorPort implementation: direct read for plain text, docling for everything else."""

    def __init__(self, settings: ExtractionSettings | None = None) -> None:
        self._settings = settings or ExtractionSettings()

    async def extract_text(self, path: Path) -> str:
        path = Path(path)
        self._check_input(path)
        if path.suffix.lower() in self._settings.plain_text_suffixes:
            text = await asyncio.to_thread(self._read_plain, path)
        else:
            text = await self._convert(path)
        if not text.strip():
            raise ExtractionError(f"No text could be extracted from {path.name}")
        logger.info("Extracted %d characters from %s", len(text), path.name)
        return text

    def _check_input(self, path: Path) -> None:
        if not path.is_file():
            raise ExtractionError(f"File not found: {path}")
        size = path.stat().st_size
        if size > self._settings.max_file_size_bytes:
            raise ExtractionError(
                f"File size {size} exceeds max {self._settings.max_file_size_bytes} bytes"
            )

    @staticmethod
    def _read_plain(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractionError(f"Could not read {path.name}: {e}") from e

    async def _convert(self, path: Path) -> str:
        timeout = self._settings.parse_timeout_seconds
        t0 = time.perf_counter()
        try:
            text = await asyncio.wait_for(asyncio.to_thread(self._convert_sync, path), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ExtractionError(f"Parse of {path.name} exceeded {timeout:.0f}s") from e
        logger.debug("Converted %s in %.2fs", path.name, time.perf_counter() - t0)
        return text

    def _convert_sync(self, path: Path) -> str:
        try:
            converter = _get_converter()
            result = converter.convert(
                path,
                max_file_size=self._settings.max_file_size_bytes,
                max_num_pages=self._settings.max_num_pages,
            )
        except ImportError as e:
            raise ExtractionError(
                f"Cannot convert {path.suffix or 'this'} files: docling is not installed"
            ) from e
        except Exception as e:
            raise ExtractionError(f"Failed to convert {path.name}: {e}") from e
        document = getattr(result, "document", None)
        if document is None:
            raise ExtractionError(f"Conversion of {path.name} produced no document")
        return document.export_to_markdown()
