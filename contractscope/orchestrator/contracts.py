"""Minimal Protocols the orchestrator depends on (not concrete implementations)."""
from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from contractscope.orchestrator.models import ContractRecord, RecordStats


@runtime_checkable
class TextExtractorPort(Protocol):
    """Plain text of a document. Raises ExtractionError."""

    async def extract_text(self, path: Path) -> str:
        ...


@runtime_checkable
class RecordStorePort(Protocol):
    """Analysis history keyed by content hash. Every method raises RecordStoreError on failure."""

    async def create(self, record: ContractRecord) -> int:
        """Insert and return the new id."""
        ...

    async def update(self, record: ContractRecord) -> None:
        ...

    async def get_by_hash(self, file_hash: str) -> ContractRecord | None:
        ...

    async def get(self, record_id: int) -> ContractRecord | None:
        ...

    async def list_recent(self, limit: int = 20) -> list[ContractRecord]:
        ...

    async def search(self, query: str, limit: int = 20, offset: int = 0) -> list[ContractRecord]:
        """Filename substring match, newest first."""
        ...

    async def stats(self) -> RecordStats:
        ...
