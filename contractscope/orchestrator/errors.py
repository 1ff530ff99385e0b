"""Orchestrator-specific exceptions."""
from __future__ import annotations


class OrchestratorError(Exception):
    """Base exception for orchestrator failures."""

    # Set by the orchestrator once the run has a history record.
    record_id: int | None = None

    def __init__(self, message: str, *, code: str = "ORCHESTRATOR_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ExtractionError(OrchestratorError):
    """Source text could not be obtained from the document."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="EXTRACTION_FAILED")


class ProcessingError(OrchestratorError):
    """A map or consolidation request failed; the whole run is aborted."""

    def __init__(self, message: str, *, fragment_index: int | None = None, cause_code: str | None = None) -> None:
        super().__init__(message, code="PROCESSING_FAILED")
        self.fragment_index = fragment_index
        self.cause_code = cause_code


class AnalysisTimeout(OrchestratorError):
    """The per-run deadline expired."""

    def __init__(self, message: str, *, deadline_s: float | None = None) -> None:
        super().__init__(message, code="DEADLINE_EXCEEDED")
        self.deadline_s = deadline_s


class RecordStoreError(OrchestratorError):
    """Record store operation failed. Never changes a run's outcome."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="STORE_ERROR")
