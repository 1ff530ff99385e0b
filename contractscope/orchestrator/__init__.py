"""
Orchestrator: token forecasting and map/reduce analysis of one contract.
Public API: AnalysisService, AnalysisOrchestrator, TokenEstimator, AnalysisRequest, AnalysisOutcome.
"""
from contractscope.orchestrator.errors import (
    AnalysisTimeout,
    ExtractionError,
    OrchestratorError,
    ProcessingError,
    RecordStoreError,
)
from contractscope.orchestrator.estimator import TokenEstimator
from contractscope.orchestrator.locking import LocalModelSlot
from contractscope.orchestrator.models import (
    AnalysisFragmentResult,
    AnalysisOutcome,
    AnalysisRequest,
    ConnectionCheck,
    ContractRecord,
    RecordStats,
    RecordStatus,
    RunStage,
    TokenForecast,
)
from contractscope.orchestrator.orchestrator import AnalysisOrchestrator
from contractscope.orchestrator.service import AnalysisService
from contractscope.orchestrator.settings import OrchestratorSettings

__all__ = [
    "AnalysisService",
    "AnalysisOrchestrator",
    "TokenEstimator",
    "LocalModelSlot",
    "OrchestratorSettings",
    "AnalysisRequest",
    "AnalysisOutcome",
    "AnalysisFragmentResult",
    "ConnectionCheck",
    "ContractRecord",
    "RecordStats",
    "RecordStatus",
    "RunStage",
    "TokenForecast",
    "OrchestratorError",
    "ExtractionError",
    "ProcessingError",
    "AnalysisTimeout",
    "RecordStoreError",
]
