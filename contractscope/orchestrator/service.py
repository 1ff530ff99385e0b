"""
Caller-facing boundary: serializes local runs, enforces run deadlines and maps every failure to one outcome.

Public use cases: run (analyze a document), test_connection, estimate, and the record history reads.
"""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Mapping

from contractscope.llm.errors import LLMError
from contractscope.llm.ports import ModelGatewayPort
from contractscope.llm.types import ModelConfig
from contractscope.orchestrator.contracts import RecordStorePort, TextExtractorPort
from contractscope.orchestrator.errors import AnalysisTimeout, OrchestratorError, RecordStoreError
from contractscope.orchestrator.estimator import TokenEstimator
from contractscope.orchestrator.locking import LocalModelSlot
from contractscope.orchestrator.models import (
    AnalysisOutcome,
    AnalysisRequest,
    ConnectionCheck,
    ContractRecord,
    RecordStats,
    TokenForecast,
)
from contractscope.orchestrator.orchestrator import AnalysisOrchestrator, resolve_config
from contractscope.orchestrator.settings import OrchestratorSettings

logger = logging.getLogger(__name__)


class AnalysisService:
    """Entry point for callers. Construct once per process so the local-model slot is shared."""

    def __init__(
        self,
        gateway: ModelGatewayPort,
        extractor: TextExtractorPort,
        store: RecordStorePort | None = None,
        *,
        slot: LocalModelSlot | None = None,
        settings: OrchestratorSettings | None = None,
    ) -> None:
        self._settings = settings or OrchestratorSettings()
        self._gateway = gateway
        self._store = store
        self._slot = slot or LocalModelSlot()
        self._orchestrator = AnalysisOrchestrator(gateway, extractor, store, settings=self._settings)
        self._estimator = TokenEstimator(extractor)

    async def run(self, request: AnalysisRequest) -> AnalysisOutcome:
        """Analyze one document. Never raises for taxonomy errors; returns a failed outcome instead."""
        t0 = time.monotonic()
        try:
            config = resolve_config(request.config)
        except LLMError as e:
            logger.warning("Rejected analysis of %s: %s", request.filename, e)
            return AnalysisOutcome.failed(e, duration_s=time.monotonic() - t0)

        deadline = self._settings.deadline_for(config)
        try:
            async with self._slot.hold(config):
                return await asyncio.wait_for(
                    self._orchestrator.analyze(request.with_config(config)),
                    timeout=deadline,
                )
        except asyncio.TimeoutError:
            err = AnalysisTimeout(
                f"Analysis exceeded the {deadline:.0f}s deadline for {config.provider.value} models",
                deadline_s=deadline,
            )
            logger.error("Analysis of %s timed out after %.0fs", request.filename, deadline)
            return AnalysisOutcome.failed(
                err, duration_s=time.monotonic() - t0, record_id=await self._record_id_for(request)
            )
        except (LLMError, OrchestratorError) as e:
            return AnalysisOutcome.failed(e, duration_s=time.monotonic() - t0, record_id=e.record_id)
        except Exception as e:
            logger.exception("Unexpected failure analyzing %s", request.filename)
            return AnalysisOutcome.failed(e, duration_s=time.monotonic() - t0)

    async def test_connection(self, config: ModelConfig | Mapping[str, Any]) -> ConnectionCheck:
        t0 = time.monotonic()
        try:
            resolved = resolve_config(config)
            await self._gateway.test_connection(resolved)
        except LLMError as e:
            return ConnectionCheck(
                success=False,
                message=str(e),
                provider=e.provider.value if e.provider else None,
                error_code=e.code,
                latency_ms=int((time.monotonic() - t0) * 1000),
            )
        return ConnectionCheck(
            success=True,
            message="Connection successful",
            provider=resolved.provider.value,
            model_name=resolved.model_name,
            latency_ms=int((time.monotonic() - t0) * 1000),
        )

    def estimate_text(self, text: str, requested_max_output_tokens: int) -> TokenForecast:
        return self._estimator.estimate(text, requested_max_output_tokens)

    async def estimate(self, path: Path, requested_max_output_tokens: int) -> TokenForecast:
        """Forecast for a document on disk. Raises ExtractionError."""
        return await self._estimator.estimate_file(path, requested_max_output_tokens)

    async def get_record(self, record_id: int) -> ContractRecord | None:
        return await self._require_store().get(record_id)

    async def recent_records(self, limit: int = 20) -> list[ContractRecord]:
        return await self._require_store().list_recent(limit)

    async def search_records(self, query: str, limit: int = 20, offset: int = 0) -> list[ContractRecord]:
        return await self._require_store().search(query, limit, offset)

    async def record_stats(self) -> RecordStats:
        return await self._require_store().stats()

    async def _record_id_for(self, request: AnalysisRequest) -> int | None:
        """Id of the record a cancelled run left behind, looked up by content hash."""
        if self._store is None:
            return None
        try:
            record = await self._store.get_by_hash(request.file_hash)
        except RecordStoreError as e:
            logger.warning("Could not look up the record for %s: %s", request.filename, e)
            return None
        return record.id if record else None

    def _require_store(self) -> RecordStorePort:
        if self._store is None:
            raise RecordStoreError("No record store configured")
        return self._store
