"""Analysis orchestrator: validate -> cache check -> connection test -> extract -> map -> reduce -> persist."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping

from contractscope.llm.errors import LLMError
from contractscope.llm.ports import ModelGatewayPort
from contractscope.llm.types import ChatMessage, ModelConfig
from contractscope.orchestrator.consolidation import (
    build_consolidation_prompt,
    consolidation_output_tokens,
    reduce_inputs,
    single_request_output_tokens,
)
from contractscope.orchestrator.contracts import RecordStorePort, TextExtractorPort
from contractscope.orchestrator.errors import ExtractionError, OrchestratorError, ProcessingError, RecordStoreError
from contractscope.orchestrator.models import (
    AnalysisFragmentResult,
    AnalysisOutcome,
    AnalysisRequest,
    ContractRecord,
    RecordStatus,
    RunStage,
)
from contractscope.orchestrator.prompts import (
    CONSOLIDATION_INSTRUCTION,
    SINGLE_REQUEST_INSTRUCTION,
    SYSTEM_PROMPT,
    fragment_prompt,
    single_request_prompt,
)
from contractscope.orchestrator.settings import OrchestratorSettings
from contractscope.text.budget import PHASE1_MAX_TOKENS, estimate_tokens, fits_single_request, max_chunk_chars
from contractscope.text.cleaner import clean_fragment
from contractscope.text.splitter import split_text

logger = logging.getLogger(__name__)

DEADLINE_FAILURE_MESSAGE = "Analysis cancelled: run deadline exceeded"


def resolve_config(config: ModelConfig | Mapping[str, Any]) -> ModelConfig:
    """Accept a validated config or validate a raw mapping. Raises LLMConfigurationError."""
    if isinstance(config, ModelConfig):
        return config
    return ModelConfig.parse(config)


class AnalysisOrchestrator:
    """
    Sequential map/reduce analysis of one document.

    Holds no per-run state, so one instance may serve concurrent runs. Record-store
    failures are logged and never change a run's outcome.
    """

    def __init__(
        self,
        gateway: ModelGatewayPort,
        extractor: TextExtractorPort,
        store: RecordStorePort | None = None,
        *,
        settings: OrchestratorSettings | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._gateway = gateway
        self._extractor = extractor
        self._store = store
        self._settings = settings or OrchestratorSettings()
        self._system_prompt = system_prompt

    async def analyze(self, request: AnalysisRequest) -> AnalysisOutcome:
        """Run the full pipeline. Raises LLMError or OrchestratorError; cancellation propagates."""
        t0 = time.monotonic()
        self._stage(request, RunStage.VALIDATING)
        config = resolve_config(request.config)

        self._stage(request, RunStage.CACHE_CHECK)
        existing = await self._lookup(request.file_hash)
        if existing is not None and self._can_reuse(existing):
            logger.info("Reusing completed analysis for %s (record id=%s)", request.filename, existing.id)
            self._stage(request, RunStage.COMPLETED)
            return AnalysisOutcome(
                success=True,
                content=existing.analysis_result,
                duration_s=time.monotonic() - t0,
                fragment_count=existing.chunks_count,
                record_id=existing.id,
                reused=True,
            )
        record = existing if existing is not None else await self._create_record(request, config)

        try:
            self._stage(request, RunStage.CONNECTION_TEST)
            await self._gateway.test_connection(config)

            record.mark_analyzing()
            await self._save(record)

            self._stage(request, RunStage.EXTRACTING)
            text = await self._extractor.extract_text(request.file_path)
            if not text.strip():
                raise ExtractionError(f"No text could be extracted from {request.filename}")
            logger.info("Starting analysis of %s (%d characters)", request.filename, len(text))

            result, fragment_count = await self._run(request, text, config)
        except asyncio.CancelledError:
            self._stage(request, RunStage.FAILED)
            record.mark_failed(DEADLINE_FAILURE_MESSAGE)
            await self._save(record)
            raise
        except Exception as e:
            self._stage(request, RunStage.FAILED)
            logger.error("Analysis of %s failed: %s", request.filename, e)
            record.mark_failed(str(e))
            await self._save(record)
            if isinstance(e, (LLMError, OrchestratorError)):
                e.record_id = record.id
            raise

        duration = time.monotonic() - t0
        if not result.strip():
            logger.warning("Analysis result for %s is empty; reporting the fallback message", request.filename)
            result = self._settings.fallback_message

        record.mark_completed(
            result,
            character_count=len(text),
            estimated_tokens=estimate_tokens(text),
            chunks_count=fragment_count,
            processing_time_seconds=duration,
        )
        await self._save(record)
        self._stage(request, RunStage.COMPLETED)
        logger.info("Analysis of %s completed in %.2fs", request.filename, duration)
        return AnalysisOutcome(
            success=True,
            content=result,
            duration_s=duration,
            fragment_count=fragment_count,
            record_id=record.id,
        )

    async def _run(self, request: AnalysisRequest, text: str, config: ModelConfig) -> tuple[str, int]:
        """Returns (result text, fragment count)."""
        self._stage(request, RunStage.ANALYZING)
        if config.is_online and fits_single_request(text):
            logger.info("Document fits one request (~%d tokens); single-request mode", estimate_tokens(text))
            return await self._analyze_single(text, config), 1

        logger.info("Document needs chunking (~%d tokens)", estimate_tokens(text))
        fragments = await self._map(text, config)
        self._stage(request, RunStage.CONSOLIDATING)
        return await self._reduce(fragments, config), len(fragments)

    async def _analyze_single(self, text: str, config: ModelConfig) -> str:
        input_tokens = (
            estimate_tokens(text) + estimate_tokens(self._system_prompt) + estimate_tokens(SINGLE_REQUEST_INSTRUCTION)
        )
        max_tokens = single_request_output_tokens(input_tokens)
        logger.info("Single request: input ~%d tokens, output budget %d", input_tokens, max_tokens)
        try:
            resp = await self._gateway.send_chat(config, self._messages(single_request_prompt(text)), max_tokens)
        except LLMError as e:
            raise ProcessingError(f"Error processing single request: {e}", cause_code=e.code) from e
        logger.info("Single-request answer: %d characters", len(resp.text))
        return resp.text

    async def _map(self, text: str, config: ModelConfig) -> list[AnalysisFragmentResult]:
        chunk_size = max_chunk_chars(self._system_prompt)
        pieces = split_text(text, chunk_size)
        total = len(pieces)
        logger.info("Split into %d fragment(s) of at most %d characters", total, chunk_size)

        results: list[AnalysisFragmentResult] = []
        for piece in pieces:
            logger.info("Processing part %d/%d (%d characters)", piece.index, total, len(piece.text))
            prompt = fragment_prompt(piece.index, total, piece.text)
            try:
                resp = await self._gateway.send_chat(config, self._messages(prompt), PHASE1_MAX_TOKENS)
            except LLMError as e:
                raise ProcessingError(
                    f"Error processing part {piece.index}/{total}: {e}",
                    fragment_index=piece.index,
                    cause_code=e.code,
                ) from e
            logger.info("Part %d/%d answer: %d characters", piece.index, total, len(resp.text))
            results.append(AnalysisFragmentResult(index=piece.index, total=total, text=clean_fragment(resp.text)))
        return results

    async def _reduce(self, fragments: list[AnalysisFragmentResult], config: ModelConfig) -> str:
        prompt = build_consolidation_prompt(CONSOLIDATION_INSTRUCTION, reduce_inputs(fragments))
        input_tokens = estimate_tokens(prompt)
        max_tokens = consolidation_output_tokens(input_tokens, config.context_window)
        logger.info("Consolidation: input ~%d tokens, output budget %d", input_tokens, max_tokens)
        try:
            resp = await self._gateway.send_chat(config, self._messages(prompt), max_tokens)
        except LLMError as e:
            raise ProcessingError(f"Error in consolidation: {e}", cause_code=e.code) from e
        logger.info("Consolidation answer: %d characters", len(resp.text))
        return clean_fragment(resp.text)

    def _messages(self, user_content: str) -> list[ChatMessage]:
        return [
            ChatMessage(role="system", content=self._system_prompt),
            ChatMessage(role="user", content=user_content),
        ]

    def _can_reuse(self, record: ContractRecord) -> bool:
        return (
            self._settings.reuse_completed_results
            and record.status == RecordStatus.COMPLETED
            and bool(record.analysis_result.strip())
        )

    @staticmethod
    def _stage(request: AnalysisRequest, stage: RunStage) -> None:
        logger.info("Run %s: stage=%s", request.filename, stage.value)

    async def _lookup(self, file_hash: str) -> ContractRecord | None:
        if self._store is None:
            return None
        try:
            existing = await self._store.get_by_hash(file_hash)
        except RecordStoreError as e:
            logger.warning("Could not check for an existing record: %s", e)
            return None
        if existing is not None:
            logger.info("Using existing record (id=%s, status=%s)", existing.id, existing.status.value)
        return existing

    async def _create_record(self, request: AnalysisRequest, config: ModelConfig) -> ContractRecord:
        record = ContractRecord.new(request.filename, request.file_hash, request.file_size, config)
        if self._store is None:
            return record
        try:
            record.id = await self._store.create(record)
        except RecordStoreError as e:
            logger.warning("Could not create record for %s: %s", request.filename, e)
        else:
            logger.info("Record created (id=%s)", record.id)
        return record

    async def _save(self, record: ContractRecord) -> None:
        if self._store is None or record.id is None:
            return
        try:
            await self._store.update(record)
        except RecordStoreError as e:
            logger.warning("Could not update record id=%s: %s", record.id, e)
