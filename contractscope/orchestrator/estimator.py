"""Token Estimator: deterministic pre-flight forecast of a run's token usage. No network calls."""
from __future__ import annotations

import logging
from pathlib import Path

from contractscope.orchestrator.contracts import TextExtractorPort
from contractscope.orchestrator.errors import ExtractionError
from contractscope.orchestrator.models import TokenForecast
from contractscope.orchestrator.prompts import SINGLE_REQUEST_INSTRUCTION, SYSTEM_PROMPT
from contractscope.text.budget import (
    CHARS_PER_TOKEN,
    DEFAULT_CHUNK_SIZE,
    LOCAL_MAX_INPUT_TOKENS,
    MAX_OUTPUT_TOKENS,
    MIN_OUTPUT_TOKENS,
    PHASE1_MAX_TOKENS,
    clamp,
    estimate_tokens,
    fits_single_request,
    forecast_warning,
    recommended_max_tokens,
)
from contractscope.text.splitter import split_text

logger = logging.getLogger(__name__)


def forecast_chunk_size() -> int:
    """Chunk size used for forecasts: default size, capped at half the local input budget."""
    return min(DEFAULT_CHUNK_SIZE, (LOCAL_MAX_INPUT_TOKENS // 2) * CHARS_PER_TOKEN)


class TokenEstimator:
    def __init__(self, extractor: TextExtractorPort | None = None, *, system_prompt: str = SYSTEM_PROMPT) -> None:
        self._extractor = extractor
        self._system_prompt = system_prompt

    def estimate(self, text: str, requested_max_output_tokens: int) -> TokenForecast:
        if fits_single_request(text):
            logger.info("Forecasting single-request processing (%d chars)", len(text))
            return self._single_request(text, requested_max_output_tokens)
        logger.info("Forecasting chunked processing (%d chars)", len(text))
        return self._chunked(text, requested_max_output_tokens)

    async def estimate_file(self, path: Path, requested_max_output_tokens: int) -> TokenForecast:
        """Extract the document through the extraction port, then forecast."""
        if self._extractor is None:
            raise ExtractionError("No text extractor configured")
        text = await self._extractor.extract_text(Path(path))
        if not text.strip():
            raise ExtractionError(f"No text could be extracted from {Path(path).name}")
        return self.estimate(text, requested_max_output_tokens)

    def _single_request(self, text: str, requested: int) -> TokenForecast:
        document_tokens = estimate_tokens(text)
        system_tokens = estimate_tokens(self._system_prompt)
        input_tokens = system_tokens + estimate_tokens(SINGLE_REQUEST_INSTRUCTION) + document_tokens
        output_tokens = clamp(requested, MIN_OUTPUT_TOKENS, MAX_OUTPUT_TOKENS)
        total = input_tokens + output_tokens
        return TokenForecast(
            character_count=len(text),
            estimated_tokens=document_tokens,
            chunks=1,
            system_prompt_tokens=system_tokens,
            phase1_tokens=0,
            phase2_input_tokens=input_tokens,
            phase2_output_tokens=output_tokens,
            total_tokens=total,
            recommended_max_tokens=output_tokens,
            warning=None,
        )

    def _chunked(self, text: str, requested: int) -> TokenForecast:
        chunk_size = forecast_chunk_size()
        chunks = len(split_text(text, chunk_size))
        system_tokens = estimate_tokens(self._system_prompt)
        phase1 = chunks * (system_tokens + chunk_size // CHARS_PER_TOKEN + PHASE1_MAX_TOKENS)
        phase2_input = system_tokens + chunks * PHASE1_MAX_TOKENS
        phase2_output = clamp(requested, MIN_OUTPUT_TOKENS, MAX_OUTPUT_TOKENS)
        total = phase1 + phase2_input + phase2_output
        return TokenForecast(
            character_count=len(text),
            estimated_tokens=estimate_tokens(text),
            chunks=chunks,
            system_prompt_tokens=system_tokens,
            phase1_tokens=phase1,
            phase2_input_tokens=phase2_input,
            phase2_output_tokens=phase2_output,
            total_tokens=total,
            recommended_max_tokens=recommended_max_tokens(chunks, len(text)),
            warning=forecast_warning(chunks, total),
        )
