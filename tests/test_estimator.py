"""Token estimator tests: single vs chunked forecasts, determinism, warnings."""
import pytest

from contractscope.orchestrator.errors import ExtractionError
from contractscope.orchestrator.estimator import TokenEstimator, forecast_chunk_size
from contractscope.orchestrator.prompts import SINGLE_REQUEST_INSTRUCTION, SYSTEM_PROMPT
from contractscope.text.budget import WARNING_VERY_LARGE
from contractscope.text.splitter import split_text
from conftest import FakeExtractor

SYSTEM_TOKENS = len(SYSTEM_PROMPT) // 3


def test_forecast_is_deterministic() -> None:
    text = "The tenant shall pay rent monthly. " * 500
    est = TokenEstimator()
    assert est.estimate(text, 1000) == est.estimate(text, 1000)


def test_single_request_forecast() -> None:
    text = "x" * 3000
    forecast = TokenEstimator().estimate(text, 1200)
    input_tokens = SYSTEM_TOKENS + len(SINGLE_REQUEST_INSTRUCTION) // 3 + 1000
    assert forecast.single_request
    assert forecast.chunks == 1
    assert forecast.phase1_tokens == 0
    assert forecast.estimated_tokens == 1000
    assert forecast.phase2_input_tokens == input_tokens
    assert forecast.phase2_output_tokens == 1200
    assert forecast.total_tokens == input_tokens + 1200
    assert forecast.recommended_max_tokens == 1200
    assert forecast.warning is None


@pytest.mark.parametrize(("requested", "expected"), [(100, 800), (1500, 1500), (9000, 2000)])
def test_single_request_output_clamped(requested: int, expected: int) -> None:
    assert TokenEstimator().estimate("short contract", requested).phase2_output_tokens == expected


def test_single_request_never_warns() -> None:
    # ~110k tokens: above the high-usage threshold, still one online request
    forecast = TokenEstimator().estimate("y" * 330_000, 2000)
    assert forecast.chunks == 1
    assert forecast.total_tokens > 100_000
    assert forecast.warning is None


def test_chunked_forecast() -> None:
    text = "word " * 80_000
    forecast = TokenEstimator().estimate(text, 500)
    chunk_size = forecast_chunk_size()
    chunks = len(split_text(text, chunk_size))
    assert chunk_size == 3000
    assert not forecast.single_request
    assert forecast.chunks == chunks
    assert forecast.phase1_tokens == chunks * (SYSTEM_TOKENS + 1000 + 1200)
    assert forecast.phase2_input_tokens == SYSTEM_TOKENS + chunks * 1200
    assert forecast.phase2_output_tokens == 800
    assert forecast.total_tokens == forecast.phase1_tokens + forecast.phase2_input_tokens + 800
    assert forecast.recommended_max_tokens == 2000
    assert forecast.warning == WARNING_VERY_LARGE


@pytest.mark.asyncio
async def test_estimate_file_uses_extractor(tmp_path) -> None:
    text = "Rent is due on the first day of each month."
    extractor = FakeExtractor(text)
    forecast = await TokenEstimator(extractor).estimate_file(tmp_path / "lease.pdf", 1000)
    assert extractor.calls == [tmp_path / "lease.pdf"]
    assert forecast.character_count == len(text)


@pytest.mark.asyncio
async def test_estimate_file_blank_document(tmp_path) -> None:
    with pytest.raises(ExtractionError):
        await TokenEstimator(FakeExtractor("  ")).estimate_file(tmp_path / "blank.pdf", 1000)


@pytest.mark.asyncio
async def test_estimate_file_without_extractor(tmp_path) -> None:
    with pytest.raises(ExtractionError):
        await TokenEstimator().estimate_file(tmp_path / "x.pdf", 1000)
