"""AnalysisService tests: outcome mapping, run deadlines, local-model serialization and side use cases."""
import asyncio

import pytest

from contractscope.llm.errors import LLMConnectionError
from contractscope.orchestrator.errors import ExtractionError, RecordStoreError
from contractscope.orchestrator.locking import LocalModelSlot
from contractscope.orchestrator.models import RecordStatus
from contractscope.orchestrator.orchestrator import DEADLINE_FAILURE_MESSAGE
from contractscope.orchestrator.service import AnalysisService
from contractscope.orchestrator.settings import OrchestratorSettings
from conftest import FakeExtractor, FakeGateway, InMemoryRecordStore


def _service(gateway, text="Clause 1. Either party may terminate.", *, store=None, slot=None, settings=None, extractor=None):
    return AnalysisService(
        gateway,
        extractor or FakeExtractor(text),
        store,
        slot=slot,
        settings=settings or OrchestratorSettings(),
    )


@pytest.mark.asyncio
async def test_successful_run(local_config, make_request) -> None:
    outcome = await _service(FakeGateway(lambda m: "Report")).run(make_request(local_config))
    assert outcome.success is True
    assert outcome.content == "Report"
    assert outcome.error is None
    assert outcome.duration_s >= 0


@pytest.mark.asyncio
async def test_invalid_config_becomes_failed_outcome(make_request) -> None:
    gateway = FakeGateway()
    request = make_request({"endpoint": {"kind": "local", "endpoint_url": ""}, "max_output_tokens": 100})
    outcome = await _service(gateway).run(request)
    assert outcome.success is False
    assert outcome.error_code == "CONFIGURATION"
    assert gateway.connection_tests == 0


@pytest.mark.asyncio
async def test_processing_failure_becomes_single_error(local_config, make_request) -> None:
    outcome = await _service(FakeGateway(fail_on_call=1)).run(make_request(local_config))
    assert outcome.success is False
    assert outcome.error_code == "PROCESSING_FAILED"
    assert "part 1/1" in outcome.error
    assert outcome.content is None


@pytest.mark.asyncio
async def test_failed_outcome_links_failed_record(local_config, make_request) -> None:
    store = InMemoryRecordStore()
    outcome = await _service(FakeGateway(fail_on_call=1), store=store).run(make_request(local_config))
    assert outcome.success is False
    assert outcome.record_id is not None
    assert store.records[outcome.record_id].status == RecordStatus.FAILED


@pytest.mark.asyncio
async def test_connection_failure_outcome(online_config, make_request) -> None:
    gateway = FakeGateway(connection_error=LLMConnectionError("Could not connect to LLM: refused"))
    outcome = await _service(gateway).run(make_request(online_config))
    assert outcome.error_code == "CONNECTION_FAILED"


@pytest.mark.asyncio
async def test_deadline_cancels_run_and_marks_record_failed(local_config, make_request) -> None:
    store = InMemoryRecordStore()
    gateway = FakeGateway(delay_s=5.0)
    settings = OrchestratorSettings(local_run_deadline_s=0.05)
    outcome = await _service(gateway, store=store, settings=settings).run(make_request(local_config))
    assert outcome.success is False
    assert outcome.error_code == "DEADLINE_EXCEEDED"
    assert len(gateway.calls) == 1
    record = next(iter(store.records.values()))
    assert record.status == RecordStatus.FAILED
    assert record.error_message == DEADLINE_FAILURE_MESSAGE
    assert outcome.record_id == record.id


@pytest.mark.asyncio
async def test_online_deadline_is_separate(online_config, make_request) -> None:
    settings = OrchestratorSettings(local_run_deadline_s=0.01, online_run_deadline_s=30)
    outcome = await _service(FakeGateway(delay_s=0.05), settings=settings).run(make_request(online_config))
    assert outcome.success is True


@pytest.mark.asyncio
async def test_local_runs_are_serialized(local_config, make_request) -> None:
    gateway = FakeGateway(delay_s=0.02)
    service = _service(gateway)
    outcomes = await asyncio.gather(
        service.run(make_request(local_config, file_hash="1" * 64)),
        service.run(make_request(local_config, file_hash="2" * 64)),
    )
    assert all(o.success for o in outcomes)
    assert gateway.max_active == 1


@pytest.mark.asyncio
async def test_online_runs_are_not_serialized(online_config, make_request) -> None:
    gateway = FakeGateway(delay_s=0.05)
    service = _service(gateway)
    outcomes = await asyncio.gather(
        service.run(make_request(online_config, file_hash="1" * 64)),
        service.run(make_request(online_config, file_hash="2" * 64)),
    )
    assert all(o.success for o in outcomes)
    assert gateway.max_active == 2


@pytest.mark.asyncio
async def test_slot_shared_between_services(local_config, make_request) -> None:
    slot = LocalModelSlot()
    gateway = FakeGateway(delay_s=0.02)
    first = _service(gateway, slot=slot)
    second = _service(gateway, slot=slot)
    await asyncio.gather(first.run(make_request(local_config)), second.run(make_request(local_config)))
    assert gateway.max_active == 1
    assert slot.busy is False


@pytest.mark.asyncio
async def test_connection_check(online_config) -> None:
    check = await _service(FakeGateway()).test_connection(online_config)
    assert check.success is True
    assert check.provider == "online"
    assert check.model_name == "gpt-4o-mini"


@pytest.mark.asyncio
async def test_connection_check_failure(local_config) -> None:
    gateway = FakeGateway(connection_error=LLMConnectionError("LLM server is not available (status: 503)"))
    check = await _service(gateway).test_connection(local_config)
    assert check.success is False
    assert check.error_code == "CONNECTION_FAILED"
    assert "503" in check.message


@pytest.mark.asyncio
async def test_connection_check_rejects_bad_config() -> None:
    check = await _service(FakeGateway()).test_connection({"endpoint": {"kind": "online"}})
    assert check.success is False
    assert check.error_code == "CONFIGURATION"


@pytest.mark.asyncio
async def test_estimate_file(tmp_path) -> None:
    service = _service(FakeGateway(), text="Lease. " * 100)
    forecast = await service.estimate(tmp_path / "lease.pdf", 1500)
    assert forecast.chunks == 1
    assert forecast.phase2_output_tokens == 1500


@pytest.mark.asyncio
async def test_estimate_file_propagates_extraction_error(tmp_path) -> None:
    service = _service(FakeGateway(), extractor=FakeExtractor(error=ExtractionError("unreadable")))
    with pytest.raises(ExtractionError):
        await service.estimate(tmp_path / "lease.pdf", 1500)


@pytest.mark.asyncio
async def test_history_requires_store() -> None:
    with pytest.raises(RecordStoreError):
        await _service(FakeGateway()).recent_records()


@pytest.mark.asyncio
async def test_history_reads_delegate_to_store(local_config, make_request) -> None:
    store = InMemoryRecordStore()
    service = _service(FakeGateway(), store=store)
    outcome = await service.run(make_request(local_config, filename="supply-agreement.pdf"))
    recent = await service.recent_records(5)
    assert [r.id for r in recent] == [outcome.record_id]
    found = await service.search_records("supply")
    assert found[0].filename == "supply-agreement.pdf"
    assert (await service.get_record(outcome.record_id)).status == RecordStatus.COMPLETED
    assert (await service.record_stats()).total == 1
