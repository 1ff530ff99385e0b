"""Pytest config and fixtures: temp SQLite database and in-memory fakes for the orchestrator's ports."""
from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Callable, Sequence

import pytest

from contractscope.db.config import DBConfig
from contractscope.db.session import init_db
from contractscope.llm.errors import LLMServerError
from contractscope.llm.types import ChatMessage, LLMResponse, ModelConfig
from contractscope.orchestrator.errors import RecordStoreError
from contractscope.orchestrator.models import AnalysisRequest, ContractRecord, RecordStats, RecordStatus


@pytest.fixture
def temp_db_url() -> str:
    """SQLite URL for a temporary file (WAL-friendly)."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield f"sqlite:///{path}"
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def db_config(temp_db_url: str) -> DBConfig:
    """DBConfig pointing to temp SQLite file."""
    return DBConfig(db_url=temp_db_url, echo_sql=False)


@pytest.fixture
def initialized_db(db_config: DBConfig) -> DBConfig:
    """Engine, session factory and tables for the temp DB."""
    init_db(db_config)
    return db_config


class FakeGateway:
    """Records every call; answers via `answer(messages)`; optionally fails or sleeps."""

    def __init__(
        self,
        answer: Callable[[Sequence[ChatMessage]], str] | None = None,
        *,
        fail_on_call: int | None = None,
        connection_error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self._answer = answer or (lambda messages: "Clause summary: termination requires 30 days notice.")
        self.fail_on_call = fail_on_call
        self.connection_error = connection_error
        self.delay_s = delay_s
        self.calls: list[tuple[ModelConfig, list[ChatMessage], int]] = []
        self.connection_tests = 0
        self.active = 0
        self.max_active = 0

    async def send_chat(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        *,
        stream: bool = False,
    ) -> LLMResponse:
        self.calls.append((config, list(messages), max_tokens))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            if self.fail_on_call == len(self.calls):
                raise LLMServerError("Failed after 3 attempt(s): Server error (503)", status_code=503, attempts=3)
            text = self._answer(messages)
        finally:
            self.active -= 1
        return LLMResponse(
            text=text,
            raw_text=text,
            provider=config.provider,
            model=config.model_name,
            latency_ms=1,
        )

    async def test_connection(self, config: ModelConfig) -> None:
        self.connection_tests += 1
        if self.connection_error is not None:
            raise self.connection_error

    def user_prompts(self) -> list[str]:
        return [messages[-1].content for _, messages, _ in self.calls]


class FakeExtractor:
    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[Path] = []

    async def extract_text(self, path: Path) -> str:
        self.calls.append(Path(path))
        if self.error is not None:
            raise self.error
        return self.text


class InMemoryRecordStore:
    """RecordStorePort fake keeping copies, so tests see only what was persisted."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.records: dict[int, ContractRecord] = {}
        self.status_history: list[RecordStatus] = []
        self._next_id = 1

    def _check(self) -> None:
        if self.fail:
            raise RecordStoreError("database is locked")

    async def create(self, record: ContractRecord) -> int:
        self._check()
        record_id = self._next_id
        self._next_id += 1
        self.records[record_id] = record.model_copy(update={"id": record_id}, deep=True)
        return record_id

    async def update(self, record: ContractRecord) -> None:
        self._check()
        if record.id not in self.records:
            raise RecordStoreError(f"Contract record {record.id} not found")
        self.records[record.id] = record.model_copy(deep=True)
        self.status_history.append(record.status)

    async def get_by_hash(self, file_hash: str) -> ContractRecord | None:
        self._check()
        for record in self.records.values():
            if record.file_hash == file_hash:
                return record.model_copy(deep=True)
        return None

    async def get(self, record_id: int) -> ContractRecord | None:
        self._check()
        record = self.records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def list_recent(self, limit: int = 20) -> list[ContractRecord]:
        self._check()
        done = [r for r in self.records.values() if r.status == RecordStatus.COMPLETED]
        return sorted(done, key=lambda r: r.analyzed_at, reverse=True)[:limit]

    async def search(self, query: str, limit: int = 20, offset: int = 0) -> list[ContractRecord]:
        self._check()
        hits = [r for r in self.records.values() if query.lower() in r.filename.lower()]
        return hits[offset:offset + limit]

    async def stats(self) -> RecordStats:
        self._check()
        return RecordStats(total=len(self.records))


@pytest.fixture
def local_config() -> ModelConfig:
    return ModelConfig.local("http://localhost:11434/api/chat", "qwen3:8b", 2000)


@pytest.fixture
def online_config() -> ModelConfig:
    return ModelConfig.online("https://api.example.test/v1/chat/completions", "sk-test", "gpt-4o-mini", 2000)


@pytest.fixture
def make_request(tmp_path: Path) -> Callable[..., AnalysisRequest]:
    def _make(config, *, file_hash: str = "a" * 64, filename: str = "lease.pdf") -> AnalysisRequest:
        return AnalysisRequest(
            file_path=tmp_path / filename,
            filename=filename,
            file_hash=file_hash,
            file_size=1024,
            config=config,
        )

    return _make
