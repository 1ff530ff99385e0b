"""RecordStorePort adapter: runs the session-bound repository in a worker thread."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from contractscope.db.config import DBConfig
from contractscope.db.exceptions import DbError
from contractscope.db.repositories.contract_record_repo import ContractRecordRepo
from contractscope.db.session import session_scope
from contractscope.orchestrator.errors import RecordStoreError
from contractscope.orchestrator.models import ContractRecord, RecordStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlRecordStore:
    """Analysis history in SQL. Every failure surfaces as RecordStoreError."""

    def __init__(self, repo: ContractRecordRepo | None = None, *, config: DBConfig | None = None) -> None:
        self._repo = repo or ContractRecordRepo(max_page_size=(config or DBConfig()).max_page_size)

    async def create(self, record: ContractRecord) -> int:
        created = await self._call("create", lambda s: self._repo.create(s, record))
        return created.id

    async def update(self, record: ContractRecord) -> None:
        await self._call("update", lambda s: self._repo.update(s, record))

    async def get_by_hash(self, file_hash: str) -> ContractRecord | None:
        return await self._call("get_by_hash", lambda s: self._repo.get_by_hash(s, file_hash))

    async def get(self, record_id: int) -> ContractRecord | None:
        return await self._call("get", lambda s: self._repo.get(s, record_id))

    async def list_recent(self, limit: int = 20) -> list[ContractRecord]:
        return await self._call("list_recent", lambda s: self._repo.list_recent(s, limit))

    async def search(self, query: str, limit: int = 20, offset: int = 0) -> list[ContractRecord]:
        return await self._call("search", lambda s: self._repo.search(s, query, limit, offset))

    async def stats(self) -> RecordStats:
        return await self._call("stats", self._repo.stats)

    async def _call(self, op: str, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run, op, fn)

    @staticmethod
    def _run(op: str, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope() as session:
                return fn(session)
        except (SQLAlchemyError, DbError) as e:
            logger.error("Record store %s failed: %s", op, e)
            raise RecordStoreError(f"Record store {op} failed: {e}") from e
