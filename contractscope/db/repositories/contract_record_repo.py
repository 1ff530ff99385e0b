"""ContractRecord repository. Bound to the caller's session; methods flush, never commit."""
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from contractscope.db.exceptions import NotFoundError
from contractscope.db.models.contract_record import ContractRecordRow
from contractscope.db.utils import wrap_integrity_error
from contractscope.orchestrator.models import ContractRecord, RecordStats, RecordStatus

_COPY_FIELDS = (
    "filename",
    "file_hash",
    "file_size",
    "uploaded_at",
    "analyzed_at",
    "llm_type",
    "llm_model",
    "max_tokens",
    "analysis_result",
    "character_count",
    "estimated_tokens",
    "chunks_count",
    "processing_time_seconds",
    "error_message",
)


def _apply(row: ContractRecordRow, record: ContractRecord) -> None:
    for name in _COPY_FIELDS:
        setattr(row, name, getattr(record, name))
    row.status = record.status.value


class ContractRecordRepo:
    def __init__(self, max_page_size: int = 100) -> None:
        self._max_page_size = max_page_size

    def _page(self, limit: int) -> int:
        return max(1, min(limit, self._max_page_size))

    @wrap_integrity_error
    def create(self, session: Session, record: ContractRecord) -> ContractRecord:
        row = ContractRecordRow()
        _apply(row, record)
        session.add(row)
        session.flush()
        return ContractRecord.model_validate(row)

    def update(self, session: Session, record: ContractRecord) -> ContractRecord:
        row = session.get(ContractRecordRow, record.id) if record.id is not None else None
        if row is None:
            raise NotFoundError(f"Contract record {record.id} not found")
        _apply(row, record)
        session.flush()
        return ContractRecord.model_validate(row)

    def get(self, session: Session, id: int) -> ContractRecord | None:
        row = session.get(ContractRecordRow, id)
        return ContractRecord.model_validate(row) if row else None

    def get_by_hash(self, session: Session, file_hash: str) -> ContractRecord | None:
        row = session.execute(
            select(ContractRecordRow).where(ContractRecordRow.file_hash == file_hash)
        ).scalar_one_or_none()
        return ContractRecord.model_validate(row) if row else None

    def list_recent(self, session: Session, limit: int = 20) -> list[ContractRecord]:
        """Completed analyses, most recently analyzed first."""
        rows = session.execute(
            select(ContractRecordRow)
            .where(ContractRecordRow.status == RecordStatus.COMPLETED.value)
            .order_by(ContractRecordRow.analyzed_at.desc(), ContractRecordRow.id.desc())
            .limit(self._page(limit))
        ).scalars().all()
        return [ContractRecord.model_validate(r) for r in rows]

    def search(self, session: Session, query: str, limit: int = 20, offset: int = 0) -> list[ContractRecord]:
        rows = session.execute(
            select(ContractRecordRow)
            .where(ContractRecordRow.filename.ilike(f"%{query}%"))
            .order_by(ContractRecordRow.uploaded_at.desc(), ContractRecordRow.id.desc())
            .limit(self._page(limit))
            .offset(max(0, offset))
        ).scalars().all()
        return [ContractRecord.model_validate(r) for r in rows]

    def stats(self, session: Session) -> RecordStats:
        completed = ContractRecordRow.status == RecordStatus.COMPLETED.value
        failed = ContractRecordRow.status == RecordStatus.FAILED.value
        seconds = ContractRecordRow.processing_time_seconds
        row = session.execute(
            select(
                func.count(ContractRecordRow.id),
                func.coalesce(func.sum(case((completed, 1), else_=0)), 0),
                func.coalesce(func.sum(case((failed, 1), else_=0)), 0),
                func.coalesce(func.sum(case((completed, seconds), else_=0.0)), 0.0),
                func.coalesce(func.avg(case((completed, seconds), else_=None)), 0.0),
                func.max(ContractRecordRow.analyzed_at),
            )
        ).one()
        return RecordStats(
            total=row[0],
            completed=row[1],
            failed=row[2],
            total_processing_seconds=float(row[3]),
            average_processing_seconds=float(row[4]),
            last_analysis_at=row[5],
        )
