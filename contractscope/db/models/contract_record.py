"""ContractRecordRow ORM model: one analyzed document per content hash."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from contractscope.db.base import Base, TimestampMixin, one_of, utc_now
from contractscope.orchestrator.models import RecordStatus


class ContractRecordRow(Base, TimestampMixin):
    __tablename__ = "contract_records"
    __table_args__ = (one_of("status", [s.value for s in RecordStatus], name="status_valid"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    analyzed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)

    llm_type: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    llm_model: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    max_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    analysis_result: Mapped[str] = mapped_column(Text, nullable=False, default="")
    character_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chunks_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processing_time_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    error_message: Mapped[str] = mapped_column(Text, nullable=False, default="")
