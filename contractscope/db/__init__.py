"""Persistence layer: SQLAlchemy models, session-bound repository and the record store adapter."""
from contractscope.db.config import DBConfig
from contractscope.db.record_store import SqlRecordStore
from contractscope.db.session import init_db, session_scope

__all__ = ["DBConfig", "SqlRecordStore", "init_db", "session_scope"]
