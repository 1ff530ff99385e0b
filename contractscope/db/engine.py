"""Engine creation with SQLite PRAGMAs."""
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine, create_engine, make_url

from contractscope.db.config import DBConfig


def _apply_sqlite_pragmas(dbapi_conn, connection_record, cfg: DBConfig):
    # PRAGMA journal_mode cannot run inside a transaction. Engine is created
    # with isolation_level=None so we're in autocommit here.
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute(f"PRAGMA journal_mode={cfg.sqlite_journal_mode};")
        cursor.execute(f"PRAGMA synchronous={cfg.sqlite_synchronous};")
        cursor.execute(f"PRAGMA busy_timeout={cfg.sqlite_busy_timeout_ms};")
    finally:
        cursor.close()


def _ensure_sqlite_parent(db_url: str) -> None:
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def create_engine_from_config(cfg: DBConfig) -> Engine:
    """Create SQLAlchemy engine with SQLite PRAGMAs."""
    is_sqlite = cfg.db_url.startswith("sqlite")
    if is_sqlite:
        _ensure_sqlite_parent(cfg.db_url)
    connect_args = {"isolation_level": None, "check_same_thread": False} if is_sqlite else {}
    engine = create_engine(
        cfg.db_url,
        echo=cfg.echo_sql,
        connect_args=connect_args,
    )
    if is_sqlite:
        event.listens_for(engine, "connect")(
            lambda c, cr: _apply_sqlite_pragmas(c, cr, cfg)
        )
    return engine
