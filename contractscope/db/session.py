"""Session factory and context manager."""
import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from contractscope.db.base import Base
from contractscope.db.config import DBConfig
from contractscope.db.engine import create_engine_from_config

# Module-level engine/session factory, set by init_db()
_engine: Engine | None = None
SessionLocal: sessionmaker | None = None
_init_lock = threading.RLock()


def init_db(cfg: DBConfig | None = None) -> None:
    """Initialize engine and session factory. Call once at startup."""
    cfg = cfg or DBConfig()
    with _init_lock:
        _init_locked(cfg)


def _init_locked(cfg: DBConfig) -> None:
    global _engine, SessionLocal
    if _engine is not None:
        _engine.dispose()
    engine = create_engine_from_config(cfg)
    if cfg.create_tables:
        import contractscope.db.models  # noqa: F401  register tables on Base.metadata

        Base.metadata.create_all(engine)
    # Publish only after the tables exist.
    _engine = engine
    SessionLocal = sessionmaker(
        bind=engine,
        autoflush=True,
        expire_on_commit=False,
        autobegin=True,
    )


def get_engine() -> Engine | None:
    return _engine


def _session_factory() -> sessionmaker:
    """Lazy default init; worker threads racing here build one engine."""
    if SessionLocal is None:
        with _init_lock:
            if SessionLocal is None:
                init_db()
    return SessionLocal


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Session context: commit on success, rollback on exception."""
    session = _session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
