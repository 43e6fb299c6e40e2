"""
Process-wide database engine.

The scheduler entry point calls ``init_engine_from_url`` once, hands
``get_session_factory()`` to ``BillingScheduler`` (one session per tenant per
tick) and uses ``session_scope`` for one-off work such as schema creation.
Services never reach for this module; they receive a session.

Accessors raise ``RuntimeError`` until an engine has been initialized.
"""

import atexit
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Pool settings apply to server databases only.  Those run at READ
    COMMITTED; SQLite keeps SQLAlchemy's defaults.
    """
    global _engine, _session_factory

    reset_engine()
    options: dict = {"echo": echo}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    _engine = create_engine(database_url, **options)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session; commit if the block finishes, roll back if it raises."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create any missing billing table."""
    from billing_kernel.db.base import Base
    import billing_batch.models  # noqa: F401  registers the mapped tables

    Base.metadata.create_all(get_engine())


def reset_engine() -> None:
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
