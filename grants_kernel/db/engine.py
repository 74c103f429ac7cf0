"""
Module: grants_kernel.db.engine
Responsibility: build engines, hold the process-wide session factory, and
    run each registry operation inside one commit-or-rollback transaction.
Architecture position: Kernel > DB.  Only create_tables reaches into models/
    and services/, to register every table and seed the sequence counters.

Backends:
    - PostgreSQL: pooled connections at READ COMMITTED; the services take
      row locks (SELECT ... FOR UPDATE) on proposal and counter rows.
    - SQLite: used by tests, the CLI and local runs.  An in-memory URL maps
      to a single shared connection, so every session sees the same data.
      Every SQLite connection runs with foreign keys on.

Failure modes:
    - RuntimeError from get_engine/get_session_factory before
      init_engine_from_url() has run.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from grants_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

SQLITE_BUSY_TIMEOUT_SECONDS = 30

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _sqlite_on_connect(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """Create an engine for ``database_url`` without registering it globally."""
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=1800,
            isolation_level="READ COMMITTED",
        )

    options: dict = {
        "echo": echo,
        "connect_args": {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        },
    }
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    engine = create_engine(url, **options)
    event.listen(engine, "connect", _sqlite_on_connect)
    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    Build the process-wide engine and session factory.

    Calling it again replaces both; the previous engine is disposed.
    Sessions from the factory keep attribute values after commit, so
    objects returned by a finished operation stay readable.
    """
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = build_engine(
        database_url, echo=echo, pool_size=pool_size, max_overflow=max_overflow,
    )
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "pool_size": pool_size, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Yield a session whose work is committed on clean exit.

    Any exception rolls the whole transaction back and propagates; the
    session is always closed.  Without ``factory`` the process-wide one
    is used.
    """
    session = (factory or get_session_factory())()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create every registry table and seed the well-known sequence counters."""
    from grants_kernel.db.base import Base
    import grants_kernel.models  # noqa: F401  (registers every table)
    from grants_kernel.services.sequence_service import SequenceService

    target = engine or get_engine()
    Base.metadata.create_all(target)

    with session_scope(sessionmaker(bind=target)) as session:
        SequenceService(session).initialize_sequences()


def reset_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def is_sqlite(engine: Engine | None = None) -> bool:
    target = engine or _engine
    return target is not None and target.dialect.name == "sqlite"


atexit.register(reset_engine)
