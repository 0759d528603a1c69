"""
Module: consolidation_kernel.db.engine
Responsibility: build the process-wide SQLAlchemy engine and hand out the
    session factory that the statements service opens its read sessions from.
Architecture position: Kernel > DB.  Imports db/base.py and, inside
    create_tables only, the models package so its tables are registered.

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED.  Statement requests only
      read, so each concurrent read sees a committed snapshot of its own.
    - Sessions are never shared between threads.  Each fan-out read asks the
      factory for a fresh Session.
    - SQLite (tests, local runs) is opened with check_same_thread disabled so
      worker threads may use connections created on the main thread.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

import atexit

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from consolidation_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

# Pool settings for server databases; sized for max_read_workers fan-out
# across a handful of concurrent API requests.
POOL_OPTIONS = {
    "pool_size": 20,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}


def _build_engine(url: URL, echo: bool) -> Engine:
    if url.get_backend_name() == "sqlite":
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, isolation_level="READ COMMITTED", **POOL_OPTIONS)


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Calling it again replaces the previous engine, which is disposed.
    """
    global _engine, _session_factory

    url = make_url(database_url)
    if _engine is not None:
        _engine.dispose()
    _engine = _build_engine(url, echo)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "database": url.database,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory the statements service opens one Session per read from."""
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


def create_tables() -> None:
    """Create every consolidation table on the current engine."""
    from consolidation_kernel.db.base import Base
    import consolidation_kernel.models  # noqa: F401  (registers tables)

    Base.metadata.create_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the factory. Used by test teardown."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
