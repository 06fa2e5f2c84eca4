"""
Module: workflow_kernel.db.engine
Responsibility: One process-wide SQLAlchemy engine and session factory
    for services that persist transition history with SqlAlchemyAuditSink.
Architecture position: Kernel > DB.  The transition engine never imports
    this module.

Invariants enforced:
    - session_scope() commits on success and rolls back on any exception,
      so the caller's entity writes and the audit rows land together.

Failure modes:
    - RuntimeError from every accessor until init_engine_from_url() runs.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from workflow_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "database not initialized; call init_engine_from_url() first"


def _engine_options(database_url: str) -> dict[str, Any]:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise each session gets its own empty database.
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """Create the engine and session factory, replacing any earlier ones."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = create_engine(database_url, echo=echo, **_engine_options(database_url))
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """For callers that open one session per thread."""
    if _sessions is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _sessions


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on error, always close.

    Usage:
        with session_scope() as session:
            sink = SqlAlchemyAuditSink(session)
            TransitionEngine(table, guards, audit_sink=sink).attempt(entity, dest, ctx)
    """
    session = get_session()
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


def create_tables() -> None:
    """Create the audit tables and switch on their append-only listeners."""
    from workflow_kernel.db.base import Base
    from workflow_kernel.db.immutability import register_immutability_listeners
    import workflow_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    register_immutability_listeners()


def drop_tables() -> None:
    """Tests only."""
    from workflow_kernel.db.base import Base
    from workflow_kernel.db.immutability import unregister_immutability_listeners

    unregister_immutability_listeners()
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    global _engine, _sessions
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None


atexit.register(reset_engine)
