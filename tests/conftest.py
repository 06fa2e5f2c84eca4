"""
Pytest fixtures for the workflow kernel test suite.

Provides:
- Structured logging configuration and log capture
- A deterministic clock and transition context factory
- An in-memory SQLite session for the persistent audit sink
"""

import json
import logging
from io import StringIO

import pytest

from workflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from workflow_kernel.domain.audit import InMemoryAuditSink
from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.domain.context import TransitionContext
from workflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Default actor for tests that do not care who performs a transition
TEST_ACTOR_ID = "test-actor"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workflow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.attempt(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workflow_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2024-01-01 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def make_context(deterministic_clock):
    """Factory for TransitionContext stamped by the deterministic clock."""

    def _make(actor_id: str = TEST_ACTOR_ID, notes: str = "", **attributes):
        return TransitionContext.create(
            actor_id, notes=notes, clock=deterministic_clock, **attributes
        )

    return _make


@pytest.fixture
def memory_sink():
    return InMemoryAuditSink()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_session():
    """Fresh in-memory SQLite database per test, with immutability listeners."""
    init_engine_from_url("sqlite://")
    create_tables()
    session = get_session()
    yield session
    session.rollback()
    session.close()
    drop_tables()
    reset_engine()
