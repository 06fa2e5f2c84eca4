"""
Tests for the SQLAlchemy-backed audit sink and audit row immutability.

Uses an in-memory SQLite database per test.  SQLite drops tzinfo on
round-trip, so timestamps are compared naive.
"""

from decimal import Decimal

import pytest

from workflow_kernel.db.engine import get_session, session_scope
from workflow_kernel.domain.guards import GuardRegistry, amount_at_most
from workflow_kernel.domain.transition_table import TransitionTable
from workflow_kernel.exceptions import ImmutableAuditRecordError
from workflow_kernel.models.transition_audit import TransitionAuditRow
from workflow_kernel.services.audit_sink import SqlAlchemyAuditSink
from workflow_kernel.services.transition_engine import TransitionEngine

from tests.support import STAGE_TERMINALS, STAGE_TRANSITIONS, Application, Stage


@pytest.fixture
def engine_factory(deterministic_clock):
    def _make(sink):
        guards = GuardRegistry()
        guards.register(
            Stage.SUBMITTED, Stage.BACKGROUND_CHECK, amount_at_most("amount", 100000)
        )
        table = TransitionTable(
            states=list(Stage),
            transitions=STAGE_TRANSITIONS,
            terminal_states=STAGE_TERMINALS,
            name="screening",
        )
        return TransitionEngine(table, guards, audit_sink=sink, clock=deterministic_clock)

    return _make


class TestSqlAlchemyAuditSink:
    def test_record_persists_row(self, db_session, engine_factory, make_context):
        sink = SqlAlchemyAuditSink(db_session)
        engine = engine_factory(sink)
        app = Application(amount=Decimal("10"))

        outcome = engine.attempt(app, Stage.BACKGROUND_CHECK, make_context("alice", notes="ok"))

        (row,) = sink.history("app-1")
        record = outcome.audit_record
        assert row.id == record.record_id
        assert row.sequence == 1
        assert row.workflow == "screening"
        assert row.from_state == "submitted"
        assert row.to_state == "background_check"
        assert row.actor_id == "alice"
        assert row.notes == "ok"
        assert row.guards_passed == ["amount_at_most"]
        assert row.committed_at.replace(tzinfo=None) == record.committed_at.replace(tzinfo=None)

    def test_history_ordered_and_filtered(self, db_session, engine_factory, make_context, deterministic_clock):
        sink = SqlAlchemyAuditSink(db_session)
        engine = engine_factory(sink)
        first = Application(entity_id="app-1", amount=Decimal("10"))
        second = Application(entity_id="app-2", amount=Decimal("10"))

        engine.attempt(first, Stage.BACKGROUND_CHECK, make_context())
        deterministic_clock.advance(60)
        engine.attempt(second, Stage.REJECTED, make_context())
        deterministic_clock.advance(60)
        engine.attempt(first, Stage.APPROVED, make_context())

        history = sink.history("app-1")
        assert [(r.from_state, r.to_state) for r in history] == [
            ("submitted", "background_check"),
            ("background_check", "approved"),
        ]
        assert sink.history("app-1", workflow="other") == []

    def test_record_does_not_commit(self, db_session, engine_factory, make_context):
        sink = SqlAlchemyAuditSink(db_session)
        engine = engine_factory(sink)
        engine.attempt(Application(), Stage.REJECTED, make_context())
        db_session.rollback()
        assert sink.history("app-1") == []

    def test_session_scope_commits(self, db_session, engine_factory, make_context):
        with session_scope() as session:
            engine = engine_factory(SqlAlchemyAuditSink(session))
            engine.attempt(Application(), Stage.REJECTED, make_context())

        reader = get_session()
        try:
            assert len(SqlAlchemyAuditSink(reader).history("app-1")) == 1
        finally:
            reader.close()

    def test_session_scope_rolls_back_on_error(self, db_session, engine_factory, make_context):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                engine = engine_factory(SqlAlchemyAuditSink(session))
                engine.attempt(Application(), Stage.REJECTED, make_context())
                raise RuntimeError("entity save failed")

        assert SqlAlchemyAuditSink(db_session).history("app-1") == []


class TestAuditRowImmutability:
    def _persisted_row(self, db_session, engine_factory, make_context):
        sink = SqlAlchemyAuditSink(db_session)
        engine_factory(sink).attempt(Application(), Stage.REJECTED, make_context())
        db_session.commit()
        return sink.history("app-1")[0]

    def test_update_rejected(self, db_session, engine_factory, make_context):
        row = self._persisted_row(db_session, engine_factory, make_context)
        row.notes = "rewritten"
        with pytest.raises(ImmutableAuditRecordError) as exc_info:
            db_session.flush()
        assert exc_info.value.operation == "UPDATE"
        assert exc_info.value.code == "AUDIT_RECORD_IMMUTABLE"

    def test_delete_rejected(self, db_session, engine_factory, make_context):
        row = self._persisted_row(db_session, engine_factory, make_context)
        db_session.delete(row)
        with pytest.raises(ImmutableAuditRecordError) as exc_info:
            db_session.flush()
        assert exc_info.value.operation == "DELETE"

    def test_repr(self, db_session, engine_factory, make_context):
        row = self._persisted_row(db_session, engine_factory, make_context)
        assert isinstance(row, TransitionAuditRow)
        assert "submitted -> rejected" in repr(row)
