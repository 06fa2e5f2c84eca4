"""
SqlAlchemyAuditSink -- persistent AuditSink backed by an ORM session.

Responsibility:
    Writes one TransitionAuditRow per AuditRecord and reads an entity's
    transition history back.

Architecture position:
    Kernel > Services.  An optional adapter: the transition engine only
    knows the ``AuditSink`` protocol.

Transaction boundary:
    ``record()`` adds and flushes but never commits.  The caller owns the
    session, so persisting the entity and its audit row inside the same
    ``session_scope()`` makes the two atomic.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_kernel.domain.audit import AuditRecord
from workflow_kernel.domain.transition_table import state_label
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.transition_audit import TransitionAuditRow

logger = get_logger("services.audit_sink")


class SqlAlchemyAuditSink:
    """AuditSink writing to ``workflow_transition_audit``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def record(self, record: AuditRecord) -> None:
        row = TransitionAuditRow(
            id=record.record_id,
            sequence=record.sequence,
            workflow=record.workflow,
            entity_id=str(record.entity_id),
            from_state=state_label(record.from_state),
            to_state=state_label(record.to_state),
            actor_id=record.actor_id,
            notes=record.notes,
            attempted_at=record.attempted_at,
            committed_at=record.committed_at,
            guards_passed=list(record.guards_passed),
        )
        self._session.add(row)
        self._session.flush()
        logger.debug(
            "audit_record_persisted",
            extra={
                "record_id": str(record.record_id),
                "sequence": record.sequence,
                "workflow": record.workflow,
            },
        )

    def history(
        self,
        entity_id: Any,
        workflow: str | None = None,
    ) -> list[TransitionAuditRow]:
        """Rows for ``entity_id`` in commit order."""
        stmt = select(TransitionAuditRow).where(
            TransitionAuditRow.entity_id == str(entity_id)
        )
        if workflow is not None:
            stmt = stmt.where(TransitionAuditRow.workflow == workflow)
        stmt = stmt.order_by(TransitionAuditRow.committed_at, TransitionAuditRow.sequence)
        return list(self._session.scalars(stmt))
