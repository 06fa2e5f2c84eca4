"""
Module: workflow_kernel.models.transition_audit
Responsibility: ORM persistence for committed transition audit records.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are append-only; UPDATE and DELETE are rejected by the listeners
      in db/immutability.py.
    - One row per AuditRecord; ``id`` is the record's ``record_id``.

Audit relevance:
    This table IS the transition history for embedding services that do
    not bring their own sink.  States are stored by label (enum value or
    str()) so rows stay readable after enum refactors.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base


class TransitionAuditRow(Base):
    """
    One committed transition.

    Guarantees:
        - ``sequence`` is the engine-issued monotonic number.
        - ``attempted_at`` and ``committed_at`` are the context and engine
          clock timestamps respectively.
    """

    __tablename__ = "workflow_transition_audit"

    __table_args__ = (
        Index("idx_wta_entity", "workflow", "entity_id"),
        Index("idx_wta_sequence", "workflow", "sequence"),
    )

    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)

    workflow: Mapped[str] = mapped_column(String(100), nullable=False)

    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)

    from_state: Mapped[str] = mapped_column(String(100), nullable=False)

    to_state: Mapped[str] = mapped_column(String(100), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    committed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    guards_passed: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return (
            f"<TransitionAuditRow {self.workflow}#{self.sequence} "
            f"{self.entity_id}: {self.from_state} -> {self.to_state}>"
        )
