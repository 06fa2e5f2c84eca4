"""
Audit records and the sink contract (``workflow_kernel.domain.audit``).

Responsibility
--------------
Defines the shape of the record emitted for every committed transition,
the single-method ``AuditSink`` protocol the embedding service
implements, and the outcome/decision value objects returned by the
engine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects plus an in-memory sink.
The SQLAlchemy-backed sink lives in ``workflow_kernel.services.audit_sink``.

Invariants enforced
-------------------
* Exactly one ``AuditRecord`` per committed transition; never mutated.
* ``sequence`` is strictly increasing per ``AuditSequence`` instance.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Hashable, Protocol, runtime_checkable
from uuid import UUID, uuid4

from workflow_kernel.domain.context import TransitionContext
from workflow_kernel.domain.transition_table import state_label


@dataclass(frozen=True)
class AuditRecord:
    """Immutable record of one committed transition."""

    sequence: int
    workflow: str
    entity_id: Any
    from_state: Hashable
    to_state: Hashable
    actor_id: str
    notes: str
    attempted_at: datetime
    committed_at: datetime
    guards_passed: tuple[str, ...] = ()
    record_id: UUID = field(default_factory=uuid4)

    @classmethod
    def for_transition(
        cls,
        *,
        sequence: int,
        workflow: str,
        entity_id: Any,
        from_state: Hashable,
        to_state: Hashable,
        context: TransitionContext,
        committed_at: datetime,
        guards_passed: tuple[str, ...] = (),
    ) -> "AuditRecord":
        return cls(
            sequence=sequence,
            workflow=workflow,
            entity_id=entity_id,
            from_state=from_state,
            to_state=to_state,
            actor_id=context.actor_id,
            notes=context.notes,
            attempted_at=context.attempted_at,
            committed_at=committed_at,
            guards_passed=guards_passed,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe rendering for log stores and message topics."""
        return {
            "record_id": str(self.record_id),
            "sequence": self.sequence,
            "workflow": self.workflow,
            "entity_id": str(self.entity_id),
            "from_state": state_label(self.from_state),
            "to_state": state_label(self.to_state),
            "actor_id": self.actor_id,
            "notes": self.notes,
            "attempted_at": self.attempted_at.isoformat(),
            "committed_at": self.committed_at.isoformat(),
            "guards_passed": list(self.guards_passed),
        }


@dataclass(frozen=True)
class TransitionOutcome:
    """Successful result of ``TransitionEngine.attempt``."""

    entity_id: Any
    previous_state: Hashable
    new_state: Hashable
    audit_record: AuditRecord


@dataclass(frozen=True)
class TransitionDecision:
    """Dry-run verdict from ``TransitionEngine.evaluate``.

    ``code`` is ``None`` when allowed, otherwise the exception code the
    corresponding ``attempt`` would raise.
    """

    allowed: bool
    source: Hashable
    destination: Hashable
    code: str | None = None
    reason: str | None = None
    guard_name: str | None = None


@runtime_checkable
class AuditSink(Protocol):
    """Receives one record per committed transition."""

    def record(self, record: AuditRecord) -> None: ...


class InMemoryAuditSink:
    """List-backed sink for tests and single-process embedding."""

    def __init__(self) -> None:
        self._records: list[AuditRecord] = []
        self._lock = threading.Lock()

    def record(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> tuple[AuditRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def for_entity(self, entity_id: Any) -> tuple[AuditRecord, ...]:
        return tuple(r for r in self.records if r.entity_id == entity_id)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        return len(self.records)


class AuditSequence:
    """Thread-safe monotonic counter starting at ``start``."""

    def __init__(self, start: int = 1) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    @property
    def last(self) -> int:
        """Most recently issued value (``start - 1`` if none issued)."""
        with self._lock:
            return self._next - 1
