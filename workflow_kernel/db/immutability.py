"""
Append-only enforcement for persisted transition audit rows.

Mapper ``before_update`` / ``before_delete`` events fire during
``session.flush()``, before any SQL is sent, so a rejected change aborts
the flush and leaves the table untouched.
"""

from sqlalchemy import event

from workflow_kernel.exceptions import ImmutableAuditRecordError
from workflow_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(operation: str):
    def listener(mapper, connection, target):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": type(target).__name__,
                "record_id": str(target.id),
                "operation": operation,
            },
        )
        raise ImmutableAuditRecordError(target.id, operation)

    listener.__name__ = f"reject_{operation.lower()}"
    return listener


_LISTENERS = (
    ("before_update", _blocked("UPDATE")),
    ("before_delete", _blocked("DELETE")),
)


def register_immutability_listeners() -> None:
    """Idempotent."""
    from workflow_kernel.models.transition_audit import TransitionAuditRow

    for name, fn in _LISTENERS:
        if not event.contains(TransitionAuditRow, name, fn):
            event.listen(TransitionAuditRow, name, fn)


def unregister_immutability_listeners() -> None:
    from workflow_kernel.models.transition_audit import TransitionAuditRow

    for name, fn in _LISTENERS:
        if event.contains(TransitionAuditRow, name, fn):
            event.remove(TransitionAuditRow, name, fn)
