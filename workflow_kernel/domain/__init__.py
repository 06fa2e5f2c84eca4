"""
Workflow kernel domain layer: pure value objects and the structures the
transition engine consults.  No I/O.
"""

from workflow_kernel.domain.audit import (
    AuditRecord,
    AuditSequence,
    AuditSink,
    InMemoryAuditSink,
    TransitionDecision,
    TransitionOutcome,
)
from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.context import TransitionContext
from workflow_kernel.domain.guards import (
    GUARD_FACTORIES,
    Guard,
    GuardRegistry,
    GuardResult,
    guard,
)
from workflow_kernel.domain.transition_table import TransitionTable, state_label

__all__ = [
    "AuditRecord",
    "AuditSequence",
    "AuditSink",
    "Clock",
    "DeterministicClock",
    "GUARD_FACTORIES",
    "Guard",
    "GuardRegistry",
    "GuardResult",
    "InMemoryAuditSink",
    "SystemClock",
    "TransitionContext",
    "TransitionDecision",
    "TransitionOutcome",
    "TransitionTable",
    "guard",
    "state_label",
]
