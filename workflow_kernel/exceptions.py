"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers decide what to show an end user and what to log based on the kind
of rejection, never on message wording. Every exception therefore has:
  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (source, destination, guard name, ...)

Example:
    try:
        engine.attempt(application, LoanStatus.APPROVED, ctx)
    except GuardDeniedError as e:
        api_response(code=e.code, reason=e.reason)    # human-readable
    except TransitionError as e:
        log.warning("rejected", extra={"code": e.code})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- ConfigurationError
    |
    +-- TransitionError
    |   +-- TerminalStateError
    |   +-- InvalidTransitionError
    |   +-- GuardDeniedError
    |   +-- UnknownStateError
    |
    +-- GuardContractError
    |
    +-- AuditError
        +-- AuditEmissionError
        +-- ImmutableAuditRecordError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Malformed transition graph or guard wiring
----------------|-----------------------------|-----------------------------------------
Transition      | TERMINAL_STATE              | Attempt from a terminal state
                | INVALID_TRANSITION          | Destination not an edge from source
                | GUARD_DENIED                | Business rule vetoed a valid edge
                | UNKNOWN_STATE               | Entity reports a state outside the universe
----------------|-----------------------------|-----------------------------------------
Guard           | GUARD_CONTRACT_VIOLATION    | A guard changed the entity's state
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_EMISSION_FAILED       | Sink raised after the state was committed
                | AUDIT_RECORD_IMMUTABLE      | Persisted audit row updated or deleted

None of the transition rejections are transient: the same entity state and
destination always produce the same rejection.
"""

from __future__ import annotations

from typing import Any, Iterable


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Configuration


class ConfigurationError(WorkflowKernelError):
    """
    Workflow definition is malformed.

    Raised at construction time. Collects every problem found so one
    deployment fix addresses all of them. Fatal: the engine is never built.
    """

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, problems: Iterable[str], workflow: str | None = None):
        self.problems = tuple(problems)
        self.workflow = workflow
        prefix = f"Invalid workflow '{workflow}'" if workflow else "Invalid workflow"
        super().__init__(f"{prefix}: " + "; ".join(self.problems))


# Transition rejections


class TransitionError(WorkflowKernelError):
    """Base exception for a rejected transition attempt."""

    code: str = "TRANSITION_ERROR"

    def __init__(self, entity_id: Any, source: Any, message: str):
        self.entity_id = entity_id
        self.source = source
        super().__init__(message)


class TerminalStateError(TransitionError):
    """Entity is in a terminal state; no transition is ever permitted."""

    code: str = "TERMINAL_STATE"

    def __init__(self, entity_id: Any, source: Any, destination: Any):
        self.destination = destination
        super().__init__(
            entity_id,
            source,
            f"Entity {entity_id} is in terminal state {_label(source)}; "
            f"cannot move to {_label(destination)}",
        )


class InvalidTransitionError(TransitionError):
    """Destination is not directly reachable from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_id: Any,
        source: Any,
        destination: Any,
        allowed: Iterable[Any] = (),
    ):
        self.destination = destination
        self.allowed = tuple(allowed)
        allowed_text = ", ".join(_label(s) for s in self.allowed) or "none"
        super().__init__(
            entity_id,
            source,
            f"Invalid transition for entity {entity_id}: "
            f"{_label(source)} -> {_label(destination)} (allowed: {allowed_text})",
        )


class GuardDeniedError(TransitionError):
    """
    A structurally valid transition was vetoed by a business rule.

    `reason` is written for end users and is usually shown verbatim.
    """

    code: str = "GUARD_DENIED"

    def __init__(
        self,
        entity_id: Any,
        source: Any,
        destination: Any,
        guard_name: str,
        reason: str,
    ):
        self.destination = destination
        self.guard_name = guard_name
        self.reason = reason
        super().__init__(
            entity_id,
            source,
            f"Transition {_label(source)} -> {_label(destination)} denied "
            f"by guard '{guard_name}': {reason}",
        )


class UnknownStateError(TransitionError):
    """State is not part of the workflow's declared universe."""

    code: str = "UNKNOWN_STATE"

    def __init__(self, entity_id: Any, source: Any):
        if entity_id is None:
            message = f"Unknown state {_label(source)}"
        else:
            message = f"Entity {entity_id} reports unknown state {_label(source)}"
        super().__init__(entity_id, source, message)


# Guard contract


class GuardContractError(WorkflowKernelError):
    """A guard mutated the entity's state during evaluation."""

    code: str = "GUARD_CONTRACT_VIOLATION"

    def __init__(self, entity_id: Any, expected: Any, found: Any):
        self.entity_id = entity_id
        self.expected = expected
        self.found = found
        super().__init__(
            f"Guard evaluation changed state of entity {entity_id}: "
            f"{_label(expected)} -> {_label(found)}"
        )


# Audit


class AuditError(WorkflowKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditEmissionError(AuditError):
    """
    The audit sink failed after the state change was committed.

    The state change is NOT rolled back. `outcome` holds the committed
    transition so the caller can re-emit `outcome.audit_record`.
    """

    code: str = "AUDIT_EMISSION_FAILED"

    def __init__(self, outcome: Any, cause: BaseException):
        self.outcome = outcome
        self.cause = cause
        super().__init__(
            f"Audit emission failed for entity {outcome.entity_id} "
            f"(sequence {outcome.audit_record.sequence}): {cause}"
        )


class ImmutableAuditRecordError(AuditError):
    """Attempted to modify or delete a persisted audit record."""

    code: str = "AUDIT_RECORD_IMMUTABLE"

    def __init__(self, record_id: Any, operation: str):
        self.record_id = record_id
        self.operation = operation
        super().__init__(
            f"Audit record {record_id} is immutable; {operation} rejected"
        )


def _label(state: Any) -> str:
    """Render a state for messages: enum members by value, others by str()."""
    value = getattr(state, "value", state)
    return str(value)
