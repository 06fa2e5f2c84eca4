"""
workflow_kernel.services.transition_engine -- Guarded transition execution.

Responsibility:
    The single public entry point for moving an entity between states.
    Consults the TransitionTable for structural validity, the
    GuardRegistry for business validity, commits the new state in place
    and builds exactly one AuditRecord per committed transition.

Architecture position:
    Kernel > Services.  Imports from ``workflow_kernel.domain`` only.
    Does not own entity storage: persisting the entity and forwarding the
    audit record are the caller's responsibility (optionally via an
    injected AuditSink).

Invariants enforced:
    * Terminal states never transition, independent of guards.
    * No guard runs for a destination outside ``outgoing(source)``.
    * A rejected attempt leaves the entity state untouched.
    * Audit sequence numbers are strictly increasing per engine.

Concurrency:
    The engine does NOT serialise attempts on the same entity.  Callers
    must hold a per-entity lock (or use optimistic concurrency on
    persistence) across read-evaluate-write.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable, Hashable

from workflow_kernel.domain.audit import (
    AuditRecord,
    AuditSequence,
    AuditSink,
    TransitionDecision,
    TransitionOutcome,
)
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.context import TransitionContext
from workflow_kernel.domain.guards import GuardRegistry
from workflow_kernel.domain.transition_table import TransitionTable, state_label
from workflow_kernel.exceptions import (
    AuditEmissionError,
    ConfigurationError,
    GuardContractError,
    GuardDeniedError,
    InvalidTransitionError,
    TerminalStateError,
    TransitionError,
    UnknownStateError,
)
from workflow_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.transition_engine")

# Trace message and outcome codes for structured logging and traceability
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_TERMINAL_STATE = "terminal_state"
OUTCOME_INVALID_TRANSITION = "invalid_transition"
OUTCOME_GUARD_DENIED = "guard_denied"
OUTCOME_UNKNOWN_STATE = "unknown_state"

_OUTCOME_BY_CODE = {
    TerminalStateError.code: OUTCOME_TERMINAL_STATE,
    InvalidTransitionError.code: OUTCOME_INVALID_TRANSITION,
    GuardDeniedError.code: OUTCOME_GUARD_DENIED,
    UnknownStateError.code: OUTCOME_UNKNOWN_STATE,
}


def _emit_transition_trace(
    workflow_name: str,
    ts: datetime,
    entity_id: Any,
    from_state: Hashable,
    to_state: Hashable,
    actor_id: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    sequence: int | None = None,
    guard_name: str | None = None,
    trace_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured transition record for traceability and lookback."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": ts.isoformat(),
        "workflow": workflow_name,
        "entity_id": str(entity_id),
        "from_state": state_label(from_state),
        "to_state": state_label(to_state),
        "actor_id": actor_id,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if sequence is not None:
        record["sequence"] = sequence
    if guard_name is not None:
        record["guard_name"] = guard_name
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)
    if trace_sink is not None:
        trace_sink({**record, "message": "workflow_transition"})


class TransitionEngine:
    """Evaluates and commits transition attempts for one workflow.

    The transition table and guard registry are fixed at construction;
    the registry is frozen so later registrations raise.
    """

    def __init__(
        self,
        table: TransitionTable,
        guards: GuardRegistry | None = None,
        *,
        audit_sink: AuditSink | None = None,
        clock: Clock | None = None,
        state_attr: str = "state",
        id_attr: str = "entity_id",
        trace_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._table = table
        self._guards = guards if guards is not None else GuardRegistry()
        self._audit_sink = audit_sink
        self._clock = clock or SystemClock()
        self._state_attr = state_attr
        self._id_attr = id_attr
        self._trace_sink = trace_sink
        self._sequence = AuditSequence()

        problems = [
            f"guards registered on {state_label(src)} -> {state_label(dst)}, "
            "which is not a transition of this workflow"
            for src, dst in self._guards.edges()
            if not table.is_structurally_valid(src, dst)
        ]
        if problems:
            raise ConfigurationError(problems, workflow=table.name)
        self._guards.freeze()

        logger.info(
            "transition_engine_initialized",
            extra={
                "workflow": table.name,
                "state_count": len(table.states),
                "edge_count": len(table.edges()),
                "guarded_edge_count": len(self._guards.edges()),
                "audit_sink": type(audit_sink).__name__ if audit_sink else None,
            },
        )

    @property
    def name(self) -> str:
        return self._table.name

    @property
    def table(self) -> TransitionTable:
        return self._table

    @property
    def guards(self) -> GuardRegistry:
        return self._guards

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def attempt(
        self,
        entity: Any,
        destination: Hashable,
        context: TransitionContext,
    ) -> TransitionOutcome:
        """Move ``entity`` to ``destination`` if the table and guards permit.

        Raises:
            UnknownStateError: entity state is outside the universe.
            TerminalStateError: entity is in a terminal state.
            InvalidTransitionError: no edge from the current state.
            GuardDeniedError: a guard vetoed the edge.
            AuditEmissionError: the sink failed AFTER the state was
                committed; ``e.outcome`` holds the committed result.
        """
        t0 = time.monotonic()
        entity_id = self._read_id(entity)
        source = self._read_state(entity)

        with LogContext.bind(
            workflow=self.name, entity_id=str(entity_id), actor_id=context.actor_id
        ):
            try:
                guards_passed = self._check(entity, entity_id, source, destination, context)
            except TransitionError as e:
                _emit_transition_trace(
                    workflow_name=self.name,
                    ts=self._clock.now(),
                    entity_id=entity_id,
                    from_state=source,
                    to_state=destination,
                    actor_id=context.actor_id,
                    outcome=_OUTCOME_BY_CODE.get(e.code, e.code.lower()),
                    reason=getattr(e, "reason", None) or str(e),
                    duration_ms=(time.monotonic() - t0) * 1000,
                    guard_name=getattr(e, "guard_name", None),
                    trace_sink=self._trace_sink,
                )
                raise

            setattr(entity, self._state_attr, destination)
            record = AuditRecord.for_transition(
                sequence=self._sequence.next(),
                workflow=self.name,
                entity_id=entity_id,
                from_state=source,
                to_state=destination,
                context=context,
                committed_at=self._clock.now(),
                guards_passed=guards_passed,
            )
            outcome = TransitionOutcome(
                entity_id=entity_id,
                previous_state=source,
                new_state=destination,
                audit_record=record,
            )
            _emit_transition_trace(
                workflow_name=self.name,
                ts=record.committed_at,
                entity_id=entity_id,
                from_state=source,
                to_state=destination,
                actor_id=context.actor_id,
                outcome=OUTCOME_SUCCESS,
                reason="transition committed",
                duration_ms=(time.monotonic() - t0) * 1000,
                sequence=record.sequence,
                trace_sink=self._trace_sink,
            )

            if self._audit_sink is not None:
                try:
                    self._audit_sink.record(record)
                except Exception as e:
                    logger.error(
                        "audit_emission_failed",
                        extra={"sequence": record.sequence, "record_id": str(record.record_id)},
                        exc_info=True,
                    )
                    raise AuditEmissionError(outcome, e) from e

        return outcome

    def evaluate(
        self,
        entity: Any,
        destination: Hashable,
        context: TransitionContext,
    ) -> TransitionDecision:
        """Dry run of ``attempt``: never mutates, never emits audit."""
        entity_id = self._read_id(entity)
        source = self._read_state(entity)
        try:
            self._check(entity, entity_id, source, destination, context)
        except TransitionError as e:
            return TransitionDecision(
                allowed=False,
                source=source,
                destination=destination,
                code=e.code,
                reason=getattr(e, "reason", None) or str(e),
                guard_name=getattr(e, "guard_name", None),
            )
        return TransitionDecision(allowed=True, source=source, destination=destination)

    def permitted_destinations(
        self,
        entity: Any,
        context: TransitionContext,
    ) -> tuple[Hashable, ...]:
        """Destinations the entity could move to right now, in rule order."""
        entity_id = self._read_id(entity)
        source = self._read_state(entity)
        if source not in self._table:
            raise UnknownStateError(entity_id, source)
        return tuple(
            dst
            for src, dst in self._table.edges()
            if src == source and self.evaluate(entity, dst, context).allowed
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check(
        self,
        entity: Any,
        entity_id: Any,
        source: Hashable,
        destination: Hashable,
        context: TransitionContext,
    ) -> tuple[str, ...]:
        """Raise the matching TransitionError or return the names of guards passed."""
        if source not in self._table:
            raise UnknownStateError(entity_id, source)
        if self._table.is_terminal(source):
            raise TerminalStateError(entity_id, source, destination)
        allowed = self._table.outgoing(source)
        if destination not in allowed:
            raise InvalidTransitionError(
                entity_id, source, destination, sorted(allowed, key=state_label)
            )

        result = self._guards.evaluate(source, destination, entity, context)

        current = self._read_state(entity)
        if current != source:
            setattr(entity, self._state_attr, source)
            logger.error(
                "guard_contract_violation",
                extra={
                    "from_state": state_label(source),
                    "found_state": state_label(current),
                },
            )
            raise GuardContractError(entity_id, source, current)

        if not result.allowed:
            raise GuardDeniedError(
                entity_id,
                source,
                destination,
                guard_name=result.guard_name or "",
                reason=result.reason or "",
            )
        return tuple(g.name for g in self._guards.guards_for(source, destination))

    def _read_state(self, entity: Any) -> Hashable:
        try:
            return getattr(entity, self._state_attr)
        except AttributeError:
            raise TypeError(
                f"{type(entity).__name__} has no state attribute '{self._state_attr}'"
            ) from None

    def _read_id(self, entity: Any) -> Any:
        try:
            return getattr(entity, self._id_attr)
        except AttributeError:
            raise TypeError(
                f"{type(entity).__name__} has no identifier attribute '{self._id_attr}'"
            ) from None
