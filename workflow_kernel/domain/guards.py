"""
Guard registry (``workflow_kernel.domain.guards``).

Responsibility
--------------
Holds business-rule predicates keyed by ``(source, destination)`` edge
and evaluates them for the transition engine.  Also provides a small
catalog of parameterised guard factories so thresholds can be supplied
by configuration instead of being hard-coded.

Architecture position
---------------------
**Kernel domain layer** -- no I/O of its own.  Guards that consult an
external system do so synchronously; timeouts are the caller's concern.

Invariants enforced
-------------------
* All guards on an edge must pass (logical AND), in registration order.
* Evaluation stops at the first denial and surfaces that guard's reason.
* A guard that raises is a denial (fail closed).
* Registration is rejected once the registry is frozen by an engine.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from workflow_kernel.domain.context import TransitionContext
from workflow_kernel.domain.transition_table import State, state_label
from workflow_kernel.exceptions import ConfigurationError
from workflow_kernel.logging_config import get_logger

logger = get_logger("domain.guards")


@dataclass(frozen=True)
class GuardResult:
    """Allow/deny verdict with an optional human-readable reason."""

    allowed: bool
    reason: str | None = None
    guard_name: str | None = None

    @classmethod
    def allow(cls) -> "GuardResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, guard_name: str | None = None) -> "GuardResult":
        return cls(allowed=False, reason=reason, guard_name=guard_name)


GuardPredicate = Callable[[Any, State, State, TransitionContext], "GuardResult | bool"]


@dataclass(frozen=True)
class Guard:
    """A named predicate over (entity, source, destination, context).

    Contract: frozen; the predicate must not mutate the entity.
    A predicate may return a ``GuardResult`` or a plain ``bool``; ``False``
    is reported with ``description`` as the reason.
    """

    name: str
    predicate: GuardPredicate
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Guard name must be non-empty")

    def check(
        self,
        entity: Any,
        source: State,
        destination: State,
        context: TransitionContext,
    ) -> GuardResult:
        verdict = self.predicate(entity, source, destination, context)
        if isinstance(verdict, GuardResult):
            if verdict.allowed:
                return verdict
            return replace(
                verdict,
                guard_name=verdict.guard_name or self.name,
                reason=verdict.reason or self._default_reason(),
            )
        if verdict:
            return GuardResult.allow()
        return GuardResult.deny(self._default_reason(), self.name)

    def _default_reason(self) -> str:
        return self.description or f"guard '{self.name}' not satisfied"


def guard(name: str, description: str = "") -> Callable[[GuardPredicate], Guard]:
    """Decorator turning a predicate function into a ``Guard``."""

    def _wrap(fn: GuardPredicate) -> Guard:
        return Guard(name=name, predicate=fn, description=description or (fn.__doc__ or "").strip())

    return _wrap


class GuardRegistry:
    """Guards per edge, evaluated in registration order."""

    def __init__(self) -> None:
        self._guards: dict[tuple[State, State], list[Guard]] = {}
        self._frozen = False

    def register(self, source: State, destination: State, guard: Guard) -> None:
        """Add ``guard`` to the edge ``source -> destination``."""
        if self._frozen:
            raise ConfigurationError(
                [f"cannot register guard '{guard.name}': registry is frozen"]
            )
        edge_guards = self._guards.setdefault((source, destination), [])
        if any(g.name == guard.name for g in edge_guards):
            raise ConfigurationError(
                [
                    f"guard '{guard.name}' already registered on "
                    f"{state_label(source)} -> {state_label(destination)}"
                ]
            )
        edge_guards.append(guard)
        logger.debug(
            "guard_registered",
            extra={
                "guard_name": guard.name,
                "from_state": state_label(source),
                "to_state": state_label(destination),
            },
        )

    def freeze(self) -> None:
        """Reject further registrations."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def guards_for(self, source: State, destination: State) -> tuple[Guard, ...]:
        return tuple(self._guards.get((source, destination), ()))

    def edges(self) -> tuple[tuple[State, State], ...]:
        return tuple(edge for edge, guards in self._guards.items() if guards)

    def evaluate(
        self,
        source: State,
        destination: State,
        entity: Any,
        context: TransitionContext,
    ) -> GuardResult:
        """Run every guard on the edge; the first denial wins."""
        for g in self._guards.get((source, destination), ()):
            try:
                result = g.check(entity, source, destination, context)
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "guard_evaluation_error",
                    extra={
                        "guard_name": g.name,
                        "from_state": state_label(source),
                        "to_state": state_label(destination),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                return GuardResult.deny(f"guard '{g.name}' failed: {e}", g.name)
            if not result.allowed:
                return result
        return GuardResult.allow()


# ---------------------------------------------------------------------------
# Guard factories (parameterised business rules)
# ---------------------------------------------------------------------------


def _get_attr(obj: Any, key: str, default: Any = None) -> Any:
    """Get attribute from an object or key from a mapping."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def amount_at_most(field: str, limit: Any, name: str | None = None) -> Guard:
    """Entity ``field`` must be present and <= ``limit``."""
    limit_d = _to_decimal(limit)

    def _check(entity, source, destination, context):
        value = _get_attr(entity, field)
        if value is None:
            return GuardResult.deny(f"{field} is required")
        if _to_decimal(value) > limit_d:
            return GuardResult.deny(
                f"{field} {value} exceeds the limit of {limit_d}"
            )
        return GuardResult.allow()

    return Guard(
        name=name or f"{field}_at_most",
        predicate=_check,
        description=f"{field} must not exceed {limit_d}",
    )


def amount_at_least(field: str, minimum: Any, name: str | None = None) -> Guard:
    """Entity ``field`` must be present and >= ``minimum``."""
    minimum_d = _to_decimal(minimum)

    def _check(entity, source, destination, context):
        value = _get_attr(entity, field)
        if value is None:
            return GuardResult.deny(f"{field} is required")
        if _to_decimal(value) < minimum_d:
            return GuardResult.deny(
                f"{field} {value} is below the minimum of {minimum_d}"
            )
        return GuardResult.allow()

    return Guard(
        name=name or f"{field}_at_least",
        predicate=_check,
        description=f"{field} must be at least {minimum_d}",
    )


def field_equals(field: str, expected: Any, name: str | None = None) -> Guard:
    def _check(entity, source, destination, context):
        value = _get_attr(entity, field)
        if value != expected:
            return GuardResult.deny(f"{field} must be {expected!r} (found {value!r})")
        return GuardResult.allow()

    return Guard(
        name=name or f"{field}_equals",
        predicate=_check,
        description=f"{field} must equal {expected!r}",
    )


def field_in(field: str, allowed: Iterable[Any], name: str | None = None) -> Guard:
    allowed_set = frozenset(allowed)

    def _check(entity, source, destination, context):
        value = _get_attr(entity, field)
        if value not in allowed_set:
            return GuardResult.deny(
                f"{field} {value!r} is not one of "
                + ", ".join(sorted(repr(a) for a in allowed_set))
            )
        return GuardResult.allow()

    return Guard(
        name=name or f"{field}_in",
        predicate=_check,
        description=f"{field} must be one of the permitted values",
    )


def flag_set(field: str, name: str | None = None) -> Guard:
    """Entity ``field`` must be truthy."""
    return Guard(
        name=name or f"{field}_set",
        predicate=lambda entity, source, destination, context: bool(
            _get_attr(entity, field, False)
        ),
        description=f"{field} must be set",
    )


def context_flag_set(key: str, name: str | None = None) -> Guard:
    """Context attribute ``key`` must be truthy."""
    return Guard(
        name=name or f"context_{key}_set",
        predicate=lambda entity, source, destination, context: bool(
            context.get(key, False)
        ),
        description=f"{key} must be confirmed for this transition",
    )


def context_value_at_most(key: str, limit: Any, name: str | None = None) -> Guard:
    """Context attribute ``key`` must be present and <= ``limit``."""
    limit_d = _to_decimal(limit)

    def _check(entity, source, destination, context):
        value = context.get(key)
        if value is None:
            return GuardResult.deny(f"{key} must be supplied")
        if _to_decimal(value) > limit_d:
            return GuardResult.deny(f"{key} {value} exceeds the limit of {limit_d}")
        return GuardResult.allow()

    return Guard(
        name=name or f"context_{key}_at_most",
        predicate=_check,
        description=f"{key} must not exceed {limit_d}",
    )


def actor_differs_from(field: str, name: str | None = None) -> Guard:
    """The acting user must not be the one recorded in entity ``field``."""

    def _check(entity, source, destination, context):
        if context.actor_id == _get_attr(entity, field):
            return GuardResult.deny(
                f"actor {context.actor_id} is recorded as {field} and "
                "cannot perform this transition"
            )
        return GuardResult.allow()

    return Guard(
        name=name or f"actor_not_{field}",
        predicate=_check,
        description=f"actor must differ from {field}",
    )


def fields_differ(field: str, other: str, name: str | None = None) -> Guard:
    """Entity ``field`` must be set and differ from entity ``other``."""

    def _check(entity, source, destination, context):
        value = _get_attr(entity, field)
        if value is None:
            return GuardResult.deny(f"{field} is required")
        if value == _get_attr(entity, other):
            return GuardResult.deny(f"{field} must not be the same as {other} ({value})")
        return GuardResult.allow()

    return Guard(
        name=name or f"{field}_not_{other}",
        predicate=_check,
        description=f"{field} must differ from {other}",
    )


def actor_present(name: str | None = None) -> Guard:
    return Guard(
        name=name or "actor_present",
        predicate=lambda entity, source, destination, context: bool(
            (context.actor_id or "").strip()
        ),
        description="an acting user must be identified",
    )


def notes_present(name: str | None = None) -> Guard:
    """The transition context must carry non-blank notes."""
    return Guard(
        name=name or "notes_present",
        predicate=lambda entity, source, destination, context: bool(
            (context.notes or "").strip()
        ),
        description="notes explaining this transition are required",
    )


GUARD_FACTORIES: dict[str, Callable[..., Guard]] = {
    "amount_at_most": amount_at_most,
    "amount_at_least": amount_at_least,
    "field_equals": field_equals,
    "field_in": field_in,
    "flag_set": flag_set,
    "context_flag_set": context_flag_set,
    "context_value_at_most": context_value_at_most,
    "actor_differs_from": actor_differs_from,
    "fields_differ": fields_differ,
    "actor_present": actor_present,
    "notes_present": notes_present,
}
