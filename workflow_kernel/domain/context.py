"""
Transition context (``workflow_kernel.domain.context``).

Caller-supplied metadata for a single transition attempt: who is acting,
why, and when.  ``attributes`` carries extra read-only inputs for guards
that the entity itself does not hold (an external risk score, an
approval reference, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

from workflow_kernel.domain.clock import Clock, SystemClock


@dataclass(frozen=True)
class TransitionContext:
    """Immutable metadata for one attempt.

    Contract: frozen; ``attributes`` is exposed as a read-only mapping.
    Guarantees: ``actor_id`` is non-empty and ``attempted_at`` is
    timezone-aware.
    """

    actor_id: str
    attempted_at: datetime
    notes: str = ""
    attributes: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("actor_id must be non-empty")
        if self.attempted_at.tzinfo is None:
            raise ValueError("attempted_at must be timezone-aware")
        object.__setattr__(
            self, "attributes", MappingProxyType(dict(self.attributes))
        )

    @classmethod
    def create(
        cls,
        actor_id: str,
        notes: str = "",
        clock: Clock | None = None,
        **attributes: Any,
    ) -> "TransitionContext":
        """Build a context stamped with the clock's current time."""
        clock = clock or SystemClock()
        return cls(
            actor_id=actor_id,
            attempted_at=clock.now(),
            notes=notes,
            attributes=attributes,
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)
