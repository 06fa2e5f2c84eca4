"""
Clock -- injectable time source for transition timestamps.

Responsibility:
    The engine stamps ``committed_at`` and ``TransitionContext.create``
    stamps ``attempted_at`` from a Clock, never from ``datetime.now()``,
    so audit trails can be reproduced exactly in tests.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place wall-clock time
    enters the kernel.

Invariants enforced:
    * Every clock returns timezone-aware datetimes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current instant for the transition engine."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()``,
    ``tick()`` or ``set_time()`` moves it, so attempted/committed
    timestamps in audit records are predictable.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_aware(fixed_time or DEFAULT_TEST_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_aware(time)

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move forward one second and return the new instant."""
        self.advance(1)
        return self._current


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("clock times must be timezone-aware")
    return value
