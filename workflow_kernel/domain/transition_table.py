"""
Transition table (``workflow_kernel.domain.transition_table``).

Responsibility
--------------
Answers "may state A move directly to state B, ignoring business
guards?" for a closed state universe declared once at construction.

Architecture position
---------------------
**Kernel domain layer** -- pure data.  ZERO I/O.  No imports from
``services/``, ``db/`` or ``models/``.

Invariants enforced
-------------------
* Every state referenced by a rule belongs to the declared universe.
* At least one terminal state is declared.
* Terminal states have no outgoing edges; non-terminal states have at
  least one.
* Every state is reachable from an entry state, and every non-terminal
  state can reach some terminal state.

Failure modes
-------------
* ``ConfigurationError`` at construction, listing every problem found.
* ``UnknownStateError`` from ``outgoing()`` for a state outside the
  universe.
"""

from __future__ import annotations

from collections import deque
from typing import Hashable, Iterable, Mapping

from workflow_kernel.exceptions import ConfigurationError, UnknownStateError
from workflow_kernel.logging_config import get_logger

logger = get_logger("domain.transition_table")

State = Hashable


def state_label(state: State) -> str:
    """Render a state for messages: enum members by value, others by str()."""
    return str(getattr(state, "value", state))


class TransitionTable:
    """Static adjacency structure for one workflow.

    Contract: immutable after construction; ``outgoing()`` of a terminal
    state is the empty set.
    Non-goals: knows nothing about guards, entities or audit.
    """

    def __init__(
        self,
        states: Iterable[State],
        transitions: Mapping[State, Iterable[State]],
        terminal_states: Iterable[State],
        initial_states: Iterable[State] | None = None,
        name: str = "workflow",
    ) -> None:
        self._name = name
        self._states: tuple[State, ...] = tuple(dict.fromkeys(states))
        self._terminal: frozenset[State] = frozenset(terminal_states)
        self._initial: frozenset[State] | None = (
            frozenset(initial_states) if initial_states is not None else None
        )
        adjacency = {
            source: tuple(dict.fromkeys(destinations))
            for source, destinations in transitions.items()
        }

        problems = _structural_problems(
            self._states, adjacency, self._terminal, self._initial
        )
        if not problems:
            problems = _graph_problems(
                self._states, adjacency, self._terminal, self._initial
            )
        if problems:
            logger.error(
                "transition_table_invalid",
                extra={"workflow": name, "problems": problems},
            )
            raise ConfigurationError(problems, workflow=name)

        self._ordered: dict[State, tuple[State, ...]] = {
            state: adjacency.get(state, ()) for state in self._states
        }
        self._outgoing: dict[State, frozenset[State]] = {
            state: frozenset(dests) for state, dests in self._ordered.items()
        }

        logger.debug(
            "transition_table_built",
            extra={
                "workflow": name,
                "state_count": len(self._states),
                "edge_count": sum(len(d) for d in self._ordered.values()),
                "terminal_states": sorted(state_label(s) for s in self._terminal),
            },
        )

    @classmethod
    def from_pairs(
        cls,
        states: Iterable[State],
        pairs: Iterable[tuple[State, State]],
        terminal_states: Iterable[State],
        initial_states: Iterable[State] | None = None,
        name: str = "workflow",
    ) -> "TransitionTable":
        """Build from ``(source, destination)`` pairs instead of an adjacency map."""
        adjacency: dict[State, list[State]] = {}
        for source, destination in pairs:
            adjacency.setdefault(source, []).append(destination)
        return cls(states, adjacency, terminal_states, initial_states, name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def states(self) -> tuple[State, ...]:
        return self._states

    @property
    def terminal_states(self) -> frozenset[State]:
        return self._terminal

    @property
    def initial_states(self) -> frozenset[State] | None:
        return self._initial

    def __contains__(self, state: object) -> bool:
        return state in self._outgoing

    def is_terminal(self, state: State) -> bool:
        return state in self._terminal

    def outgoing(self, source: State) -> frozenset[State]:
        """Configured destinations for ``source``; empty for terminal states."""
        try:
            return self._outgoing[source]
        except KeyError:
            raise UnknownStateError(None, source) from None

    def is_structurally_valid(self, source: State, destination: State) -> bool:
        """True iff ``destination`` is in the configured outgoing set for ``source``."""
        return destination in self._outgoing.get(source, frozenset())

    def edges(self) -> tuple[tuple[State, State], ...]:
        """Every edge, in state-declaration then rule order."""
        return tuple(
            (source, destination)
            for source, destinations in self._ordered.items()
            for destination in destinations
        )

    def __repr__(self) -> str:
        return (
            f"TransitionTable(name={self._name!r}, states={len(self._states)}, "
            f"edges={len(self.edges())})"
        )


# ---------------------------------------------------------------------------
# Construction checks
# ---------------------------------------------------------------------------


def _structural_problems(
    states: tuple[State, ...],
    adjacency: dict[State, tuple[State, ...]],
    terminal: frozenset[State],
    initial: frozenset[State] | None,
) -> list[str]:
    """Checks that need nothing beyond set membership."""
    problems: list[str] = []
    universe = set(states)

    if not states:
        return ["no states declared"]

    for source, destinations in adjacency.items():
        if source not in universe:
            problems.append(
                f"transition source '{state_label(source)}' is not a declared state"
            )
        for destination in destinations:
            if destination not in universe:
                problems.append(
                    f"transition {state_label(source)} -> {state_label(destination)} "
                    f"references undeclared state '{state_label(destination)}'"
                )

    for state in sorted(terminal, key=state_label):
        if state not in universe:
            problems.append(
                f"terminal state '{state_label(state)}' is not a declared state"
            )
    if not terminal:
        problems.append("no terminal state declared")

    for state in states:
        destinations = adjacency.get(state, ())
        if state in terminal and destinations:
            problems.append(
                f"terminal state '{state_label(state)}' has outgoing transitions to "
                + ", ".join(state_label(d) for d in destinations)
            )
        elif state not in terminal and not destinations:
            problems.append(
                f"non-terminal state '{state_label(state)}' has no outgoing transitions"
            )

    if initial is not None:
        if not initial:
            problems.append("initial_states is empty")
        for state in sorted(initial, key=state_label):
            if state not in universe:
                problems.append(
                    f"initial state '{state_label(state)}' is not a declared state"
                )
            elif state in terminal:
                problems.append(
                    f"initial state '{state_label(state)}' is terminal"
                )

    return problems


def _graph_problems(
    states: tuple[State, ...],
    adjacency: dict[State, tuple[State, ...]],
    terminal: frozenset[State],
    initial: frozenset[State] | None,
) -> list[str]:
    """Reachability checks; assumes the structural checks passed."""
    problems: list[str] = []

    if initial is not None:
        roots = set(initial)
    else:
        has_incoming = {d for dests in adjacency.values() for d in dests}
        roots = {s for s in states if s not in terminal and s not in has_incoming}
        if not roots:
            # Every non-terminal state sits on a cycle; any of them may be an entry.
            roots = {s for s in states if s not in terminal}

    reachable = _closure(roots, adjacency)
    for state in states:
        if state not in reachable:
            problems.append(
                f"state '{state_label(state)}' is unreachable from entry states "
                + ", ".join(sorted(state_label(r) for r in roots))
            )

    reverse: dict[State, list[State]] = {}
    for source, destinations in adjacency.items():
        for destination in destinations:
            reverse.setdefault(destination, []).append(source)
    can_finish = _closure(terminal, reverse)
    for state in states:
        if state not in terminal and state not in can_finish:
            problems.append(
                f"state '{state_label(state)}' cannot reach any terminal state"
            )

    return problems


def _closure(
    start: Iterable[State], adjacency: Mapping[State, Iterable[State]]
) -> set[State]:
    seen = set(start)
    queue = deque(seen)
    while queue:
        current = queue.popleft()
        for nxt in adjacency.get(current, ()):
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return seen
