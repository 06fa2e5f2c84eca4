"""
Workflow configuration schema.

Defines the human-authored, reviewable source artifact for one workflow.
YAML documents are parsed into these types by the loader, checked by the
validator, and turned into a TransitionTable, GuardRegistry and
TransitionEngine by the builder.

Key distinction:
  WorkflowDef       = source artifact (human-authored, versioned)
  TransitionEngine  = runtime artifact (validated, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TransitionDef:
    """All destinations reachable directly from ``from_state``."""

    from_state: str
    to_states: tuple[str, ...]


@dataclass(frozen=True)
class GuardBindingDef:
    """Binds a catalog guard kind, with parameters, to one edge."""

    from_state: str
    to_state: str
    name: str
    kind: str
    params: dict[str, Any] = field(default_factory=dict)
    description: str = ""


@dataclass(frozen=True)
class WorkflowDef:
    """A complete workflow definition."""

    name: str
    version: int
    states: tuple[str, ...]
    terminal_states: tuple[str, ...]
    transitions: tuple[TransitionDef, ...]
    guards: tuple[GuardBindingDef, ...] = ()
    initial_states: tuple[str, ...] | None = None
    description: str = ""

    @property
    def edge_count(self) -> int:
        return sum(len(t.to_states) for t in self.transitions)
