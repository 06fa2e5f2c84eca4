"""
Workflow Loader (``workflow_config.loader``).

Responsibility
--------------
Loads a YAML workflow document and parses it into the frozen dataclasses
of ``workflow_config.schema``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value shapes  -> ``ValueError``.

Audit relevance
---------------
``compute_checksum`` gives a deterministic SHA-256 of a definition so the
running engine can be tied back to a reviewed, version-controlled file.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from workflow_config.schema import GuardBindingDef, TransitionDef, WorkflowDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _str_tuple(value: Any, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"'{key}' must be a string or a list of strings, got {value!r}")
    return tuple(str(v) for v in value)


def parse_transition(data: dict[str, Any]) -> TransitionDef:
    """Parse ``{from: a, to: [b, c]}`` (``to`` may be a single string)."""
    return TransitionDef(
        from_state=str(data["from"]),
        to_states=_str_tuple(data["to"], "to"),
    )


def parse_guard(data: dict[str, Any]) -> GuardBindingDef:
    params = data.get("params") or {}
    if not isinstance(params, dict):
        raise ValueError(f"guard '{data.get('name')}' params must be a mapping")
    return GuardBindingDef(
        from_state=str(data["from"]),
        to_state=str(data["to"]),
        name=data["name"],
        kind=data["kind"],
        params=dict(params),
        description=data.get("description", ""),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowDef:
    """
    Parse a ``WorkflowDef`` from a dict.

    Preconditions:
        - ``data`` contains ``name``, ``states``, ``terminal_states`` and
          ``transitions``.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if values have the wrong shape.
    """
    initial = data.get("initial_states")
    return WorkflowDef(
        name=data["name"],
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        states=_str_tuple(data["states"], "states"),
        terminal_states=_str_tuple(data["terminal_states"], "terminal_states"),
        initial_states=_str_tuple(initial, "initial_states") if initial is not None else None,
        transitions=tuple(parse_transition(t) for t in data["transitions"] or ()),
        guards=tuple(parse_guard(g) for g in data.get("guards") or ()),
    )


def load_workflow(path: Path | str) -> WorkflowDef:
    """Load and parse one workflow document."""
    return parse_workflow(load_yaml_file(Path(path)))


def compute_checksum(workflow: WorkflowDef) -> str:
    """Deterministic SHA-256 over a canonical JSON rendering of ``workflow``."""
    canonical = json.dumps(
        dataclasses.asdict(workflow), sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
