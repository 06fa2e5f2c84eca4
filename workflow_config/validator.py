"""
Workflow Validator (``workflow_config.validator``).

Responsibility
--------------
Checks a ``WorkflowDef`` before any runtime object is built: declared
names, guard kinds and parameters, and guard placement.  Graph shape
(dead ends, unreachable states, terminal edges) is checked by
``TransitionTable`` itself when the builder constructs it.

Failure modes
-------------
* ``ConfigValidationResult.errors``  -> the workflow MUST NOT be built.
* ``ConfigValidationResult.warnings`` -> buildable but should be reviewed.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Callable, Mapping

from workflow_config.schema import WorkflowDef
from workflow_kernel.domain.guards import GUARD_FACTORIES, Guard


@dataclass
class ConfigValidationResult:
    """
    Result of workflow validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_workflow_def(
    workflow: WorkflowDef,
    catalog: Mapping[str, Callable[..., Guard]] | None = None,
) -> ConfigValidationResult:
    """Validate ``workflow`` against ``catalog`` (default ``GUARD_FACTORIES``)."""
    result = ConfigValidationResult()
    catalog = GUARD_FACTORIES if catalog is None else catalog

    _validate_header(workflow, result)
    _validate_states(workflow, result)
    _validate_transitions(workflow, result)
    _validate_guards(workflow, catalog, result)

    return result


def _validate_header(workflow: WorkflowDef, result: ConfigValidationResult) -> None:
    if not workflow.name:
        result.add_error("workflow name is empty")
    if workflow.version < 1:
        result.add_error(f"version must be >= 1, got {workflow.version}")


def _validate_states(workflow: WorkflowDef, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    for state in workflow.states:
        if state in seen:
            result.add_error(f"state '{state}' declared more than once")
        seen.add(state)


def _validate_transitions(workflow: WorkflowDef, result: ConfigValidationResult) -> None:
    if not workflow.transitions:
        result.add_error("no transitions declared")
    sources: set[str] = set()
    for transition in workflow.transitions:
        if transition.from_state in sources:
            result.add_warning(
                f"transitions from '{transition.from_state}' are declared in several "
                "entries and will be merged"
            )
        sources.add(transition.from_state)
        if not transition.to_states:
            result.add_error(f"transition from '{transition.from_state}' has no destinations")


def _validate_guards(
    workflow: WorkflowDef,
    catalog: Mapping[str, Callable[..., Guard]],
    result: ConfigValidationResult,
) -> None:
    edges = {
        (t.from_state, to_state)
        for t in workflow.transitions
        for to_state in t.to_states
    }
    seen: set[tuple[str, str, str]] = set()
    for binding in workflow.guards:
        edge_text = f"{binding.from_state} -> {binding.to_state}"
        if (binding.from_state, binding.to_state) not in edges:
            result.add_error(
                f"guard '{binding.name}' is bound to {edge_text}, which is not a declared transition"
            )
        key = (binding.from_state, binding.to_state, binding.name)
        if key in seen:
            result.add_error(f"guard '{binding.name}' bound twice on {edge_text}")
        seen.add(key)

        factory = catalog.get(binding.kind)
        if factory is None:
            result.add_error(
                f"guard '{binding.name}' uses unknown kind '{binding.kind}' "
                f"(known: {', '.join(sorted(catalog))})"
            )
            continue
        try:
            inspect.signature(factory).bind(**binding.params, name=binding.name)
        except TypeError as e:
            result.add_error(
                f"guard '{binding.name}' ({binding.kind}) has invalid params: {e}"
            )
            continue
        try:
            factory(**binding.params, name=binding.name)
        except (TypeError, ValueError, ArithmeticError) as e:
            result.add_error(
                f"guard '{binding.name}' ({binding.kind}) rejected its params: "
                f"{type(e).__name__}: {e}"
            )
