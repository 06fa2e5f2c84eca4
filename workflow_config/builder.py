"""
Workflow Builder (``workflow_config.builder``).

Responsibility
--------------
Turns a validated ``WorkflowDef`` into runtime kernel objects: a
``TransitionTable``, a ``GuardRegistry`` populated from the guard
catalog, and a ready ``TransitionEngine``.

Architecture position
---------------------
**Config layer** -- sits above ``workflow_kernel``.  The kernel never
imports from ``workflow_config``.

Failure modes
-------------
* Validation errors, bad guard params, unknown enum values and graph
  problems all surface as ``ConfigurationError`` before any engine exists.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Hashable, Mapping

from workflow_config.loader import compute_checksum, load_workflow
from workflow_config.schema import WorkflowDef
from workflow_config.validator import validate_workflow_def
from workflow_kernel.domain.audit import AuditSink
from workflow_kernel.domain.clock import Clock
from workflow_kernel.domain.guards import GUARD_FACTORIES, Guard, GuardRegistry
from workflow_kernel.domain.transition_table import TransitionTable
from workflow_kernel.exceptions import ConfigurationError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.services.transition_engine import TransitionEngine

logger = get_logger("config.builder")


def _state_converter(
    workflow: WorkflowDef, state_type: type[Enum] | None
) -> Callable[[str], Hashable]:
    if state_type is None:
        return lambda value: value

    def _convert(value: str) -> Hashable:
        try:
            return state_type(value)
        except ValueError:
            raise ConfigurationError(
                [f"state '{value}' is not a member of {state_type.__name__}"],
                workflow=workflow.name,
            ) from None

    return _convert


def build_transition_table(
    workflow: WorkflowDef,
    state_type: type[Enum] | None = None,
) -> TransitionTable:
    """Build the table; graph checks raise ``ConfigurationError``."""
    convert = _state_converter(workflow, state_type)
    adjacency: dict[Hashable, list[Hashable]] = {}
    for transition in workflow.transitions:
        destinations = adjacency.setdefault(convert(transition.from_state), [])
        destinations.extend(convert(s) for s in transition.to_states)
    return TransitionTable(
        states=[convert(s) for s in workflow.states],
        transitions=adjacency,
        terminal_states=[convert(s) for s in workflow.terminal_states],
        initial_states=(
            [convert(s) for s in workflow.initial_states]
            if workflow.initial_states is not None
            else None
        ),
        name=workflow.name,
    )


def build_guard_registry(
    workflow: WorkflowDef,
    catalog: Mapping[str, Callable[..., Guard]] | None = None,
    state_type: type[Enum] | None = None,
) -> GuardRegistry:
    """Instantiate every guard binding from ``catalog``."""
    catalog = GUARD_FACTORIES if catalog is None else catalog
    convert = _state_converter(workflow, state_type)
    registry = GuardRegistry()
    for binding in workflow.guards:
        factory = catalog.get(binding.kind)
        if factory is None:
            raise ConfigurationError(
                [f"unknown guard kind '{binding.kind}'"], workflow=workflow.name
            )
        try:
            guard = factory(**binding.params, name=binding.name)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ConfigurationError(
                [f"guard '{binding.name}' ({binding.kind}) rejected its params: {e}"],
                workflow=workflow.name,
            ) from e
        if binding.description:
            guard = dataclasses.replace(guard, description=binding.description)
        registry.register(convert(binding.from_state), convert(binding.to_state), guard)
    return registry


def build_engine(
    workflow: WorkflowDef,
    *,
    catalog: Mapping[str, Callable[..., Guard]] | None = None,
    state_type: type[Enum] | None = None,
    audit_sink: AuditSink | None = None,
    clock: Clock | None = None,
    **engine_kwargs: Any,
) -> TransitionEngine:
    """
    Validate ``workflow`` and build a ``TransitionEngine`` for it.

    Postconditions:
        - A ``workflow_config_loaded`` log record carries name, version,
          checksum and counts.
    Raises:
        ConfigurationError: on any validation or graph problem.
    """
    result = validate_workflow_def(workflow, catalog)
    for warning in result.warnings:
        logger.warning(
            "workflow_config_warning",
            extra={"workflow": workflow.name, "warning": warning},
        )
    if not result.is_valid:
        logger.error(
            "workflow_config_invalid",
            extra={"workflow": workflow.name, "errors": result.errors},
        )
        raise ConfigurationError(result.errors, workflow=workflow.name)

    table = build_transition_table(workflow, state_type)
    guards = build_guard_registry(workflow, catalog, state_type)
    engine = TransitionEngine(
        table,
        guards,
        audit_sink=audit_sink,
        clock=clock,
        **engine_kwargs,
    )

    logger.info(
        "workflow_config_loaded",
        extra={
            "workflow": workflow.name,
            "version": workflow.version,
            "checksum": compute_checksum(workflow),
            "state_count": len(workflow.states),
            "edge_count": workflow.edge_count,
            "guard_count": len(workflow.guards),
        },
    )
    return engine


def engine_from_yaml(path: Path | str, **kwargs: Any) -> TransitionEngine:
    """Load a YAML workflow document and build its engine."""
    return build_engine(load_workflow(path), **kwargs)
