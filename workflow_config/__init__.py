"""
workflow_config -- YAML-driven workflow definitions.

Responsibility:
    Parses reviewable workflow documents, validates them, and builds the
    kernel's runtime objects.  Thresholds for parameterised guards live in
    the document (or are passed by the embedding service); the kernel
    never reads files or environment variables itself.

Architecture position:
    Sits above ``workflow_kernel`` and below ``workflow_modules``.  The
    kernel MUST NEVER import from ``workflow_config``.
"""

from workflow_config.builder import (
    build_engine,
    build_guard_registry,
    build_transition_table,
    engine_from_yaml,
)
from workflow_config.loader import compute_checksum, load_workflow, parse_workflow
from workflow_config.schema import GuardBindingDef, TransitionDef, WorkflowDef
from workflow_config.validator import ConfigValidationResult, validate_workflow_def

__all__ = [
    "ConfigValidationResult",
    "GuardBindingDef",
    "TransitionDef",
    "WorkflowDef",
    "build_engine",
    "build_guard_registry",
    "build_transition_table",
    "compute_checksum",
    "engine_from_yaml",
    "load_workflow",
    "parse_workflow",
    "validate_workflow_def",
]
