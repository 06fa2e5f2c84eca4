"""ORM models for the workflow kernel."""

from workflow_kernel.models.transition_audit import TransitionAuditRow

__all__ = ["TransitionAuditRow"]
