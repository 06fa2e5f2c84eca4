"""
Loan Application Module (``workflow_modules.loan``).

A staged approval process: an application is submitted, verified,
certified, risk-assessed, approved, allocated and completed, or rejected
at any stage.  Thresholds come from ``LoanWorkflowConfig``.
"""

from workflow_modules.loan.config import LoanWorkflowConfig
from workflow_modules.loan.models import LoanApplication, LoanStatus
from workflow_modules.loan.workflows import (
    LOAN_TRANSITIONS,
    LOAN_WORKFLOW_YAML,
    build_loan_engine,
    loan_guard_registry,
    loan_transition_table,
)

__all__ = [
    "LOAN_TRANSITIONS",
    "LOAN_WORKFLOW_YAML",
    "LoanApplication",
    "LoanStatus",
    "LoanWorkflowConfig",
    "build_loan_engine",
    "loan_guard_registry",
    "loan_transition_table",
]
