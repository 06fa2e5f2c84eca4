"""
Loan Application Workflow (``workflow_modules.loan.workflows``).

Responsibility
--------------
Declares the staged loan approval: submission, verification,
certification, risk assessment, approval, allocation and completion,
with rejection possible from every non-terminal stage.  Guards express
the business preconditions for each advance.

Architecture position
---------------------
**Modules layer** -- declarative workflow definition.  Builds on
``TransitionTable``, ``GuardRegistry`` and ``TransitionEngine`` from
``workflow_kernel``.

Invariants enforced
-------------------
* COMPLETED and REJECTED are terminal.
* The recorded certifier and the approving actor must differ from
  the submitter.
* A rejection must carry notes explaining it.

Audit relevance
---------------
Workflow registration is logged at module load with state and edge counts.
"""

from decimal import Decimal
from pathlib import Path

from workflow_kernel.domain.audit import AuditSink
from workflow_kernel.domain.clock import Clock
from workflow_kernel.domain.guards import (
    GuardRegistry,
    actor_differs_from,
    amount_at_most,
    context_flag_set,
    fields_differ,
    flag_set,
    notes_present,
)
from workflow_kernel.domain.transition_table import TransitionTable
from workflow_kernel.logging_config import get_logger
from workflow_kernel.services.transition_engine import TransitionEngine
from workflow_modules.loan.config import LoanWorkflowConfig
from workflow_modules.loan.models import LoanStatus

logger = get_logger("modules.loan.workflows")

WORKFLOW_NAME = "loan_application"

LOAN_WORKFLOW_YAML = Path(__file__).with_name("loan_application.yaml")

S = LoanStatus

LOAN_TRANSITIONS: dict[LoanStatus, tuple[LoanStatus, ...]] = {
    S.SUBMITTED: (S.VERIFICATION, S.REJECTED),
    S.VERIFICATION: (S.CERTIFICATION, S.REJECTED),
    S.CERTIFICATION: (S.RISK_ASSESSMENT, S.REJECTED),
    S.RISK_ASSESSMENT: (S.APPROVED, S.REJECTED),
    S.APPROVED: (S.ALLOCATION, S.REJECTED),
    S.ALLOCATION: (S.COMPLETED, S.REJECTED),
    S.COMPLETED: (),
    S.REJECTED: (),
}

TERMINAL_STATES = (S.COMPLETED, S.REJECTED)


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------


DOCUMENTS_VERIFIED = flag_set("documents_verified", name="documents_verified")

CERTIFIER_RECORDED = flag_set("certified_by", name="certifier_recorded")

CERTIFIER_NOT_SUBMITTER = fields_differ("certified_by", "submitted_by", name="certifier_not_submitter")

APPROVER_NOT_SUBMITTER = actor_differs_from("submitted_by", name="approver_not_submitter")

FUNDS_DISBURSED = context_flag_set("funds_disbursed", name="funds_disbursed")

REJECTION_REASON_GIVEN = notes_present(name="rejection_reason_given")


def loan_transition_table() -> TransitionTable:
    return TransitionTable(
        states=list(LoanStatus),
        transitions=LOAN_TRANSITIONS,
        terminal_states=TERMINAL_STATES,
        initial_states=(S.SUBMITTED,),
        name=WORKFLOW_NAME,
    )


def loan_guard_registry(config: LoanWorkflowConfig | None = None) -> GuardRegistry:
    """Guards for every loan edge, parameterised by ``config``."""
    config = config or LoanWorkflowConfig()
    registry = GuardRegistry()

    registry.register(
        S.SUBMITTED,
        S.VERIFICATION,
        amount_at_most("amount", config.max_amount, name="amount_within_limit"),
    )
    registry.register(S.VERIFICATION, S.CERTIFICATION, DOCUMENTS_VERIFIED)
    registry.register(S.CERTIFICATION, S.RISK_ASSESSMENT, CERTIFIER_RECORDED)
    registry.register(S.CERTIFICATION, S.RISK_ASSESSMENT, CERTIFIER_NOT_SUBMITTER)
    registry.register(
        S.RISK_ASSESSMENT,
        S.APPROVED,
        amount_at_most("risk_score", config.max_risk_score, name="risk_score_acceptable"),
    )
    registry.register(S.RISK_ASSESSMENT, S.APPROVED, APPROVER_NOT_SUBMITTER)
    registry.register(S.ALLOCATION, S.COMPLETED, FUNDS_DISBURSED)

    for source, destinations in LOAN_TRANSITIONS.items():
        if S.REJECTED in destinations:
            registry.register(source, S.REJECTED, REJECTION_REASON_GIVEN)

    return registry


def build_loan_engine(
    max_amount: Decimal | int | str = Decimal("100000"),
    max_risk_score: Decimal | int | str = Decimal("60"),
    *,
    audit_sink: AuditSink | None = None,
    clock: Clock | None = None,
) -> TransitionEngine:
    """A ready engine for ``LoanApplication`` entities.

    Thresholds are validated by ``LoanWorkflowConfig``.
    """
    config = LoanWorkflowConfig(
        max_amount=Decimal(str(max_amount)),
        max_risk_score=Decimal(str(max_risk_score)),
    )
    return TransitionEngine(
        loan_transition_table(),
        loan_guard_registry(config),
        audit_sink=audit_sink,
        clock=clock,
    )


logger.info(
    "loan_workflow_registered",
    extra={
        "workflow": WORKFLOW_NAME,
        "states": [s.value for s in LoanStatus],
        "edge_count": sum(len(d) for d in LOAN_TRANSITIONS.values()),
        "terminal_states": [s.value for s in TERMINAL_STATES],
    },
)
