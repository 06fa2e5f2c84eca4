"""
Loan Application Domain Models (``workflow_modules.loan.models``).

Responsibility
--------------
The states of a staged loan approval and the application entity the
transition engine moves between them.

Invariants enforced
-------------------
* Monetary and score fields use ``Decimal`` (never ``float``).
* ``LoanApplication.state`` is only changed by ``TransitionEngine.attempt``;
  callers persist the entity afterwards.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4


class LoanStatus(Enum):
    """Loan application workflow states.  Must align with ``workflows.LOAN_TRANSITIONS``."""
    SUBMITTED = "submitted"
    VERIFICATION = "verification"
    CERTIFICATION = "certification"
    RISK_ASSESSMENT = "risk_assessment"
    APPROVED = "approved"
    ALLOCATION = "allocation"
    COMPLETED = "completed"
    REJECTED = "rejected"


@dataclass
class LoanApplication:
    """A loan application moving through the approval stages.

    Mutable: the engine writes ``state`` in place.
    """
    applicant: str
    amount: Decimal
    submitted_by: str
    state: LoanStatus = LoanStatus.SUBMITTED
    documents_verified: bool = False
    certified_by: str | None = None
    risk_score: Decimal | None = None
    entity_id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if self.amount <= 0:
            raise ValueError("amount must be positive")
