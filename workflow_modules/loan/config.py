"""
Loan Workflow Configuration (``workflow_modules.loan.config``).

Responsibility
--------------
Thresholds for the loan workflow's parameterised guards.  The embedding
service decides where the numbers come from (YAML, database, runtime
parameter) and passes them in; defaults are conservative.

Failure modes
-------------
* ``ValueError`` at construction if a threshold is out of range.
"""

from dataclasses import dataclass
from decimal import Decimal

from workflow_kernel.logging_config import get_logger

logger = get_logger("modules.loan.config")


@dataclass(frozen=True)
class LoanWorkflowConfig:
    """Guard thresholds for the loan workflow.

    ``max_amount``: largest amount accepted into verification.
    ``max_risk_score``: highest risk score (0-100, higher is riskier)
    that may be approved.
    """
    max_amount: Decimal = Decimal("100000")
    max_risk_score: Decimal = Decimal("60")

    def __post_init__(self):
        if self.max_amount <= 0:
            raise ValueError("max_amount must be positive")
        if not Decimal("0") <= self.max_risk_score <= Decimal("100"):
            raise ValueError("max_risk_score must be between 0 and 100")
        logger.info(
            "loan_workflow_config_initialized",
            extra={
                "max_amount": str(self.max_amount),
                "max_risk_score": str(self.max_risk_score),
            },
        )
