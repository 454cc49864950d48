"""Exception types raised by the computation engine.

Errors are raised where a commitment or loan is constructed or solved and are
never caught inside the engine; callers decide how to present them.
"""


class FinflowError(ValueError):
    """Base class for all domain errors."""


class InvalidCommitment(FinflowError):
    """A recurring commitment is malformed (bad amount, missing custom day)."""


class InvalidLoanParameters(FinflowError):
    """Principal, rate and installment cannot amortize the loan."""


class ScheduleMismatch(FinflowError):
    """The payment-schedule anchors do not fit the loan frequency."""


class AmbiguousLoanSpec(FinflowError):
    """Tenure and installment amount are both missing, or disagree."""
