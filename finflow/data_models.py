"""Data models for the finance engine.

This module defines dataclasses representing the records the engine consumes
(recurring commitments, loans, salary and ledger entries, budget and
allocation settings) and the results it produces (solved loan terms,
installments and the monthly waterfall summary). Inputs are frozen: the
engine never mutates them and always returns new result objects.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from .errors import InvalidCommitment


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"


class LoanFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    ANNUALLY = "ANNUALLY"
    CUSTOM = "CUSTOM"


class TaxMode(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"
    HYBRID = "HYBRID"


class AllocationType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    AMOUNT = "AMOUNT"


class Bucket(str, Enum):
    """Investment categories that receive a share of disposable income."""

    MUTUAL_FUND = "MUTUAL_FUND"
    IND_STOCK = "IND_STOCK"
    US_STOCK = "US_STOCK"
    CRYPTO = "CRYPTO"
    EMERGENCY_FUND = "EMERGENCY_FUND"
    GOLD = "GOLD"

    @property
    def label(self) -> str:
        return BUCKET_LABELS[self]


BUCKET_LABELS = {
    Bucket.MUTUAL_FUND: "Mutual Funds",
    Bucket.IND_STOCK: "Indian Stocks",
    Bucket.US_STOCK: "US Stocks",
    Bucket.CRYPTO: "Cryptocurrency",
    Bucket.EMERGENCY_FUND: "Emergency Fund",
    Bucket.GOLD: "Gold",
}


class MemberTransactionType(str, Enum):
    OWE = "OWE"
    GAVE = "GAVE"
    EXPENSE_PAID_BY_THEM = "EXPENSE_PAID_BY_THEM"
    EXPENSE_PAID_FOR_THEM = "EXPENSE_PAID_FOR_THEM"


class ExecutionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class RecurringCommitment:
    """A recurring money commitment such as a SIP contribution.

    Attributes
    ----------
    amount: Decimal
        Amount paid on each occurrence. Must be positive.
    frequency: Frequency
        How often the commitment recurs.
    anchor_date: date
        First occurrence. Quarterly, half-yearly and yearly commitments recur
        relative to this month.
    custom_day_of_month: Optional[int]
        Day of month (1-31) for ``CUSTOM`` commitments; must be unset for any
        other frequency.
    end_date: Optional[date]
        Last date on which the commitment may occur.
    is_active: bool
        Paused commitments are skipped by callers.
    """

    amount: Decimal
    frequency: Frequency
    anchor_date: date
    custom_day_of_month: Optional[int] = None
    end_date: Optional[date] = None
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise InvalidCommitment(f"Commitment amount must be positive; got {self.amount}")
        if self.frequency == Frequency.CUSTOM:
            if self.custom_day_of_month is None:
                raise InvalidCommitment("CUSTOM frequency requires a day of month")
            if not 1 <= self.custom_day_of_month <= 31:
                raise InvalidCommitment(
                    f"Day of month must be between 1 and 31; got {self.custom_day_of_month}"
                )
        elif self.custom_day_of_month is not None:
            raise InvalidCommitment(
                f"Day of month is only allowed for CUSTOM frequency, not {self.frequency.value}"
            )
        if self.end_date is not None and self.end_date < self.anchor_date:
            raise InvalidCommitment("End date precedes the anchor date")


@dataclass(frozen=True)
class Sip:
    """A systematic investment plan: a recurring commitment tagged with a bucket."""

    commitment: RecurringCommitment
    bucket: Bucket
    name: str = ""


@dataclass(frozen=True)
class ScheduleAnchor:
    """A (month, day) pair on which a non-monthly installment falls each year."""

    month: int
    day: int


@dataclass(frozen=True)
class Installment:
    """One scheduled loan payment.

    ``amount`` is the scheduled figure; ``paid_amount`` is what was actually
    paid and may differ (over/under-payment, late fee).
    """

    sequence_number: int
    due_date: date
    amount: Decimal
    paid: bool = False
    paid_amount: Optional[Decimal] = None
    paid_date: Optional[date] = None

    @property
    def settled_amount(self) -> Decimal:
        """Amount actually paid, falling back to the scheduled amount."""
        return self.paid_amount if self.paid_amount is not None else self.amount


@dataclass(frozen=True)
class Loan:
    """A loan record.

    Exactly one of ``tenure`` and ``installment_amount`` is normally given and
    the engine derives the other. ``tenure`` counts installments at the loan's
    frequency (for ``CUSTOM`` loans, the raw number of installments).
    """

    principal: Decimal
    annual_rate_percent: Decimal
    frequency: LoanFrequency
    start_date: date
    tenure: Optional[int] = None
    installment_amount: Optional[Decimal] = None
    anchors: Tuple[ScheduleAnchor, ...] = ()
    installments: Tuple[Installment, ...] = ()
    is_active: bool = True
    name: str = ""


@dataclass(frozen=True)
class LoanTerms:
    tenure: int
    installment_amount: Decimal
    total_payment: Decimal
    total_interest: Decimal


@dataclass
class AmortizationEntry:
    """A row of the reducing-balance table for one installment."""

    period: int
    date: date
    starting_balance: Decimal
    payment: Decimal
    principal_payment: Decimal
    interest_payment: Decimal
    ending_balance: Decimal


@dataclass(frozen=True)
class LoanStatus:
    outstanding: Decimal
    total_paid: Decimal
    is_closed: bool


@dataclass(frozen=True)
class TaxRule:
    mode: TaxMode
    percent: Optional[Decimal] = None
    fixed_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class AllocationBucket:
    bucket: Bucket
    type: AllocationType
    percent: Optional[Decimal] = None
    fixed_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class ExpenseBudget:
    """Optional override of the money available for expenses.

    Each half (expected, unexpected) is given either as a percentage of the
    after-SIP remaining or as a fixed amount; the percentage wins if both are set.
    """

    expected_percent: Optional[Decimal] = None
    expected_amount: Optional[Decimal] = None
    unexpected_percent: Optional[Decimal] = None
    unexpected_amount: Optional[Decimal] = None

    @property
    def is_configured(self) -> bool:
        return any(
            v is not None
            for v in (
                self.expected_percent,
                self.expected_amount,
                self.unexpected_percent,
                self.unexpected_amount,
            )
        )


@dataclass(frozen=True)
class SalaryRecord:
    monthly: Decimal
    effective_from: date
    effective_to: Optional[date] = None


@dataclass(frozen=True)
class IncomeEntry:
    amount: Decimal
    date: date
    source: str = ""


@dataclass(frozen=True)
class ExpenseEntry:
    amount: Decimal
    date: date
    category: str = ""


@dataclass(frozen=True)
class SipExecution:
    amount: Decimal
    execution_date: date
    status: ExecutionStatus = ExecutionStatus.SUCCESS


@dataclass(frozen=True)
class InvestmentPurchase:
    """A holding transaction; ``one_time`` separates lump sums from SIP buys."""

    quantity: Decimal
    price: Decimal
    purchase_date: date
    current_price: Optional[Decimal] = None
    one_time: bool = True

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.price


@dataclass(frozen=True)
class MemberTransaction:
    amount: Decimal
    date: date
    transaction_type: MemberTransactionType
    settled: bool = False


@dataclass(frozen=True)
class PaidEmiTotals:
    """EMI payments recorded in a month, split by whether they were due in it."""

    current_month: Decimal = Decimal("0")
    additional: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.current_month + self.additional


@dataclass(frozen=True)
class MemberBalance:
    borrowed: Decimal = Decimal("0")
    lent: Decimal = Decimal("0")


@dataclass(frozen=True)
class MonthReturns:
    invested: Decimal = Decimal("0")
    current_value: Decimal = Decimal("0")
    returns: Decimal = Decimal("0")
    return_percent: Decimal = Decimal("0")


@dataclass(frozen=True)
class MonthlyInputs:
    """Everything needed to compute one month's waterfall.

    Records are expected to be already filtered to a single user. The
    aggregate fields can be built with :mod:`finflow.aggregates`.
    """

    month: int
    year: int
    salaries: Tuple[SalaryRecord, ...] = ()
    incomes: Tuple[IncomeEntry, ...] = ()
    tax_rule: Optional[TaxRule] = None
    loans: Tuple[Loan, ...] = ()
    sips: Tuple[Sip, ...] = ()
    expense_total: Decimal = Decimal("0")
    budget: Optional[ExpenseBudget] = None
    allocations: Tuple[AllocationBucket, ...] = ()
    paid_emis: PaidEmiTotals = field(default_factory=PaidEmiTotals)
    sip_executed: Decimal = Decimal("0")
    one_time_purchases: Decimal = Decimal("0")
    member_balance: MemberBalance = field(default_factory=MemberBalance)
    returns: MonthReturns = field(default_factory=MonthReturns)


@dataclass(frozen=True)
class WaterfallStage:
    name: str
    deduction: Decimal
    remaining: Decimal


@dataclass(frozen=True)
class ExpenseAllocation:
    available: Decimal
    expected_budget: Decimal
    unexpected_budget: Decimal
    is_using_budget: bool


@dataclass(frozen=True)
class AllocationLine:
    bucket: Bucket
    type: AllocationType
    amount: Decimal


@dataclass(frozen=True)
class BucketAvailability:
    bucket: Bucket
    total_allocation: Decimal
    existing_sips: Decimal
    available: Decimal


@dataclass(frozen=True)
class Reconciliation:
    """Actual-cash view of the month, next to the planned surplus."""

    emi_paid: Decimal
    sip_executed: Decimal
    one_time_purchases: Decimal
    actual_expenses: Decimal
    borrowed: Decimal
    lent: Decimal
    cash_remaining: Decimal
    additional_transactions: Decimal


@dataclass
class MonthlySummary:
    month: int
    year: int
    gross_income: Decimal
    salary: Decimal
    other_income: Decimal
    tax: Decimal
    tax_percent: Decimal
    after_tax: Decimal
    scheduled_emi: Decimal
    after_emi: Decimal
    planned_sip: Decimal
    after_sip: Decimal
    expenses: ExpenseAllocation
    available_for_investment: Decimal
    allocations: List[AllocationLine]
    allocated_total: Decimal
    unallocated: Decimal
    actual_expenses: Decimal
    planned_surplus: Decimal
    reconciliation: Reconciliation
    returns: MonthReturns
    stages: List[WaterfallStage]

    @property
    def cash_remaining(self) -> Decimal:
        return self.reconciliation.cash_remaining
