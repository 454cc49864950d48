"""Monthly cash-flow waterfall.

Composes one month's income, tax, scheduled EMIs, planned SIPs, expense
budget and investment allocations into an ordered sequence of stages, then
reconciles the planned figures against what was actually paid and executed.

Every function here is a pure transform of its arguments. The evaluation
month and year are always passed in; nothing reads the clock. Negative
remaining figures are kept as a deficit signal rather than clamped, and
missing optional settings (tax rule, budget, allocations) skip their stage.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .data_models import (
    AllocationBucket,
    AllocationLine,
    AllocationType,
    Bucket,
    BucketAvailability,
    ExpenseAllocation,
    ExpenseBudget,
    IncomeEntry,
    Loan,
    MemberBalance,
    MonthlyInputs,
    MonthlySummary,
    PaidEmiTotals,
    Reconciliation,
    SalaryRecord,
    Sip,
    TaxMode,
    TaxRule,
    WaterfallStage,
)
from .engine import build_installments, solve_loan
from .frequency import amount_for_totals, amount_if_occurs_in_month, is_active_in_month
from .utils import ZERO, in_month, month_bounds

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _percent_of(base: Decimal, percent: Optional[Decimal]) -> Decimal:
    if percent is None:
        return ZERO
    return base * percent / HUNDRED


def select_salary(records: Iterable[SalaryRecord], month: int, year: int) -> Optional[SalaryRecord]:
    """Return the salary record in effect during the month.

    A record qualifies when it starts on or before the month end and has not
    ended before the month start; among several, the latest-starting wins.
    """
    month_start, month_end = month_bounds(month, year)
    candidates = [
        r
        for r in records
        if r.effective_from <= month_end and (r.effective_to is None or r.effective_to >= month_start)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda r: r.effective_from)


def gross_income(
    salaries: Iterable[SalaryRecord], incomes: Iterable[IncomeEntry], month: int, year: int
) -> Tuple[Decimal, Decimal]:
    """Return ``(salary, other_income)`` for the month."""
    record = select_salary(salaries, month, year)
    salary = record.monthly if record is not None else ZERO
    other = sum((e.amount for e in incomes if in_month(e.date, month, year)), ZERO)
    return salary, other


def compute_tax(rule: Optional[TaxRule], gross: Decimal) -> Tuple[Decimal, Decimal]:
    """Return ``(tax_amount, effective_percent)`` for a month's gross income.

    No rule or no income means no tax. The fixed part is not capped by gross.
    """
    if rule is None or gross <= 0:
        return ZERO, ZERO
    if rule.mode == TaxMode.PERCENTAGE:
        tax = _percent_of(gross, rule.percent)
    elif rule.mode == TaxMode.FIXED:
        tax = rule.fixed_amount or ZERO
    else:
        tax = _percent_of(gross, rule.percent) + (rule.fixed_amount or ZERO)
    return tax, tax / gross * HUNDRED


def _installments_of(loan: Loan):
    if loan.installments:
        return loan.installments
    return build_installments(loan, solve_loan(loan))


def emi_due_in_month(loans: Iterable[Loan], month: int, year: int) -> Decimal:
    """Scheduled (not paid) installment amounts due in the month, active loans only."""
    total = ZERO
    for loan in loans:
        if not loan.is_active:
            continue
        total += sum(
            (inst.amount for inst in _installments_of(loan) if in_month(inst.due_date, month, year)),
            ZERO,
        )
    return total


def sip_deduction(sips: Iterable[Sip], month: int, year: int) -> Decimal:
    """Planned SIP outflow for the month, resolved occurrence by occurrence."""
    return sum(
        (
            amount_if_occurs_in_month(sip.commitment, month, year)
            for sip in sips
            if is_active_in_month(sip.commitment, month, year)
        ),
        ZERO,
    )


def available_for_expenses(remaining: Decimal, budget: Optional[ExpenseBudget]) -> ExpenseAllocation:
    """Apply an expense budget to the after-SIP remaining.

    Percent settings are taken of ``remaining`` and win over amount settings.
    Without a configured budget the whole remaining is available.
    """
    if budget is None or not budget.is_configured:
        return ExpenseAllocation(
            available=remaining, expected_budget=ZERO, unexpected_budget=ZERO, is_using_budget=False
        )
    if budget.expected_percent is not None:
        expected = _percent_of(remaining, budget.expected_percent)
    else:
        expected = budget.expected_amount or ZERO
    if budget.unexpected_percent is not None:
        unexpected = _percent_of(remaining, budget.unexpected_percent)
    else:
        unexpected = budget.unexpected_amount or ZERO
    return ExpenseAllocation(
        available=expected + unexpected,
        expected_budget=expected,
        unexpected_budget=unexpected,
        is_using_budget=True,
    )


def allocation_amount(pool: Decimal, allocation: AllocationBucket) -> Decimal:
    """Percentage buckets take a share of the pool, deficit included; amount buckets are verbatim."""
    if allocation.type == AllocationType.AMOUNT:
        return allocation.fixed_amount or ZERO
    return _percent_of(pool, allocation.percent)


def allocation_breakdown(pool: Decimal, allocations: Iterable[AllocationBucket]) -> List[AllocationLine]:
    return [
        AllocationLine(bucket=a.bucket, type=a.type, amount=allocation_amount(pool, a))
        for a in allocations
    ]


def bucket_availability(
    bucket: Bucket,
    allocations: Iterable[AllocationBucket],
    sips: Iterable[Sip],
    pool: Decimal,
) -> Optional[BucketAvailability]:
    """Money left in a bucket for new one-time purchases or SIPs.

    The bucket's allocation minus the flat monthly worth of the active SIPs
    already committed to it. Returns None when the bucket has no allocation.
    """
    allocation = next((a for a in allocations if a.bucket == bucket), None)
    if allocation is None:
        return None
    total = allocation_amount(pool, allocation)
    existing = sum(
        (
            amount_for_totals(sip.commitment.amount, sip.commitment.frequency)
            for sip in sips
            if sip.bucket == bucket and sip.commitment.is_active
        ),
        ZERO,
    )
    return BucketAvailability(
        bucket=bucket, total_allocation=total, existing_sips=existing, available=total - existing
    )


def reconcile(
    gross: Decimal,
    tax: Decimal,
    scheduled_emi: Decimal,
    planned_sip: Decimal,
    actual_expenses: Decimal,
    paid_emis: PaidEmiTotals,
    sip_executed: Decimal,
    one_time_purchases: Decimal,
    balance: MemberBalance,
) -> Reconciliation:
    """Actual cash left after everything that really happened in the month.

    ``additional_transactions`` is how much more went out on EMIs and SIPs
    than was scheduled, or zero when nothing extra was spent.
    """
    emi_paid = paid_emis.total
    cash = (
        gross
        - tax
        - emi_paid
        - sip_executed
        - one_time_purchases
        - actual_expenses
        - balance.borrowed
        + balance.lent
    )
    extra = (emi_paid + sip_executed) - (scheduled_emi + planned_sip)
    return Reconciliation(
        emi_paid=emi_paid,
        sip_executed=sip_executed,
        one_time_purchases=one_time_purchases,
        actual_expenses=actual_expenses,
        borrowed=balance.borrowed,
        lent=balance.lent,
        cash_remaining=cash,
        additional_transactions=extra if extra > 0 else ZERO,
    )


def compute_monthly_summary(inputs: MonthlyInputs) -> MonthlySummary:
    """Build the ordered waterfall and reconciliation for one month."""
    month, year = inputs.month, inputs.year
    stages: List[WaterfallStage] = []

    salary, other_income = gross_income(inputs.salaries, inputs.incomes, month, year)
    gross = salary + other_income
    stages.append(WaterfallStage("gross_income", ZERO, gross))

    tax, tax_percent = compute_tax(inputs.tax_rule, gross)
    after_tax = gross - tax
    stages.append(WaterfallStage("after_tax", tax, after_tax))

    scheduled_emi = emi_due_in_month(inputs.loans, month, year)
    after_emi = after_tax - scheduled_emi
    stages.append(WaterfallStage("after_emi", scheduled_emi, after_emi))

    planned_sip = sip_deduction(inputs.sips, month, year)
    after_sip = after_emi - planned_sip
    stages.append(WaterfallStage("after_sip", planned_sip, after_sip))

    expenses = available_for_expenses(after_sip, inputs.budget)
    stages.append(WaterfallStage("available_for_expenses", ZERO, expenses.available))

    if expenses.is_using_budget:
        pool = after_sip - expenses.available
        stages.append(WaterfallStage("available_for_investment", expenses.available, pool))
    else:
        pool = after_sip - inputs.expense_total
        stages.append(WaterfallStage("available_for_investment", inputs.expense_total, pool))

    lines = allocation_breakdown(pool, inputs.allocations)
    allocated = sum((line.amount for line in lines), ZERO)

    planned_surplus = after_sip - inputs.expense_total
    stages.append(WaterfallStage("surplus", inputs.expense_total, planned_surplus))

    reconciliation = reconcile(
        gross=gross,
        tax=tax,
        scheduled_emi=scheduled_emi,
        planned_sip=planned_sip,
        actual_expenses=inputs.expense_total,
        paid_emis=inputs.paid_emis,
        sip_executed=inputs.sip_executed,
        one_time_purchases=inputs.one_time_purchases,
        balance=inputs.member_balance,
    )
    logger.debug(
        "Waterfall %04d-%02d: gross=%s after_tax=%s after_emi=%s after_sip=%s surplus=%s cash=%s",
        year,
        month,
        gross,
        after_tax,
        after_emi,
        after_sip,
        planned_surplus,
        reconciliation.cash_remaining,
    )

    return MonthlySummary(
        month=month,
        year=year,
        gross_income=gross,
        salary=salary,
        other_income=other_income,
        tax=tax,
        tax_percent=tax_percent,
        after_tax=after_tax,
        scheduled_emi=scheduled_emi,
        after_emi=after_emi,
        planned_sip=planned_sip,
        after_sip=after_sip,
        expenses=expenses,
        available_for_investment=pool,
        allocations=lines,
        allocated_total=allocated,
        unallocated=pool - allocated,
        actual_expenses=inputs.expense_total,
        planned_surplus=planned_surplus,
        reconciliation=reconciliation,
        returns=inputs.returns,
        stages=stages,
    )

