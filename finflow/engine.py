"""Core amortization engine.

This module solves the equated-installment (EMI) parameters of a loan,
expands its payment-schedule specification into concrete due dates and builds
the reducing-balance amortization table. Loans may be repaid monthly,
quarterly, half-yearly, annually or on a custom set of dates each year.
All arithmetic uses ``Decimal``. Rounding to paise is left to presentation,
except for zero-rate installments, which are whole paise by construction.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal, ROUND_CEILING, localcontext
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .data_models import (
    AmortizationEntry,
    Installment,
    Loan,
    LoanFrequency,
    LoanStatus,
    LoanTerms,
    ScheduleAnchor,
)
from .errors import AmbiguousLoanSpec, InvalidLoanParameters, ScheduleMismatch
from .utils import add_months, clamped_date, days_in_month, money, month_bounds

logger = logging.getLogger(__name__)

PERIODS_PER_YEAR: Dict[LoanFrequency, int] = {
    LoanFrequency.MONTHLY: 12,
    LoanFrequency.QUARTERLY: 4,
    LoanFrequency.HALF_YEARLY: 2,
    LoanFrequency.ANNUALLY: 1,
    LoanFrequency.CUSTOM: 12,
}

MONTHS_PER_PERIOD: Dict[LoanFrequency, int] = {
    LoanFrequency.MONTHLY: 1,
    LoanFrequency.QUARTERLY: 3,
    LoanFrequency.HALF_YEARLY: 6,
    LoanFrequency.ANNUALLY: 12,
    LoanFrequency.CUSTOM: 1,
}

REQUIRED_ANCHORS: Dict[LoanFrequency, int] = {
    LoanFrequency.QUARTERLY: 4,
    LoanFrequency.HALF_YEARLY: 2,
    LoanFrequency.ANNUALLY: 1,
}

# Tenures are rounded up after dropping arithmetic noise below this step.
_TENURE_STEP = Decimal("1e-9")


def periods_per_year(loan: Loan) -> int:
    """Installments per year; a custom loan with anchors pays once per anchor."""
    if loan.frequency == LoanFrequency.CUSTOM and loan.anchors:
        return len(distinct_anchor_days(loan.anchors))
    return PERIODS_PER_YEAR[loan.frequency]


def distinct_anchor_days(anchors: Sequence[ScheduleAnchor]) -> set:
    """Anchors reduced to the days they can fall on, so Feb 29 and Feb 30 count once."""
    # 2000 is a leap year: every valid day keeps its own slot.
    return {
        (a.month, min(a.day, days_in_month(2000, a.month)) if 1 <= a.month <= 12 else a.day)
        for a in anchors
    }


def periodic_rate(loan: Loan) -> Decimal:
    return loan.annual_rate_percent / Decimal(periods_per_year(loan)) / Decimal(100)


def calculate_installment(principal: Decimal, rate_per_period: Decimal, tenure: int) -> Decimal:
    """Return the equal installment that repays ``principal`` in ``tenure`` periods.

    The formula is:

        installment = P * (r * (1 + r)^n) / ((1 + r)^n - 1)

    where ``P`` is the principal, ``r`` the rate per period and ``n`` the
    number of installments. When the rate is zero the installment is ``P / n``
    rounded to paise; the final installment absorbs the remainder.
    """
    if tenure <= 0:
        raise InvalidLoanParameters(f"Tenure must be positive; got {tenure}")
    if principal <= 0:
        raise InvalidLoanParameters(f"Principal must be positive; got {principal}")
    if rate_per_period < 0:
        raise InvalidLoanParameters("Interest rate must not be negative")
    if rate_per_period == 0:
        return money(principal / Decimal(tenure))
    factor = (1 + rate_per_period) ** tenure
    return principal * (rate_per_period * factor) / (factor - 1)


def calculate_tenure(principal: Decimal, rate_per_period: Decimal, installment: Decimal) -> int:
    """Return the number of installments needed to repay ``principal``.

    Derived from ``n = ln(E / (E - P*r)) / ln(1 + r)`` and rounded up: a
    partial final period counts as a whole installment.
    """
    if principal <= 0:
        raise InvalidLoanParameters(f"Principal must be positive; got {principal}")
    if installment <= 0:
        raise InvalidLoanParameters(f"Installment must be positive; got {installment}")
    if rate_per_period < 0:
        raise InvalidLoanParameters("Interest rate must not be negative")
    if rate_per_period == 0:
        periods = principal / installment
    else:
        interest = principal * rate_per_period
        if installment <= interest:
            raise InvalidLoanParameters(
                f"Installment {installment} does not cover the periodic interest {interest}; "
                "the loan would never be repaid"
            )
        with localcontext() as ctx:
            ctx.prec = 34
            periods = (installment / (installment - interest)).ln() / (1 + rate_per_period).ln()
    periods = periods.quantize(_TENURE_STEP)
    return int(periods.to_integral_value(rounding=ROUND_CEILING))


def total_interest(principal: Decimal, installment: Decimal, tenure: int) -> Decimal:
    return installment * tenure - principal


def solve_loan(loan: Loan, tenure_tolerance: int = 1) -> LoanTerms:
    """Fill in whichever of tenure and installment amount is missing.

    When both are supplied the installment amount is authoritative: the tenure
    is recomputed from it, and ``AmbiguousLoanSpec`` is raised if the supplied
    tenure is more than ``tenure_tolerance`` periods away from the result.
    """
    if loan.principal <= 0:
        raise InvalidLoanParameters(f"Principal must be positive; got {loan.principal}")
    if loan.annual_rate_percent < 0:
        raise InvalidLoanParameters(
            f"Interest rate must not be negative; got {loan.annual_rate_percent}"
        )
    rate = periodic_rate(loan)

    if loan.installment_amount is None and loan.tenure is None:
        raise AmbiguousLoanSpec("Either tenure or installment amount must be provided")

    if loan.installment_amount is not None:
        installment = loan.installment_amount
        tenure = calculate_tenure(loan.principal, rate, installment)
        if loan.tenure is not None and abs(loan.tenure - tenure) > tenure_tolerance:
            raise AmbiguousLoanSpec(
                f"Tenure {loan.tenure} does not match the {tenure} installments "
                f"implied by an installment of {installment}"
            )
    else:
        tenure = loan.tenure
        installment = calculate_installment(loan.principal, rate, tenure)

    if rate == 0:
        # Rounded installments; the final one settles the exact principal.
        total_payment, interest = loan.principal, Decimal("0")
    else:
        total_payment = installment * tenure
        interest = total_interest(loan.principal, installment, tenure)
    terms = LoanTerms(
        tenure=tenure,
        installment_amount=installment,
        total_payment=total_payment,
        total_interest=interest,
    )
    logger.debug(
        "Solved %s loan of %s at %s%%: %d installments of %s",
        loan.frequency.value,
        loan.principal,
        loan.annual_rate_percent,
        terms.tenure,
        terms.installment_amount,
    )
    return terms


def _validate_anchors(frequency: LoanFrequency, anchors: Sequence[ScheduleAnchor]) -> None:
    required = REQUIRED_ANCHORS.get(frequency)
    if required is not None and len(anchors) != required:
        raise ScheduleMismatch(
            f"{frequency.value.replace('_', ' ')} requires {required} payment date(s); "
            f"got {len(anchors)}"
        )
    for anchor in anchors:
        if not 1 <= anchor.month <= 12:
            raise ScheduleMismatch(f"Month must be between 1 and 12; got {anchor.month}")
        if not 1 <= anchor.day <= 31:
            raise ScheduleMismatch(f"Day must be between 1 and 31; got {anchor.day}")


def expand_schedule(loan: Loan, tenure: int) -> List[date]:
    """Return the ordered due dates of a loan's ``tenure`` installments.

    Monthly loans fall due on the start date advanced by 1..tenure months.
    Other frequencies walk their (month, day) anchors year by year from the
    start year, keeping only dates strictly after the start date. Without
    anchors the dates advance by whole periods from the start date.
    """
    if tenure <= 0:
        raise InvalidLoanParameters(f"Tenure must be positive; got {tenure}")
    start = loan.start_date

    if loan.frequency == LoanFrequency.MONTHLY:
        return [add_months(start, i) for i in range(1, tenure + 1)]

    anchors = sorted(loan.anchors, key=lambda a: (a.month, a.day))
    if not anchors:
        step = MONTHS_PER_PERIOD[loan.frequency]
        return [add_months(start, i * step) for i in range(1, tenure + 1)]

    _validate_anchors(loan.frequency, anchors)
    due_dates: List[date] = []
    year = start.year
    while len(due_dates) < tenure:
        for anchor in anchors:
            due = clamped_date(year, anchor.month, anchor.day)
            # Two anchors may clamp onto the same day (e.g. Feb 29 and Feb 30).
            if due <= start or (due_dates and due <= due_dates[-1]):
                continue
            due_dates.append(due)
            if len(due_dates) == tenure:
                break
        year += 1
    return due_dates


def _scheduled_amounts(terms: LoanTerms) -> List[Decimal]:
    """Installment amount per position; the last one carries any rounding remainder."""
    if terms.tenure <= 0:
        return []
    regular = terms.installment_amount
    last = terms.total_payment - regular * (terms.tenure - 1)
    return [regular] * (terms.tenure - 1) + [last]


def build_installments(loan: Loan, terms: LoanTerms) -> List[Installment]:
    """Return a fresh, unpaid installment list for a newly created loan."""
    due_dates = expand_schedule(loan, terms.tenure)
    return [
        Installment(sequence_number=i, due_date=due, amount=amount)
        for i, (due, amount) in enumerate(zip(due_dates, _scheduled_amounts(terms)), start=1)
    ]


def regenerate_installments(
    existing: Sequence[Installment], loan: Loan, terms: LoanTerms
) -> List[Installment]:
    """Rebuild the installment list after a loan edit.

    Paid installments keep their due date and paid amount. Each one claims a
    slot of the new schedule, the slot with its due date or else the slot at
    its sequence number, so payments made in advance or out of order do not
    shift the rest. Unclaimed slots become the unpaid installments, and the
    merged list is ordered by due date and renumbered 1..n without gaps.
    """
    paid = [inst for inst in existing if inst.paid]
    unpaid_count = max(terms.tenure - len(paid), 0)
    schedule = expand_schedule(loan, terms.tenure) if terms.tenure > 0 else []
    amounts = _scheduled_amounts(terms)

    claimed = set()
    for inst in paid:
        slot = next(
            (i for i, due in enumerate(schedule) if i not in claimed and due == inst.due_date),
            None,
        )
        if slot is None and 0 < inst.sequence_number <= len(schedule):
            if inst.sequence_number - 1 not in claimed:
                slot = inst.sequence_number - 1
        if slot is not None:
            claimed.add(slot)

    open_slots = [i for i in range(len(schedule)) if i not in claimed][:unpaid_count]
    fresh = [
        Installment(sequence_number=0, due_date=schedule[i], amount=amounts[i])
        for i in open_slots
    ]
    # Paid rows sort ahead of unpaid rows on the same day.
    merged = sorted(paid + fresh, key=lambda inst: (inst.due_date, not inst.paid))
    logger.debug("Regenerated %d unpaid installments next to %d paid ones", len(fresh), len(paid))
    return [replace(inst, sequence_number=i) for i, inst in enumerate(merged, start=1)]


def compute_schedule(
    loan: Loan, terms: Optional[LoanTerms] = None
) -> Tuple[List[AmortizationEntry], Dict[str, object]]:
    """Compute the reducing-balance amortization table for a loan.

    Returns
    -------
    schedule: List[AmortizationEntry]
        One entry per installment with the interest/principal split. The last
        payment is trimmed so the balance ends exactly at zero.
    summary: Dict[str, object]
        Aggregate metrics: installment, tenure, total payment, total interest,
        first and last due date.
    """
    if terms is None:
        terms = solve_loan(loan)
    rate = periodic_rate(loan)
    due_dates = expand_schedule(loan, terms.tenure)

    schedule: List[AmortizationEntry] = []
    balance = loan.principal
    total_paid = Decimal("0")
    total_interest_paid = Decimal("0")
    for period, due in enumerate(due_dates, start=1):
        starting_balance = balance
        interest_payment = balance * rate
        payment = terms.installment_amount
        principal_payment = payment - interest_payment
        if period == terms.tenure or principal_payment > balance:
            # Final installment clears whatever is left.
            principal_payment = balance
            payment = principal_payment + interest_payment
        balance -= principal_payment
        if balance.copy_abs() < Decimal("0.005"):
            balance = Decimal("0")
        total_paid += payment
        total_interest_paid += interest_payment
        schedule.append(
            AmortizationEntry(
                period=period,
                date=due,
                starting_balance=starting_balance,
                payment=payment,
                principal_payment=principal_payment,
                interest_payment=interest_payment,
                ending_balance=balance,
            )
        )
        if balance == 0:
            break

    summary = {
        "principal": float(loan.principal),
        "installment": float(terms.installment_amount),
        "tenure": terms.tenure,
        "total_payment": float(total_paid),
        "total_interest": float(total_interest_paid),
        "first_due_date": schedule[0].date.isoformat() if schedule else None,
        "last_due_date": schedule[-1].date.isoformat() if schedule else None,
        "payments": len(schedule),
    }
    return schedule, summary


def record_payment(
    loan: Loan,
    sequence_number: int,
    paid_amount: Decimal,
    paid_date: date,
    principal_paid: Optional[Decimal] = None,
) -> Tuple[List[Installment], LoanStatus]:
    """Mark one installment as paid and return the updated list and loan status.

    ``paid_amount`` may differ from the scheduled amount. The outstanding
    principal drops by ``principal_paid`` (the whole paid amount when not
    given) and never goes below zero; the loan closes once it reaches zero or
    no unpaid installment remains.
    """
    if paid_amount <= 0:
        raise InvalidLoanParameters(f"Paid amount must be positive; got {paid_amount}")
    installments = list(loan.installments)
    index = next(
        (i for i, inst in enumerate(installments) if inst.sequence_number == sequence_number),
        None,
    )
    if index is None:
        raise InvalidLoanParameters(f"No installment number {sequence_number}")
    if installments[index].paid:
        raise InvalidLoanParameters(f"Installment {sequence_number} is already paid")

    installments[index] = replace(
        installments[index], paid=True, paid_amount=paid_amount, paid_date=paid_date
    )

    paid = [inst for inst in installments if inst.paid]
    # Earlier payments carry no principal split, so they reduce the balance in full.
    principal_repaid = sum(
        (inst.settled_amount for inst in paid if inst.sequence_number != sequence_number),
        Decimal("0"),
    )
    principal_repaid += principal_paid if principal_paid is not None else paid_amount
    outstanding = max(loan.principal - principal_repaid, Decimal("0"))
    total_paid = sum((inst.settled_amount for inst in paid), Decimal("0"))
    is_closed = outstanding <= 0 or all(inst.paid for inst in installments)
    logger.debug(
        "Recorded payment of %s for installment %d; outstanding %s", paid_amount, sequence_number, outstanding
    )
    return installments, LoanStatus(outstanding=outstanding, total_paid=total_paid, is_closed=is_closed)


def classify_installments(
    installments: Iterable[Installment], month: int, year: int, upcoming_limit: Optional[int] = 3
) -> Tuple[List[Installment], List[Installment], List[Installment]]:
    """Split a loan's installments around a reference month.

    Returns ``(overdue, current, upcoming)``: unpaid installments due before
    the month, every installment due in the month (paid or not), and the next
    ``upcoming_limit`` unpaid installments due after it (all of them when the
    limit is None). Each list is ordered by due date.
    """
    month_start, month_end = month_bounds(month, year)
    ordered = sorted(installments, key=lambda inst: (inst.due_date, inst.sequence_number))
    overdue = [inst for inst in ordered if not inst.paid and inst.due_date < month_start]
    current = [inst for inst in ordered if month_start <= inst.due_date <= month_end]
    upcoming = [inst for inst in ordered if not inst.paid and inst.due_date > month_end]
    if upcoming_limit is not None:
        upcoming = upcoming[:upcoming_limit]
    return overdue, current, upcoming
