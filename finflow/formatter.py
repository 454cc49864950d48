"""Output helpers for the finance engine.

This module provides simple functions to render loan terms, installment
schedules and the monthly waterfall in a tabular text format. We rely only on
built-in printing and string formatting; the CLI decides where output goes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, Sequence

from .data_models import AmortizationEntry, BucketAvailability, Installment, LoanTerms, MonthlySummary
from .utils import money

STAGE_LABELS = {
    "gross_income": "Gross income",
    "after_tax": "After tax",
    "after_emi": "After EMIs",
    "after_sip": "After SIPs",
    "available_for_expenses": "For expenses",
    "available_for_investment": "For investment",
    "surplus": "Planned surplus",
}


def _fmt(value: Decimal) -> str:
    return f"{money(value):,.2f}"


def print_terms(terms: LoanTerms, currency: str = "INR") -> None:
    """Print solved loan terms."""
    print("Loan terms")
    print("-" * 72)
    print(f"Installment        : {currency} {_fmt(terms.installment_amount)}")
    print(f"Installments       : {terms.tenure}")
    print(f"Total payment      : {currency} {_fmt(terms.total_payment)}")
    print(f"Total interest     : {currency} {_fmt(terms.total_interest)}")
    print("-" * 72)


def print_schedule_summary(summary: Dict[str, object]) -> None:
    print("Summary")
    print("-" * 72)
    print(f"Principal          : {summary['principal']:.2f}")
    print(f"Installment        : {summary['installment']:.2f}")
    print(f"Total interest     : {summary['total_interest']:.2f}")
    print(f"Total payment      : {summary['total_payment']:.2f}")
    print(f"First due date     : {summary['first_due_date']}")
    print(f"Last due date      : {summary['last_due_date']}")
    print(f"Payments           : {summary['payments']}")
    print("-" * 72)


def print_schedule(schedule: Iterable[AmortizationEntry]) -> None:
    """Print the amortization schedule as a simple table."""
    headers = ["Period", "Date", "StartBal", "Payment", "Principal", "Interest", "EndBal"]
    print("\t".join(headers))
    for entry in schedule:
        row = [
            str(entry.period),
            entry.date.isoformat(),
            f"{entry.starting_balance:.2f}",
            f"{entry.payment:.2f}",
            f"{entry.principal_payment:.2f}",
            f"{entry.interest_payment:.2f}",
            f"{entry.ending_balance:.2f}",
        ]
        print("\t".join(row))


def print_monthly_summary(summary: MonthlySummary, currency: str = "INR") -> None:
    """Print the waterfall stages, allocations and reconciliation for a month."""
    print(f"Monthly summary {summary.year:04d}-{summary.month:02d}")
    print("=" * 72)
    print(f"{'Stage':20s} {'Deduction':>20s} {'Remaining':>20s}")
    for stage in summary.stages:
        label = STAGE_LABELS.get(stage.name, stage.name)
        print(f"{label:20s} {_fmt(stage.deduction):>20s} {_fmt(stage.remaining):>20s}")
    if summary.expenses.is_using_budget:
        print(
            f"Budget in use: expected {currency} {_fmt(summary.expenses.expected_budget)}, "
            f"unexpected {currency} {_fmt(summary.expenses.unexpected_budget)}"
        )
    if summary.allocations:
        print("-" * 72)
        print("Allocations")
        for line in summary.allocations:
            print(f"  {line.bucket.label:20s} {_fmt(line.amount):>20s}")
        print(f"  {'Unallocated':20s} {_fmt(summary.unallocated):>20s}")
    rec = summary.reconciliation
    print("-" * 72)
    print(f"Planned surplus    : {currency} {_fmt(summary.planned_surplus)}")
    print(f"Cash remaining     : {currency} {_fmt(rec.cash_remaining)}")
    if rec.additional_transactions > 0:
        print(f"Extra spent        : {currency} {_fmt(rec.additional_transactions)}")
    if rec.borrowed or rec.lent:
        print(f"Borrowed / lent    : {_fmt(rec.borrowed)} / {_fmt(rec.lent)}")
    if summary.returns.invested > 0:
        print(
            f"Month returns      : {currency} {_fmt(summary.returns.returns)} "
            f"({money(summary.returns.return_percent)}%)"
        )
    print("=" * 72)


def print_availability(availability: BucketAvailability, currency: str = "INR") -> None:
    print(f"{availability.bucket.label}")
    print(f"  Allocation       : {currency} {_fmt(availability.total_allocation)}")
    print(f"  Existing SIPs    : {currency} {_fmt(availability.existing_sips)}")
    print(f"  Available        : {currency} {_fmt(availability.available)}")


def print_installment_status(
    overdue: Sequence[Installment],
    current: Sequence[Installment],
    upcoming: Sequence[Installment],
    currency: str = "INR",
) -> None:
    for title, rows in (("Overdue", overdue), ("This month", current), ("Upcoming", upcoming)):
        print(f"{title} ({len(rows)})")
        for inst in rows:
            status = "paid" if inst.paid else "due"
            print(f"  #{inst.sequence_number:<4d} {inst.due_date.isoformat()}  {currency} {_fmt(inst.amount):>14s}  {status}")
