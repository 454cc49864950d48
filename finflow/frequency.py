"""Frequency resolution for recurring commitments.

A recurring commitment (amount + frequency + anchor date) is resolved against
a calendar month in two distinct ways, each with its own function:

* :func:`amount_if_occurs_in_month` answers "how much leaves the account in
  this particular month". A yearly SIP anchored in March yields its full
  amount in March and zero in every other month.
* :func:`amount_for_totals` answers "what is this commitment worth per month
  on average". The same yearly SIP yields one twelfth of its amount in every
  month.

Whether a commitment is active at all (paused flag, date range) is decided by
the caller through :func:`is_active_in_month`, once per query.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict

from .data_models import Frequency, RecurringCommitment
from .utils import clamped_date, month_bounds, months_between

# 365.25 / 12
AVERAGE_DAYS_PER_MONTH = Decimal("30.4375")

PERIOD_DAYS: Dict[Frequency, int] = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
}

PERIOD_MONTHS: Dict[Frequency, int] = {
    Frequency.MONTHLY: 1,
    Frequency.CUSTOM: 1,
    Frequency.QUARTERLY: 3,
    Frequency.HALF_YEARLY: 6,
    Frequency.YEARLY: 12,
}


def monthly_equivalent(amount: Decimal, frequency: Frequency) -> Decimal:
    """Return the amount attributed to a month in which the commitment occurs.

    Monthly-or-slower frequencies pay their full amount on an occurrence
    month. Daily and weekly commitments are scaled by the average number of
    periods in a month.
    """
    if frequency in PERIOD_DAYS:
        return amount * AVERAGE_DAYS_PER_MONTH / Decimal(PERIOD_DAYS[frequency])
    return amount


def amount_for_totals(amount: Decimal, frequency: Frequency) -> Decimal:
    """Return the flat average monthly figure used for budget totals.

    The annualised amount (``amount * 12 / period_months``) spread evenly over
    twelve months, so a quarterly ₹3,000 counts as ₹1,000 a month.
    """
    if frequency in PERIOD_DAYS:
        return monthly_equivalent(amount, frequency)
    return amount / Decimal(PERIOD_MONTHS[frequency])


def due_date_in_month(commitment: RecurringCommitment, month: int, year: int) -> date:
    """Return the occurrence date in a month, clamping the day to the month."""
    if commitment.frequency == Frequency.CUSTOM:
        day = commitment.custom_day_of_month
    else:
        day = commitment.anchor_date.day
    return clamped_date(year, month, day)


def occurs_in_month(commitment: RecurringCommitment, month: int, year: int) -> bool:
    """Return True when the commitment falls due in the given month.

    Months before the anchor month or after the end-date month never match.
    """
    month_start, _ = month_bounds(month, year)
    offset = months_between(commitment.anchor_date, month_start)
    if offset < 0:
        return False
    end = commitment.end_date
    if end is not None and months_between(end, month_start) > 0:
        return False

    frequency = commitment.frequency
    if frequency in PERIOD_DAYS or frequency == Frequency.MONTHLY:
        return True
    if frequency == Frequency.CUSTOM:
        due = due_date_in_month(commitment, month, year)
        if due < commitment.anchor_date:
            return False
        return end is None or due <= end
    # QUARTERLY, HALF_YEARLY, YEARLY
    return offset % PERIOD_MONTHS[frequency] == 0


def amount_if_occurs_in_month(commitment: RecurringCommitment, month: int, year: int) -> Decimal:
    """Return the amount leaving the account in this month, zero if none."""
    if not occurs_in_month(commitment, month, year):
        return Decimal("0")
    return monthly_equivalent(commitment.amount, commitment.frequency)


def is_active_in_month(commitment: RecurringCommitment, month: int, year: int) -> bool:
    """Caller-side filter: paused, ended or not-yet-started commitments drop out."""
    if not commitment.is_active:
        return False
    month_start, month_end = month_bounds(month, year)
    if commitment.end_date is not None and commitment.end_date < month_start:
        return False
    if commitment.anchor_date > month_end:
        return False
    return True
