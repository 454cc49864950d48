"""Utility functions for the finance engine.

This module provides helpers for parsing user input into Python data types and
for handling calendar months: adding months, clamping a day to the last valid
day of a month and computing month boundaries. It uses Python's ``datetime``
and ``calendar`` modules for all date arithmetic.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Tuple

CENT = Decimal("0.01")
ZERO = Decimal("0")


def parse_date(value: str) -> date:
    """Parse an ISO ``YYYY-MM-DD`` string into a ``date``."""
    try:
        return date.fromisoformat(value.strip())
    except Exception as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def parse_optional_date(value: Optional[str]) -> Optional[date]:
    if value in (None, ""):
        return None
    return parse_date(value)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamped_date(year: int, month: int, day: int) -> date:
    """Return ``date(year, month, day)`` with the day clamped to the month.

    Day 31 in February yields the 28th (or 29th in a leap year).
    """
    return date(year, month, min(day, days_in_month(year, month)))


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    return clamped_date(year, month, dt.day)


def month_bounds(month: int, year: int) -> Tuple[date, date]:
    """Return the first and last day of a calendar month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12; got {month}")
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def in_month(dt: Optional[date], month: int, year: int) -> bool:
    return dt is not None and dt.year == year and dt.month == month


def months_between(start: date, end: date) -> int:
    """Number of whole calendar months from ``start``'s month to ``end``'s."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "").strip()
        return Decimal(cleaned)
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc


def to_decimal(value: Any) -> Decimal:
    """Coerce JSON numbers and strings to ``Decimal`` without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value}")
    return decimal_from_str(str(value))


def to_optional_decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    return to_decimal(value)


def money(value: Decimal) -> Decimal:
    """Round a Decimal to whole paise/cents for display and export."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
