"""Utility functions for the loan replay package.

Helpers for parsing user input into Python data types, for month arithmetic
on ``datetime.date`` instances and for rounding money to cents.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, getcontext
import calendar

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Raises
    ------
    ValueError
        If the string is not a valid year-month.
    """
    try:
        parts = ym.split("-")
        if len(parts) < 2:
            raise ValueError
        return date(int(parts[0]), int(parts[1]), 1)
    except Exception as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def parse_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` or ``YYYY-MM`` into a ``date``.

    A missing day component means the first of the month.
    """
    value = value.strip()
    parts = value.split("-")
    if len(parts) == 2:
        return parse_year_month(value)
    try:
        return date.fromisoformat(value[:10])
    except Exception as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29). ``months`` may be
    negative.
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def decimal_from_str(value) -> Decimal:
    """Convert a numeric string (or number) into a ``Decimal``.

    Commas are stripped. Floats go through ``str`` so that ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary expansion.
    """
    try:
        if isinstance(value, Decimal):
            return value
        cleaned = str(value).replace(",", "").strip()
        result = Decimal(cleaned)
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def round_money(value: Decimal) -> Decimal:
    """Round a Decimal to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
