"""Calendar-day helpers shared by the tracker and its views.

All tracker dates are plain ``datetime.date`` values (day granularity, no
timezone).  Persisted payloads use ISO ``YYYY-MM-DD`` strings.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

DAY_FORMAT = "%Y-%m-%d"


def parse_day(value: date | datetime | str) -> date:
    """Coerce a date, datetime or ISO string to a calendar day.

    Datetimes are truncated to their own calendar date; ISO strings may carry
    a time part (``2024-02-01T08:30:00``), which is ignored.

    Raises:
        ValueError: If ``value`` is an empty or malformed string.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        raise ValueError("Empty date string")
    return date.fromisoformat(text[:10])


def format_day(day: date) -> str:
    return day.strftime(DAY_FORMAT)


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (end - start).days


def month_days(year: int, month: int) -> list[date]:
    """Every day of a calendar month, first to last."""
    _, last = calendar.monthrange(year, month)
    return [date(year, month, d) for d in range(1, last + 1)]


def is_within(day: date, start: date, end: date) -> bool:
    return start <= day <= end
