"""
Calendar date helpers

Every date handled by the cash-flow core is a plain calendar date with no
time-of-day or timezone. Strings that do carry a time component are read in
the configured local timezone so a late-evening timestamp never slides into
the next (or previous) day.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime

from cashflow.models import LOCAL_ZONE


def parse_date_only(value: str | date | datetime | None) -> date | None:
    """
    Parse a date-only value anchored at local midnight.

    - ``"2025-04-30"`` -> ``date(2025, 4, 30)`` regardless of the server zone
    - ``"2025-04-30T23:30:00-03:00"`` -> converted to the local zone, then the date
    - naive timestamps are taken as local wall-clock time
    - ``None`` / ``""`` -> ``None``

    Example:
        >>> parse_date_only("2025-02-28")
        datetime.date(2025, 2, 28)
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _local_date(value)
    if isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    if "T" in text or " " in text:
        return _local_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    return date.fromisoformat(text)


def _local_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(LOCAL_ZONE).date()


def parse_month(value: str | date) -> date:
    """Return the first day of the month named by ``YYYY-MM`` (or any date in it)."""
    if isinstance(value, date):
        return value.replace(day=1)
    text = value.strip()
    if len(text) == 7:
        year, month = text.split("-")
        return date(int(year), int(month), 1)
    parsed = parse_date_only(text)
    if parsed is None:
        raise ValueError("month must not be empty")
    return parsed.replace(day=1)


def month_bounds(month: date) -> tuple[date, date]:
    """First and last calendar day of ``month``."""
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=1), month.replace(day=last_day)


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def shift_month(month: date, delta: int) -> date:
    total = month.year * 12 + (month.month - 1) + delta
    return date(total // 12, total % 12 + 1, 1)
