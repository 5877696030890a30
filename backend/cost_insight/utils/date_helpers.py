from __future__ import annotations

import calendar
from datetime import date


def format_iso(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def days_in_month(d: date) -> int:
    return calendar.monthrange(d.year, d.month)[1]


def month_start(d: date) -> date:
    return d.replace(day=1)


def next_month_start(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def months_back(d: date, months: int) -> date:
    """First day of the month `months` before d's month."""
    index = d.year * 12 + (d.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)
