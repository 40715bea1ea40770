from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional


def parse_date(v: Any) -> Optional[date]:
    """Accept a date, a datetime or an ISO-8601 string; None when it is none of those."""
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        try:
            return date.fromisoformat(v.strip()[:10])
        except ValueError:
            return None
    return None


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    return (end - start).days
