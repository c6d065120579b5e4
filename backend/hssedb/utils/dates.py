from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(base: datetime, months: int) -> datetime:
    """
    Add calendar months to a datetime, clamping the day to the end of the
    target month (31 Jan + 1 month -> 28/29 Feb).
    """
    if months == 0:
        return base
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    day = min(base.day, last_day)
    return base.replace(year=year, month=month, day=day)


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded up, never below one."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    minutes = int(seconds // 60)
    if seconds % 60:
        minutes += 1
    return max(minutes, 1)
