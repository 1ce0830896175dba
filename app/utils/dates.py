# app/utils/dates.py

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Some backends (SQLite) hand timestamps back without tzinfo.
    Everything we store is UTC, so a naive value is treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days between two moments, rounded to the nearest day."""
    seconds = abs((ensure_utc(later) - ensure_utc(earlier)).total_seconds())
    return int(round(seconds / 86400))


def start_of_day(moment: datetime) -> datetime:
    return ensure_utc(moment).replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(moment: datetime) -> datetime:
    return start_of_day(moment).replace(day=1)
