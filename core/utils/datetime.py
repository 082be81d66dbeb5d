"""Datetime utilities for common operations."""

from datetime import datetime, date, timedelta, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    Some stores (SQLite) hand back naive values even for timezone-aware
    columns; every value written by this service is UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime, or None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def add_days(dt: datetime | date, days: int) -> datetime | date:
    """
    Add days to date/datetime.

    Args:
        dt: Date or datetime
        days: Number of days to add (can be negative)

    Returns:
        New date/datetime
    """
    return dt + timedelta(days=days)


def hours_between(start: datetime, end: datetime) -> float:
    """
    Calculate number of hours between two datetimes.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Number of hours (can be fractional, negative when end is before start)
    """
    delta = ensure_aware(end) - ensure_aware(start)
    return delta.total_seconds() / 3600


def is_past(dt: datetime, reference: Optional[datetime] = None) -> bool:
    """
    Check if datetime is in the past.

    Args:
        dt: Datetime to check
        reference: Point in time to compare against (defaults to now)

    Returns:
        True if in the past
    """
    return ensure_aware(dt) <= ensure_aware(reference or now())


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 in UTC, passing None through."""
    if dt is None:
        return None
    return ensure_aware(dt).isoformat()
