"""
Datetime utility functions for handling timezone-aware datetimes.
"""
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    Using this function instead of datetime.now(timezone.utc) directly keeps
    "now" mockable in tests.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def start_of_day_utc(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later``, floored.

    Negative when ``earlier`` is after ``later``.
    """
    delta = ensure_timezone_aware(later) - ensure_timezone_aware(earlier)
    return math.floor(delta.total_seconds() / SECONDS_PER_DAY)


def days_before(reference: datetime, days: int) -> datetime:
    """Timestamp exactly ``days`` whole days before ``reference``."""
    return ensure_timezone_aware(reference) - timedelta(days=days)
