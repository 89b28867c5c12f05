"""Datetime utility functions for timezone handling."""
from datetime import date, datetime, time, timedelta, UTC
from typing import Optional


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware in UTC.

    Datetimes read back from SQLite are timezone-naive but were written as
    UTC. Aware datetimes in another zone are converted.

    Example:
        >>> naive_dt = datetime(2025, 1, 1, 12, 0, 0)
        >>> ensure_utc(naive_dt).tzinfo == UTC
        True

        >>> ensure_utc(None) is None
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the UTC ``[start, end)`` window covering ``day``."""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)
