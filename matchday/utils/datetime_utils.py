"""
Datetime utility functions.
Provides replacements for deprecated datetime functions.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to an aware UTC datetime.

    Some backends (SQLite) hand back naive datetimes for timezone-aware
    columns; those are stored as UTC, so naive values are tagged as UTC.

    Args:
        value: Datetime (naive or aware) or None

    Returns:
        Aware UTC datetime, or None if value is None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for a datetime in UTC, or None."""
    value = ensure_utc(value)
    return value.isoformat() if value else None
