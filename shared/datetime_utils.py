"""
Date/time helpers, framework-agnostic.

MongoDB stores naive UTC datetimes with millisecond precision; everything
above the storage layer works with timezone-aware UTC values.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: the current wall time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (what pymongo returns by default) are assumed to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_bson_datetime(value: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC form MongoDB stores.

    Microseconds are truncated to milliseconds so values compare equal
    after a round trip through the database.
    """
    value = as_utc(value)
    return value.replace(
        tzinfo=None, microsecond=(value.microsecond // 1000) * 1000
    )
