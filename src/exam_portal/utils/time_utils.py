"""Time utility functions"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Return ``value`` as a timezone-aware UTC datetime.

    SQLite drops tzinfo on ``DateTime(timezone=True)`` columns, so naive values
    read back from the database are assumed to already be UTC.

    Args:
        value: Datetime read from the database or produced by a clock

    Returns:
        Timezone-aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
