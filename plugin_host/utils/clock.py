"""
Wall clock for persisted timestamps.

DateTime columns are stored naive and in UTC.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo, comparable with stored column values."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
