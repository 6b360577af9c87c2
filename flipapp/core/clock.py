"""
Time helpers.

MongoDB hands datetimes back as naive UTC (pymongo default tz_aware=False), so
everything written or queried goes through `to_storage_datetime` first.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current instant as naive UTC, the format stored in MongoDB."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage_datetime(value: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are assumed to be UTC already."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
