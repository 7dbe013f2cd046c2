"""UTC helpers shared by the scheduling code and the storage layer.

Storage columns hold naive UTC datetimes; everything inside the scheduling
functions is timezone-aware UTC.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_instant(value: datetime) -> datetime:
    """UTC with seconds and microseconds dropped."""
    return ensure_utc(value).replace(second=0, microsecond=0)


def to_storage(value: datetime) -> datetime:
    return ensure_utc(value).replace(tzinfo=None)
