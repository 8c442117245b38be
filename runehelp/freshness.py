# runehelp/freshness.py

from datetime import datetime, timedelta, timezone
from typing import Optional

FRESHNESS_WINDOW = timedelta(minutes=5)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def should_refetch(latest_snapshot_at: Optional[datetime], now: datetime) -> bool:
    """Return True when the latest snapshot is missing or at least FRESHNESS_WINDOW old."""
    if latest_snapshot_at is None:
        return True
    return _as_utc(now) - _as_utc(latest_snapshot_at) >= FRESHNESS_WINDOW
