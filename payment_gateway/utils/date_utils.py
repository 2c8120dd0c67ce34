"""Date and time helpers shared by the time-windowed checks"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def window_start(now: datetime, hours: float) -> datetime:
    """Start of a rolling window ending at now"""
    return now - timedelta(hours=hours)


def to_local(now: datetime, tz_name: str) -> datetime:
    """Convert an aware datetime to the business timezone"""
    return ensure_utc(now).astimezone(ZoneInfo(tz_name))


def parse_cutoff(value: str) -> time:
    """Parse an HH:MM cutoff string"""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))
