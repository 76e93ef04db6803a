"""Operating-timezone helpers

Providers run on one civil timezone; "today" is always computed there,
never from the caller's or the server's clock zone.
"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_operating_time(value: datetime, tz_name: str) -> datetime:
    return as_utc(value).astimezone(ZoneInfo(tz_name))


def today_in(tz_name: str, now: Optional[datetime] = None) -> date:
    """Current civil date in the operating timezone"""
    current = now or datetime.now(timezone.utc)
    return to_operating_time(current, tz_name).date()


def parse_platform_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp as sent by booking platforms"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return as_utc(parsed)
