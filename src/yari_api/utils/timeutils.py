"""Time helpers shared by the scheduling services.

All persisted timestamps are UTC. Some drivers (SQLite) hand back naive
datetimes, so reads go through ``ensure_utc`` before any comparison.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from yari_api.exceptions import ValidationError


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name or raise ValidationError."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(
            f"Unknown timezone: {name}", errors={"timezone": ["Unknown IANA timezone"]}
        ) from e


def local_to_utc(day: date, wall_clock: time, tz_name: str) -> datetime:
    """Interpret ``day`` + ``wall_clock`` in ``tz_name`` and convert to UTC."""
    tz = resolve_timezone(tz_name)
    return datetime.combine(day, wall_clock, tzinfo=tz).astimezone(timezone.utc)


def local_today(now: datetime, tz_name: str) -> date:
    """Calendar date of ``now`` in ``tz_name``."""
    return ensure_utc(now).astimezone(resolve_timezone(tz_name)).date()


def minutes_between(start: time, end: time) -> int:
    """Whole minutes from ``start`` to ``end`` on the same day (negative if end precedes start)."""
    start_delta = timedelta(hours=start.hour, minutes=start.minute, seconds=start.second)
    end_delta = timedelta(hours=end.hour, minutes=end.minute, seconds=end.second)
    return int((end_delta - start_delta).total_seconds() // 60)


def add_minutes(start: time, minutes: int) -> time:
    """Wall-clock time ``minutes`` after ``start``; raises ValidationError past midnight."""
    total = start.hour * 60 + start.minute + minutes
    if total >= 24 * 60:
        raise ValidationError(
            "Slot must end on the same day it starts",
            errors={"end_time": ["Slot would run past midnight"]},
        )
    return time(hour=total // 60, minute=total % 60)
