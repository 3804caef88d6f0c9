from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from checkin.config import config
from checkin.utils.error_utils import ValidationError


def utc_now() -> datetime:
    """UTC now as naive datetime; all timestamp columns store naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def team_zone() -> ZoneInfo:
    return ZoneInfo(config.attendance.timezone)


def meeting_date_for(now: Optional[datetime] = None) -> date:
    """
    Returns the meeting date (calendar day in the team's timezone) for an instant.

    Args:
        now: naive UTC instant (None means now)

    Returns:
        date: the local calendar day
    """
    if now is None:
        now = utc_now()
    return now.replace(tzinfo=timezone.utc).astimezone(team_zone()).date()


def local_to_utc(day: date, wall_time: time) -> datetime:
    """Converts a local wall-clock time on a meeting date to a naive UTC instant."""
    local = datetime.combine(day, wall_time).replace(tzinfo=team_zone())
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start) / timedelta(hours=1)


def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def serialize_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


def parse_date(value: str, field: str = "date") -> date:
    """Parse YYYY-MM-DD, raising ValidationError on a bad value."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field} format. Use YYYY-MM-DD")


def parse_time(value: str, field: str = "time") -> time:
    """Parse HH:MM (or HH:MM:SS), raising ValidationError on a bad value."""
    try:
        return time.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field} format. Use HH:MM")
