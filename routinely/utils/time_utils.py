"""Time and timezone utilities."""

from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo

from routinely.db.models import TimeOfDay


def to_utc(dt: datetime, tz: str) -> datetime:
    """Convert a timezone-aware datetime to UTC."""
    if dt.tzinfo is None:
        # Assume it's in the given timezone
        dt = dt.replace(tzinfo=ZoneInfo(tz))
    return dt.astimezone(ZoneInfo("UTC"))


def from_utc(dt: datetime, tz: str) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo(tz))


def local_now(tz: str) -> datetime:
    """Current wall-clock time in the given timezone."""
    return datetime.now(ZoneInfo(tz))


def combine_local(day: date, time_of_day: TimeOfDay, tz: tzinfo | None) -> datetime:
    """Wall-clock datetime for a date and a time of day."""
    return datetime.combine(day, time_of_day.to_time(), tzinfo=tz)


def format_time_of_day(time_of_day: TimeOfDay) -> str:
    """Format as 12-hour clock, e.g. "7:05 AM"."""
    hour = time_of_day.hour % 12 or 12
    suffix = "AM" if time_of_day.hour < 12 else "PM"
    return f"{hour}:{time_of_day.minute:02d} {suffix}"


def format_duration(minutes: int) -> str:
    """Format minutes as a compact duration.

    Examples:
        5 -> "5m"
        60 -> "1h"
        90 -> "1h 30m"
        0 -> "0m"
    """
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


def format_relative_time(dt: datetime, now: datetime) -> str:
    """Format a future datetime relative to now.

    Examples:
        "in 5 minutes"
        "in 2 hours"
        "tomorrow"
        "in 3 days"
    """
    total_seconds = (dt - now).total_seconds()

    if total_seconds < 60:
        return "now"
    if total_seconds < 3600:
        minutes = int(total_seconds / 60)
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    if total_seconds < 86400:
        hours = int(total_seconds / 3600)
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    if total_seconds < 172800:  # 2 days
        return "tomorrow"
    days = int(total_seconds / 86400)
    return f"in {days} days"
