"""RRULE-based next-occurrence computation."""

from datetime import datetime
from typing import Iterable

from dateutil.rrule import DAILY, WEEKLY, rrule

from routinely.db.models import Routine, ScheduleInstance, TimeOfDay, Weekday


def build_rrule(start_time: TimeOfDay, weekdays: Iterable[Weekday], dtstart: datetime) -> rrule:
    """Build the firing rule for a start time.

    No weekdays means every day (used for one-time runs, which fire on the
    next matching day only); otherwise weekly on each listed day.
    """
    days = sorted(weekdays)
    if days:
        return rrule(
            WEEKLY,
            dtstart=dtstart,
            byweekday=[int(day) for day in days],
            byhour=start_time.hour,
            byminute=start_time.minute,
            bysecond=0,
        )
    return rrule(
        DAILY,
        dtstart=dtstart,
        byhour=start_time.hour,
        byminute=start_time.minute,
        bysecond=0,
    )


def next_occurrence(
    start_time: TimeOfDay, weekdays: Iterable[Weekday], now: datetime
) -> datetime:
    """First moment strictly after now at start_time on one of the weekdays.

    Today qualifies only while start_time is still ahead of now's time of day.

    Args:
        start_time: Wall-clock time of day
        weekdays: Allowed days; empty means any day
        now: Current time (timezone-aware)

    Returns:
        Next occurrence in now's timezone
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    rule = build_rrule(start_time, weekdays, midnight)

    next_date = rule.after(now)
    if next_date is None:
        raise ValueError("No next occurrence found")

    return next_date


def next_fire(
    instance: ScheduleInstance, routine: Routine, now: datetime
) -> datetime | None:
    """When the schedule will next fire its first step, for display.

    This does not drive registration; the scheduler owns that.

    Returns:
        Next start datetime, or None if the schedule is disabled or the
        routine has no steps
    """
    if not instance.is_enabled or not routine.steps:
        return None

    return next_occurrence(instance.start_time, instance.days_of_week, now)
