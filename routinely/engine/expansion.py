"""Alarm expansion: routine + schedule instance -> one alarm per step."""

from datetime import datetime, timedelta

from routinely.db.models import (
    MINUTES_PER_DAY,
    AlarmItem,
    Routine,
    ScheduleInstance,
    TimeOfDay,
    Weekday,
)
from routinely.engine.alarm_ids import encode_alarm_id
from routinely.utils.time_utils import combine_local


def step_offsets(routine: Routine) -> list[int]:
    """Minutes from the routine start to the start of each step.

    The last step's duration is never added: nothing follows it.
    """
    offsets = []
    elapsed = 0
    for step in routine.steps:
        offsets.append(elapsed)
        elapsed += step.duration.minutes
    return offsets


def _alarm_title(instance: ScheduleInstance, routine: Routine) -> str:
    return instance.name.strip() or routine.name


def expand_one_time(instance: ScheduleInstance, routine: Routine) -> list[AlarmItem]:
    """Expand a one-time run: one non-repeating alarm per step."""
    title = _alarm_title(instance, routine)
    current_time = instance.start_time
    items = []

    for step_index, (step, offset) in enumerate(zip(routine.steps, step_offsets(routine))):
        items.append(
            AlarmItem(
                id=encode_alarm_id(instance.id, step_index, None),
                time=current_time,
                title=title,
                description=step.name,
                is_repeating=False,
                step_index=step_index,
                step_name=step.name,
                weekday=None,
                offset_minutes=offset,
            )
        )
        if step_index < len(routine.steps) - 1:
            current_time = current_time.add_minutes(step.duration.minutes)

    return items


def expand_for_day(
    instance: ScheduleInstance, routine: Routine, day: Weekday
) -> list[AlarmItem]:
    """Expand one weekday of a recurring schedule.

    Ids carry the scheduled weekday; each item's weekday is the day it
    actually fires on once the accumulated time has crossed midnight.
    """
    title = _alarm_title(instance, routine)
    start_minutes = instance.start_time.minutes_since_midnight()
    current_time = instance.start_time
    items = []

    for step_index, (step, offset) in enumerate(zip(routine.steps, step_offsets(routine))):
        day_overflow = (start_minutes + offset) // MINUTES_PER_DAY
        items.append(
            AlarmItem(
                id=encode_alarm_id(instance.id, step_index, day),
                time=current_time,
                title=title,
                description=step.name,
                is_repeating=True,
                step_index=step_index,
                step_name=step.name,
                weekday=day.shifted(day_overflow),
                offset_minutes=offset,
            )
        )
        if step_index < len(routine.steps) - 1:
            current_time = current_time.add_minutes(step.duration.minutes)

    return items


def expand_instance(instance: ScheduleInstance, routine: Routine) -> list[AlarmItem]:
    """Expand a schedule into its ordered list of alarms.

    One-time schedules yield one alarm per step. Recurring schedules yield a
    full copy of the step sequence for every selected weekday, ordered by
    weekday then step. The enabled flag is not consulted here; the scheduler
    decides whether to register the result.
    """
    if not routine.steps:
        return []

    if not instance.days_of_week:
        return expand_one_time(instance, routine)

    items = []
    for day in instance.sorted_days():
        items.extend(expand_for_day(instance, routine, day))
    return items


def plan_one_time_targets(
    items: list[AlarmItem], start_time: TimeOfDay, now: datetime
) -> list[tuple[AlarmItem, datetime]]:
    """Attach an absolute firing instant to each one-time alarm.

    The date is decided once for the first step: today if the start time is
    still ahead of now's time of day, otherwise tomorrow. Every later step
    inherits that date and rolls past midnight through its offset.
    """
    base_date = now.date()
    if start_time.to_time() <= now.time():
        base_date += timedelta(days=1)

    base = combine_local(base_date, start_time, now.tzinfo)
    return [(item, base + timedelta(minutes=item.offset_minutes)) for item in items]
