"""Alarm id encoding and decoding.

A routine alarm id is built purely from the schedule instance id, the step
index and the weekday (or "onetime"):

    routine_{instance_id}_step_{step_index}_{weekday|onetime}

so a fired alarm can be traced back to its schedule without extra lookups.
Instance ids must not contain "_step_"; UUIDs never do.
"""

from routinely.db.models import RoutineAlarmInfo, Weekday
from routinely.errors import DecodeError
from routinely.utils.constants import (
    ONE_TIME_TOKEN,
    ROUTINE_ALARM_PREFIX,
    ROUTINE_STEP_SEPARATOR,
    STANDALONE_ALARM_PREFIX,
)


def encode_alarm_id(instance_id: str, step_index: int, weekday: Weekday | None) -> str:
    """Build the alarm id for one step. weekday=None means a one-time run."""
    if step_index < 0:
        raise ValueError(f"Step index cannot be negative: {step_index}")
    day_token = weekday.token if weekday is not None else ONE_TIME_TOKEN
    return f"{ROUTINE_ALARM_PREFIX}{instance_id}{ROUTINE_STEP_SEPARATOR}{step_index}_{day_token}"


def instance_alarm_prefix(instance_id: str) -> str:
    """Prefix shared by every alarm id of one schedule instance."""
    return f"{ROUTINE_ALARM_PREFIX}{instance_id}{ROUTINE_STEP_SEPARATOR}"


def is_routine_alarm(alarm_id: str) -> bool:
    return alarm_id.startswith(ROUTINE_ALARM_PREFIX)


def parse_alarm_id(alarm_id: str) -> RoutineAlarmInfo:
    """Decode a routine alarm id.

    Raises:
        DecodeError: if the id is not a well-formed routine alarm id
    """
    if not is_routine_alarm(alarm_id):
        raise DecodeError(f"Not a routine alarm: {alarm_id!r}")

    body = alarm_id[len(ROUTINE_ALARM_PREFIX):]
    instance_id, separator, remainder = body.partition(ROUTINE_STEP_SEPARATOR)
    if not separator or not instance_id:
        raise DecodeError(f"Missing step separator: {alarm_id!r}")

    step_part, underscore, day_part = remainder.rpartition("_")
    if not underscore:
        raise DecodeError(f"Missing weekday field: {alarm_id!r}")

    # ASCII digits only: no sign, no blanks, no nested separators
    if not (step_part.isascii() and step_part.isdecimal()):
        raise DecodeError(f"Invalid step index {step_part!r} in {alarm_id!r}")

    if day_part == ONE_TIME_TOKEN:
        day_of_week = None
    else:
        try:
            day_of_week = Weekday.from_token(day_part)
        except ValueError:
            raise DecodeError(f"Unknown weekday {day_part!r} in {alarm_id!r}") from None
        if day_part != day_of_week.token:
            raise DecodeError(f"Weekday must be lowercase in {alarm_id!r}")

    return RoutineAlarmInfo(
        schedule_instance_id=instance_id,
        step_index=int(step_part),
        day_of_week=day_of_week,
    )


def decode_alarm_id(alarm_id: str) -> RoutineAlarmInfo | None:
    """Decode an alarm id, returning None for anything that is not a routine alarm."""
    try:
        return parse_alarm_id(alarm_id)
    except DecodeError:
        return None


# Plain alarms outside routines: alarm_{alarm_id}_{weekday|onetime}


def encode_standalone_alarm_id(alarm_id: str, weekday: Weekday | None) -> str:
    day_token = weekday.token if weekday is not None else ONE_TIME_TOKEN
    return f"{standalone_alarm_prefix(alarm_id)}{day_token}"


def standalone_alarm_prefix(alarm_id: str) -> str:
    return f"{STANDALONE_ALARM_PREFIX}{alarm_id}_"


def decode_standalone_alarm_id(timer_id: str) -> str | None:
    """Id of the plain alarm a registration belongs to, or None."""
    if not timer_id.startswith(STANDALONE_ALARM_PREFIX):
        return None

    alarm_id, underscore, day_part = timer_id[len(STANDALONE_ALARM_PREFIX):].rpartition("_")
    if not underscore or not alarm_id:
        return None
    if day_part != ONE_TIME_TOKEN and day_part not in {day.token for day in Weekday}:
        return None
    return alarm_id
