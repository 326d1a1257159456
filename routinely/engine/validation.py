"""Boundary validation for routines, schedules and plain alarms."""

from routinely.db.models import Routine, ScheduleInstance, StandaloneAlarm
from routinely.errors import ValidationError
from routinely.utils.constants import (
    MAX_NAME_LENGTH,
    MAX_ROUTINE_MINUTES,
    MAX_STEP_MINUTES,
    MAX_STEPS_PER_ROUTINE,
)


def validate_routine(routine: Routine) -> None:
    """Reject routines that cannot be expanded into alarms.

    Raises:
        ValidationError: on an empty name, no steps, a nameless step, a
            zero-length step or a routine lasting a week or more
    """
    if not routine.name.strip():
        raise ValidationError("Routine name cannot be empty")
    if len(routine.name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Routine name is longer than {MAX_NAME_LENGTH} characters")
    if not routine.steps:
        raise ValidationError("Routine needs at least one step")
    if len(routine.steps) > MAX_STEPS_PER_ROUTINE:
        raise ValidationError(f"Routine cannot have more than {MAX_STEPS_PER_ROUTINE} steps")

    for position, step in enumerate(routine.steps, start=1):
        if not step.name.strip():
            raise ValidationError(f"Step {position} has no name")
        if step.duration.minutes == 0:
            raise ValidationError(f"Step {position} ({step.name}) has zero duration")
        if step.duration.minutes > MAX_STEP_MINUTES:
            raise ValidationError(f"Step {position} ({step.name}) is longer than a day")

    # Weekly alarms of different steps would otherwise land on the same slot
    if routine.total_duration().minutes >= MAX_ROUTINE_MINUTES:
        raise ValidationError("Routine must finish in less than a week")


def validate_instance(instance: ScheduleInstance) -> None:
    """Reject schedules with missing identity fields."""
    if not instance.routine_id:
        raise ValidationError("Schedule must reference a routine")
    if not instance.name.strip():
        raise ValidationError("Schedule name cannot be empty")
    if len(instance.name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Schedule name is longer than {MAX_NAME_LENGTH} characters")


def validate_alarm(alarm: StandaloneAlarm, existing: list[StandaloneAlarm]) -> None:
    """Reject a plain alarm with a blank title or one that rings in the same slot as another."""
    if not alarm.title.strip():
        raise ValidationError("Alarm title cannot be empty")
    if len(alarm.title) > MAX_NAME_LENGTH:
        raise ValidationError(f"Alarm title is longer than {MAX_NAME_LENGTH} characters")

    for other in existing:
        if other.id != alarm.id and other.time == alarm.time and other.days_of_week == alarm.days_of_week:
            raise ValidationError(f"An alarm already exists for {alarm.time}")
