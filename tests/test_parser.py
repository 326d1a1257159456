"""Tests for command parsing."""

import pytest

from routinely.db.models import Duration, TimeOfDay, Weekday
from routinely.errors import ValidationError
from routinely.parser.routine_parser import (
    parse_days,
    parse_duration,
    parse_routine,
    parse_routine_definition,
    parse_steps,
    parse_time,
)
from routinely.utils.constants import ALL_DAYS, WEEKDAYS, WEEKENDS


def test_parse_duration():
    """Test duration formats."""
    assert parse_duration("5m") == Duration(5)
    assert parse_duration("20 min") == Duration(20)
    assert parse_duration("1h") == Duration(60)
    assert parse_duration("1h30m") == Duration(90)
    assert parse_duration("2 hours 15 minutes") == Duration(135)
    assert parse_duration("90") == Duration(90)


@pytest.mark.parametrize("text", ["", "m", "five minutes", "-5m"])
def test_parse_duration_invalid(text):
    """Unreadable durations raise ValidationError."""
    with pytest.raises(ValidationError):
        parse_duration(text)


def test_parse_time():
    """Test 24-hour and am/pm times."""
    assert parse_time("07:00") == TimeOfDay(7, 0)
    assert parse_time("19:30") == TimeOfDay(19, 30)
    assert parse_time("7:30pm") == TimeOfDay(19, 30)
    assert parse_time("7am") == TimeOfDay(7, 0)
    assert parse_time("12am") == TimeOfDay(0, 0)
    assert parse_time("12:15 PM") == TimeOfDay(12, 15)


@pytest.mark.parametrize("text", ["25:00", "7:60", "13pm", "noon", ""])
def test_parse_time_invalid(text):
    """Out of range or unreadable times raise ValidationError."""
    with pytest.raises(ValidationError):
        parse_time(text)


def test_parse_days():
    """Test day lists and named sets."""
    assert parse_days("mon,wed,fri") == {Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY}
    assert parse_days("Tue Thu") == {Weekday.TUESDAY, Weekday.THURSDAY}
    assert parse_days("weekdays") == WEEKDAYS
    assert parse_days("weekends") == WEEKENDS
    assert parse_days("daily") == ALL_DAYS
    assert parse_days("every day") == ALL_DAYS
    assert parse_days("weekends, mon") == WEEKENDS | {Weekday.MONDAY}


def test_parse_days_one_time():
    """No days, or "once", means a single run."""
    assert parse_days("") == frozenset()
    assert parse_days("once") == frozenset()


def test_parse_days_unknown():
    """Unknown day names are rejected."""
    with pytest.raises(ValidationError):
        parse_days("mon,funday")


def test_parse_steps():
    """Test step lists with and without dashes."""
    steps = parse_steps("Warm-up 5m, Run - 20 min; Cooldown 5")

    assert [(step.name, step.duration) for step in steps] == [
        ("Warm-up", Duration(5)),
        ("Run", Duration(20)),
        ("Cooldown", Duration(5)),
    ]


def test_parse_steps_without_duration():
    """A step needs a duration."""
    with pytest.raises(ValidationError):
        parse_steps("Warm-up, Run 20m")


def test_parse_routine_definition():
    """Test the Name: steps form."""
    name, steps = parse_routine_definition("Morning Run: Warm-up 5m, Run 20m")

    assert name == "Morning Run"
    assert [step.name for step in steps] == ["Warm-up", "Run"]


def test_parse_routine_definition_needs_name():
    """A definition without a name is rejected."""
    with pytest.raises(ValidationError):
        parse_routine_definition("Warm-up 5m, Run 20m")
    with pytest.raises(ValidationError):
        parse_routine_definition(": Warm-up 5m")


def test_parse_routine():
    """Test building a routine from text."""
    routine = parse_routine("Stretch: Neck 2m, Back 1h")

    assert routine.name == "Stretch"
    assert routine.total_duration() == Duration(62)
