"""Tests for message formatting."""

from datetime import datetime
from zoneinfo import ZoneInfo

from routinely.bot.formatters import (
    format_alarm_message,
    format_alarm_title,
    format_days,
    format_report,
    format_routine,
    format_routine_list,
    format_schedule,
    format_standalone_alarm,
)
from routinely.db.models import (
    AlarmItem,
    Duration,
    Routine,
    RoutineAlarmInfo,
    ScheduleInstance,
    ScheduleState,
    StandaloneAlarm,
    Step,
    TimeOfDay,
    Weekday,
)
from routinely.engine.scheduler import RegistrationResult, ScheduleReport
from routinely.errors import RegistrationError
from routinely.utils.constants import WEEKDAYS

TZ = ZoneInfo("UTC")


def make_routine() -> Routine:
    return Routine.create(
        "Morning <Run>",
        [Step.create("Warm-up", Duration(5)), Step.create("Run", Duration(90))],
    )


def test_format_days():
    """Named day sets get friendly labels."""
    def instance(days):
        return ScheduleInstance.create("r1", "Run", TimeOfDay(7, 0), days)

    assert format_days(instance(set())) == "Once"
    assert format_days(instance(set(Weekday))) == "Every day"
    assert format_days(instance(WEEKDAYS)) == "Weekdays"
    assert format_days(instance({Weekday.SATURDAY, Weekday.SUNDAY})) == "Weekends"
    assert format_days(instance({Weekday.WEDNESDAY, Weekday.MONDAY})) == "Mon, Wed"


def test_format_alarm_title():
    """The first step announces the start, later steps name themselves."""
    first = AlarmItem(id="a", time=TimeOfDay(7, 0), title="Gym", step_index=0, step_name="Warm-up")
    later = AlarmItem(id="b", time=TimeOfDay(7, 5), title="Gym", step_index=1, step_name="Run")

    assert format_alarm_title(first) == "Start: Gym"
    assert format_alarm_title(later) == "Gym - Run"


def test_format_alarm_message():
    """Fired alarms show the step number, name and time."""
    alarm = AlarmItem(id="a", time=TimeOfDay(7, 5), title="Gym", step_index=1, step_name="Run")
    info = RoutineAlarmInfo("abc", 1, Weekday.MONDAY)

    message = format_alarm_message(alarm, info)

    assert "<b>Gym - Run</b>" in message
    assert "Step 2: Run" in message
    assert "7:05 AM" in message


def test_format_routine_escapes_html():
    """Names are HTML-escaped and durations are compact."""
    text = format_routine(make_routine())

    assert "Morning &lt;Run&gt;" in text
    assert "1h 35m" in text
    assert "2. Run - 1h 30m" in text


def test_format_routine_list_empty():
    """Test the empty routine list."""
    assert "no routines" in format_routine_list([])


def test_format_schedule_next_start():
    """A schedule shows when it starts next."""
    routine = make_routine()
    instance = ScheduleInstance.create(routine.id, "Gym", TimeOfDay(7, 0), {Weekday.MONDAY})
    now = datetime(2026, 3, 15, 12, 0, tzinfo=TZ)
    next_at = datetime(2026, 3, 16, 7, 0, tzinfo=TZ)

    text = format_schedule(instance, routine, next_at, now)

    assert "🔔" in text
    assert "Mon" in text
    assert "Next: Mon Mar 16, 07:00 (in 19 hours)" in text


def test_format_schedule_disabled():
    """Disabled schedules say so instead of a next start."""
    routine = make_routine()
    instance = ScheduleInstance.create(routine.id, "Gym", TimeOfDay(7, 0)).with_enabled(False)

    text = format_schedule(instance, routine, None, datetime(2026, 3, 15, tzinfo=TZ))

    assert "🔕" in text
    assert "Disabled" in text


def test_format_report_partial_failure():
    """Partial failures report the count and the reasons."""
    ok = AlarmItem(id="a", time=TimeOfDay(7, 0), title="Gym")
    bad = AlarmItem(id="b", time=TimeOfDay(7, 5), title="Gym")
    report = ScheduleReport(
        instance_id="abc",
        state=ScheduleState.RECURRING,
        results=[
            RegistrationResult(item=ok),
            RegistrationResult(item=bad, error=RegistrationError("b", "permission denied")),
        ],
    )

    text = format_report(report)

    assert text.startswith("1 of 2 reminders scheduled")
    assert "permission denied" in text


def test_format_plain_alarm_message():
    """Alarms outside routines show their own title, not a step marker."""
    alarm = AlarmItem(id="alarm_x_monday", time=TimeOfDay(6, 30), title="Wake <up>")

    message = format_alarm_message(alarm, None)

    assert "<b>Wake &lt;up&gt;</b>" in message
    assert "Start:" not in message
    assert "6:30 AM" in message


def test_format_standalone_alarm():
    alarm = StandaloneAlarm.create(TimeOfDay(6, 30), "Wake up", WEEKDAYS)
    now = datetime(2026, 3, 15, 12, 0, tzinfo=TZ)

    text = format_standalone_alarm(alarm, datetime(2026, 3, 16, 6, 30, tzinfo=TZ), now)
    off = format_standalone_alarm(alarm.with_enabled(False), None, now)

    assert "🔔 <b>Wake up</b>" in text
    assert "Weekdays" in text
    assert "Next: Mon Mar 16, 06:30" in text
    assert off.startswith("🔕")
    assert "Off" in off
