"""Message text formatters."""

from datetime import datetime
from html import escape

from routinely.db.models import AlarmItem, Routine, RoutineAlarmInfo, ScheduleInstance, StandaloneAlarm
from routinely.engine.scheduler import ScheduleReport
from routinely.utils.constants import ALL_DAYS, WEEKDAYS, WEEKENDS
from routinely.utils.time_utils import format_duration, format_relative_time, format_time_of_day


def short_id(value: str) -> str:
    """First block of a UUID, enough to address it in commands."""
    return value[:8]


def format_days(instance: ScheduleInstance | StandaloneAlarm) -> str:
    """Human-readable day set."""
    days = instance.days_of_week
    if not days:
        return "Once"
    if days == ALL_DAYS:
        return "Every day"
    if days == WEEKDAYS:
        return "Weekdays"
    if days == WEEKENDS:
        return "Weekends"
    return ", ".join(day.short_name for day in instance.sorted_days())


def format_alarm_title(alarm: AlarmItem) -> str:
    """Title line for a fired alarm: start marker for step 0, step name after."""
    if alarm.is_first:
        return f"Start: {alarm.title}"
    return f"{alarm.title} - {alarm.step_name or alarm.description}"


def format_alarm_message(alarm: AlarmItem, info: RoutineAlarmInfo | None) -> str:
    """Format a fired alarm. Plain alarms (info None) show their title as is."""
    if info is None:
        lines = [f"⏰ <b>{escape(alarm.title)}</b>"]
        if alarm.description:
            lines.append(escape(alarm.description))
    else:
        lines = [f"⏰ <b>{escape(format_alarm_title(alarm))}</b>"]
        if alarm.step_name:
            lines.append(f"Step {info.step_index + 1}: {escape(alarm.step_name)}")
        elif alarm.description:
            lines.append(escape(alarm.description))

    lines.append(f"🕒 {format_time_of_day(alarm.time)}")
    return "\n".join(lines)


def format_routine(routine: Routine) -> str:
    """Format a routine with its steps."""
    lines = [
        f"<b>{escape(routine.name)}</b> (ID: <code>{short_id(routine.id)}</code>) "
        f"- {format_duration(routine.total_duration().minutes)}"
    ]
    for position, step in enumerate(routine.steps, start=1):
        lines.append(
            f"   {position}. {escape(step.name)} - {format_duration(step.duration.minutes)}"
        )
    return "\n".join(lines)


def format_routine_list(routines: list[Routine]) -> str:
    """Format a list of routines."""
    if not routines:
        return "You have no routines yet. Create one with /newroutine."

    lines = [f"<b>Your Routines ({len(routines)})</b>\n"]
    lines.extend(format_routine(routine) for routine in routines)
    return "\n\n".join(lines)


def format_schedule(
    instance: ScheduleInstance,
    routine: Routine | None,
    next_at: datetime | None,
    now: datetime,
) -> str:
    """Format one schedule with its next start."""
    status_emoji = "🔔" if instance.is_enabled else "🔕"
    routine_name = escape(routine.name) if routine else "<i>missing routine</i>"

    lines = [
        f"{status_emoji} <b>{escape(instance.name)}</b> (ID: <code>{short_id(instance.id)}</code>)",
        f"   {routine_name} at {format_time_of_day(instance.start_time)} • {format_days(instance)}",
    ]
    if next_at is not None:
        lines.append(
            f"   Next: {next_at.strftime('%a %b %d, %H:%M')} ({format_relative_time(next_at, now)})"
        )
    elif not instance.is_enabled:
        lines.append("   Disabled")
    return "\n".join(lines)


def format_standalone_alarm(
    alarm: StandaloneAlarm, next_at: datetime | None, now: datetime
) -> str:
    """Format one plain alarm with its next ring."""
    status_emoji = "🔔" if alarm.is_enabled else "🔕"
    lines = [
        f"{status_emoji} <b>{escape(alarm.title)}</b> (ID: <code>{short_id(alarm.id)}</code>)",
        f"   {format_time_of_day(alarm.time)} • {format_days(alarm)}",
    ]
    if next_at is not None:
        lines.append(
            f"   Next: {next_at.strftime('%a %b %d, %H:%M')} ({format_relative_time(next_at, now)})"
        )
    else:
        lines.append("   Off")
    return "\n".join(lines)


def format_report(report: ScheduleReport) -> str:
    """Format a scheduling outcome, including partial failures."""
    text = report.summary()
    if report.failures:
        reasons = sorted({failure.error.reason for failure in report.failures if failure.error})
        text += "\n⚠️ " + "; ".join(escape(reason) for reason in reasons)
    return text


def format_welcome_message() -> str:
    """Format the welcome message for /start."""
    return """
<b>Welcome to Routinely!</b> ⏰

Build routines out of timed steps and I'll ring you at the start of every step.

<b>Quick Start:</b>
• /newroutine <code>Morning: Warm-up 5m, Run 20m, Cooldown 5m</code>
• /schedule <code>&lt;routine id&gt; 07:00 mon,wed,fri</code>
• /schedules - See when things ring next
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>Routinely Commands ⏰</b>

<b>Routines:</b>
/routines - List routines
/newroutine &lt;name&gt;: &lt;step&gt; &lt;duration&gt;, ... - Create a routine
/editroutine &lt;id&gt; &lt;name&gt;: &lt;steps&gt; - Replace a routine's steps
/duplicate &lt;id&gt; &lt;new name&gt; - Copy a routine
/deleteroutine &lt;id&gt; - Delete a routine and its schedules

<b>Schedules:</b>
/schedule &lt;routine id&gt; &lt;time&gt; [days] - Schedule a routine
/schedules - List schedules and next start
/enable &lt;id&gt; / /disable &lt;id&gt; - Toggle a schedule
/editschedule &lt;id&gt; &lt;time&gt; [days] - Move a schedule
/unschedule &lt;id&gt; - Delete a schedule

<b>Plain alarms:</b>
/alarm &lt;time&gt; [days] - Add an alarm outside any routine
/alarms - List alarms with toggle and delete buttons
/testalarm - Ring a test alarm in a moment

<b>Formats:</b>
• Durations: <code>5m</code>, <code>1h30m</code>, <code>90</code>
• Times: <code>07:00</code>, <code>7:30pm</code>
• Days: <code>mon,wed,fri</code>, <code>weekdays</code>, <code>weekends</code>, <code>daily</code>, or nothing for a single run
""".strip()
