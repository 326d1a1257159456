"""Command handlers."""

import logging
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from routinely.bot.formatters import (
    format_help_message,
    format_report,
    format_routine,
    format_routine_list,
    format_schedule,
    format_standalone_alarm,
    format_welcome_message,
    short_id,
)
from routinely.bot.keyboards import (
    alarm_actions_keyboard,
    confirm_cancel_keyboard,
    schedule_actions_keyboard,
)
from routinely.config import Config
from routinely.db.models import ScheduleInstance, StandaloneAlarm
from routinely.db.repository import Repository
from routinely.engine.alarms import AlarmService
from routinely.engine.recurrence import next_fire
from routinely.engine.scheduler import RoutineScheduler
from routinely.errors import NotFoundError, RegistrationError, ValidationError
from routinely.parser.routine_parser import (
    parse_days,
    parse_routine,
    parse_routine_definition,
    parse_time,
)
from routinely.utils.constants import OWNER_CHAT_KEY
from routinely.utils.time_utils import local_now

logger = logging.getLogger(__name__)


async def is_owner(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    """Check that the update comes from the chat this bot is bound to."""
    if not update.effective_chat:
        return False

    repo: Repository = context.bot_data["repo"]
    owner = await repo.get_setting(OWNER_CHAT_KEY)
    return owner is not None and int(owner) == update.effective_chat.id


async def _require_owner(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    if await is_owner(update, context):
        return True
    if update.message:
        await update.message.reply_text("Please /start the bot first.")
    return False


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command - bind this chat as the owner."""
    if not update.effective_chat or not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    chat_id = update.effective_chat.id

    if Config.OWNER_CHAT_ID is not None and chat_id != Config.OWNER_CHAT_ID:
        await update.message.reply_text("This is a private bot.")
        return

    owner = await repo.get_setting(OWNER_CHAT_KEY)
    if owner is None:
        await repo.set_setting(OWNER_CHAT_KEY, str(chat_id))
        logger.info(f"Bound to chat {chat_id}")
    elif int(owner) != chat_id:
        await update.message.reply_text("This bot already belongs to another chat.")
        return

    await update.message.reply_html(format_welcome_message())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def routines_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /routines command - list all routines."""
    if not update.message or not await _require_owner(update, context):
        return

    repo: Repository = context.bot_data["repo"]
    routines = await repo.list_routines()
    await update.message.reply_html(format_routine_list(routines))


async def newroutine_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /newroutine <name>: <step> <duration>, ..."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args:
        await update.message.reply_html(
            "Usage: /newroutine <code>Morning: Warm-up 5m, Run 20m, Cooldown 5m</code>"
        )
        return

    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    try:
        routine = await scheduler.create_routine(parse_routine(" ".join(context.args)))
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    await update.message.reply_html(
        f"✓ Routine created\n\n{format_routine(routine)}\n\n"
        f"Schedule it with /schedule <code>{short_id(routine.id)} 07:00 weekdays</code>"
    )


async def editroutine_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /editroutine <id> <name>: <steps> - replace a routine and reschedule."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args or len(context.args) < 2:
        await update.message.reply_html(
            "Usage: /editroutine <code>&lt;id&gt; Morning: Warm-up 10m, Run 30m</code>"
        )
        return

    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    routine = await repo.find_routine(context.args[0])
    if not routine:
        await update.message.reply_text("Routine not found.")
        return

    try:
        name, steps = parse_routine_definition(" ".join(context.args[1:]))
        updated = routine.update_with(name=name, steps=steps)
        reports = await scheduler.update_routine(updated)
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    lines = [f"✓ Routine updated\n\n{format_routine(updated)}"]
    if reports:
        lines.append(f"\nRescheduled {len(reports)} schedule(s):")
        lines.extend(
            f"• <code>{short_id(instance_id)}</code>: {format_report(report)}"
            for instance_id, report in reports.items()
        )
    await update.message.reply_html("\n".join(lines))


async def duplicate_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /duplicate <id> <new name>."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args or len(context.args) < 2:
        await update.message.reply_text("Usage: /duplicate <routine_id> <new name>")
        return

    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    routine = await repo.find_routine(context.args[0])
    if not routine:
        await update.message.reply_text("Routine not found.")
        return

    try:
        copy = await scheduler.duplicate_routine(routine.id, " ".join(context.args[1:]))
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    await update.message.reply_html(f"✓ Routine duplicated\n\n{format_routine(copy)}")


async def deleteroutine_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deleteroutine <id> - asks for confirmation first."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /deleteroutine <routine_id>")
        return

    repo: Repository = context.bot_data["repo"]
    routine = await repo.find_routine(context.args[0])
    if not routine:
        await update.message.reply_text("Routine not found.")
        return

    schedules = await repo.list_instances_for_routine(routine.id)
    await update.message.reply_html(
        f"Delete <b>{escape(routine.name)}</b> and its {len(schedules)} schedule(s)?",
        reply_markup=confirm_cancel_keyboard(f"delete_routine:{routine.id}"),
    )


async def schedule_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /schedule <routine_id> <time> [days]."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args or len(context.args) < 2:
        await update.message.reply_html(
            "Usage: /schedule <code>&lt;routine id&gt; 07:00 mon,wed,fri</code>\n"
            "Leave out the days for a single run."
        )
        return

    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    routine = await repo.find_routine(context.args[0])
    if not routine:
        await update.message.reply_text("Routine not found.")
        return

    try:
        instance = ScheduleInstance.create(
            routine_id=routine.id,
            name=routine.name,
            start_time=parse_time(context.args[1]),
            days_of_week=parse_days(" ".join(context.args[2:])),
        )
        report = await scheduler.create_instance(instance)
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    now = local_now(scheduler.timezone)
    await update.message.reply_html(
        f"✓ Scheduled\n\n{format_schedule(instance, routine, next_fire(instance, routine, now), now)}"
        f"\n\n{format_report(report)}",
        reply_markup=schedule_actions_keyboard(instance),
    )


async def schedules_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /schedules command - each schedule with its next start."""
    if not update.message or not await _require_owner(update, context):
        return

    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    instances = await repo.list_instances()
    if not instances:
        await update.message.reply_text("You have no schedules. Create one with /schedule.")
        return

    now = local_now(scheduler.timezone)
    await update.message.reply_html(f"<b>Your Schedules ({len(instances)})</b>")

    for instance in instances:
        routine = await repo.get_routine(instance.routine_id)
        next_at = next_fire(instance, routine, now) if routine else None
        await update.message.reply_html(
            format_schedule(instance, routine, next_at, now),
            reply_markup=schedule_actions_keyboard(instance),
        )


async def _set_enabled(
    update: Update, context: ContextTypes.DEFAULT_TYPE, enabled: bool
) -> None:
    if not update.message or not await _require_owner(update, context):
        return

    command = "enable" if enabled else "disable"
    if not context.args or len(context.args) != 1:
        await update.message.reply_text(f"Usage: /{command} <schedule_id>")
        return

    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    instance = await repo.find_instance(context.args[0])
    if not instance:
        await update.message.reply_text("Schedule not found.")
        return

    try:
        report = await scheduler.set_enabled(instance.id, enabled)
    except NotFoundError:
        await update.message.reply_text("Schedule not found.")
        return

    emoji = "🔔" if enabled else "🔕"
    await update.message.reply_html(
        f"{emoji} <b>{escape(instance.name)}</b> {command}d\n{format_report(report)}"
    )


async def enable_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /enable <id> command."""
    await _set_enabled(update, context, True)


async def disable_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /disable <id> command."""
    await _set_enabled(update, context, False)


async def unschedule_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /unschedule <id> command."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /unschedule <schedule_id>")
        return

    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    instance = await repo.find_instance(context.args[0])
    if not instance:
        await update.message.reply_text("Schedule not found.")
        return

    try:
        cancelled = await scheduler.delete_instance(instance.id)
    except NotFoundError:
        await update.message.reply_text("Schedule not found.")
        return

    await update.message.reply_html(
        f"🗑 Deleted schedule <b>{escape(instance.name)}</b> ({len(cancelled)} reminders cancelled)"
    )


async def editschedule_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /editschedule <id> <time> [days] - move a schedule and reschedule it."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args or len(context.args) < 2:
        await update.message.reply_html(
            "Usage: /editschedule <code>&lt;schedule id&gt; 08:00 weekdays</code>\n"
            "Leave out the days for a single run."
        )
        return

    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    instance = await repo.find_instance(context.args[0])
    if not instance:
        await update.message.reply_text("Schedule not found.")
        return

    try:
        updated = instance.update_with(
            start_time=parse_time(context.args[1]),
            days_of_week=parse_days(" ".join(context.args[2:])),
        )
        report = await scheduler.update_instance(updated)
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return
    except NotFoundError:
        await update.message.reply_text("Schedule not found.")
        return

    routine = await repo.get_routine(updated.routine_id)
    now = local_now(scheduler.timezone)
    next_at = next_fire(updated, routine, now) if routine else None
    await update.message.reply_html(
        f"✓ Schedule updated\n\n{format_schedule(updated, routine, next_at, now)}"
        f"\n\n{format_report(report)}",
        reply_markup=schedule_actions_keyboard(updated),
    )


async def alarm_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alarm <time> [days] - a plain alarm outside any routine."""
    if not update.message or not await _require_owner(update, context):
        return

    if not context.args:
        await update.message.reply_html(
            "Usage: /alarm <code>06:30 weekdays</code>\n"
            "Leave out the days to ring once."
        )
        return

    alarms: AlarmService = context.bot_data["alarms"]

    try:
        alarm = StandaloneAlarm.create(
            time=parse_time(context.args[0]),
            days_of_week=parse_days(" ".join(context.args[1:])),
        )
        report = await alarms.add_alarm(alarm)
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    now = local_now(alarms.timezone)
    await update.message.reply_html(
        f"✓ Alarm set\n\n{format_standalone_alarm(alarm, alarms.next_ring(alarm, now), now)}"
        f"\n\n{format_report(report)}",
        reply_markup=alarm_actions_keyboard(alarm),
    )


async def alarms_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alarms command - each plain alarm with its next ring."""
    if not update.message or not await _require_owner(update, context):
        return

    repo: Repository = context.bot_data["repo"]
    alarms: AlarmService = context.bot_data["alarms"]

    records = await repo.list_standalone_alarms()
    if not records:
        await update.message.reply_text("You have no alarms. Add one with /alarm.")
        return

    now = local_now(alarms.timezone)
    await update.message.reply_html(f"<b>Your Alarms ({len(records)})</b>")

    for alarm in records:
        await update.message.reply_html(
            format_standalone_alarm(alarm, alarms.next_ring(alarm, now), now),
            reply_markup=alarm_actions_keyboard(alarm),
        )


async def testalarm_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /testalarm command - ring once right away to check delivery."""
    if not update.message or not await _require_owner(update, context):
        return

    alarms: AlarmService = context.bot_data["alarms"]

    try:
        item, _ = await alarms.schedule_test_alarm()
    except RegistrationError as e:
        await update.message.reply_text(f"❌ {e.reason}")
        return

    await update.message.reply_text(
        f"🧪 {item.title} set. It rings on the next heartbeat "
        f"(within {Config.HEARTBEAT_INTERVAL}s)."
    )
