"""Callback query handlers for inline buttons."""

import logging
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from routinely.bot.formatters import format_report, format_schedule, format_standalone_alarm
from routinely.bot.handlers import is_owner
from routinely.bot.keyboards import (
    alarm_actions_keyboard,
    confirm_cancel_keyboard,
    schedule_actions_keyboard,
)
from routinely.db.repository import Repository
from routinely.engine.alarms import AlarmService
from routinely.engine.recurrence import next_fire
from routinely.engine.scheduler import RoutineScheduler
from routinely.errors import NotFoundError
from routinely.utils.time_utils import local_now

logger = logging.getLogger(__name__)


async def handle_toggle_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, instance_id: str
) -> None:
    """Handle 'Enable'/'Disable' button press."""
    query = update.callback_query
    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    instance = await repo.get_instance(instance_id)
    if not instance:
        await query.answer("Schedule not found.")
        return

    try:
        report = await scheduler.set_enabled(instance_id, not instance.is_enabled)
    except NotFoundError:
        await query.answer("Schedule not found.")
        return

    updated = await repo.get_instance(instance_id)
    routine = await repo.get_routine(updated.routine_id) if updated else None

    if updated and query.message:
        now = local_now(scheduler.timezone)
        next_at = next_fire(updated, routine, now) if routine else None
        await query.message.edit_text(
            format_schedule(updated, routine, next_at, now),
            parse_mode="HTML",
            reply_markup=schedule_actions_keyboard(updated),
        )

    await query.answer(format_report(report).split("\n")[0])


async def handle_delete_schedule(
    update: Update, context: ContextTypes.DEFAULT_TYPE, instance_id: str
) -> None:
    """Delete a schedule after confirmation."""
    query = update.callback_query
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    try:
        cancelled = await scheduler.delete_instance(instance_id)
    except NotFoundError:
        await query.answer("Schedule not found.")
        return

    if query.message:
        await query.message.edit_text(f"🗑 Schedule deleted ({len(cancelled)} reminders cancelled)")
    await query.answer("Deleted")


async def handle_delete_routine(
    update: Update, context: ContextTypes.DEFAULT_TYPE, routine_id: str
) -> None:
    """Delete a routine and its schedules after confirmation."""
    query = update.callback_query
    repo: Repository = context.bot_data["repo"]
    scheduler: RoutineScheduler = context.bot_data["scheduler"]

    routine = await repo.get_routine(routine_id)
    if not routine:
        await query.answer("Routine not found.")
        return

    try:
        deleted = await scheduler.delete_routine(routine_id)
    except NotFoundError:
        await query.answer("Routine not found.")
        return

    if query.message:
        await query.message.edit_text(
            f"🗑 Deleted <b>{escape(routine.name)}</b> and {len(deleted)} schedule(s)",
            parse_mode="HTML",
        )
    await query.answer("Deleted")


async def handle_alarm_toggle_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, alarm_id: str
) -> None:
    """Handle 'Turn on'/'Turn off' on a plain alarm."""
    query = update.callback_query
    repo: Repository = context.bot_data["repo"]
    alarms: AlarmService = context.bot_data["alarms"]

    alarm = await repo.get_standalone_alarm(alarm_id)
    if not alarm:
        await query.answer("Alarm not found.")
        return

    try:
        report = await alarms.set_enabled(alarm_id, not alarm.is_enabled)
    except NotFoundError:
        await query.answer("Alarm not found.")
        return

    updated = await repo.get_standalone_alarm(alarm_id)
    if updated and query.message:
        now = local_now(alarms.timezone)
        await query.message.edit_text(
            format_standalone_alarm(updated, alarms.next_ring(updated, now), now),
            parse_mode="HTML",
            reply_markup=alarm_actions_keyboard(updated),
        )

    await query.answer(format_report(report).split("\n")[0])


async def handle_delete_alarm(
    update: Update, context: ContextTypes.DEFAULT_TYPE, alarm_id: str
) -> None:
    """Delete a plain alarm after confirmation."""
    query = update.callback_query
    alarms: AlarmService = context.bot_data["alarms"]

    try:
        cancelled = await alarms.remove_alarm(alarm_id)
    except NotFoundError:
        await query.answer("Alarm not found.")
        return

    if query.message:
        await query.message.edit_text(f"🗑 Alarm deleted ({len(cancelled)} reminders cancelled)")
    await query.answer("Deleted")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to appropriate handlers."""
    if not update.callback_query:
        return

    query = update.callback_query
    data = query.data

    if not data:
        return

    if not await is_owner(update, context):
        await query.answer("Please /start the bot first.")
        return

    # Parse callback data
    parts = data.split(":")

    if parts[0] == "toggle":
        await handle_toggle_callback(update, context, parts[1])

    elif parts[0] == "delete_confirm":
        if query.message:
            await query.message.edit_reply_markup(
                reply_markup=confirm_cancel_keyboard(f"delete_schedule:{parts[1]}")
            )
        await query.answer("Delete this schedule?")

    elif parts[0] == "confirm" and parts[1] == "delete_schedule":
        await handle_delete_schedule(update, context, parts[2])

    elif parts[0] == "confirm" and parts[1] == "delete_routine":
        await handle_delete_routine(update, context, parts[2])

    elif parts[0] == "alarm_toggle":
        await handle_alarm_toggle_callback(update, context, parts[1])

    elif parts[0] == "alarm_delete":
        if query.message:
            await query.message.edit_reply_markup(
                reply_markup=confirm_cancel_keyboard(f"delete_alarm:{parts[1]}")
            )
        await query.answer("Delete this alarm?")

    elif parts[0] == "confirm" and parts[1] == "delete_alarm":
        await handle_delete_alarm(update, context, parts[2])

    elif parts[0] == "cancel":
        if query.message:
            await query.message.delete()
        await query.answer("Cancelled")

    else:
        await query.answer("Unknown action")
