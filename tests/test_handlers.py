"""Command and button handlers against a real database and mocked Telegram updates."""

from unittest.mock import AsyncMock, Mock

import pytest

from routinely.bot.callbacks import callback_router
from routinely.bot.handlers import (
    alarm_command,
    alarms_command,
    editschedule_command,
    testalarm_command,
)
from routinely.db.models import ScheduleInstance, StandaloneAlarm, TimeOfDay, Weekday
from routinely.engine.alarm_ids import decode_alarm_id, decode_standalone_alarm_id
from routinely.engine.alarms import AlarmService
from routinely.engine.scheduler import RoutineScheduler
from routinely.utils.constants import OWNER_CHAT_KEY, WEEKDAYS

from fakes import make_routine

pytestmark = pytest.mark.anyio

OWNER = 42


@pytest.fixture
async def bot_data(anyio_backend, repo, sqlite_timer):
    await repo.set_setting(OWNER_CHAT_KEY, str(OWNER))
    return {
        "repo": repo,
        "timer": sqlite_timer,
        "scheduler": RoutineScheduler(sqlite_timer, repo, repo, "UTC"),
        "alarms": AlarmService(sqlite_timer, repo, "UTC"),
    }


def make_update(chat_id: int = OWNER) -> Mock:
    update = Mock()
    update.effective_chat.id = chat_id
    update.message.reply_text = AsyncMock()
    update.message.reply_html = AsyncMock()
    return update


def make_callback(data: str, chat_id: int = OWNER) -> Mock:
    update = Mock()
    update.effective_chat.id = chat_id
    update.callback_query.data = data
    update.callback_query.answer = AsyncMock()
    update.callback_query.message.edit_text = AsyncMock()
    update.callback_query.message.edit_reply_markup = AsyncMock()
    return update


def make_context(bot_data: dict, *args: str) -> Mock:
    return Mock(bot_data=bot_data, args=list(args))


async def timer_ids(repo) -> list[str]:
    return [alarm.id for alarm in await repo.list_alarms()]


# /editschedule


async def test_editschedule_moves_schedule(bot_data, repo):
    """New time and days replace the schedule's registered alarms."""
    scheduler = bot_data["scheduler"]
    routine = await scheduler.create_routine(make_routine())
    instance = ScheduleInstance.create(routine.id, "Run", TimeOfDay(7, 0), {Weekday.MONDAY})
    await scheduler.create_instance(instance)
    update = make_update()

    await editschedule_command(update, make_context(bot_data, instance.id[:8], "08:15", "fri"))

    stored = await repo.get_instance(instance.id)
    assert stored.start_time == TimeOfDay(8, 15)
    assert stored.days_of_week == {Weekday.FRIDAY}
    ids = await timer_ids(repo)
    assert len(ids) == 3
    assert {decode_alarm_id(alarm_id).day_of_week for alarm_id in ids} == {Weekday.FRIDAY}
    assert "Schedule updated" in update.message.reply_html.call_args.args[0]


async def test_editschedule_unknown_schedule(bot_data):
    update = make_update()

    await editschedule_command(update, make_context(bot_data, "nope", "08:00"))

    update.message.reply_text.assert_awaited_once_with("Schedule not found.")


async def test_editschedule_bad_time_changes_nothing(bot_data, repo):
    scheduler = bot_data["scheduler"]
    routine = await scheduler.create_routine(make_routine())
    instance = ScheduleInstance.create(routine.id, "Run", TimeOfDay(7, 0), {Weekday.MONDAY})
    await scheduler.create_instance(instance)
    update = make_update()

    await editschedule_command(update, make_context(bot_data, instance.id, "25:99"))

    assert update.message.reply_text.call_args.args[0].startswith("❌")
    assert (await repo.get_instance(instance.id)).start_time == TimeOfDay(7, 0)


# /alarm, /alarms, /testalarm


async def test_alarm_command_registers_plain_alarm(bot_data, repo):
    update = make_update()

    await alarm_command(update, make_context(bot_data, "06:30", "weekdays"))

    (alarm,) = await repo.list_standalone_alarms()
    assert alarm.time == TimeOfDay(6, 30)
    assert alarm.days_of_week == WEEKDAYS
    ids = await timer_ids(repo)
    assert len(ids) == 5
    assert {decode_standalone_alarm_id(alarm_id) for alarm_id in ids} == {alarm.id}
    assert "Alarm set" in update.message.reply_html.call_args.args[0]


async def test_alarm_command_without_args_shows_usage(bot_data, repo):
    update = make_update()

    await alarm_command(update, make_context(bot_data))

    assert "Usage" in update.message.reply_html.call_args.args[0]
    assert await repo.list_standalone_alarms() == []


async def test_alarms_command_lists_each_alarm(bot_data, repo):
    await repo.save_standalone_alarm(StandaloneAlarm.create(TimeOfDay(6, 30), "Wake up", {Weekday.MONDAY}))
    await repo.save_standalone_alarm(StandaloneAlarm.create(TimeOfDay(21, 0), "Bed"))
    update = make_update()

    await alarms_command(update, make_context(bot_data))

    texts = [call.args[0] for call in update.message.reply_html.call_args_list]
    assert texts[0] == "<b>Your Alarms (2)</b>"
    assert "Wake up" in texts[1]
    assert "Bed" in texts[2]


async def test_testalarm_registers_one_shot(bot_data, repo):
    update = make_update()

    await testalarm_command(update, make_context(bot_data))

    (alarm,) = await repo.list_alarms()
    assert alarm.id.startswith("test_")
    assert not alarm.item.is_repeating
    assert await repo.list_standalone_alarms() == []
    assert "Test alarm (TEST)" in update.message.reply_text.call_args.args[0]


async def test_commands_ignore_other_chats(bot_data, repo):
    update = make_update(chat_id=7)

    await alarm_command(update, make_context(bot_data, "06:30"))

    update.message.reply_text.assert_awaited_once_with("Please /start the bot first.")
    assert await repo.list_standalone_alarms() == []


# Alarm buttons


async def test_alarm_toggle_button(bot_data, repo):
    alarm = StandaloneAlarm.create(TimeOfDay(6, 30), "Wake up", {Weekday.MONDAY})
    await bot_data["alarms"].add_alarm(alarm)
    update = make_callback(f"alarm_toggle:{alarm.id}")

    await callback_router(update, make_context(bot_data))

    assert not (await repo.get_standalone_alarm(alarm.id)).is_enabled
    assert await timer_ids(repo) == []
    update.callback_query.message.edit_text.assert_awaited_once()


async def test_alarm_delete_asks_then_deletes(bot_data, repo):
    alarm = StandaloneAlarm.create(TimeOfDay(6, 30), "Wake up", {Weekday.MONDAY})
    await bot_data["alarms"].add_alarm(alarm)

    ask = make_callback(f"alarm_delete:{alarm.id}")
    await callback_router(ask, make_context(bot_data))

    ask.callback_query.message.edit_reply_markup.assert_awaited_once()
    assert await repo.get_standalone_alarm(alarm.id) is not None

    confirm = make_callback(f"confirm:delete_alarm:{alarm.id}")
    await callback_router(confirm, make_context(bot_data))

    assert await repo.get_standalone_alarm(alarm.id) is None
    assert await timer_ids(repo) == []
    confirm.callback_query.answer.assert_awaited_once_with("Deleted")
