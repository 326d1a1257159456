from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fakes import SUNDAY_NOON, UTC, RecordingNotifier

from routinely.db.models import (
    AlarmItem,
    Duration,
    Routine,
    ScheduleInstance,
    StandaloneAlarm,
    Step,
    TimeOfDay,
    Weekday,
)
from routinely.engine.alarm_engine import heartbeat, startup_recovery
from routinely.engine.alarm_ids import encode_alarm_id, encode_standalone_alarm_id
from routinely.engine.alarm_timer import SqliteAlarmTimer
from routinely.engine.alarms import AlarmService
from routinely.engine.scheduler import RoutineScheduler
from routinely.errors import RegistrationError

pytestmark = pytest.mark.anyio


@pytest.fixture
def db_scheduler(sqlite_timer, repo) -> RoutineScheduler:
    return RoutineScheduler(sqlite_timer, repo, repo, "UTC")


@pytest.fixture
def db_alarms(sqlite_timer, repo) -> AlarmService:
    return AlarmService(sqlite_timer, repo, "UTC")


@pytest.fixture
async def stretch(anyio_backend, db_scheduler) -> ScheduleInstance:
    """A two-step routine (5m, 10m) scheduled Mondays at 07:00."""
    routine = await db_scheduler.create_routine(
        Routine.create("Stretch", [Step.create("Neck", Duration(5)), Step.create("Back", Duration(10))])
    )
    instance = ScheduleInstance.create(routine.id, "Stretch", TimeOfDay(7, 0), {Weekday.MONDAY})
    await db_scheduler.create_instance(instance)
    return instance


# SqliteAlarmTimer


async def test_register_weekly_targets_next_matching_day(sqlite_timer, repo):
    item = AlarmItem(id="routine_a_step_0_monday", time=TimeOfDay(7, 0), title="Gym", weekday=Weekday.MONDAY)

    await sqlite_timer.register_weekly(item, Weekday.MONDAY, TimeOfDay(7, 0))

    stored = await repo.get_alarm(item.id)
    assert stored.item == item
    assert stored.next_fire_at == datetime(2026, 3, 16, 7, 0, tzinfo=UTC)


async def test_register_weekly_same_day_already_passed(sqlite_timer, repo):
    """Sunday 09:00 registered at Sunday noon first fires a week later."""
    item = AlarmItem(id="routine_a_step_0_sunday", time=TimeOfDay(9, 0), title="Gym")

    await sqlite_timer.register_weekly(item, Weekday.SUNDAY, TimeOfDay(9, 0))

    stored = await repo.get_alarm(item.id)
    assert stored.next_fire_at == datetime(2026, 3, 22, 9, 0, tzinfo=UTC)


async def test_register_once_rejects_past_target(sqlite_timer):
    item = AlarmItem(id="routine_a_step_0_onetime", time=TimeOfDay(7, 0), title="Gym", is_repeating=False)

    with pytest.raises(RegistrationError) as exc_info:
        await sqlite_timer.register_once(item, datetime(2026, 3, 15, 7, 0, tzinfo=UTC))

    assert exc_info.value.alarm_id == item.id
    assert await sqlite_timer.list_alarms() == []


async def test_register_rejects_disabled_item(sqlite_timer):
    item = AlarmItem(id="routine_a_step_0_monday", time=TimeOfDay(7, 0), title="Gym", is_enabled=False)

    with pytest.raises(RegistrationError):
        await sqlite_timer.register_weekly(item, Weekday.MONDAY, TimeOfDay(7, 0))


async def test_reregistering_same_id_replaces(sqlite_timer):
    item = AlarmItem(id="routine_a_step_0_monday", time=TimeOfDay(7, 0), title="Gym")

    await sqlite_timer.register_weekly(item, Weekday.MONDAY, TimeOfDay(7, 0))
    await sqlite_timer.register_weekly(item, Weekday.MONDAY, TimeOfDay(7, 0))

    assert [alarm.id for alarm in await sqlite_timer.list_alarms()] == [item.id]


async def test_mark_fired_advances_weekly_and_drops_one_time(sqlite_timer, repo, clock):
    weekly = AlarmItem(id="routine_a_step_0_monday", time=TimeOfDay(7, 0), title="Gym")
    once = AlarmItem(id="routine_b_step_0_onetime", time=TimeOfDay(7, 0), title="Once", is_repeating=False)
    await sqlite_timer.register_weekly(weekly, Weekday.MONDAY, TimeOfDay(7, 0))
    await sqlite_timer.register_once(once, datetime(2026, 3, 16, 7, 0, tzinfo=UTC))

    clock.now = datetime(2026, 3, 16, 7, 0, 20, tzinfo=UTC)
    due = await sqlite_timer.due_alarms()
    assert {alarm.id for alarm in due} == {weekly.id, once.id}

    for alarm in due:
        await sqlite_timer.mark_fired(alarm)

    assert await repo.get_alarm(once.id) is None
    stored = await repo.get_alarm(weekly.id)
    assert stored.next_fire_at == datetime(2026, 3, 23, 7, 0, tzinfo=UTC)
    assert await sqlite_timer.due_alarms() == []


async def test_mark_fired_keeps_wall_clock_across_dst(repo):
    tz = ZoneInfo("America/New_York")
    timer = SqliteAlarmTimer(repo, "America/New_York", clock=lambda: datetime(2026, 3, 2, 12, 0, tzinfo=tz))
    item = AlarmItem(id="routine_a_step_0_friday", time=TimeOfDay(7, 0), title="Gym")
    await timer.register_weekly(item, Weekday.FRIDAY, TimeOfDay(7, 0))

    alarm = await repo.get_alarm(item.id)
    await timer.mark_fired(alarm, datetime(2026, 3, 6, 7, 1, tzinfo=tz))

    # DST starts on 2026-03-08, so the UTC instant moves but 07:00 local stays
    stored = await repo.get_alarm(item.id)
    assert stored.next_fire_at.astimezone(tz) == datetime(2026, 3, 13, 7, 0, tzinfo=tz)


# Heartbeat


async def test_nothing_due(sqlite_timer, db_scheduler, stretch):
    notifier = RecordingNotifier()

    fired = await heartbeat(notifier, sqlite_timer, db_scheduler, SUNDAY_NOON)

    assert fired == 0
    assert notifier.delivered == []


async def test_fires_each_step_and_rolls_forward(sqlite_timer, db_scheduler, repo, clock, stretch):
    """Step alarms fire in turn and the last one re-registers next week."""
    notifier = RecordingNotifier()
    first_id = encode_alarm_id(stretch.id, 0, Weekday.MONDAY)
    last_id = encode_alarm_id(stretch.id, 1, Weekday.MONDAY)

    clock.now = datetime(2026, 3, 16, 7, 0, 30, tzinfo=UTC)
    fired = await heartbeat(notifier, sqlite_timer, db_scheduler, clock.now)

    assert fired == 1
    alarm, info = notifier.delivered[0]
    assert alarm.id == first_id
    assert info.step_index == 0
    assert (await repo.get_alarm(first_id)).next_fire_at == datetime(2026, 3, 23, 7, 0, tzinfo=UTC)

    clock.now = datetime(2026, 3, 16, 7, 5, 30, tzinfo=UTC)
    fired = await heartbeat(notifier, sqlite_timer, db_scheduler, clock.now)

    assert fired == 1
    assert notifier.delivered[1][0].id == last_id
    # The terminal step re-registered the whole schedule for next week
    assert (await repo.get_alarm(last_id)).next_fire_at == datetime(2026, 3, 23, 7, 5, tzinfo=UTC)
    assert len(await sqlite_timer.list_alarms()) == 2


async def test_failed_delivery_stays_due(sqlite_timer, db_scheduler, clock, stretch):
    clock.now = datetime(2026, 3, 16, 7, 0, 30, tzinfo=UTC)

    fired = await heartbeat(RecordingNotifier(fail=True), sqlite_timer, db_scheduler, clock.now)

    assert fired == 0
    due = await sqlite_timer.due_alarms()
    assert [alarm.id for alarm in due] == [encode_alarm_id(stretch.id, 0, Weekday.MONDAY)]


async def test_startup_recovery_reregisters_after_downtime(db_scheduler, repo, clock, stretch):
    await repo.delete_alarm(encode_alarm_id(stretch.id, 1, Weekday.MONDAY))
    clock.now = datetime(2026, 3, 17, 9, 0, tzinfo=UTC)

    await startup_recovery(db_scheduler)

    alarms = {alarm.id: alarm for alarm in await repo.list_alarms()}
    assert len(alarms) == 2
    assert alarms[encode_alarm_id(stretch.id, 0, Weekday.MONDAY)].next_fire_at == datetime(
        2026, 3, 23, 7, 0, tzinfo=UTC
    )


# Plain alarms through the heartbeat


async def test_plain_alarm_is_delivered_without_routine_info(sqlite_timer, db_scheduler, db_alarms, repo, clock):
    """A weekly plain alarm reaches the notifier with info None and rolls a week on."""
    notifier = RecordingNotifier()
    alarm = StandaloneAlarm.create(TimeOfDay(6, 30), "Wake up", {Weekday.MONDAY})
    await db_alarms.add_alarm(alarm)
    timer_id = encode_standalone_alarm_id(alarm.id, Weekday.MONDAY)

    clock.now = datetime(2026, 3, 16, 6, 30, 10, tzinfo=UTC)
    fired = await heartbeat(notifier, sqlite_timer, db_scheduler, clock.now, alarms=db_alarms)

    assert fired == 1
    delivered, info = notifier.delivered[0]
    assert delivered.id == timer_id
    assert delivered.title == "Wake up"
    assert info is None
    assert (await repo.get_alarm(timer_id)).next_fire_at == datetime(2026, 3, 23, 6, 30, tzinfo=UTC)
    assert (await repo.get_standalone_alarm(alarm.id)).is_enabled


async def test_one_time_plain_alarm_turns_itself_off(sqlite_timer, db_scheduler, db_alarms, repo, clock):
    notifier = RecordingNotifier()
    alarm = StandaloneAlarm.create(TimeOfDay(13, 0), "Lunch")
    await db_alarms.add_alarm(alarm, now=clock.now)

    clock.now = datetime(2026, 3, 15, 13, 0, 5, tzinfo=UTC)
    fired = await heartbeat(notifier, sqlite_timer, db_scheduler, clock.now, alarms=db_alarms)

    assert fired == 1
    assert await repo.get_alarm(encode_standalone_alarm_id(alarm.id, None)) is None
    assert not (await repo.get_standalone_alarm(alarm.id)).is_enabled


async def test_test_alarm_rings_on_next_heartbeat(sqlite_timer, db_scheduler, db_alarms, repo, clock):
    """The test alarm fires once and leaves nothing behind."""
    notifier = RecordingNotifier()

    item, at = await db_alarms.schedule_test_alarm(now=clock.now)

    clock.now = at
    fired = await heartbeat(notifier, sqlite_timer, db_scheduler, clock.now, alarms=db_alarms)

    assert fired == 1
    assert notifier.delivered[0][0].title == "Test alarm (TEST)"
    assert notifier.delivered[0][1] is None
    assert await repo.list_alarms() == []
    assert await repo.list_standalone_alarms() == []


async def test_startup_recovery_restores_plain_alarms(db_scheduler, db_alarms, repo, clock):
    alarm = StandaloneAlarm.create(TimeOfDay(6, 30), "Wake up", {Weekday.TUESDAY})
    await repo.save_standalone_alarm(alarm)

    await startup_recovery(db_scheduler, db_alarms)

    stored = await repo.get_alarm(encode_standalone_alarm_id(alarm.id, Weekday.TUESDAY))
    assert stored.next_fire_at == datetime(2026, 3, 17, 6, 30, tzinfo=UTC)
