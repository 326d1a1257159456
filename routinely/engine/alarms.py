"""Plain alarms that ring on their own, outside any routine.

They share the alarm timer with routine steps but use their own id scheme,
so the routine scheduler never decodes or cancels them. Changes go through
the same cancel-then-register cycle as schedules.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from routinely.db.models import AlarmItem, ScheduleState, StandaloneAlarm, TimeOfDay, new_id
from routinely.engine.alarm_ids import (
    decode_standalone_alarm_id,
    encode_standalone_alarm_id,
    standalone_alarm_prefix,
)
from routinely.engine.interfaces import AlarmStore, AlarmTimer
from routinely.engine.recurrence import next_occurrence
from routinely.engine.scheduler import RegistrationResult, ScheduleReport
from routinely.engine.validation import validate_alarm
from routinely.errors import NotFoundError, RegistrationError
from routinely.utils.constants import (
    DEFAULT_TIMEZONE,
    TEST_ALARM_DELAY_SECONDS,
    TEST_ALARM_PREFIX,
)
from routinely.utils.time_utils import local_now

logger = logging.getLogger(__name__)


def expand_alarm(alarm: StandaloneAlarm) -> list[AlarmItem]:
    """One timer registration per selected day, or a single one-time item."""
    if not alarm.days_of_week:
        return [
            AlarmItem(
                id=encode_standalone_alarm_id(alarm.id, None),
                time=alarm.time,
                title=alarm.title,
                is_repeating=False,
            )
        ]

    return [
        AlarmItem(
            id=encode_standalone_alarm_id(alarm.id, day),
            time=alarm.time,
            title=alarm.title,
            weekday=day,
        )
        for day in alarm.sorted_days()
    ]


class AlarmService:
    """Adds, toggles and removes plain alarms and keeps the timer in step."""

    def __init__(
        self,
        timer: AlarmTimer,
        store: AlarmStore,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.timer = timer
        self.store = store
        self.timezone = timezone
        self._lock = asyncio.Lock()

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else local_now(self.timezone)

    async def add_alarm(
        self, alarm: StandaloneAlarm, now: datetime | None = None
    ) -> ScheduleReport:
        async with self._lock:
            validate_alarm(alarm, await self.store.list_standalone_alarms())
            await self.store.save_standalone_alarm(alarm)
            logger.info(f"Created alarm {alarm.id} at {alarm.time}")
            return await self._reschedule(alarm, self._now(now))

    async def set_enabled(
        self, alarm_id: str, enabled: bool, now: datetime | None = None
    ) -> ScheduleReport:
        async with self._lock:
            alarm = await self.store.get_standalone_alarm(alarm_id)
            if alarm is None:
                raise NotFoundError(f"Alarm {alarm_id} not found")

            updated = alarm.with_enabled(enabled)
            await self.store.save_standalone_alarm(updated)
            return await self._reschedule(updated, self._now(now))

    async def remove_alarm(self, alarm_id: str) -> list[str]:
        """Cancel an alarm's registrations and delete it.

        Returns:
            Ids of the cancelled registrations
        """
        async with self._lock:
            if await self.store.get_standalone_alarm(alarm_id) is None:
                raise NotFoundError(f"Alarm {alarm_id} not found")
            cancelled = await self._cancel_matching(alarm_id)
            await self.store.delete_standalone_alarm(alarm_id)

        logger.info(f"Deleted alarm {alarm_id}")
        return cancelled

    async def handle_fired(self, timer_id: str) -> StandaloneAlarm | None:
        """A one-time alarm that has rung is switched off, so the list shows it idle."""
        alarm_id = decode_standalone_alarm_id(timer_id)
        if alarm_id is None:
            return None

        async with self._lock:
            alarm = await self.store.get_standalone_alarm(alarm_id)
            if alarm is None:
                logger.warning(f"Fired alarm {timer_id} belongs to unknown alarm")
                return None
            if alarm.state is ScheduleState.ONE_TIME:
                alarm = alarm.with_enabled(False)
                await self.store.save_standalone_alarm(alarm)
                logger.info(f"One-time alarm {alarm_id} rang, now disabled")
        return alarm

    async def restore_all(self, now: datetime | None = None) -> dict[str, ScheduleReport]:
        """Re-register every enabled alarm and drop registrations of deleted ones."""
        now = self._now(now)
        reports: dict[str, ScheduleReport] = {}

        async with self._lock:
            alarms = await self.store.list_standalone_alarms()
            for alarm in alarms:
                report = await self._reschedule(alarm, now)
                if alarm.is_enabled:
                    reports[alarm.id] = report

            known = {alarm.id for alarm in alarms}
            orphans = 0
            for item in await self.timer.list_alarms():
                alarm_id = decode_standalone_alarm_id(item.id)
                if alarm_id is not None and alarm_id not in known:
                    await self.timer.cancel(item.id)
                    orphans += 1

        if orphans:
            logger.info(f"Cancelled {orphans} orphaned plain alarms")
        return reports

    async def schedule_test_alarm(
        self, title: str = "Test alarm", now: datetime | None = None
    ) -> tuple[AlarmItem, datetime]:
        """Ring once a couple of seconds from now. Nothing is saved besides the registration.

        Raises:
            RegistrationError: if the timer refuses it
        """
        at = self._now(now) + timedelta(seconds=TEST_ALARM_DELAY_SECONDS)
        item = AlarmItem(
            id=f"{TEST_ALARM_PREFIX}{new_id()}",
            time=TimeOfDay.from_time(at.time()),
            title=f"{title} (TEST)",
            is_repeating=False,
        )
        await self.timer.register_once(item, at)
        logger.info(f"Test alarm {item.id} set for {at.isoformat()}")
        return item, at

    def next_ring(self, alarm: StandaloneAlarm, now: datetime) -> datetime | None:
        """When the alarm will ring next, for display."""
        if not alarm.is_enabled:
            return None
        return next_occurrence(alarm.time, alarm.days_of_week, now)

    async def _reschedule(self, alarm: StandaloneAlarm, now: datetime) -> ScheduleReport:
        report = ScheduleReport(instance_id=alarm.id, state=alarm.state)
        report.cancelled = await self._cancel_matching(alarm.id)

        if alarm.state is ScheduleState.DISABLED:
            return report

        for item in expand_alarm(alarm):
            try:
                if item.is_repeating:
                    await self.timer.register_weekly(item, item.weekday, item.time)  # type: ignore[arg-type]
                else:
                    await self.timer.register_once(item, next_occurrence(item.time, [], now))
            except RegistrationError as e:
                logger.error(f"Failed to register alarm {item.id}: {e.reason}")
                report.results.append(RegistrationResult(item=item, error=e))
                continue
            report.results.append(RegistrationResult(item=item))

        logger.info(f"Alarm {alarm.id}: {report.summary()}")
        return report

    async def _cancel_matching(self, alarm_id: str) -> list[str]:
        prefix = standalone_alarm_prefix(alarm_id)
        cancelled = []
        for item in await self.timer.list_alarms():
            if item.id.startswith(prefix) and decode_standalone_alarm_id(item.id) == alarm_id:
                await self.timer.cancel(item.id)
                cancelled.append(item.id)
        return cancelled

