"""SQLite-backed alarm timer.

Registered alarms live in the alarms table with their next firing instant.
The heartbeat polls for due alarms; weekly alarms then advance by a week and
one-time alarms are dropped.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List
from zoneinfo import ZoneInfo

from routinely.db.models import AlarmItem, ScheduledAlarm, TimeOfDay, Weekday
from routinely.db.repository import Repository
from routinely.engine.recurrence import next_occurrence
from routinely.errors import RegistrationError
from routinely.utils.constants import DEFAULT_TIMEZONE
from routinely.utils.time_utils import from_utc, local_now, to_utc

logger = logging.getLogger(__name__)

WEEK = timedelta(days=7)


class SqliteAlarmTimer:
    """AlarmTimer implementation over the repository's alarms table."""

    def __init__(
        self,
        repo: Repository,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[], datetime] | None = None,
    ):
        self.repo = repo
        self.timezone = timezone
        self._clock = clock or (lambda: local_now(timezone))

    def now(self) -> datetime:
        return self._clock().astimezone(ZoneInfo(self.timezone))

    async def register_once(self, item: AlarmItem, at: datetime) -> None:
        """Fire once at an absolute instant."""
        if not item.is_enabled:
            raise RegistrationError(item.id, "alarm is disabled")
        if at <= self.now():
            raise RegistrationError(item.id, f"target time {at.isoformat()} has passed")

        await self.repo.upsert_alarm(
            ScheduledAlarm(item=item, next_fire_at=to_utc(at, self.timezone))
        )
        logger.info(f"Registered one-time alarm {item.id} for {at.isoformat()}")

    async def register_weekly(
        self, item: AlarmItem, weekday: Weekday, time_of_day: TimeOfDay
    ) -> None:
        """Fire every week, starting at the next weekday/time strictly after now."""
        if not item.is_enabled:
            raise RegistrationError(item.id, "alarm is disabled")

        first = next_occurrence(time_of_day, [weekday], self.now())
        await self.repo.upsert_alarm(
            ScheduledAlarm(item=item, next_fire_at=to_utc(first, self.timezone))
        )
        logger.info(
            f"Registered weekly alarm {item.id} on {weekday.token} at {time_of_day}, "
            f"first {first.isoformat()}"
        )

    async def cancel(self, alarm_id: str) -> None:
        await self.repo.delete_alarm(alarm_id)
        logger.debug(f"Cancelled alarm {alarm_id}")

    async def list_alarms(self) -> List[AlarmItem]:
        return [alarm.item for alarm in await self.repo.list_alarms()]

    async def due_alarms(self, now: datetime | None = None) -> List[ScheduledAlarm]:
        """Alarms whose firing instant is at or before now."""
        if now is None:
            now = self.now()
        return await self.repo.get_due_alarms(to_utc(now, self.timezone).replace(microsecond=0))

    async def mark_fired(self, alarm: ScheduledAlarm, now: datetime | None = None) -> None:
        """Consume a fired alarm.

        Weekly alarms move forward in whole weeks until they are in the
        future again (several weeks if the process was down); one-time alarms
        are removed.
        """
        if now is None:
            now = self.now()

        if not alarm.item.is_repeating:
            await self.repo.delete_alarm(alarm.id)
            return

        # Step in local wall-clock time so a DST change keeps the alarm's hour
        now_utc = to_utc(now, self.timezone)
        next_fire_at = from_utc(alarm.next_fire_at, self.timezone)
        while to_utc(next_fire_at, self.timezone) <= now_utc:
            next_fire_at += WEEK
        await self.repo.update_alarm_fire_time(alarm.id, to_utc(next_fire_at, self.timezone))
