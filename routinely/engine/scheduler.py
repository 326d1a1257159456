"""Reconciliation controller: keeps registered alarms in step with routines and schedules.

Every change goes through cancel-then-recreate. Alarms are never patched in
place: the old set for a schedule is found by decoding every registered id,
cancelled, and the schedule is expanded and registered again.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from routinely.db.models import (
    AlarmItem,
    Routine,
    RoutineAlarmInfo,
    ScheduleInstance,
    ScheduleState,
)
from routinely.engine.alarm_ids import decode_alarm_id, instance_alarm_prefix
from routinely.engine.expansion import expand_instance, plan_one_time_targets
from routinely.engine.interfaces import AlarmTimer, InstanceStore, RoutineStore
from routinely.engine.validation import validate_instance, validate_routine
from routinely.errors import NotFoundError, RegistrationError, ValidationError
from routinely.utils.constants import DEFAULT_TIMEZONE
from routinely.utils.time_utils import local_now

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    """Outcome of registering one alarm."""

    item: AlarmItem
    error: RegistrationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ScheduleReport:
    """Per-item outcome of one reschedule. Partial success is normal."""

    instance_id: str
    state: ScheduleState
    cancelled: list[str] = field(default_factory=list)
    results: list[RegistrationResult] = field(default_factory=list)
    skipped: str | None = None  # why nothing was registered

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def scheduled_count(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failures(self) -> list[RegistrationResult]:
        return [result for result in self.results if not result.ok]

    @property
    def ok(self) -> bool:
        return self.skipped is None and not self.failures

    @property
    def registered_ids(self) -> list[str]:
        return [result.item.id for result in self.results if result.ok]

    def summary(self) -> str:
        if self.skipped:
            return f"Not scheduled: {self.skipped}"
        if self.state is ScheduleState.DISABLED:
            return f"Disabled ({len(self.cancelled)} reminders cancelled)"
        return f"{self.scheduled_count} of {self.total} reminders scheduled"


@dataclass
class FiredAlarm:
    """What the scheduler made of a fired alarm."""

    alarm_id: str
    info: RoutineAlarmInfo | None
    is_terminal: bool = False
    rescheduled: ScheduleReport | None = None


class RoutineScheduler:
    """Orchestrates expansion, registration and cancellation.

    Calls touching the same schedule are serialized with a per-schedule lock,
    so a reschedule always runs to completion before the next one starts.
    """

    def __init__(
        self,
        timer: AlarmTimer,
        routines: RoutineStore,
        instances: InstanceStore,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.timer = timer
        self.routines = routines
        self.instances = instances
        self.timezone = timezone
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, instance_id: str) -> asyncio.Lock:
        return self._locks.setdefault(instance_id, asyncio.Lock())

    # Reconciliation transitions

    async def schedule_instance(
        self,
        instance: ScheduleInstance,
        routine: Routine | None = None,
        now: datetime | None = None,
    ) -> ScheduleReport:
        """Cancel the schedule's alarms, then register a fresh expansion.

        A disabled schedule ends up with no alarms. A schedule whose routine
        is gone is cancelled and reported as skipped.
        """
        async with self._lock(instance.id):
            return await self._reschedule(instance, routine, now)

    async def cancel_instance(self, instance_id: str) -> list[str]:
        """Cancel every registered alarm belonging to a schedule."""
        async with self._lock(instance_id):
            return await self._cancel_matching(instance_id)

    async def handle_fired(self, alarm_id: str, now: datetime | None = None) -> FiredAlarm:
        """React to a fired alarm.

        Only the terminal step of an enabled recurring schedule triggers a
        reschedule, which rolls the whole week forward.
        """
        info = decode_alarm_id(alarm_id)
        fired = FiredAlarm(alarm_id=alarm_id, info=info)
        if info is None:
            return fired

        instance = await self.instances.get_instance(info.schedule_instance_id)
        if instance is None:
            logger.warning(f"Fired alarm {alarm_id} belongs to unknown schedule")
            return fired

        routine = await self.routines.get_routine(instance.routine_id)
        if routine is None:
            logger.warning(f"Fired alarm {alarm_id}: routine {instance.routine_id} not found")
            return fired

        fired.is_terminal = info.step_index == len(routine.steps) - 1
        logger.info(
            f"Alarm fired: schedule {instance.id} step {info.step_index + 1} "
            f"of {len(routine.steps)}"
        )

        if fired.is_terminal and instance.state is ScheduleState.RECURRING:
            fired.rescheduled = await self.schedule_instance(instance, routine, now)
            logger.info(
                f"Rolled schedule {instance.id} forward: {fired.rescheduled.summary()}"
            )

        return fired

    async def restore_all(
        self,
        instances: list[ScheduleInstance] | None = None,
        routines: list[Routine] | None = None,
        now: datetime | None = None,
    ) -> dict[str, ScheduleReport]:
        """Re-register every enabled schedule, e.g. after a restart.

        The instance list is taken as the complete current set: routine
        alarms whose schedule is not in it are cancelled as orphans.
        """
        if instances is None:
            instances = await self.instances.list_instances()
        routines_by_id = {routine.id: routine for routine in routines or []}

        reports: dict[str, ScheduleReport] = {}
        for instance in instances:
            if not instance.is_enabled:
                await self.cancel_instance(instance.id)
                continue
            reports[instance.id] = await self.schedule_instance(
                instance, routines_by_id.get(instance.routine_id), now
            )

        orphans = await self._cancel_orphans({instance.id for instance in instances})
        if orphans:
            logger.info(f"Cancelled {len(orphans)} orphaned alarms")

        return reports

    # Routine lifecycle

    async def create_routine(self, routine: Routine) -> Routine:
        validate_routine(routine)
        await self.routines.save_routine(routine)
        logger.info(f"Created routine {routine.id} ({routine.name})")
        return routine

    async def update_routine(
        self, routine: Routine, now: datetime | None = None
    ) -> dict[str, ScheduleReport]:
        """Save an edited routine and reschedule every schedule that uses it."""
        validate_routine(routine)
        if await self.routines.get_routine(routine.id) is None:
            raise NotFoundError(f"Routine {routine.id} not found")

        await self.routines.save_routine(routine)

        reports = {}
        for instance in await self.instances.list_instances_for_routine(routine.id):
            reports[instance.id] = await self.schedule_instance(instance, routine, now)

        logger.info(f"Updated routine {routine.id}, rescheduled {len(reports)} schedules")
        return reports

    async def duplicate_routine(self, routine_id: str, new_name: str) -> Routine:
        original = await self.routines.get_routine(routine_id)
        if original is None:
            raise NotFoundError(f"Routine {routine_id} not found")

        copy = original.duplicate(new_name)
        return await self.create_routine(copy)

    async def delete_routine(self, routine_id: str) -> list[str]:
        """Delete a routine together with all of its schedules.

        Returns:
            Ids of the deleted schedules
        """
        if await self.routines.get_routine(routine_id) is None:
            raise NotFoundError(f"Routine {routine_id} not found")

        deleted = []
        for instance in await self.instances.list_instances_for_routine(routine_id):
            async with self._lock(instance.id):
                await self._cancel_matching(instance.id)
                await self.instances.delete_instance(instance.id)
            self._locks.pop(instance.id, None)
            deleted.append(instance.id)

        await self.routines.delete_routine(routine_id)
        logger.info(f"Deleted routine {routine_id} and {len(deleted)} schedules")
        return deleted

    # Schedule lifecycle

    async def create_instance(
        self, instance: ScheduleInstance, now: datetime | None = None
    ) -> ScheduleReport:
        validate_instance(instance)
        routine = await self.routines.get_routine(instance.routine_id)
        if routine is None:
            raise ValidationError(f"Unknown routine: {instance.routine_id}")

        await self.instances.save_instance(instance)
        logger.info(f"Created schedule {instance.id} for routine {routine.id}")
        return await self.schedule_instance(instance, routine, now)

    async def update_instance(
        self, instance: ScheduleInstance, now: datetime | None = None
    ) -> ScheduleReport:
        validate_instance(instance)
        if await self.instances.get_instance(instance.id) is None:
            raise NotFoundError(f"Schedule {instance.id} not found")

        await self.instances.save_instance(instance)
        return await self.schedule_instance(instance, now=now)

    async def set_enabled(
        self, instance_id: str, enabled: bool, now: datetime | None = None
    ) -> ScheduleReport:
        """Toggle a schedule on (reschedule) or off (cancel)."""
        instance = await self.instances.get_instance(instance_id)
        if instance is None:
            raise NotFoundError(f"Schedule {instance_id} not found")

        updated = instance.with_enabled(enabled)
        await self.instances.save_instance(updated)
        return await self.schedule_instance(updated, now=now)

    async def delete_instance(self, instance_id: str) -> list[str]:
        """Cancel a schedule's alarms and remove it. Its routine is kept.

        Returns:
            Ids of the cancelled alarms
        """
        async with self._lock(instance_id):
            cancelled = await self._cancel_matching(instance_id)
            if await self.instances.get_instance(instance_id) is None:
                raise NotFoundError(f"Schedule {instance_id} not found")
            await self.instances.delete_instance(instance_id)

        self._locks.pop(instance_id, None)
        logger.info(f"Deleted schedule {instance_id}")
        return cancelled

    # Helpers

    async def _reschedule(
        self,
        instance: ScheduleInstance,
        routine: Routine | None,
        now: datetime | None,
    ) -> ScheduleReport:
        report = ScheduleReport(instance_id=instance.id, state=instance.state)
        report.cancelled = await self._cancel_matching(instance.id)

        if instance.state is ScheduleState.DISABLED:
            return report

        if routine is None:
            routine = await self.routines.get_routine(instance.routine_id)
        if routine is None:
            logger.warning(
                f"Schedule {instance.id}: routine {instance.routine_id} not found, skipping"
            )
            report.skipped = f"routine {instance.routine_id} not found"
            return report

        items = expand_instance(instance, routine)

        if instance.state is ScheduleState.ONE_TIME:
            if now is None:
                now = local_now(self.timezone)
            for item, at in plan_one_time_targets(items, instance.start_time, now):
                report.results.append(await self._register(item, at))
        else:
            for item in items:
                report.results.append(await self._register(item, None))

        if report.failures:
            logger.warning(f"Schedule {instance.id}: {report.summary()}")
        else:
            logger.info(f"Schedule {instance.id}: {report.summary()}")
        return report

    async def _register(self, item: AlarmItem, at: datetime | None) -> RegistrationResult:
        """Register one alarm; weekly when no absolute instant is given."""
        try:
            if at is None:
                await self.timer.register_weekly(item, item.weekday, item.time)  # type: ignore[arg-type]
            else:
                await self.timer.register_once(item, at)
        except RegistrationError as e:
            logger.error(f"Failed to register alarm {item.id}: {e.reason}")
            return RegistrationResult(item=item, error=e)
        return RegistrationResult(item=item)

    async def _cancel_matching(self, instance_id: str) -> list[str]:
        """Linear scan: decode every registered id, cancel those of this schedule."""
        prefix = instance_alarm_prefix(instance_id)
        cancelled = []
        for alarm in await self.timer.list_alarms():
            if not alarm.id.startswith(prefix):
                continue
            info = decode_alarm_id(alarm.id)
            if info is None or info.schedule_instance_id != instance_id:
                continue
            await self.timer.cancel(alarm.id)
            cancelled.append(alarm.id)

        if cancelled:
            logger.info(f"Cancelled {len(cancelled)} alarms for schedule {instance_id}")
        return cancelled

    async def _cancel_orphans(self, known_instance_ids: set[str]) -> list[str]:
        cancelled = []
        for alarm in await self.timer.list_alarms():
            info = decode_alarm_id(alarm.id)
            if info is None or info.schedule_instance_id in known_instance_ids:
                continue
            await self.timer.cancel(alarm.id)
            cancelled.append(alarm.id)
        return cancelled
