"""Collaborator contracts used by the scheduler and the alarm service."""

from datetime import datetime
from typing import Protocol

from routinely.db.models import (
    AlarmItem,
    Routine,
    RoutineAlarmInfo,
    ScheduleInstance,
    StandaloneAlarm,
    TimeOfDay,
    Weekday,
)


class AlarmTimer(Protocol):
    """Exact-alarm timer, keyed by alarm id.

    Registering an id that is already registered replaces it, so repeating a
    registration with the same target is a no-op.
    """

    async def register_once(self, item: AlarmItem, at: datetime) -> None:
        """Fire once at an absolute instant. Raises RegistrationError."""
        ...

    async def register_weekly(
        self, item: AlarmItem, weekday: Weekday, time_of_day: TimeOfDay
    ) -> None:
        """Fire every week on weekday at time_of_day. Raises RegistrationError."""
        ...

    async def cancel(self, alarm_id: str) -> None:
        ...

    async def list_alarms(self) -> list[AlarmItem]:
        ...


class RoutineStore(Protocol):
    async def get_routine(self, routine_id: str) -> Routine | None:
        ...

    async def list_routines(self) -> list[Routine]:
        ...

    async def save_routine(self, routine: Routine) -> None:
        ...

    async def delete_routine(self, routine_id: str) -> None:
        ...


class InstanceStore(Protocol):
    async def get_instance(self, instance_id: str) -> ScheduleInstance | None:
        ...

    async def list_instances(self) -> list[ScheduleInstance]:
        ...

    async def list_instances_for_routine(self, routine_id: str) -> list[ScheduleInstance]:
        ...

    async def save_instance(self, instance: ScheduleInstance) -> None:
        ...

    async def delete_instance(self, instance_id: str) -> None:
        ...


class Notifier(Protocol):
    async def notify(self, alarm: AlarmItem, info: RoutineAlarmInfo | None) -> None:
        """Present a fired alarm. info is None for non-routine alarms."""
        ...


class AlarmStore(Protocol):
    async def get_standalone_alarm(self, alarm_id: str) -> StandaloneAlarm | None:
        ...

    async def list_standalone_alarms(self) -> list[StandaloneAlarm]:
        ...

    async def save_standalone_alarm(self, alarm: StandaloneAlarm) -> None:
        ...

    async def delete_standalone_alarm(self, alarm_id: str) -> None:
        ...
