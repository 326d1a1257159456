"""Data models."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, time
from enum import Enum, IntEnum
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 1440


def _utcnow() -> datetime:
    return datetime.now(ZoneInfo("UTC"))


def new_id() -> str:
    return str(uuid.uuid4())


class Weekday(IntEnum):
    """Day of week, numbered like datetime.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def token(self) -> str:
        """Lowercase name used inside alarm ids."""
        return self.name.lower()

    @property
    def short_name(self) -> str:
        return self.name[:3].title()

    @classmethod
    def from_token(cls, token: str) -> "Weekday":
        try:
            return cls[token.upper()]
        except KeyError:
            raise ValueError(f"Unknown weekday: {token}") from None

    def shifted(self, days: int) -> "Weekday":
        return Weekday((self.value + days) % 7)


@dataclass(frozen=True)
class Duration:
    """Non-negative whole minutes."""

    minutes: int

    def __post_init__(self) -> None:
        if self.minutes < 0:
            raise ValueError(f"Duration cannot be negative: {self.minutes}")

    @classmethod
    def from_hours_minutes(cls, hours: int, minutes: int) -> "Duration":
        return cls(hours * 60 + minutes)

    def total_minutes(self) -> int:
        return self.minutes

    def __add__(self, other: "Duration") -> "Duration":
        return Duration(self.minutes + other.minutes)


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """Wall-clock time of day (no date, no timezone)."""

    hour: int
    minute: int

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Hour out of range: {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Minute out of range: {self.minute}")

    @classmethod
    def from_minutes(cls, minutes: int) -> "TimeOfDay":
        minutes %= MINUTES_PER_DAY
        return cls(minutes // 60, minutes % 60)

    @classmethod
    def from_time(cls, value: time) -> "TimeOfDay":
        return cls(value.hour, value.minute)

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        """Parse an HH:MM string."""
        hour, _, minute = value.partition(":")
        return cls(int(hour), int(minute))

    def minutes_since_midnight(self) -> int:
        return self.hour * 60 + self.minute

    def add_minutes(self, minutes: int) -> "TimeOfDay":
        """Add minutes, wrapping past midnight. Day overflow is not reported."""
        return TimeOfDay.from_minutes(self.minutes_since_midnight() + minutes)

    def to_time(self) -> time:
        return time(self.hour, self.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class Step:
    """One named, timed segment of a routine."""

    id: str
    name: str
    duration: Duration

    @classmethod
    def create(cls, name: str, duration: Duration) -> "Step":
        return cls(id=new_id(), name=name, duration=duration)


@dataclass(frozen=True)
class Routine:
    """Named ordered list of steps.

    Routines are replaced, never mutated: edits go through update_with()
    and produce a new value with a fresh updated_at.
    """

    id: str
    name: str
    steps: tuple[Step, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(cls, name: str, steps: list[Step] | tuple[Step, ...]) -> "Routine":
        return cls(id=new_id(), name=name, steps=tuple(steps))

    def total_duration(self) -> Duration:
        return Duration(sum(step.duration.minutes for step in self.steps))

    def update_with(
        self,
        name: str | None = None,
        steps: list[Step] | tuple[Step, ...] | None = None,
    ) -> "Routine":
        return replace(
            self,
            name=name if name is not None else self.name,
            steps=tuple(steps) if steps is not None else self.steps,
            updated_at=_utcnow(),
        )

    def duplicate(self, new_name: str) -> "Routine":
        """Copy with a fresh id for the routine and for every step."""
        now = _utcnow()
        return Routine(
            id=new_id(),
            name=new_name,
            steps=tuple(Step.create(step.name, step.duration) for step in self.steps),
            created_at=now,
            updated_at=now,
        )


class ScheduleState(Enum):
    """Explicit schedule state derived from is_enabled and days_of_week."""

    DISABLED = "disabled"
    ONE_TIME = "one_time"
    RECURRING = "recurring"


@dataclass(frozen=True)
class ScheduleInstance:
    """Binds a routine to a start time and a set of weekdays.

    An empty days_of_week means a single run relative to now; otherwise the
    routine repeats weekly on each selected day.
    """

    id: str
    routine_id: str
    name: str
    start_time: TimeOfDay
    days_of_week: frozenset[Weekday] = frozenset()
    is_enabled: bool = True
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(
        cls,
        routine_id: str,
        name: str,
        start_time: TimeOfDay,
        days_of_week: set[Weekday] | frozenset[Weekday] = frozenset(),
    ) -> "ScheduleInstance":
        return cls(
            id=new_id(),
            routine_id=routine_id,
            name=name,
            start_time=start_time,
            days_of_week=frozenset(days_of_week),
        )

    @property
    def state(self) -> ScheduleState:
        if not self.is_enabled:
            return ScheduleState.DISABLED
        if not self.days_of_week:
            return ScheduleState.ONE_TIME
        return ScheduleState.RECURRING

    @property
    def is_recurring(self) -> bool:
        return bool(self.days_of_week)

    def sorted_days(self) -> list[Weekday]:
        return sorted(self.days_of_week)

    def with_enabled(self, enabled: bool) -> "ScheduleInstance":
        return replace(self, is_enabled=enabled)

    def update_with(
        self,
        name: str | None = None,
        start_time: TimeOfDay | None = None,
        days_of_week: set[Weekday] | frozenset[Weekday] | None = None,
    ) -> "ScheduleInstance":
        return replace(
            self,
            name=name if name is not None else self.name,
            start_time=start_time if start_time is not None else self.start_time,
            days_of_week=(
                frozenset(days_of_week) if days_of_week is not None else self.days_of_week
            ),
        )


@dataclass(frozen=True)
class StandaloneAlarm:
    """A plain alarm outside any routine.

    Same day semantics as a schedule: no days rings once at the next
    occurrence of time, otherwise weekly on each selected day.
    """

    id: str
    time: TimeOfDay
    title: str = "Alarm"
    days_of_week: frozenset[Weekday] = frozenset()
    is_enabled: bool = True
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(
        cls,
        time: TimeOfDay,
        title: str = "Alarm",
        days_of_week: set[Weekday] | frozenset[Weekday] = frozenset(),
    ) -> "StandaloneAlarm":
        return cls(id=new_id(), time=time, title=title, days_of_week=frozenset(days_of_week))

    @property
    def state(self) -> ScheduleState:
        if not self.is_enabled:
            return ScheduleState.DISABLED
        if not self.days_of_week:
            return ScheduleState.ONE_TIME
        return ScheduleState.RECURRING

    def sorted_days(self) -> list[Weekday]:
        return sorted(self.days_of_week)

    def with_enabled(self, enabled: bool) -> "StandaloneAlarm":
        return replace(self, is_enabled=enabled)


@dataclass(frozen=True)
class AlarmItem:
    """One registration handed to the alarm timer, usually one routine step."""

    id: str
    time: TimeOfDay
    title: str
    description: str = ""
    is_enabled: bool = True
    is_repeating: bool = True
    step_index: int = 0
    step_name: str = ""
    weekday: Weekday | None = None  # actual firing day, after midnight rollover
    offset_minutes: int = 0  # minutes since the instance start

    @property
    def is_first(self) -> bool:
        return self.step_index == 0


@dataclass(frozen=True)
class RoutineAlarmInfo:
    """Decoded form of a routine alarm id. day_of_week is None for one-time runs."""

    schedule_instance_id: str
    step_index: int
    day_of_week: Weekday | None


@dataclass
class ScheduledAlarm:
    """A row in the alarm timer's registered set."""

    item: AlarmItem
    next_fire_at: datetime  # UTC

    @property
    def id(self) -> str:
        return self.item.id
