"""Database repository - all SQL queries."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List

import aiosqlite

from routinely.db.models import (
    AlarmItem,
    Duration,
    Routine,
    ScheduledAlarm,
    ScheduleInstance,
    StandaloneAlarm,
    Step,
    TimeOfDay,
    Weekday,
)

logger = logging.getLogger(__name__)


class Repository:
    """Database access layer.

    Serves as the routine, schedule and plain alarm store, and holds the
    alarm timer's registered set and the bot settings.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    # Routine operations

    async def get_routine(self, routine_id: str) -> Routine | None:
        """Get a routine with its steps."""
        async with self.db.execute(
            "SELECT * FROM routines WHERE id = ?", (routine_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row is None:
                return None
        return await self._row_to_routine(row)

    async def list_routines(self) -> List[Routine]:
        """Get all routines, oldest first."""
        async with self.db.execute(
            "SELECT * FROM routines ORDER BY created_at, name"
        ) as cursor:
            rows = await cursor.fetchall()
        return [await self._row_to_routine(row) for row in rows]

    async def find_routine(self, id_prefix: str) -> Routine | None:
        """Resolve a routine by a unique id prefix."""
        async with self.db.execute(
            "SELECT * FROM routines WHERE id LIKE ? || '%' LIMIT 2", (id_prefix,)
        ) as cursor:
            rows = await cursor.fetchall()
        if len(rows) != 1:
            return None
        return await self._row_to_routine(rows[0])

    async def save_routine(self, routine: Routine) -> None:
        """Insert or replace a routine and its full step list."""
        await self.db.execute(
            """
            INSERT INTO routines (id, name, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                updated_at = excluded.updated_at
            """,
            (
                routine.id,
                routine.name,
                routine.created_at.isoformat(),
                routine.updated_at.isoformat(),
            ),
        )
        await self.db.execute("DELETE FROM steps WHERE routine_id = ?", (routine.id,))
        await self.db.executemany(
            """
            INSERT INTO steps (id, routine_id, position, name, duration_minutes)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (step.id, routine.id, position, step.name, step.duration.minutes)
                for position, step in enumerate(routine.steps)
            ],
        )
        await self.db.commit()

    async def delete_routine(self, routine_id: str) -> None:
        """Delete a routine. Steps go with it; schedules are left alone."""
        await self.db.execute("DELETE FROM routines WHERE id = ?", (routine_id,))
        await self.db.commit()

    # Schedule instance operations

    async def get_instance(self, instance_id: str) -> ScheduleInstance | None:
        async with self.db.execute(
            "SELECT * FROM schedule_instances WHERE id = ?", (instance_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_instance(row)
            return None

    async def list_instances(self) -> List[ScheduleInstance]:
        async with self.db.execute(
            "SELECT * FROM schedule_instances ORDER BY start_time, created_at"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_instance(row) for row in rows]

    async def list_instances_for_routine(self, routine_id: str) -> List[ScheduleInstance]:
        async with self.db.execute(
            "SELECT * FROM schedule_instances WHERE routine_id = ? ORDER BY start_time",
            (routine_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_instance(row) for row in rows]

    async def find_instance(self, id_prefix: str) -> ScheduleInstance | None:
        """Resolve a schedule by a unique id prefix."""
        async with self.db.execute(
            "SELECT * FROM schedule_instances WHERE id LIKE ? || '%' LIMIT 2",
            (id_prefix,),
        ) as cursor:
            rows = await cursor.fetchall()
        if len(rows) != 1:
            return None
        return self._row_to_instance(rows[0])

    async def save_instance(self, instance: ScheduleInstance) -> None:
        """Insert or replace a schedule instance."""
        await self.db.execute(
            """
            INSERT INTO schedule_instances (
                id, routine_id, name, start_time, days_of_week, is_enabled, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                routine_id = excluded.routine_id,
                name = excluded.name,
                start_time = excluded.start_time,
                days_of_week = excluded.days_of_week,
                is_enabled = excluded.is_enabled
            """,
            (
                instance.id,
                instance.routine_id,
                instance.name,
                str(instance.start_time),
                json.dumps([day.token for day in instance.sorted_days()]),
                1 if instance.is_enabled else 0,
                instance.created_at.isoformat(),
            ),
        )
        await self.db.commit()

    async def delete_instance(self, instance_id: str) -> None:
        await self.db.execute("DELETE FROM schedule_instances WHERE id = ?", (instance_id,))
        await self.db.commit()

    # Standalone alarm operations

    async def get_standalone_alarm(self, alarm_id: str) -> StandaloneAlarm | None:
        async with self.db.execute(
            "SELECT * FROM standalone_alarms WHERE id = ?", (alarm_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_standalone_alarm(row)
            return None

    async def list_standalone_alarms(self) -> List[StandaloneAlarm]:
        async with self.db.execute(
            "SELECT * FROM standalone_alarms ORDER BY time, created_at"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_standalone_alarm(row) for row in rows]

    async def find_standalone_alarm(self, id_prefix: str) -> StandaloneAlarm | None:
        """Resolve a plain alarm by a unique id prefix."""
        async with self.db.execute(
            "SELECT * FROM standalone_alarms WHERE id LIKE ? || '%' LIMIT 2",
            (id_prefix,),
        ) as cursor:
            rows = await cursor.fetchall()
        if len(rows) != 1:
            return None
        return self._row_to_standalone_alarm(rows[0])

    async def save_standalone_alarm(self, alarm: StandaloneAlarm) -> None:
        await self.db.execute(
            """
            INSERT INTO standalone_alarms (
                id, time, title, days_of_week, is_enabled, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                time = excluded.time,
                title = excluded.title,
                days_of_week = excluded.days_of_week,
                is_enabled = excluded.is_enabled
            """,
            (
                alarm.id,
                str(alarm.time),
                alarm.title,
                json.dumps([day.token for day in alarm.sorted_days()]),
                1 if alarm.is_enabled else 0,
                alarm.created_at.isoformat(),
            ),
        )
        await self.db.commit()

    async def delete_standalone_alarm(self, alarm_id: str) -> None:
        await self.db.execute("DELETE FROM standalone_alarms WHERE id = ?", (alarm_id,))
        await self.db.commit()

    # Alarm operations (used by the alarm timer)

    async def upsert_alarm(self, alarm: ScheduledAlarm) -> None:
        """Register an alarm, replacing any alarm with the same id."""
        item = alarm.item
        await self.db.execute(
            """
            INSERT OR REPLACE INTO alarms (
                id, time, title, description, step_index, step_name, weekday,
                offset_minutes, is_enabled, is_repeating, next_fire_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.id,
                str(item.time),
                item.title,
                item.description,
                item.step_index,
                item.step_name,
                int(item.weekday) if item.weekday is not None else None,
                item.offset_minutes,
                1 if item.is_enabled else 0,
                1 if item.is_repeating else 0,
                alarm.next_fire_at.isoformat(),
            ),
        )
        await self.db.commit()

    async def get_alarm(self, alarm_id: str) -> ScheduledAlarm | None:
        async with self.db.execute(
            "SELECT * FROM alarms WHERE id = ?", (alarm_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_alarm(row)
            return None

    async def list_alarms(self) -> List[ScheduledAlarm]:
        async with self.db.execute("SELECT * FROM alarms ORDER BY next_fire_at") as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_alarm(row) for row in rows]

    async def get_due_alarms(self, now: datetime) -> List[ScheduledAlarm]:
        """Get enabled alarms whose firing time has come (heartbeat query)."""
        async with self.db.execute(
            """
            SELECT * FROM alarms
            WHERE is_enabled = 1
            AND next_fire_at <= ?
            ORDER BY next_fire_at
            """,
            (now.isoformat(),),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_alarm(row) for row in rows]

    async def update_alarm_fire_time(self, alarm_id: str, next_fire_at: datetime) -> None:
        await self.db.execute(
            "UPDATE alarms SET next_fire_at = ? WHERE id = ?",
            (next_fire_at.isoformat(), alarm_id),
        )
        await self.db.commit()

    async def delete_alarm(self, alarm_id: str) -> None:
        await self.db.execute("DELETE FROM alarms WHERE id = ?", (alarm_id,))
        await self.db.commit()

    # Settings operations

    async def get_setting(self, key: str) -> str | None:
        async with self.db.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["value"] if row else None

    async def set_setting(self, key: str, value: str) -> None:
        await self.db.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        await self.db.commit()

    # Helper methods

    async def _row_to_routine(self, row: aiosqlite.Row) -> Routine:
        """Convert a routine row and its step rows to a Routine object."""
        async with self.db.execute(
            "SELECT * FROM steps WHERE routine_id = ? ORDER BY position",
            (row["id"],),
        ) as cursor:
            step_rows = await cursor.fetchall()

        return Routine(
            id=row["id"],
            name=row["name"],
            steps=tuple(
                Step(
                    id=step_row["id"],
                    name=step_row["name"],
                    duration=Duration(step_row["duration_minutes"]),
                )
                for step_row in step_rows
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_instance(self, row: aiosqlite.Row) -> ScheduleInstance:
        """Convert a database row to a ScheduleInstance object."""
        return ScheduleInstance(
            id=row["id"],
            routine_id=row["routine_id"],
            name=row["name"],
            start_time=TimeOfDay.parse(row["start_time"]),
            days_of_week=frozenset(
                Weekday.from_token(token) for token in json.loads(row["days_of_week"])
            ),
            is_enabled=bool(row["is_enabled"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_alarm(self, row: aiosqlite.Row) -> ScheduledAlarm:
        """Convert a database row to a ScheduledAlarm object."""
        return ScheduledAlarm(
            item=AlarmItem(
                id=row["id"],
                time=TimeOfDay.parse(row["time"]),
                title=row["title"],
                description=row["description"],
                is_enabled=bool(row["is_enabled"]),
                is_repeating=bool(row["is_repeating"]),
                step_index=row["step_index"],
                step_name=row["step_name"],
                weekday=Weekday(row["weekday"]) if row["weekday"] is not None else None,
                offset_minutes=row["offset_minutes"],
            ),
            next_fire_at=datetime.fromisoformat(row["next_fire_at"]),
        )

    def _row_to_standalone_alarm(self, row: aiosqlite.Row) -> StandaloneAlarm:
        return StandaloneAlarm(
            id=row["id"],
            time=TimeOfDay.parse(row["time"]),
            title=row["title"],
            days_of_week=frozenset(
                Weekday.from_token(token) for token in json.loads(row["days_of_week"])
            ),
            is_enabled=bool(row["is_enabled"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
