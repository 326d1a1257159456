"""Shared fixtures for the async test modules."""

from pathlib import Path

import pytest
from fakes import SUNDAY_NOON, FakeAlarmTimer, FakeClock, MemoryStore, make_routine

from routinely.db.migrations import run_migrations
from routinely.db.repository import Repository
from routinely.engine.alarm_timer import SqliteAlarmTimer
from routinely.engine.alarms import AlarmService
from routinely.engine.scheduler import RoutineScheduler


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# In-memory collaborators


@pytest.fixture
def timer() -> FakeAlarmTimer:
    return FakeAlarmTimer()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def scheduler(timer, store) -> RoutineScheduler:
    return RoutineScheduler(timer, store, store, "UTC")


@pytest.fixture
async def routine(anyio_backend, scheduler):
    """A saved three-step routine: 5m, 20m, 5m."""
    return await scheduler.create_routine(make_routine())


@pytest.fixture
def alarm_service(timer, store) -> AlarmService:
    return AlarmService(timer, store, "UTC")


# SQLite-backed collaborators


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "routinely.db"


@pytest.fixture
async def repo(anyio_backend, db_path):
    await run_migrations(db_path)
    repository = Repository(db_path)
    await repository.connect()
    yield repository
    await repository.close()


@pytest.fixture
def clock() -> FakeClock:
    """Starts at Sunday noon UTC; assign clock.now to move time."""
    return FakeClock(SUNDAY_NOON)


@pytest.fixture
def sqlite_timer(repo, clock) -> SqliteAlarmTimer:
    return SqliteAlarmTimer(repo, "UTC", clock=clock)
