"""Database migration runner."""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


async def init_database(db_path: Path) -> None:
    """Initialize the database with the schema."""
    schema_path = Path(__file__).parent / "schema.sql"

    async with aiosqlite.connect(db_path) as db:
        # Read and execute schema
        with open(schema_path) as f:
            schema_sql = f.read()

        await db.executescript(schema_sql)
        await db.commit()

        logger.info(f"Database initialized at {db_path}")


async def get_schema_version(db_path: Path) -> int:
    async with aiosqlite.connect(db_path) as db:
        async with db.execute("PRAGMA user_version") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0


async def run_migrations(db_path: Path) -> None:
    """Bring the database up to SCHEMA_VERSION.

    Every table is created with IF NOT EXISTS, so re-applying the schema
    is the upgrade path: version 2 only adds standalone_alarms. A change to
    an existing table needs its own step here.
    """
    current = await get_schema_version(db_path)
    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema v{current} is newer than supported v{SCHEMA_VERSION}"
        )

    await init_database(db_path)

    if current < SCHEMA_VERSION:
        async with aiosqlite.connect(db_path) as db:
            await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            await db.commit()
        logger.info(f"Database schema migrated from v{current} to v{SCHEMA_VERSION}")
