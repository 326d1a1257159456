"""Alarm engine - the heartbeat that fires due alarms."""

import logging
from datetime import datetime

from routinely.engine.alarm_ids import decode_alarm_id
from routinely.engine.alarm_timer import SqliteAlarmTimer
from routinely.engine.alarms import AlarmService
from routinely.engine.interfaces import Notifier
from routinely.engine.scheduler import RoutineScheduler

logger = logging.getLogger(__name__)


async def heartbeat(
    notifier: Notifier,
    timer: SqliteAlarmTimer,
    scheduler: RoutineScheduler,
    now: datetime | None = None,
    alarms: AlarmService | None = None,
) -> int:
    """Heartbeat job that fires every due alarm.

    For each alarm whose time has come:
    1. Hand it to the notifier along with its decoded routine info
    2. Consume it in the timer (weekly alarms advance, one-time ones go away)
    3. Let the scheduler roll a finished weekly routine forward, and the
       alarm service switch off a plain alarm that only rings once

    Returns:
        Number of alarms fired
    """
    if now is None:
        now = timer.now()

    fired = 0
    try:
        due_alarms = await timer.due_alarms(now)

        if not due_alarms:
            return 0

        logger.info(f"Heartbeat: {len(due_alarms)} alarms due")

        for alarm in due_alarms:
            try:
                info = decode_alarm_id(alarm.id)

                try:
                    await notifier.notify(alarm.item, info)
                except Exception as e:
                    logger.error(f"Failed to deliver alarm {alarm.id}: {e}")
                    # Leave it due, will retry next heartbeat
                    continue

                await timer.mark_fired(alarm, now)
                if info is not None:
                    await scheduler.handle_fired(alarm.id, now)
                elif alarms is not None:
                    await alarms.handle_fired(alarm.id)
                fired += 1

            except Exception as e:
                logger.error(f"Error processing alarm {alarm.id}: {e}")
                continue

    except Exception as e:
        logger.error(f"Heartbeat error: {e}")

    return fired


async def startup_recovery(
    scheduler: RoutineScheduler, alarms: AlarmService | None = None
) -> None:
    """Recovery on startup: re-register every enabled schedule and plain alarm.

    Weekly alarms get fresh targets strictly after now, one-time runs are
    re-planned relative to now, and alarms of deleted schedules are dropped.
    """
    try:
        reports = await scheduler.restore_all()

        for instance_id, report in reports.items():
            if report.ok:
                logger.info(f"Restored schedule {instance_id}: {report.summary()}")
            else:
                logger.warning(f"Restored schedule {instance_id}: {report.summary()}")

        logger.info(f"Startup recovery complete ({len(reports)} schedules)")

    except Exception as e:
        logger.error(f"Startup recovery error: {e}")

    if alarms is None:
        return

    try:
        restored = await alarms.restore_all()
        logger.info(f"Restored {len(restored)} plain alarms")
    except Exception as e:
        logger.error(f"Plain alarm recovery error: {e}")
