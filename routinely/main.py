"""Main entry point for the Routinely bot."""

import logging
import sys

from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from routinely.bot.callbacks import callback_router
from routinely.bot.handlers import (
    alarm_command,
    alarms_command,
    deleteroutine_command,
    disable_command,
    duplicate_command,
    editroutine_command,
    editschedule_command,
    enable_command,
    help_command,
    newroutine_command,
    routines_command,
    schedule_command,
    schedules_command,
    start_command,
    testalarm_command,
    unschedule_command,
)
from routinely.bot.notifier import TelegramNotifier
from routinely.config import Config
from routinely.db.migrations import run_migrations
from routinely.db.repository import Repository
from routinely.engine.alarm_engine import heartbeat, startup_recovery
from routinely.engine.alarm_timer import SqliteAlarmTimer
from routinely.engine.alarms import AlarmService
from routinely.engine.scheduler import RoutineScheduler
from routinely.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    stream=sys.stdout,
)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def heartbeat_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the heartbeat."""
    await heartbeat(
        context.bot_data["notifier"],
        context.bot_data["timer"],
        context.bot_data["scheduler"],
        alarms=context.bot_data["alarms"],
    )


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    # Initialize database
    await run_migrations(Config.DATABASE_PATH)

    repo = Repository(Config.DATABASE_PATH)
    await repo.connect()

    timer = SqliteAlarmTimer(repo, Config.TIMEZONE)
    scheduler = RoutineScheduler(timer, repo, repo, Config.TIMEZONE)
    alarms = AlarmService(timer, repo, Config.TIMEZONE)

    application.bot_data["repo"] = repo
    application.bot_data["timer"] = timer
    application.bot_data["scheduler"] = scheduler
    application.bot_data["alarms"] = alarms
    application.bot_data["notifier"] = TelegramNotifier(application.bot, repo)

    # Re-register every enabled schedule and plain alarm
    await startup_recovery(scheduler, alarms)

    # Start the heartbeat job
    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            heartbeat_job,
            interval=Config.HEARTBEAT_INTERVAL,
            first=5,
            name="heartbeat",
        )
        logger.info(f"Heartbeat job scheduled (interval: {Config.HEARTBEAT_INTERVAL}s)")
    else:
        logger.warning("No job queue available, alarms will not fire")

    logger.info(f"Routinely initialized (timezone: {Config.TIMEZONE})")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    repo: Repository | None = application.bot_data.get("repo")
    if repo:
        await repo.close()

    logger.info("Routinely shut down")


def main() -> None:
    """Start the bot."""
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Commands
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))

    # Routines
    application.add_handler(CommandHandler("routines", routines_command))
    application.add_handler(CommandHandler("newroutine", newroutine_command))
    application.add_handler(CommandHandler("editroutine", editroutine_command))
    application.add_handler(CommandHandler("duplicate", duplicate_command))
    application.add_handler(CommandHandler("deleteroutine", deleteroutine_command))

    # Schedules
    application.add_handler(CommandHandler("schedule", schedule_command))
    application.add_handler(CommandHandler("schedules", schedules_command))
    application.add_handler(CommandHandler("enable", enable_command))
    application.add_handler(CommandHandler("disable", disable_command))
    application.add_handler(CommandHandler("editschedule", editschedule_command))
    application.add_handler(CommandHandler("unschedule", unschedule_command))

    # Plain alarms
    application.add_handler(CommandHandler("alarm", alarm_command))
    application.add_handler(CommandHandler("alarms", alarms_command))
    application.add_handler(CommandHandler("testalarm", testalarm_command))

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    # Error handler
    application.add_error_handler(error_handler)

    logger.info("Starting Routinely bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
