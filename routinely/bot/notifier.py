"""Telegram delivery of fired alarms."""

import logging

from telegram import Bot

from routinely.bot.formatters import format_alarm_message
from routinely.db.models import AlarmItem, RoutineAlarmInfo
from routinely.db.repository import Repository
from routinely.utils.constants import OWNER_CHAT_KEY

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends fired alarms to the owner chat."""

    def __init__(self, bot: Bot, repo: Repository):
        self.bot = bot
        self.repo = repo

    async def notify(self, alarm: AlarmItem, info: RoutineAlarmInfo | None) -> None:
        chat_id = await self.repo.get_setting(OWNER_CHAT_KEY)
        if chat_id is None:
            logger.warning(f"Alarm {alarm.id} fired but no chat is bound, dropping")
            return

        # TelegramError propagates so the heartbeat retries delivery
        await self.bot.send_message(
            chat_id=int(chat_id),
            text=format_alarm_message(alarm, info),
            parse_mode="HTML",
        )
        logger.info(f"Delivered alarm {alarm.id}")
