"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from routinely.db.models import ScheduleInstance, StandaloneAlarm


def schedule_actions_keyboard(instance: ScheduleInstance) -> InlineKeyboardMarkup:
    """Keyboard for a schedule: Enable/Disable, Delete."""
    toggle_label = "🔕 Disable" if instance.is_enabled else "🔔 Enable"
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(toggle_label, callback_data=f"toggle:{instance.id}"),
                InlineKeyboardButton("🗑 Delete", callback_data=f"delete_confirm:{instance.id}"),
            ]
        ]
    )


def alarm_actions_keyboard(alarm: StandaloneAlarm) -> InlineKeyboardMarkup:
    """Keyboard for a plain alarm: On/Off, Delete."""
    toggle_label = "🔕 Turn off" if alarm.is_enabled else "🔔 Turn on"
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(toggle_label, callback_data=f"alarm_toggle:{alarm.id}"),
                InlineKeyboardButton("🗑 Delete", callback_data=f"alarm_delete:{alarm.id}"),
            ]
        ]
    )


def confirm_cancel_keyboard(action: str) -> InlineKeyboardMarkup:
    """Keyboard for confirmations: Confirm, Cancel."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Confirm", callback_data=f"confirm:{action}"),
                InlineKeyboardButton("✗ Cancel", callback_data=f"cancel:{action}"),
            ]
        ]
    )
