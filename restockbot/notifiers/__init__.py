"""Operator notifications (Telegram / log) and the STATE_UPDATE broadcast."""

from restockbot.notifiers.broadcast import StateBroadcaster, StateListener
from restockbot.notifiers.formatter import escape_mdv2, escape_url, format_notification
from restockbot.notifiers.notifier import Notifier
from restockbot.notifiers.telegram import TelegramClient

__all__ = [
    "Notifier",
    "StateBroadcaster",
    "StateListener",
    "TelegramClient",
    "escape_mdv2",
    "escape_url",
    "format_notification",
]
