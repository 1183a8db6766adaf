"""Fire-and-forget user notifications.

Provides :class:`Notifier`, the object the monitor calls when something
worth telling the operator happens (product available, added to cart, out of
stock, at checkout).  :meth:`Notifier.notify` never blocks the caller and
never raises: delivery runs as a background task and failures are logged.

Delivery mode:

* **Telegram** — when a :class:`~restockbot.notifiers.telegram.TelegramClient`
  is supplied and ``dry_run`` is off, the message is formatted as MarkdownV2
  and sent.
* **log only** — dry-run, or no Telegram client configured: the notification
  is written to the log at ``INFO`` (the console equivalent of a desktop
  toast).

Typical usage::

    notifier = Notifier(client=telegram_client, dry_run=settings.dry_run)
    notifier.notify("Product Available!", "The page has an add-to-cart button.")
    ...
    await notifier.drain()    # at shutdown
"""

from __future__ import annotations

import asyncio
import logging

from restockbot.core import events
from restockbot.core.exceptions import TelegramError
from restockbot.notifiers.formatter import format_notification
from restockbot.notifiers.telegram import TelegramClient

__all__ = ["Notifier"]

logger = logging.getLogger(__name__)


class Notifier:
    """Schedules and delivers operator notifications.

    The Notifier does not own the client's lifecycle; the caller opens and
    closes it.

    Args:
        client: Open Telegram client, or ``None`` to log notifications only.
        dry_run: Log the formatted payload instead of sending it.
    """

    def __init__(self, client: TelegramClient | None = None, *, dry_run: bool = False) -> None:
        self._client = client
        self._dry_run = dry_run
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        return len(self._pending)

    def notify(self, title: str, message: str, url: str | None = None) -> None:
        """Queue a notification and return immediately.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(
            self.send(title, message, url),
            name=f"restockbot-notify-{title}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send(self, title: str, message: str, url: str | None = None) -> bool:
        """Deliver one notification now.

        Returns:
            ``True`` if the message was sent to Telegram, ``False`` if it was
            only logged (dry-run / unconfigured) or delivery failed.
        """
        if self._client is None or self._dry_run:
            mode = "dry-run" if self._dry_run else "console"
            logger.info("[%s] %s: %s", mode, title, message)
            return False

        text = format_notification(title, message, url)
        try:
            await self._client.send_message(text, parse_mode="MarkdownV2")
        except TelegramError as exc:
            logger.error(
                "Failed to deliver notification %r: %s",
                title,
                exc,
                extra={"event": events.NOTIFY_ERROR},
            )
            return False
        except Exception:
            logger.exception(
                "Unexpected error delivering notification %r",
                title,
                extra={"event": events.NOTIFY_ERROR},
            )
            return False

        logger.info("Notification sent: %s", title)
        return True

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
