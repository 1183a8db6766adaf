"""Process-level wiring: assemble the components and run one session.

:func:`run_monitor` is what :mod:`restockbot.__main__` calls.  It

1. opens the SQLite store and resets the live state (a tab handle from a
   previous process means nothing now),
2. opens the Telegram client when credentials are configured and dry-run is
   off,
3. launches the browser and starts the :class:`~restockbot.orchestrator.monitor.Monitor`
   worker,
4. starts a session and waits for it to end (outcome, tab closed, ``SIGTERM``
   or Ctrl+C),
5. in headed mode after a success, keeps the browser open until the operator
   closes it, so the cart and checkout page are not lost,
6. flushes pending notifications and tears everything down in reverse order;
   a session cut short (Ctrl+C, cancellation) is written back as idle.

Typical usage::

    import asyncio
    from restockbot.core.models import MonitorConfig
    from restockbot.orchestrator.runner import run_monitor

    state = asyncio.run(run_monitor(MonitorConfig(url="https://shop.test/p/widget")))
    print(state.summary())
"""

from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import AsyncExitStack
from typing import Any

from restockbot.browser.playwright_host import PlaywrightHost
from restockbot.core.exceptions import ConfigError, StorageError
from restockbot.core.models import MonitorConfig, MonitorState, StateSnapshot
from restockbot.core.settings import Settings
from restockbot.notifiers.broadcast import StateBroadcaster
from restockbot.notifiers.notifier import Notifier
from restockbot.notifiers.telegram import TelegramClient
from restockbot.orchestrator.monitor import Monitor
from restockbot.storage.database import open_db
from restockbot.storage.store import StateStore

__all__ = ["run_monitor", "read_snapshot"]

logger = logging.getLogger(__name__)


def _log_state(state: MonitorState) -> None:
    logger.info("State: %s", state.summary())


async def _first_of(*aws: asyncio.Future[Any]) -> None:
    """Wait until any of *aws* completes, then cancel the rest."""
    try:
        await asyncio.wait(aws, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in aws:
            task.cancel()
        await asyncio.gather(*aws, return_exceptions=True)


async def read_snapshot(settings: Settings | None = None) -> StateSnapshot:
    """Return the persisted config and state without starting anything.

    No session outlives the process that ran it, so a record still marked as
    monitoring (left behind by a killed process) is reported as idle.
    """
    if settings is None:
        settings = Settings()
    conn = await open_db(settings.database_path_resolved)
    try:
        snapshot = await StateStore(conn).snapshot()
    finally:
        await conn.close()
    if snapshot.state.is_monitoring:
        logger.debug("Stored state belongs to a dead session; reporting idle")
        snapshot = snapshot.model_copy(update={"state": MonitorState()})
    return snapshot


async def _settle(store: StateStore) -> None:
    """Write an interrupted session back as idle."""
    try:
        state = await store.get_state()
        if state.is_monitoring:
            await store.reset_state()
            logger.info("Session interrupted; state reset to idle.")
    except StorageError:
        logger.exception("Could not reset the state of the interrupted session")


async def run_monitor(
    config: MonitorConfig | None = None,
    settings: Settings | None = None,
) -> MonitorState:
    """Run one monitoring session to its end.

    Args:
        config: Session config.  ``None`` reuses the last stored config.
        settings: Pre-loaded settings; loaded from the environment when
            ``None``.

    Returns:
        The final :class:`MonitorState`.

    Raises:
        ConfigError: No product URL was given and none is stored.
        ResourceCreationFailed: The browser could not open a tab.
    """
    if settings is None:
        settings = Settings()

    if not settings.telegram_configured and not settings.dry_run:
        logger.info(
            "Telegram not configured; notifications are written to the log only. "
            "Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID to enable them."
        )

    conn = await open_db(settings.database_path_resolved)
    store = StateStore(conn)
    try:
        await store.reset_state()

        if config is None:
            config = await store.get_config()
        if not config.url:
            raise ConfigError("No product URL given and none stored from a previous run")

        async with AsyncExitStack() as stack:
            client: TelegramClient | None = None
            if settings.telegram_configured and not settings.dry_run:
                client = await stack.enter_async_context(
                    TelegramClient(settings.telegram_bot_token, settings.telegram_chat_id)
                )
            notifier = Notifier(client, dry_run=settings.dry_run)
            broadcaster = StateBroadcaster()
            broadcaster.subscribe(_log_state)

            host = await stack.enter_async_context(PlaywrightHost.from_settings(settings))
            monitor = await stack.enter_async_context(
                Monitor(store, host, notifier, broadcaster, settings)
            )

            loop = asyncio.get_running_loop()
            shutdown = asyncio.Event()

            def _request_shutdown() -> None:
                if not shutdown.is_set():
                    logger.info("Received SIGTERM; stopping the session.")
                    shutdown.set()

            loop.add_signal_handler(signal.SIGTERM, _request_shutdown)
            try:
                await monitor.start(config)
                await _first_of(
                    asyncio.ensure_future(monitor.wait_finished()),
                    asyncio.ensure_future(shutdown.wait()),
                )
                if shutdown.is_set():
                    await monitor.stop()

                final = (await monitor.get_state()).state
                logger.info("Session over: %s", final.summary())

                if final.success_detected and not settings.browser_headless and not shutdown.is_set():
                    logger.info("Leaving the browser open; close it (or press Ctrl+C) to exit.")
                    await _first_of(
                        asyncio.ensure_future(host.wait_closed()),
                        asyncio.ensure_future(shutdown.wait()),
                    )
            finally:
                loop.remove_signal_handler(signal.SIGTERM)
                await notifier.drain()

        return final
    finally:
        await _settle(store)
        await conn.close()
        logger.debug("Database connection closed.")
