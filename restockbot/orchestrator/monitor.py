"""The monitoring state machine.

:class:`Monitor` owns at most one session at a time.  A session starts on
``START``, reloads the owned tab every ``interval_seconds`` while the probe
keeps reporting ``not_found``, and ends on the first decisive result, on
``STOP``, or when the tab goes away.

Every input (the three commands, the host's navigation and close signals,
the probe's reports, the scheduler firing) becomes a message on a single
:class:`asyncio.Queue`.  One worker task consumes the queue, so handlers run
strictly one after another and the session never sees two events at once.
The host listener methods are synchronous and only enqueue.

State transitions per probe result
----------------------------------
* ``available`` + ``attempted-succeeded`` — success recorded, the tab is sent
  to the checkout page and the session waits (bounded by
  ``confirmation_timeout_seconds``) for that navigation to complete.
* ``available`` + anything else — success recorded, session ends.
* ``out_of_stock`` — recorded, session ends.  Not retried.
* ``not_found`` — ``attempt_count`` + 1, next reload armed.

Typical usage::

    async with Monitor(store, host, notifier, broadcaster, settings) as monitor:
        await monitor.start(MonitorConfig(url="https://shop.test/p/widget"))
        await monitor.wait_finished()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from functools import partial
from typing import Any

from restockbot.browser.host import BrowserHost
from restockbot.core import events
from restockbot.core.exceptions import (
    BrowserError,
    ConfigError,
    OrchestratorError,
    ResourceLost,
    StaleProbeResult,
)
from restockbot.core.logging_config import SESSION_ID_CTX
from restockbot.core.models import (
    LastError,
    MonitorConfig,
    MonitorState,
    ProbeResult,
    ProbeStatus,
    PurchaseOutcome,
    StateSnapshot,
)
from restockbot.core.settings import Settings
from restockbot.notifiers.broadcast import StateBroadcaster
from restockbot.notifiers.notifier import Notifier
from restockbot.orchestrator.dispatch import ProbeDispatcher
from restockbot.orchestrator.lifecycle import (
    NavigationKind,
    ResourceManager,
    confirmation_locator,
)
from restockbot.orchestrator.messages import (
    Command,
    GetState,
    Message,
    ProbeReported,
    RefreshDue,
    ResourceGone,
    ResourceNavigated,
    Start,
    Stop,
)
from restockbot.orchestrator.scheduler import RefreshScheduler, Scheduler
from restockbot.orchestrator.session import Session
from restockbot.storage.store import StateStore

__all__ = ["Monitor"]

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


class Monitor:
    """Single-session restock monitor.

    Implements :class:`~restockbot.browser.host.HostListener`; the
    constructor binds itself to *host*.

    Args:
        store: Persistence for config and live state.
        host: Browser host owning the actual tabs.
        notifier: Operator notifications (fire-and-forget).
        broadcaster: ``STATE_UPDATE`` fan-out.
        settings: Checkout path and confirmation deadline are read from
            here.  Loaded from the environment when ``None``.
        scheduler: Single-slot timer; a :class:`RefreshScheduler` by default.
    """

    def __init__(
        self,
        store: StateStore,
        host: BrowserHost,
        notifier: Notifier,
        broadcaster: StateBroadcaster,
        settings: Settings | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._broadcaster = broadcaster
        self._settings = settings if settings is not None else Settings()
        self._scheduler = scheduler if scheduler is not None else RefreshScheduler()
        self._resources = ResourceManager(host, self._scheduler)
        self._dispatcher = ProbeDispatcher(host)
        self._queue: asyncio.Queue[Message] = asyncio.Queue()
        self._session: Session | None = None
        self._worker: asyncio.Task[None] | None = None
        self._finished = asyncio.Event()
        self._handlers: dict[type, Callable[[Any], Awaitable[Any]]] = {
            Start: self._handle_start,
            Stop: self._handle_stop,
            GetState: self._handle_get_state,
            ResourceNavigated: self._handle_navigated,
            ResourceGone: self._handle_gone,
            ProbeReported: self._handle_probe_result,
            RefreshDue: self._handle_refresh_due,
        }
        host.bind(self)

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Monitor:
        self.open()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def session(self) -> Session | None:
        return self._session

    def open(self) -> None:
        """Start the worker task.  Must be called from a running loop."""
        if self.is_running:
            return
        self._worker = asyncio.get_running_loop().create_task(
            self._run(), name="restockbot-monitor"
        )

    async def close(self) -> None:
        """Stop the worker and abandon the session without touching the tab.

        Commands still queued fail with :class:`OrchestratorError`.
        """
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        self._resources.release()
        self._session = None
        while not self._queue.empty():
            message = self._queue.get_nowait()
            self._queue.task_done()
            if isinstance(message, Command) and not message.reply.done():
                message.reply.set_exception(OrchestratorError("monitor closed"))
        self._finished.set()

    async def join(self) -> None:
        """Wait until every queued message has been handled."""
        await self._queue.join()

    async def wait_finished(self) -> None:
        """Wait until the current session ends (any terminal path)."""
        await self._finished.wait()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self, config: MonitorConfig) -> MonitorState:
        """Start a session for *config*, replacing any running one.

        Raises:
            ConfigError: ``config.url`` is empty.
            ResourceCreationFailed: The tab could not be opened.
            OrchestratorError: The monitor is not running.
        """
        return await self._request(partial(Start, config))

    async def stop(self) -> MonitorState:
        """End the session, if any, and return the idle state."""
        return await self._request(Stop)

    async def get_state(self) -> StateSnapshot:
        return await self._request(GetState)

    async def _request(self, build: Callable[..., Command]) -> Any:
        if not self.is_running:
            raise OrchestratorError("monitor is not running")
        reply: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(build(reply=reply))
        return await reply

    # ------------------------------------------------------------------
    # HostListener
    # ------------------------------------------------------------------

    def on_resource_navigated(self, resource_id: str, url: str) -> None:
        self._queue.put_nowait(ResourceNavigated(resource_id, url))

    def on_resource_gone(self, resource_id: str) -> None:
        self._queue.put_nowait(ResourceGone(resource_id))

    def on_probe_result(self, result: ProbeResult) -> None:
        self._queue.put_nowait(ProbeReported(result))

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            token = SESSION_ID_CTX.set(self._resources.resource_id or "-")
            try:
                result = await self._handlers[type(message)](message)
            except asyncio.CancelledError:
                if isinstance(message, Command) and not message.reply.done():
                    message.reply.cancel()
                raise
            except Exception as exc:
                if isinstance(message, Command):
                    if not message.reply.done():
                        message.reply.set_exception(exc)
                else:
                    logger.exception("Error handling %s", type(message).__name__)
            else:
                if isinstance(message, Command) and not message.reply.done():
                    message.reply.set_result(result)
            finally:
                SESSION_ID_CTX.reset(token)
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def _handle_start(self, message: Start) -> MonitorState:
        config = message.config
        if not config.url:
            raise ConfigError("A product URL is required to start monitoring")

        if self._session is not None:
            await self._reset("Previous session replaced", events.SESSION_STOP)

        await self._store.set_config(config)
        resource_id = await self._resources.acquire(config.url)
        SESSION_ID_CTX.set(resource_id)
        try:
            state = await self._store.set_state(
                MonitorState(
                    is_monitoring=True,
                    owned_resource_id=resource_id,
                    last_probe_time=_now(),
                    attempt_count=1,
                )
            )
        except Exception:
            self._resources.release()
            raise

        self._session = Session(resource_id=resource_id, config=config)
        self._finished.clear()
        logger.info(
            "Monitoring %s every %.1f s (quantity %d)",
            config.url,
            config.interval_seconds,
            config.quantity,
            extra={"event": events.SESSION_START},
        )
        self._broadcaster.publish(state)
        return state

    async def _handle_stop(self, _: Stop) -> MonitorState:
        return await self._reset("Monitoring stopped", events.SESSION_STOP)

    async def _handle_get_state(self, _: GetState) -> StateSnapshot:
        return await self._store.snapshot()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _handle_navigated(self, message: ResourceNavigated) -> None:
        session = self._session
        if session is None:
            return
        kind = self._resources.classify(session, message.resource_id, message.url)

        if kind is NavigationKind.CONFIRMATION:
            logger.info(
                "Checkout page reached: %s",
                message.url,
                extra={"event": events.CONFIRMATION_REACHED},
            )
            self._notifier.notify(
                "Ready for checkout!",
                "You are now on the checkout page. Complete your purchase!",
                message.url,
            )
            await self._finish(reached_confirmation=True)
            return

        if kind is NavigationKind.IGNORE:
            logger.debug("Ignoring navigation of tab %s to %s", message.resource_id, message.url)
            return

        if session.succeeded:
            return
        state = await self._store.get_state()
        if not state.is_monitoring:
            return
        if not await self._dispatcher.inject(session.resource_id, session.config.quantity):
            self._arm_refresh(session)

    async def _handle_gone(self, message: ResourceGone) -> None:
        session = self._session
        if session is None or not self._resources.owns(message.resource_id):
            return
        if session.succeeded:
            logger.info("Tab closed before the checkout page loaded")
            await self._finish()
            return
        await self._reset("Monitored tab closed", events.SESSION_RESOURCE_LOST)

    async def _handle_refresh_due(self, message: RefreshDue) -> None:
        session = self._session
        if session is None or not self._resources.owns(message.resource_id):
            return

        if session.awaiting_confirmation:
            logger.warning(
                "Checkout page did not load within %.0f s",
                self._settings.confirmation_timeout_seconds,
                extra={"event": events.CONFIRMATION_TIMEOUT},
            )
            await self._finish()
            return

        try:
            await self._resources.reload()
        except ResourceLost:
            await self._reset("Monitored tab is gone", events.SESSION_RESOURCE_LOST)
            return
        except BrowserError as exc:
            logger.warning("Reload failed: %s", exc, extra={"event": events.REFRESH_ERROR})
            self._arm_refresh(session)
            return
        logger.debug("Tab reloaded", extra={"event": events.REFRESH})

    async def _handle_probe_result(self, message: ProbeReported) -> None:
        try:
            result = self._dispatcher.correlate(message.result, self._resources.resource_id)
        except StaleProbeResult as exc:
            logger.debug("Discarding result: %s", exc, extra={"event": events.PROBE_STALE})
            return

        session = self._session
        if session is None:
            return
        if session.succeeded:
            logger.debug(
                "Session already succeeded; ignoring %s",
                result.status,
                extra={"event": events.PROBE_IGNORED},
            )
            return

        if result.status is ProbeStatus.AVAILABLE:
            await self._on_available(session, result.purchase_outcome)
        elif result.status is ProbeStatus.OUT_OF_STOCK:
            await self._on_out_of_stock(session)
        else:
            await self._on_not_found(session)

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    async def _on_available(self, session: Session, outcome: PurchaseOutcome | None) -> None:
        session.succeeded = True
        self._scheduler.cancel()
        logger.info(
            "Product available (purchase: %s)",
            outcome or PurchaseOutcome.NOT_ATTEMPTED,
            extra={"event": events.TARGET_AVAILABLE},
        )

        if outcome is PurchaseOutcome.ATTEMPTED_SUCCEEDED:
            await self._on_added_to_cart(session)
            return

        attempted = outcome is PurchaseOutcome.ATTEMPTED_FAILED
        if attempted:
            self._notifier.notify(
                "Product Available!",
                "Product is available but auto-click failed. Check the tab.",
                session.target_url,
            )
        else:
            self._notifier.notify(
                "Product Available!",
                'The product has an "Add to Cart" button - it may be available!',
                session.target_url,
            )
        await self._finish(
            last_probe_time=_now(),
            last_error=LastError.NONE,
            success_detected=True,
            purchase_attempted=attempted,
            purchase_completed=False,
        )

    async def _on_added_to_cart(self, session: Session) -> None:
        checkout_url = confirmation_locator(session.target_url, self._settings.checkout_path)
        session.awaiting_confirmation = True
        session.confirmation_url = checkout_url

        state = await self._store.update_state(
            last_probe_time=_now(),
            last_error=LastError.NONE,
            success_detected=True,
            purchase_attempted=True,
            purchase_completed=True,
        )
        self._notifier.notify(
            "Added to Cart!",
            "The product was automatically added to your cart!",
            checkout_url,
        )
        self._broadcaster.publish(state)

        logger.info(
            "Sending tab to %s",
            checkout_url,
            extra={"event": events.CONFIRMATION_REQUESTED},
        )
        try:
            await self._resources.navigate(checkout_url)
        except BrowserError as exc:
            logger.warning("Could not open the checkout page: %s", exc)
            await self._finish()
            return
        self._arm(session, self._settings.confirmation_timeout_seconds)

    async def _on_out_of_stock(self, session: Session) -> None:
        self._scheduler.cancel()
        logger.info("Product page shows out of stock", extra={"event": events.TARGET_OUT_OF_STOCK})
        self._notifier.notify(
            "Item Out of Stock",
            "The product page exists but shows out of stock.",
            session.target_url,
        )
        await self._finish(
            last_probe_time=_now(),
            last_error=LastError.OUT_OF_STOCK,
            success_detected=False,
        )

    async def _on_not_found(self, session: Session) -> None:
        state = await self._store.increment_attempts(
            last_probe_time=_now(),
            last_error=LastError.NOT_FOUND,
            success_detected=False,
        )
        logger.info(
            "Not available yet (attempt %d)",
            state.attempt_count,
            extra={"event": events.TARGET_NOT_FOUND},
        )
        self._broadcaster.publish(state)
        if state.is_monitoring and self._resources.owns(session.resource_id):
            self._arm_refresh(session)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _arm_refresh(self, session: Session) -> None:
        self._arm(session, session.config.interval_seconds)
        logger.debug(
            "Next reload in %.1f s",
            session.config.interval_seconds,
            extra={"event": events.RETRY_SCHEDULED},
        )

    def _arm(self, session: Session, delay_seconds: float) -> None:
        self._scheduler.schedule(
            partial(self._queue.put_nowait, RefreshDue(session.resource_id)),
            delay_seconds,
        )

    async def _reset(self, reason: str, event: str) -> MonitorState:
        """Tear down to the all-defaults idle state."""
        released = self._resources.release()
        self._session = None
        state = await self._store.reset_state()
        if released is not None:
            logger.info(reason, extra={"event": event})
        self._broadcaster.publish(state)
        self._finished.set()
        return state

    async def _finish(self, **outcome: object) -> MonitorState:
        """End the session on a business outcome, keeping the outcome fields."""
        self._resources.release()
        self._session = None
        state = await self._store.update_state(
            is_monitoring=False, owned_resource_id=None, **outcome
        )
        logger.info("Session finished: %s", state.summary(), extra={"event": events.SESSION_FINISHED})
        self._broadcaster.publish(state)
        self._finished.set()
        return state
