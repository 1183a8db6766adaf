"""Playwright implementation of :class:`~restockbot.browser.host.BrowserHost`.

One browser, one context, one page per resource.  Each page gets a short hex
id when it is opened; Playwright page events are translated into listener
calls carrying that id:

* page ``load`` (main frame finished loading) → ``on_resource_navigated``
* page ``close`` → ``on_resource_gone``

The probe runs as a task next to the page.  When it finishes, its result is
handed to ``on_probe_result``.  Starting a new probe on a tab cancels the one
still running there, so a reload never yields two reports for one cycle.

Typical usage::

    async with PlaywrightHost.from_settings(settings) as host:
        host.bind(monitor)
        tab = await host.create_resource("https://shop.test/p/widget")
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from restockbot.browser.host import HostListener
from restockbot.browser.probe import run_probe
from restockbot.core.exceptions import (
    BrowserError,
    ProbeInjectionFailed,
    ResourceCreationFailed,
    ResourceLost,
)
from restockbot.core.models import ProbeResult, ProbeStatus
from restockbot.core.settings import Settings

__all__ = ["PlaywrightHost"]

logger = logging.getLogger(__name__)


class PlaywrightHost:
    """Drives a real browser through Playwright's async API.

    Args:
        engine: ``"chromium"``, ``"firefox"`` or ``"webkit"``.
        headless: Launch without a window.
        ready_timeout: Probe readiness ceiling, seconds.
        ready_poll: Probe readiness poll step, seconds.
    """

    def __init__(
        self,
        *,
        engine: str = "chromium",
        headless: bool = False,
        ready_timeout: float = 5.0,
        ready_poll: float = 0.5,
    ) -> None:
        self._engine = engine
        self._headless = headless
        self._ready_timeout = ready_timeout
        self._ready_poll = ready_poll

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._listener: HostListener | None = None
        self._pages: dict[str, Page] = {}
        self._probes: dict[str, asyncio.Task[None]] = {}
        self._closed = asyncio.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> PlaywrightHost:
        return cls(
            engine=settings.browser_engine,
            headless=settings.browser_headless,
            ready_timeout=settings.probe_ready_timeout_seconds,
            ready_poll=settings.probe_ready_poll_seconds,
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PlaywrightHost:
        self._playwright = await async_playwright().start()
        browser_type = getattr(self._playwright, self._engine)
        self._browser = await browser_type.launch(headless=self._headless)
        self._browser.on("disconnected", lambda _: self._closed.set())
        self._context = await self._browser.new_context()
        logger.info("Browser started (%s, headless=%s)", self._engine, self._headless)
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Cancel running probes and shut the browser down.  Idempotent."""
        for task in self._probes.values():
            task.cancel()
        if self._probes:
            await asyncio.gather(*self._probes.values(), return_exceptions=True)
        self._probes.clear()
        self._pages.clear()

        if self._browser is not None:
            with contextlib.suppress(PlaywrightError):
                await self._browser.close()
            self._browser = None
            self._context = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self._closed.set()
        logger.debug("Browser closed")

    async def wait_closed(self) -> None:
        """Return once the operator has closed every tab or the browser."""
        await self._closed.wait()

    # ------------------------------------------------------------------
    # BrowserHost
    # ------------------------------------------------------------------

    def bind(self, listener: HostListener) -> None:
        self._listener = listener

    async def create_resource(self, url: str) -> str:
        if self._context is None:
            raise ResourceCreationFailed(None, "browser is not running")

        resource_id = uuid.uuid4().hex[:8]
        try:
            page = await self._context.new_page()
        except PlaywrightError as exc:
            raise ResourceCreationFailed(None, f"could not open a tab: {exc}") from exc

        self._pages[resource_id] = page
        self._closed.clear()
        page.on("load", lambda loaded: self._emit_navigated(resource_id, loaded))
        page.on("close", lambda _: self._emit_gone(resource_id))

        try:
            await page.goto(url, wait_until="commit")
        except PlaywrightError as exc:
            # The tab exists; the first probe reports not_found and the reload cycle retries.
            logger.warning("Tab %s could not load %s: %s", resource_id, url, exc)
            self._emit_url(resource_id, url)

        with contextlib.suppress(PlaywrightError):
            await page.bring_to_front()
        logger.debug("Opened tab %s at %s", resource_id, url)
        return resource_id

    async def navigate(self, resource_id: str, url: str) -> None:
        page = self._live_page(resource_id)
        try:
            await page.goto(url, wait_until="commit")
        except PlaywrightError as exc:
            raise self._translate(resource_id, page, f"navigation to {url} failed", exc) from exc

    async def reload(self, resource_id: str) -> None:
        page = self._live_page(resource_id)
        try:
            await page.reload(wait_until="commit")
        except PlaywrightError as exc:
            raise self._translate(resource_id, page, "reload failed", exc) from exc

    async def inject_probe(self, resource_id: str, quantity: int) -> None:
        page = self._pages.get(resource_id)
        if page is None or page.is_closed():
            raise ProbeInjectionFailed(resource_id, "tab is not open")

        previous = self._probes.pop(resource_id, None)
        if previous is not None:
            previous.cancel()

        task = asyncio.get_running_loop().create_task(
            self._probe(resource_id, page, quantity),
            name=f"restockbot-probe-{resource_id}",
        )
        self._probes[resource_id] = task
        task.add_done_callback(lambda done: self._forget_probe(resource_id, done))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _live_page(self, resource_id: str) -> Page:
        page = self._pages.get(resource_id)
        if page is None or page.is_closed():
            raise ResourceLost(resource_id, "tab is closed")
        return page

    @staticmethod
    def _translate(resource_id: str, page: Page, what: str, exc: PlaywrightError) -> BrowserError:
        if page.is_closed():
            return ResourceLost(resource_id, f"{what}: tab closed")
        return BrowserError(resource_id, f"{what}: {exc}")

    async def _probe(self, resource_id: str, page: Page, quantity: int) -> None:
        try:
            status, outcome = await run_probe(
                page,
                quantity,
                ready_timeout=self._ready_timeout,
                ready_poll=self._ready_poll,
            )
        except PlaywrightError as exc:
            if page.is_closed():
                return
            # A script error or a navigation racing the probe: treat as "not there yet".
            logger.warning("Probe on tab %s failed, reporting not_found: %s", resource_id, exc)
            status, outcome = ProbeStatus.NOT_FOUND, None
        except Exception:
            if page.is_closed():
                return
            logger.exception("Probe on tab %s crashed, reporting not_found", resource_id)
            status, outcome = ProbeStatus.NOT_FOUND, None

        if self._listener is not None:
            self._listener.on_probe_result(
                ProbeResult(resource_id=resource_id, status=status, purchase_outcome=outcome)
            )

    def _forget_probe(self, resource_id: str, task: asyncio.Task[None]) -> None:
        if self._probes.get(resource_id) is task:
            del self._probes[resource_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Probe task for tab %s crashed", resource_id, exc_info=task.exception())

    def _emit_navigated(self, resource_id: str, page: Page) -> None:
        self._emit_url(resource_id, page.url)

    def _emit_url(self, resource_id: str, url: str) -> None:
        if self._listener is not None:
            self._listener.on_resource_navigated(resource_id, url)

    def _emit_gone(self, resource_id: str) -> None:
        self._pages.pop(resource_id, None)
        task = self._probes.pop(resource_id, None)
        if task is not None:
            task.cancel()
        if not any(not page.is_closed() for page in self._pages.values()):
            self._closed.set()
        if self._listener is not None:
            self._listener.on_resource_gone(resource_id)
