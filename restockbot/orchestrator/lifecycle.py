"""Ownership of the one monitored tab.

:class:`ResourceManager` is the only place that knows which tab the session
owns.  It opens the tab, forgets it on teardown (cancelling the scheduler at
the same time so no cycle fires for a tab nobody owns), and decides what a
finished navigation means for the session.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from urllib.parse import urlsplit, urlunsplit

from restockbot.browser.host import BrowserHost
from restockbot.core.exceptions import ResourceCreationFailed, ResourceLost
from restockbot.orchestrator.scheduler import Scheduler
from restockbot.orchestrator.session import Session

__all__ = ["NavigationKind", "ResourceManager", "confirmation_locator"]

logger = logging.getLogger(__name__)


class NavigationKind(StrEnum):
    """What a finished navigation of some tab means to the session."""

    PROBE = "probe"
    CONFIRMATION = "confirmation"
    IGNORE = "ignore"


def confirmation_locator(target_url: str, path: str) -> str:
    """Checkout URL on the same origin as *target_url*.

    >>> confirmation_locator("https://shop.test/p/widget?x=1", "/s/checkout")
    'https://shop.test/s/checkout'
    """
    parts = urlsplit(target_url)
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def _without_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class ResourceManager:
    """Creates, tracks and releases the owned tab.

    Args:
        host: Browser host that actually opens tabs.
        scheduler: The session's scheduler; cancelled on :meth:`release`.
    """

    def __init__(self, host: BrowserHost, scheduler: Scheduler) -> None:
        self._host = host
        self._scheduler = scheduler
        self._resource_id: str | None = None

    @property
    def resource_id(self) -> str | None:
        return self._resource_id

    def owns(self, resource_id: str) -> bool:
        return self._resource_id is not None and resource_id == self._resource_id

    async def acquire(self, locator: str) -> str:
        """Open a tab at *locator* and take ownership of it.

        Raises:
            ResourceCreationFailed: The host could not open the tab.  Nothing
                is owned afterwards.
        """
        if self._resource_id is not None:
            raise RuntimeError(f"tab {self._resource_id} is still owned; release it first")
        resource_id = await self._host.create_resource(locator)
        if not resource_id:
            raise ResourceCreationFailed(None, f"host returned no tab for {locator}")
        self._resource_id = resource_id
        logger.debug("Now owning tab %s", resource_id)
        return resource_id

    def release(self) -> str | None:
        """Forget the owned tab and cancel the scheduler.  Idempotent.

        The tab itself stays open; it belongs to the operator again.

        Returns:
            The id that was owned, or ``None``.
        """
        self._scheduler.cancel()
        released, self._resource_id = self._resource_id, None
        if released is not None:
            logger.debug("Released tab %s", released)
        return released

    async def reload(self) -> None:
        """Reload the owned tab to start a new cycle.

        Raises:
            ResourceLost: Nothing is owned or the tab is gone.
            BrowserError: The reload failed on a live tab.
        """
        await self._host.reload(self._require())

    async def navigate(self, url: str) -> None:
        """Send the owned tab to *url*.

        Raises:
            ResourceLost: Nothing is owned or the tab is gone.
            BrowserError: Navigation failed on a live tab.
        """
        await self._host.navigate(self._require(), url)

    def classify(self, session: Session, resource_id: str, url: str) -> NavigationKind:
        """Decide what a finished navigation of *resource_id* to *url* means.

        * not the owned tab → ignore
        * awaiting confirmation and *url* is the checkout page → confirmation
        * *url* starts with the target URL → probe
        * anything else (the operator browsed away) → ignore
        """
        if not self.owns(resource_id):
            return NavigationKind.IGNORE
        if (
            session.awaiting_confirmation
            and session.confirmation_url is not None
            and _without_query(url).startswith(session.confirmation_url)
        ):
            return NavigationKind.CONFIRMATION
        if url.startswith(session.target_url):
            return NavigationKind.PROBE
        return NavigationKind.IGNORE

    def _require(self) -> str:
        if self._resource_id is None:
            raise ResourceLost(None, "no tab is owned")
        return self._resource_id
