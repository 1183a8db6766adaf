"""Contracts between the monitor and whatever drives the browser.

The monitor never touches Playwright directly.  It talks to a
:class:`BrowserHost` (open a tab, reload it, send it somewhere, start the
probe in it) and receives the host's asynchronous signals through the
:class:`HostListener` methods it implements.  Tests substitute an in-memory
host that records calls and lets the test fire the signals by hand.
"""

from __future__ import annotations

from typing import Protocol

from restockbot.core.models import ProbeResult

__all__ = ["BrowserHost", "HostListener"]


class HostListener(Protocol):
    """Receiver of host signals.

    Implementations must return quickly and must not await; the monitor
    implements them by enqueueing a message for its worker.
    """

    def on_resource_navigated(self, resource_id: str, url: str) -> None:
        """A tab finished loading *url* in its main frame."""

    def on_resource_gone(self, resource_id: str) -> None:
        """A tab was closed (by the operator, a crash, or the host)."""

    def on_probe_result(self, result: ProbeResult) -> None:
        """A probe started by :meth:`BrowserHost.inject_probe` finished."""


class BrowserHost(Protocol):
    """Operations the monitor needs from a browser."""

    def bind(self, listener: HostListener) -> None:
        """Route all future signals to *listener*."""

    async def create_resource(self, url: str) -> str:
        """Open a tab at *url* and return its opaque id.

        Raises:
            ResourceCreationFailed: The tab could not be opened.
        """

    async def navigate(self, resource_id: str, url: str) -> None:
        """Point an existing tab at *url*.

        Raises:
            ResourceLost: The tab no longer exists.
            BrowserError: Navigation failed on a live tab.
        """

    async def reload(self, resource_id: str) -> None:
        """Reload an existing tab.

        Raises:
            ResourceLost: The tab no longer exists.
            BrowserError: The reload failed on a live tab.
        """

    async def inject_probe(self, resource_id: str, quantity: int) -> None:
        """Start the probe in a tab; its result arrives via ``on_probe_result``.

        Raises:
            ProbeInjectionFailed: The probe could not be started.
        """
