"""Single-slot deferred execution.

:class:`RefreshScheduler` holds at most one pending callback.  Arming it
again replaces whatever was pending, so the monitor can call
:meth:`~RefreshScheduler.schedule` from any handler without checking first
and still never end up with two cycles queued.

The scheduler sits on the running loop's ``call_later``: no thread, no task
of its own.  Callbacks are plain functions; the monitor's callback only
enqueues a message, so no orchestrator logic ever runs inside a timer.

Typical usage::

    scheduler = RefreshScheduler()
    scheduler.schedule(lambda: queue.put_nowait(RefreshDue(tab)), 5.0)
    scheduler.is_pending()   # True
    scheduler.cancel()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

__all__ = ["Scheduler", "RefreshScheduler"]

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """What the monitor needs from a scheduler; tests supply a manual one."""

    def schedule(self, callback: Callable[[], None], delay_seconds: float) -> None: ...

    def cancel(self) -> None: ...

    def is_pending(self) -> bool: ...


class RefreshScheduler:
    """Timer with exactly one slot, backed by ``loop.call_later``."""

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None

    def schedule(self, callback: Callable[[], None], delay_seconds: float) -> None:
        """Cancel any pending callback and arm *callback* after *delay_seconds*.

        Must be called from a running event loop.
        """
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay_seconds, self._fire, callback)
        logger.debug("Scheduled callback in %.2f s", delay_seconds)

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def is_pending(self) -> bool:
        return self._handle is not None

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()
