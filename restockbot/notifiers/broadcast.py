"""``STATE_UPDATE`` fan-out to presentation layers.

The monitor publishes the live :class:`~restockbot.core.models.MonitorState`
after every mutation.  Anything that wants to render progress (the CLI's
status line, a future UI) subscribes a plain callable.  Delivery is
synchronous and best-effort: a subscriber that raises is logged and skipped,
and publishing with no subscribers is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from restockbot.core import events
from restockbot.core.models import MonitorState

__all__ = ["StateListener", "StateBroadcaster"]

logger = logging.getLogger(__name__)

StateListener = Callable[[MonitorState], None]


class StateBroadcaster:
    """Registry of ``STATE_UPDATE`` listeners."""

    def __init__(self) -> None:
        self._listeners: list[StateListener] = []

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, state: MonitorState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.warning(
                    "STATE_UPDATE listener %r raised; ignoring",
                    listener,
                    exc_info=True,
                    extra={"event": events.BROADCAST_ERROR},
                )
