"""Per-session working memory of the monitor."""

from __future__ import annotations

from dataclasses import dataclass

from restockbot.core.models import MonitorConfig

__all__ = ["Session"]


@dataclass
class Session:
    """Everything the monitor remembers between events of one session.

    Created on ``START`` and dropped on teardown.  Only the monitor's worker
    mutates it.

    Attributes:
        resource_id: Tab owned by the session.
        config: Config the session was started with.
        succeeded: Latched once the product was found available; later probe
            results are ignored.
        awaiting_confirmation: Set after a successful add-to-cart while the
            tab is on its way to the checkout page.
        confirmation_url: Checkout page the tab was sent to.
    """

    resource_id: str
    config: MonitorConfig
    succeeded: bool = False
    awaiting_confirmation: bool = False
    confirmation_url: str | None = None

    @property
    def target_url(self) -> str:
        return self.config.url
