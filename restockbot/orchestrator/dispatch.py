"""Starting probes and matching their reports to the owned tab."""

from __future__ import annotations

import logging

from restockbot.browser.host import BrowserHost
from restockbot.core import events
from restockbot.core.exceptions import ProbeInjectionFailed, StaleProbeResult
from restockbot.core.models import ProbeResult

__all__ = ["ProbeDispatcher"]

logger = logging.getLogger(__name__)


class ProbeDispatcher:
    """Best-effort probe injection plus result correlation.

    Args:
        host: Browser host that runs the probe.
    """

    def __init__(self, host: BrowserHost) -> None:
        self._host = host

    async def inject(self, resource_id: str, quantity: int) -> bool:
        """Start the probe in *resource_id*.

        Returns:
            ``False`` if the host refused; the failure is logged and
            otherwise absorbed.
        """
        try:
            await self._host.inject_probe(resource_id, quantity)
        except ProbeInjectionFailed as exc:
            logger.warning(
                "Could not start probe: %s",
                exc,
                extra={"event": events.PROBE_INJECT_ERROR},
            )
            return False
        logger.debug("Probe started", extra={"event": events.PROBE_INJECTED})
        return True

    @staticmethod
    def correlate(result: ProbeResult, owned_id: str | None) -> ProbeResult:
        """Return *result* if it belongs to *owned_id*.

        Raises:
            StaleProbeResult: The result is for another (or no longer owned) tab.
        """
        if owned_id is None or result.resource_id != owned_id:
            raise StaleProbeResult(result.resource_id, owned_id)
        return result
