"""The monitoring state machine and the pieces it is built from.

Public API
----------
* :class:`~restockbot.orchestrator.monitor.Monitor` — single-session state
  machine; one queue, one worker.
* :func:`~restockbot.orchestrator.runner.run_monitor` — process entry-point;
  wires store, browser, notifier and monitor and runs one session.
* :class:`~restockbot.orchestrator.scheduler.RefreshScheduler` — single-slot
  timer.
* :class:`~restockbot.orchestrator.lifecycle.ResourceManager` — ownership of
  the monitored tab.
* :class:`~restockbot.orchestrator.dispatch.ProbeDispatcher` — probe
  injection and result correlation.
"""

from restockbot.orchestrator.dispatch import ProbeDispatcher
from restockbot.orchestrator.lifecycle import (
    NavigationKind,
    ResourceManager,
    confirmation_locator,
)
from restockbot.orchestrator.monitor import Monitor
from restockbot.orchestrator.runner import read_snapshot, run_monitor
from restockbot.orchestrator.scheduler import RefreshScheduler, Scheduler
from restockbot.orchestrator.session import Session

__all__ = [
    # State machine
    "Monitor",
    "Session",
    # Entry-points
    "run_monitor",
    "read_snapshot",
    # Building blocks
    "RefreshScheduler",
    "Scheduler",
    "ResourceManager",
    "NavigationKind",
    "confirmation_locator",
    "ProbeDispatcher",
]
