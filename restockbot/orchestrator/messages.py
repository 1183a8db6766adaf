"""Messages consumed by the monitor's worker.

Commands carry an :class:`asyncio.Future` that the worker resolves with the
reply.  Events are fire-and-forget signals from the browser host, the probe,
or the scheduler.  Everything the monitor reacts to is one of these, which
is what guarantees that no two handlers ever interleave.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from restockbot.core.models import MonitorConfig, ProbeResult

__all__ = [
    "Command",
    "Start",
    "Stop",
    "GetState",
    "ResourceNavigated",
    "ResourceGone",
    "ProbeReported",
    "RefreshDue",
    "Message",
]


@dataclass
class Command:
    reply: asyncio.Future[Any] = field(kw_only=True)


@dataclass
class Start(Command):
    config: MonitorConfig


@dataclass
class Stop(Command):
    pass


@dataclass
class GetState(Command):
    pass


@dataclass(frozen=True)
class ResourceNavigated:
    resource_id: str
    url: str


@dataclass(frozen=True)
class ResourceGone:
    resource_id: str


@dataclass(frozen=True)
class ProbeReported:
    result: ProbeResult


@dataclass(frozen=True)
class RefreshDue:
    """Scheduler fired for the session owning *resource_id*."""

    resource_id: str


Message = Start | Stop | GetState | ResourceNavigated | ResourceGone | ProbeReported | RefreshDue
