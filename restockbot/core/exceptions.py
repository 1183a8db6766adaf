"""Restockbot exception taxonomy.

Every custom exception inherits from :class:`RestockbotError`.  Exceptions are
grouped by the layer that raises them:

    Layer hierarchy
    ---------------
    RestockbotError
    ├── ConfigError
    ├── StorageError
    ├── BrowserError
    │   ├── ResourceCreationFailed
    │   ├── ResourceLost
    │   └── ProbeInjectionFailed
    ├── StaleProbeResult
    ├── NotificationError
    │   └── TelegramError
    │       └── TelegramRateLimitError
    └── OrchestratorError

Only :class:`ResourceCreationFailed` ever reaches a command caller.  The other
browser-layer errors are absorbed by the orchestrator and turned into state
transitions.  A product that is confirmed out of stock is a normal outcome and
has no exception class.
"""

from __future__ import annotations

__all__ = [
    "RestockbotError",
    "ConfigError",
    "StorageError",
    # Browser
    "BrowserError",
    "ResourceCreationFailed",
    "ResourceLost",
    "ProbeInjectionFailed",
    # Probe correlation
    "StaleProbeResult",
    # Notification
    "NotificationError",
    "TelegramError",
    "TelegramRateLimitError",
    # Orchestrator
    "OrchestratorError",
]


class RestockbotError(Exception):
    """Root exception for all Restockbot errors."""


class ConfigError(RestockbotError):
    """Raised when the configuration is invalid or incomplete.

    Examples:
        - No product URL on the command line and none stored from a
          previous run.
        - ``interval_seconds`` outside ``[0.5, 3600]``.
    """


class StorageError(RestockbotError):
    """Raised when a persisted record cannot be read or written."""


# ---------------------------------------------------------------------------
# Browser layer
# ---------------------------------------------------------------------------


class BrowserError(RestockbotError):
    """Base class for failures raised by a browser host.

    Raised directly for transient failures (e.g. a reload that timed out on
    a still-open tab); the orchestrator treats those as a missed cycle.

    Args:
        resource_id: Handle of the tab involved, if any.
        message: Human-readable error description.
    """

    def __init__(self, resource_id: str | None, message: str) -> None:
        self.resource_id = resource_id
        prefix = f"[tab {resource_id}] " if resource_id else ""
        super().__init__(f"{prefix}{message}")


class ResourceCreationFailed(BrowserError):
    """The host could not open a tab for the target URL.

    ``START`` aborts and the error propagates to the caller.
    """


class ResourceLost(BrowserError):
    """The owned tab disappeared while an operation was in flight."""


class ProbeInjectionFailed(BrowserError):
    """The host refused to start the probe on a tab.

    Logged and absorbed; the next scheduled retry recovers the cycle.
    """


class StaleProbeResult(RestockbotError):
    """A probe result does not belong to the currently owned tab.

    Args:
        resource_id: Tab the result was tagged with.
        owned_id: Tab currently owned by the session (``None`` when idle).
    """

    def __init__(self, resource_id: str, owned_id: str | None) -> None:
        self.resource_id = resource_id
        self.owned_id = owned_id
        super().__init__(
            f"Probe result for tab {resource_id!r} does not match owned tab {owned_id!r}"
        )


# ---------------------------------------------------------------------------
# Notification layer
# ---------------------------------------------------------------------------


class NotificationError(RestockbotError):
    """Base class for notification delivery errors."""


class TelegramError(NotificationError):
    """Raised when the Telegram Bot API returns an error or is unreachable.

    Args:
        message: Human-readable error description.
        status_code: HTTP status code from the Telegram API, if available.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Telegram error{detail}: {message}")


class TelegramRateLimitError(TelegramError):
    """Raised on HTTP 429 from the Telegram Bot API.

    Args:
        retry_after: Seconds to wait before retrying, as reported by Telegram.
    """

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limited, retry after {retry_after}s", status_code=429)


# ---------------------------------------------------------------------------
# Orchestrator layer
# ---------------------------------------------------------------------------


class OrchestratorError(RestockbotError):
    """Raised when a command cannot be delivered to the monitor.

    Examples:
        - ``start()`` called before the monitor's worker task is running.
        - The worker stopped while a command was waiting for its reply.
    """
