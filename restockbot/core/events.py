"""Structured log event names.

Every key transition in the monitor emits a log record carrying an ``event``
field::

    logger.info("Retry armed", extra={"event": events.RETRY_SCHEDULED})

In ``LOG_FORMAT=json`` mode the value appears under ``extra.event``; in text
mode the message itself is self-describing.
"""

from __future__ import annotations

__all__ = [
    # Session lifecycle
    "SESSION_START",
    "SESSION_STOP",
    "SESSION_RESOURCE_LOST",
    "SESSION_FINISHED",
    # Probe cycle
    "PROBE_INJECTED",
    "PROBE_INJECT_ERROR",
    "PROBE_STALE",
    "PROBE_IGNORED",
    "RETRY_SCHEDULED",
    "REFRESH",
    "REFRESH_ERROR",
    # Outcomes
    "TARGET_AVAILABLE",
    "TARGET_OUT_OF_STOCK",
    "TARGET_NOT_FOUND",
    "CONFIRMATION_REQUESTED",
    "CONFIRMATION_REACHED",
    "CONFIRMATION_TIMEOUT",
    # Side channels
    "NOTIFY_ERROR",
    "BROADCAST_ERROR",
]

# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

#: START accepted and a tab is owned.
SESSION_START: str = "SESSION_START"

#: Session torn down (STOP or restart of an existing session).
SESSION_STOP: str = "SESSION_STOP"

#: Owned tab closed or unreachable; session reset to idle.
SESSION_RESOURCE_LOST: str = "SESSION_RESOURCE_LOST"

#: Session ended on a business outcome; outcome fields retained.
SESSION_FINISHED: str = "SESSION_FINISHED"

# ---------------------------------------------------------------------------
# Probe cycle
# ---------------------------------------------------------------------------

#: Probe started in the owned tab.
PROBE_INJECTED: str = "PROBE_INJECTED"

#: Host refused to start the probe; a retry is armed instead.
PROBE_INJECT_ERROR: str = "PROBE_INJECT_ERROR"

#: Result for a tab other than the owned one; discarded.
PROBE_STALE: str = "PROBE_STALE"

#: Result arrived after the session already reached an outcome; discarded.
PROBE_IGNORED: str = "PROBE_IGNORED"

#: Scheduler armed for the next cycle.
RETRY_SCHEDULED: str = "RETRY_SCHEDULED"

#: Owned tab reloaded for a new cycle.
REFRESH: str = "REFRESH"

#: Reload failed on a still-open tab; retry re-armed.
REFRESH_ERROR: str = "REFRESH_ERROR"

# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

TARGET_AVAILABLE: str = "TARGET_AVAILABLE"
TARGET_OUT_OF_STOCK: str = "TARGET_OUT_OF_STOCK"
TARGET_NOT_FOUND: str = "TARGET_NOT_FOUND"

#: Tab sent to the checkout page after a successful add-to-cart.
CONFIRMATION_REQUESTED: str = "CONFIRMATION_REQUESTED"

#: Checkout page load observed.
CONFIRMATION_REACHED: str = "CONFIRMATION_REACHED"

#: Checkout page never loaded within the deadline.
CONFIRMATION_TIMEOUT: str = "CONFIRMATION_TIMEOUT"

# ---------------------------------------------------------------------------
# Side channels
# ---------------------------------------------------------------------------

#: Notification delivery failed (logged only).
NOTIFY_ERROR: str = "NOTIFY_ERROR"

#: A STATE_UPDATE subscriber raised (logged only).
BROADCAST_ERROR: str = "BROADCAST_ERROR"
