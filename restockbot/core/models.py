"""Restockbot core data models.

Defines the two persisted records (:class:`MonitorConfig` and
:class:`MonitorState`), the probe report (:class:`ProbeResult`) and the
enumerations shared by the orchestrator, the browser host and the storage
layer.

Typical usage::

    from restockbot.core.models import MonitorConfig, MonitorState

    config = MonitorConfig(url="https://shop.test/p/widget", interval_seconds=5)
    state = MonitorState()          # idle
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Final

from pydantic import BaseModel, Field, field_validator, model_validator

__all__ = [
    "INTERVAL_MIN_SECONDS",
    "INTERVAL_MAX_SECONDS",
    "QUANTITY_MIN",
    "QUANTITY_MAX",
    "ProbeStatus",
    "PurchaseOutcome",
    "LastError",
    "MonitorConfig",
    "MonitorState",
    "ProbeResult",
    "StateSnapshot",
]

INTERVAL_MIN_SECONDS: Final[float] = 0.5
INTERVAL_MAX_SECONDS: Final[float] = 3600.0
INTERVAL_DEFAULT_SECONDS: Final[float] = 5.0

QUANTITY_MIN: Final[int] = 1
QUANTITY_MAX: Final[int] = 99


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ProbeStatus(StrEnum):
    """What the probe concluded about the loaded product page."""

    AVAILABLE = "available"
    OUT_OF_STOCK = "out_of_stock"
    NOT_FOUND = "not_found"


class PurchaseOutcome(StrEnum):
    """Result of the probe's add-to-cart attempt on an available page."""

    ATTEMPTED_SUCCEEDED = "attempted-succeeded"
    ATTEMPTED_FAILED = "attempted-failed"
    NOT_ATTEMPTED = "not-attempted"


class LastError(StrEnum):
    """Classification of the most recent probe cycle."""

    NONE = "none"
    NOT_FOUND = "not_found"
    OUT_OF_STOCK = "out_of_stock"


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------


class MonitorConfig(BaseModel):
    """Operator intent for one monitoring session.

    Frozen: a running session never sees its config change underneath it.

    Attributes:
        url: Product page to watch.  Navigations whose URL starts with this
            string are the ones that trigger a probe.
        interval_seconds: Delay between a ``not_found`` result and the next
            reload of the tab.
        quantity: Units the probe should put in the cart.
    """

    model_config = {"frozen": True}

    url: str = Field(default="", description="Product page URL.")
    interval_seconds: float = Field(
        default=INTERVAL_DEFAULT_SECONDS,
        ge=INTERVAL_MIN_SECONDS,
        le=INTERVAL_MAX_SECONDS,
        description="Seconds between probe cycles.",
    )
    quantity: int = Field(
        default=QUANTITY_MIN,
        ge=QUANTITY_MIN,
        le=QUANTITY_MAX,
        description="Units to add to the cart.",
    )

    @field_validator("url", mode="before")
    @classmethod
    def _strip_url(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip()
        return v


class MonitorState(BaseModel):
    """Live progress of the current (or most recent) session.

    A default-constructed instance is the idle state.  The model validator
    enforces the cross-field invariants, so an update that would break one
    fails loudly instead of being persisted.
    """

    is_monitoring: bool = False
    owned_resource_id: str | None = None
    last_probe_time: datetime | None = None
    attempt_count: int = Field(default=0, ge=0)
    last_error: LastError = LastError.NONE
    success_detected: bool = False
    purchase_attempted: bool = False
    purchase_completed: bool = False
    reached_confirmation: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> MonitorState:
        if self.is_monitoring != (self.owned_resource_id is not None):
            raise ValueError(
                "owned_resource_id must be set exactly when is_monitoring is True "
                f"(is_monitoring={self.is_monitoring}, "
                f"owned_resource_id={self.owned_resource_id!r})"
            )
        if self.purchase_completed and not self.success_detected:
            raise ValueError("purchase_completed requires success_detected")
        if self.reached_confirmation and not self.purchase_completed:
            raise ValueError("reached_confirmation requires purchase_completed")
        return self

    def updated(self, **changes: object) -> MonitorState:
        """Return a validated copy with *changes* applied."""
        return MonitorState.model_validate({**self.model_dump(), **changes})

    def summary(self) -> str:
        """One-line description used by the CLI state listener."""
        if self.reached_confirmation:
            phase = "at checkout"
        elif self.purchase_completed:
            phase = "added to cart"
        elif self.success_detected:
            phase = "available"
        elif self.last_error is LastError.OUT_OF_STOCK:
            phase = "out of stock"
        elif self.is_monitoring:
            phase = "watching"
        else:
            phase = "idle"
        tab = self.owned_resource_id or "-"
        return f"{phase} (tab={tab}, attempts={self.attempt_count}, last_error={self.last_error})"


class ProbeResult(BaseModel):
    """What the probe reported for one tab.

    Attributes:
        resource_id: Tab the probe ran in.  Used for correlation; results for
            any tab other than the owned one are discarded.
        status: Availability classification.
        purchase_outcome: Add-to-cart result.  Only meaningful when
            ``status`` is ``available``; ``None`` is read as not attempted.
    """

    model_config = {"frozen": True}

    resource_id: str = Field(..., min_length=1)
    status: ProbeStatus
    purchase_outcome: PurchaseOutcome | None = None


class StateSnapshot(BaseModel):
    """Reply to ``GET_STATE``."""

    state: MonitorState
    config: MonitorConfig
