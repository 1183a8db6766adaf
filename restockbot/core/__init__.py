"""Core models, settings, logging configuration, and the exception taxonomy."""

from restockbot.core.exceptions import (
    BrowserError,
    ConfigError,
    NotificationError,
    OrchestratorError,
    ProbeInjectionFailed,
    ResourceCreationFailed,
    ResourceLost,
    RestockbotError,
    StaleProbeResult,
    StorageError,
    TelegramError,
    TelegramRateLimitError,
)
from restockbot.core.logging_config import JsonFormatter, configure_logging
from restockbot.core.models import (
    LastError,
    MonitorConfig,
    MonitorState,
    ProbeResult,
    ProbeStatus,
    PurchaseOutcome,
    StateSnapshot,
)
from restockbot.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "JsonFormatter",
    # Models
    "LastError",
    "MonitorConfig",
    "MonitorState",
    "ProbeResult",
    "ProbeStatus",
    "PurchaseOutcome",
    "StateSnapshot",
    # Settings
    "Settings",
    # Exceptions
    "RestockbotError",
    "ConfigError",
    "StorageError",
    "BrowserError",
    "ResourceCreationFailed",
    "ResourceLost",
    "ProbeInjectionFailed",
    "StaleProbeResult",
    "NotificationError",
    "TelegramError",
    "TelegramRateLimitError",
    "OrchestratorError",
]
