"""Restockbot application settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.  The field name is the
lowercase version of the env-var name (e.g. ``BROWSER_HEADLESS`` →
``browser_headless``).

The product URL, interval and quantity are *not* settings: they form the
:class:`~restockbot.core.models.MonitorConfig` record, which is given on the
command line and persisted between runs.

Typical usage::

    from restockbot.core.settings import Settings

    settings = Settings()
    print(settings.telegram_configured)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]


class Settings(BaseSettings):
    """Central application configuration.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Telegram
    # ------------------------------------------------------------------
    telegram_bot_token: str = Field(
        default="",
        description="Bot token from @BotFather; empty disables Telegram delivery.",
    )
    telegram_chat_id: str = Field(
        default="",
        description="Numeric chat ID for notification delivery.",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    database_path: str = Field(
        default="data/restockbot.db",
        description="Path to the SQLite file holding the config and state records.",
    )

    # ------------------------------------------------------------------
    # Browser
    # ------------------------------------------------------------------
    browser_engine: str = Field(
        default="chromium",
        description="Playwright engine: 'chromium', 'firefox' or 'webkit'.",
    )
    browser_headless: bool = Field(
        default=False,
        description="Run the browser without a window.",
    )
    probe_ready_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Ceiling on the probe's wait for dynamic page content.",
    )
    probe_ready_poll_seconds: float = Field(
        default=0.5,
        gt=0.0,
        description="Step between readiness checks inside the probe.",
    )

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------
    checkout_path: str = Field(
        default="/s/checkout",
        description="Path (on the product's origin) of the checkout page.",
    )
    confirmation_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="How long to wait for the checkout page after add-to-cart.",
    )

    # ------------------------------------------------------------------
    # Runtime flags
    # ------------------------------------------------------------------
    dry_run: bool = Field(
        default=False,
        description="Log notifications without sending Telegram messages.",
    )
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("browser_engine")
    @classmethod
    def _validate_browser_engine(cls, v: str) -> str:
        allowed = {"chromium", "firefox", "webkit"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"browser_engine must be one of {allowed}, got {v!r}")
        return v_lower

    @field_validator("checkout_path")
    @classmethod
    def _validate_checkout_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"checkout_path must start with '/', got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def database_path_resolved(self) -> Path:
        """Return the database path as a resolved :class:`~pathlib.Path`."""
        return Path(self.database_path).resolve()

    @property
    def telegram_configured(self) -> bool:
        """``True`` if both Telegram credentials are set."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)
