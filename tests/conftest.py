"""Shared pytest fixtures and configuration for the Restockbot test suite.

This file is loaded automatically by pytest before any test module.
It provides project-wide fixtures used across unit and integration tests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator

import aiosqlite
import pytest
from pydantic_settings import SettingsConfigDict

from restockbot.core import configure_logging
from restockbot.core.settings import Settings
from restockbot.storage.database import open_db
from restockbot.storage.store import StateStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test.

    ``force=True`` applies the configuration even when pytest's own
    ``log_cli`` handler is already present.
    """
    configure_logging(level="DEBUG", fmt="text", force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove restockbot-related env vars for the duration of a test.

    Also disables pydantic-settings ``.env`` file loading so that values in a
    local ``.env`` do not leak into Settings isolation tests.
    """
    prefixes = (
        "TELEGRAM_",
        "DATABASE_",
        "BROWSER_",
        "PROBE_",
        "CHECKOUT_",
        "CONFIRMATION_",
        "DRY_RUN",
        "LOG_LEVEL",
        "LOG_FORMAT",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in prefixes):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


@pytest.fixture()
def settings(clean_env: None) -> Settings:
    """Default Settings, isolated from the developer's environment."""
    return Settings()


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest.fixture()
async def conn() -> AsyncIterator[aiosqlite.Connection]:
    """In-memory SQLite connection with the schema in place."""
    connection = await open_db(":memory:")
    try:
        yield connection
    finally:
        await connection.close()


@pytest.fixture()
async def store(conn: aiosqlite.Connection) -> StateStore:
    return StateStore(conn)


# ---------------------------------------------------------------------------
# Misc helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def logger() -> logging.Logger:
    """Return a logger for test code."""
    return logging.getLogger("tests")
