"""SQLite-backed persistence for the monitor config and live state records."""

from restockbot.storage.database import DEFAULT_DB_PATH, create_schema, open_db
from restockbot.storage.store import CONFIG_KEY, STATE_KEY, StateStore

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
    "CONFIG_KEY",
    "STATE_KEY",
    "StateStore",
]
