"""SQLite database initialisation for Restockbot.

Opens (or creates) the SQLite file, applies PRAGMAs and bootstraps the
``records`` table with ``CREATE TABLE IF NOT EXISTS`` (idempotent, safe on
every startup).

Typical usage::

    from restockbot.storage.database import open_db

    conn = await open_db(Path("data/restockbot.db"))
    ...
    await conn.close()
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
]

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH: Path = Path("restockbot.db")

#: ``records`` is a tiny key-value table; each row holds one JSON document.
#:
#: key         Record name (``monitor_config`` / ``monitor_state``).
#: value       JSON produced by the pydantic model's ``model_dump_json``.
#: updated_at  ISO-8601 UTC timestamp of the last write.
_DDL_RECORDS = """\
CREATE TABLE IF NOT EXISTS records (
    key         TEXT  NOT NULL,
    value       TEXT  NOT NULL,
    updated_at  TEXT  NOT NULL,
    PRIMARY KEY (key)
)"""


async def open_db(path: Path | None = None) -> aiosqlite.Connection:
    """Open (or create) the SQLite database and bootstrap the schema.

    Args:
        path: Filesystem path for the SQLite file.  Defaults to
            :data:`DEFAULT_DB_PATH`.  ``":memory:"`` is accepted for tests.

    Returns:
        An open :class:`aiosqlite.Connection`.  The caller closes it.

    Raises:
        aiosqlite.OperationalError: If the file cannot be opened or created.
    """
    db_path = Path(path or DEFAULT_DB_PATH)
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Opening SQLite database at %s", db_path)

    conn: aiosqlite.Connection = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row

    await _configure_pragmas(conn)
    await create_schema(conn)

    logger.info("SQLite database ready at %s", db_path)
    return conn


async def create_schema(conn: aiosqlite.Connection) -> None:
    """Create the ``records`` table if it does not already exist."""
    await conn.execute(_DDL_RECORDS)
    await conn.commit()
    logger.debug("Schema bootstrap complete (records table verified)")


async def _configure_pragmas(conn: aiosqlite.Connection) -> None:
    """Enable WAL journalling; in-memory databases report ``memory`` instead."""
    result = await conn.execute("PRAGMA journal_mode=WAL")
    row = await result.fetchone()
    mode = row[0] if row else "unknown"
    if mode != "wal":
        logger.debug("SQLite journal_mode is %r (expected for ':memory:')", mode)
