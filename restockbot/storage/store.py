"""Persistence for the monitor's two records.

Provides :class:`StateStore`, the single data-access object for the
``records`` table.  It stores:

* ``monitor_config`` — the last :class:`~restockbot.core.models.MonitorConfig`
  used to start a session.
* ``monitor_state`` — the live :class:`~restockbot.core.models.MonitorState`.

Writes to the state record go through :meth:`StateStore.update_state`, which
holds an :class:`asyncio.Lock` across the read-modify-write so two updates
can never interleave between their read and their write.

Typical usage::

    conn = await open_db()
    store = StateStore(conn)
    await store.reset_state()                  # process start
    state = await store.update_state(attempt_count=2)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Final, TypeVar

import aiosqlite
from pydantic import BaseModel, ValidationError

from restockbot.core.exceptions import StorageError
from restockbot.core.models import MonitorConfig, MonitorState, StateSnapshot

__all__ = ["CONFIG_KEY", "STATE_KEY", "StateStore"]

logger = logging.getLogger(__name__)

CONFIG_KEY: Final[str] = "monitor_config"
STATE_KEY: Final[str] = "monitor_state"

_M = TypeVar("_M", bound=BaseModel)


class StateStore:
    """Data-access object for the config and state records.

    Owns no connection lifecycle; the caller supplies an open
    :class:`aiosqlite.Connection` (see
    :func:`~restockbot.storage.database.open_db`) and closes it.

    Missing records read back as defaults: an idle :class:`MonitorState` and a
    default :class:`MonitorConfig`.

    Args:
        conn: Open connection with the ``records`` table in place.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    async def get_config(self) -> MonitorConfig:
        raw = await self._read(CONFIG_KEY)
        if raw is None:
            return MonitorConfig()
        return self._parse(MonitorConfig, CONFIG_KEY, raw)

    async def set_config(self, config: MonitorConfig) -> None:
        await self._write(CONFIG_KEY, config)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def get_state(self) -> MonitorState:
        raw = await self._read(STATE_KEY)
        if raw is None:
            return MonitorState()
        return self._parse(MonitorState, STATE_KEY, raw)

    async def set_state(self, state: MonitorState) -> MonitorState:
        """Replace the state record wholesale and return it."""
        async with self._lock:
            await self._write(STATE_KEY, state)
        return state

    async def update_state(self, **changes: object) -> MonitorState:
        """Merge *changes* into the stored state and return the result.

        The merged record is validated before it is written, so a change that
        breaks a :class:`MonitorState` invariant raises
        :class:`pydantic.ValidationError` and leaves the stored record intact.
        """
        async with self._lock:
            current = await self.get_state()
            new_state = current.updated(**changes)
            await self._write(STATE_KEY, new_state)
        return new_state

    async def increment_attempts(self, **changes: object) -> MonitorState:
        """Like :meth:`update_state`, also adding one to ``attempt_count``."""
        async with self._lock:
            current = await self.get_state()
            new_state = current.updated(attempt_count=current.attempt_count + 1, **changes)
            await self._write(STATE_KEY, new_state)
        return new_state

    async def reset_state(self) -> MonitorState:
        """Write the idle state.

        Called on process start: a tab handle from a previous process is
        meaningless, so nothing of an earlier session is carried over.
        """
        logger.debug("Resetting monitor state to idle")
        return await self.set_state(MonitorState())

    async def snapshot(self) -> StateSnapshot:
        return StateSnapshot(state=await self.get_state(), config=await self.get_config())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _read(self, key: str) -> str | None:
        try:
            cursor = await self._conn.execute(
                "SELECT value FROM records WHERE key = ? LIMIT 1",
                (key,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to read record {key!r}: {exc}") from exc
        return None if row is None else row[0]

    async def _write(self, key: str, record: BaseModel) -> None:
        now = datetime.now(UTC).isoformat()
        try:
            await self._conn.execute(
                """
                INSERT INTO records (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, record.model_dump_json(), now),
            )
            await self._conn.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to write record {key!r}: {exc}") from exc

    @staticmethod
    def _parse(model: type[_M], key: str, raw: str) -> _M:
        try:
            return model.model_validate_json(raw)
        except ValidationError as exc:
            raise StorageError(f"Stored record {key!r} is corrupt: {exc}") from exc
