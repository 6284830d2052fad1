"""SnapshotStore: aiosqlite persistence for scheduler exports."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import aiosqlite

from courier.config import settings
from courier.errors import ImportFormatError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS scheduler_snapshot (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    payload TEXT NOT NULL,
    saved_at TEXT NOT NULL
)
"""


class SnapshotStore:
    """Keeps the latest ``MessageScheduler.export()`` in SQLite.

    Pass an explicit *db_path* for test isolation (e.g.
    ``tmp_path / "test.db"``).

    Usage::

        store = SnapshotStore()
        await store.save(scheduler.export())
        ...
        data = await store.load()
        if data is not None:
            scheduler.import_snapshot(data)
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.snapshot_path
        self._initialised = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    # -- Operations ------------------------------------------------------------

    async def save(self, snapshot: dict[str, Any]) -> str:
        """Store *snapshot*, replacing the previous one. Returns the saved_at stamp."""
        payload = json.dumps(snapshot)
        saved_at = datetime.now(UTC).isoformat()
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO scheduler_snapshot (id, payload, saved_at)
                VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    payload = excluded.payload,
                    saved_at = excluded.saved_at
                """,
                (payload, saved_at),
            )
            await db.commit()
            logger.info(
                "Saved scheduler snapshot (%d scheduled, %d recurring)",
                len(snapshot.get("scheduled", [])),
                len(snapshot.get("recurring", [])),
            )
            return saved_at
        finally:
            await db.close()

    async def load(self) -> dict[str, Any] | None:
        """Return the last saved snapshot, or None if nothing was saved."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT payload FROM scheduler_snapshot WHERE id = 1")
            row = await cursor.fetchone()
        finally:
            await db.close()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            msg = f"Stored scheduler snapshot is not valid JSON: {exc}"
            raise ImportFormatError(msg) from exc

    async def saved_at(self) -> str | None:
        """Timestamp of the last save, or None."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT saved_at FROM scheduler_snapshot WHERE id = 1")
            row = await cursor.fetchone()
            return row[0] if row else None
        finally:
            await db.close()

    async def clear(self) -> bool:
        """Delete the stored snapshot. Returns True if one existed."""
        db = await self._connect()
        try:
            cursor = await db.execute("DELETE FROM scheduler_snapshot")
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()
