# src/storage/sqlite_kv_store.py — v1
"""SQLite-based key/value store (STORAGE_BACKEND=sqlite).

Uses stdlib sqlite3 in WAL mode; every write is committed immediately.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from fieldsync.core.errors import StorageUnavailableError
from fieldsync.storage.base_kv_store import BaseKeyValueStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SqliteKeyValueStore(BaseKeyValueStore):
    """SQLite-backed key/value store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailableError(f"Cannot open {self._db_path}: {e}") from e

    async def get(self, key: str) -> str | None:
        cursor = self._conn.execute("SELECT value FROM kv_entries WHERE key = ?", (key,))
        row = cursor.fetchone()
        return None if row is None else row[0]

    async def set(self, key: str, value: str) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO kv_entries (key, value, updated_at)
               VALUES (?, ?, CURRENT_TIMESTAMP)""",
            (key, value),
        )
        self._conn.commit()

    async def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
        self._conn.commit()

    async def keys(self, prefix: str = "") -> list[str]:
        cursor = self._conn.execute(
            "SELECT key FROM kv_entries WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        )
        return [row[0] for row in cursor.fetchall()]

    def close(self) -> None:
        self._conn.close()
