# src/storage/json_kv_store.py — v1
"""File-based key/value store (default STORAGE_BACKEND=json).

Each key is one file under STORAGE_ROOT. Writes go to a temporary file
first and are moved into place with ``os.replace`` so that a power loss
leaves either the old or the new value, never a truncated one.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from fieldsync.core.errors import StorageUnavailableError
from fieldsync.storage.base_kv_store import BaseKeyValueStore

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class JsonFileKeyValueStore(BaseKeyValueStore):
    """One JSON document per key on the local filesystem."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create storage root {self._root}: {e}") from e

    async def get(self, key: str) -> str | None:
        path = self._entry_path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    async def set(self, key: str, value: str) -> None:
        path = self._entry_path(key)
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            fh.write(value)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)

    async def delete(self, key: str) -> None:
        path = self._entry_path(key)
        if path.exists():
            path.unlink()

    async def keys(self, prefix: str = "") -> list[str]:
        if not self._root.is_dir():
            return []
        found = []
        for path in sorted(self._root.glob(f"*{_SUFFIX}")):
            key = path.name[: -len(_SUFFIX)].replace("__", ":")
            if key.startswith(prefix):
                found.append(key)
        return found

    def _entry_path(self, key: str) -> Path:
        """Return file path for a key."""
        safe_key = key.replace("/", "_").replace("\\", "_").replace(":", "__")
        return self._root / f"{safe_key}{_SUFFIX}"
