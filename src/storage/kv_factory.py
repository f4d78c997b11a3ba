# src/storage/kv_factory.py — v1
"""Factory for key/value store instantiation."""

from __future__ import annotations

from fieldsync.config.settings import Settings
from fieldsync.storage.base_kv_store import BaseKeyValueStore


def create_kv_store(settings: Settings | None = None) -> BaseKeyValueStore:
    """Instantiate the configured persistence backend.

    Args:
        settings: Application settings. Defaults to the JSON backend.

    Returns:
        Configured BaseKeyValueStore implementation.
    """
    backend = "json" if settings is None else settings.storage_backend
    root = "~/.fieldsync/store" if settings is None else str(settings.storage_root)

    if backend == "json":
        from fieldsync.storage.json_kv_store import JsonFileKeyValueStore
        return JsonFileKeyValueStore(root=root)

    if backend == "sqlite":
        from fieldsync.storage.sqlite_kv_store import SqliteKeyValueStore
        return SqliteKeyValueStore(db_path=f"{root}/fieldsync.db")

    if backend == "redis":
        from fieldsync.storage.redis_kv_store import RedisKeyValueStore
        if settings is None or not settings.storage_redis_url:
            raise ValueError(
                "STORAGE_REDIS_URL must be set when STORAGE_BACKEND=redis"
            )
        return RedisKeyValueStore(redis_url=settings.storage_redis_url)

    raise ValueError(f"Unsupported storage backend: {backend!r}")
