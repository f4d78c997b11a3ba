# src/storage/redis_kv_store.py — v1
"""Redis-based key/value store (STORAGE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Useful when several devices of a depot share one local relay.
"""

from __future__ import annotations

import logging

from fieldsync.storage.base_kv_store import BaseKeyValueStore

logger = logging.getLogger(__name__)

_KEY_PREFIX = "fieldsync:"


class RedisKeyValueStore(BaseKeyValueStore):
    """Redis-backed key/value store."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        return self._client.get(f"{_KEY_PREFIX}{key}")

    async def set(self, key: str, value: str) -> None:
        self._client.set(f"{_KEY_PREFIX}{key}", value)

    async def delete(self, key: str) -> None:
        self._client.delete(f"{_KEY_PREFIX}{key}")

    async def keys(self, prefix: str = "") -> list[str]:
        found = self._client.keys(f"{_KEY_PREFIX}{prefix}*")
        return sorted(k[len(_KEY_PREFIX):] for k in found)
