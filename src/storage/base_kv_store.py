# src/storage/base_kv_store.py — v1
"""Abstract key/value store interface.

Values are opaque strings; (de)serialization belongs to the callers
(PersistenceStore, SubmittedRegistry).
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseKeyValueStore(ABC):
    """Unified interface for local persistence backends."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with ``prefix``."""
