# src/storage/submitted_registry.py — v1
"""Local registry of manifests that were already submitted.

A synced or pending manifest is not offered for scanning again. A
rejected record only keeps the server's reason; the manifest stays open for
correction and resubmission. Pending records carry the sanitized payload so
``SubmissionCoordinator.resync_pending`` can send it later. Synced and
rejected records expire after the retention window; pending records are
kept until they sync.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError

from fieldsync.storage.base_kv_store import BaseKeyValueStore
from fieldsync.storage.models import SubmissionRecord, SubmissionStatus

logger = logging.getLogger(__name__)

REGISTRY_KEY = "submitted"

_records_adapter = TypeAdapter(list[SubmissionRecord])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmittedRegistry:
    """The "already submitted" set, persisted as one JSON list."""

    def __init__(
        self,
        kv: BaseKeyValueStore,
        retention: timedelta = timedelta(hours=6),
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._kv = kv
        self._retention = retention
        self._now = now

    async def all(self) -> list[SubmissionRecord]:
        """All live records, expired ones dropped."""
        return [r for r in await self._read() if not self._expired(r)]

    async def get(self, manifest_id: int) -> SubmissionRecord | None:
        for record in await self.all():
            if record.manifest_id == manifest_id:
                return record
        return None

    async def is_submitted(self, manifest_id: int) -> bool:
        """True for a live synced or pending record. Rejected ones do not count."""
        record = await self.get(manifest_id)
        return record is not None and record.status != "rejected"

    async def pending(self) -> list[SubmissionRecord]:
        return [r for r in await self.all() if r.status == "pending"]

    async def record(
        self,
        manifest_id: int,
        status: SubmissionStatus,
        attempts: int = 0,
        payload: dict[str, Any] | None = None,
        last_error: str | None = None,
    ) -> SubmissionRecord:
        """Insert or replace the record of ``manifest_id``.

        Raises whatever the backend raises; the caller decides how fatal a
        lost registry write is.
        """
        entry = SubmissionRecord(
            manifest_id=manifest_id,
            status=status,
            recorded_at=self._now(),
            attempts=attempts,
            payload=payload if status == "pending" else None,
            last_error=last_error,
        )
        records = [r for r in await self.all() if r.manifest_id != manifest_id]
        records.append(entry)
        await self._write(records)
        logger.info("Manifest %d recorded as %s", manifest_id, status)
        return entry

    async def remove(self, manifest_id: int) -> None:
        records = [r for r in await self._read() if r.manifest_id != manifest_id]
        await self._write(records)

    async def purge_expired(self) -> int:
        """Drop expired records from storage. Returns how many were dropped."""
        records = await self._read()
        live = [r for r in records if not self._expired(r)]
        if len(live) != len(records):
            await self._write(live)
        return len(records) - len(live)

    def _expired(self, record: SubmissionRecord) -> bool:
        if record.status == "pending":
            return False
        return self._now() - record.recorded_at >= self._retention

    async def _read(self) -> list[SubmissionRecord]:
        try:
            raw = await self._kv.get(REGISTRY_KEY)
        except Exception as e:
            logger.warning("Failed to read submitted registry: %s", e)
            return []
        if not raw:
            return []
        try:
            return _records_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("Corrupt submitted registry ignored: %s", e)
            return []

    async def _write(self, records: list[SubmissionRecord]) -> None:
        data = json.dumps(
            [r.model_dump(mode="json") for r in records], ensure_ascii=False,
        )
        await self._kv.set(REGISTRY_KEY, data)
