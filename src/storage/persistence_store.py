# src/storage/persistence_store.py — v1
"""Durable, debounced storage of scan ledgers keyed by manifest id.

Layout on the key/value backend:
    ledger:<id>          primary slot
    ledger:<id>:backup   fallback slot, written only when the primary fails

Every slot holds a LedgerSnapshot as JSON. ``load`` picks the newest valid
slot, so a backup written after a failed primary write is not shadowed by
the older primary value.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError

from fieldsync.ledger.models import LedgerSnapshot, ScanLedger
from fieldsync.storage.base_kv_store import BaseKeyValueStore

logger = logging.getLogger(__name__)

SnapshotFn = Callable[[], ScanLedger]
ResultFn = Callable[[bool], None]


def ledger_key(manifest_id: int) -> str:
    return f"ledger:{manifest_id}"


def backup_key(manifest_id: int) -> str:
    return f"ledger:{manifest_id}:backup"


@dataclass
class _PendingSave:
    snapshot: SnapshotFn
    on_result: ResultFn | None
    handle: asyncio.TimerHandle


class PersistenceStore:
    """Ledger persistence with debounce and a backup slot.

    Backend errors never escape: writes report success as a bool, reads
    fall back to an empty ledger.
    """

    def __init__(self, kv: BaseKeyValueStore, debounce_s: float = 0.5) -> None:
        self._kv = kv
        self._debounce_s = debounce_s
        self._pending: dict[int, _PendingSave] = {}
        self._inflight: dict[int, asyncio.Task[None]] = {}
        self._lock = asyncio.Lock()

    @property
    def kv(self) -> BaseKeyValueStore:
        return self._kv

    # --- Immediate operations ---

    async def save(self, manifest_id: int, ledger: ScanLedger) -> bool:
        """Write the ledger now.

        Tries the primary slot, then the backup slot once. Returns False
        only when both writes failed.
        """
        data = LedgerSnapshot.of(ledger).model_dump_json()
        async with self._lock:
            try:
                await self._kv.set(ledger_key(manifest_id), data)
                logger.debug("Saved ledger %d (%d entries)", manifest_id, len(ledger.entries))
                return True
            except Exception as e:
                logger.warning("Primary write failed for ledger %d: %s", manifest_id, e)

            try:
                await self._kv.set(backup_key(manifest_id), data)
                logger.warning("Ledger %d saved to backup slot", manifest_id)
                return True
            except Exception as e:
                logger.error(
                    "Backup write failed for ledger %d, scans may be lost: %s",
                    manifest_id, e,
                )
                return False

    async def load(self, manifest_id: int) -> ScanLedger:
        """Return the newest persisted ledger, or an empty one."""
        snapshots: list[LedgerSnapshot] = []
        for key in (ledger_key(manifest_id), backup_key(manifest_id)):
            snapshot = await self._read_slot(key, manifest_id)
            if snapshot is not None:
                snapshots.append(snapshot)

        if not snapshots:
            return ScanLedger(manifest_id=manifest_id)
        newest = max(snapshots, key=lambda s: s.saved_at)
        logger.info("Recovered ledger %d with %d entries", manifest_id, len(newest.entries))
        return newest.to_ledger()

    async def clear(self, manifest_id: int) -> None:
        """Drop pending writes and delete both slots."""
        self.cancel(manifest_id)
        inflight = self._inflight.get(manifest_id)
        if inflight is not None:
            await asyncio.gather(inflight, return_exceptions=True)
        async with self._lock:
            for key in (ledger_key(manifest_id), backup_key(manifest_id)):
                try:
                    await self._kv.delete(key)
                except Exception as e:
                    logger.error("Failed to delete %s: %s", key, e)

    # --- Debounced operations ---

    def schedule_save(
        self,
        manifest_id: int,
        snapshot: SnapshotFn,
        on_result: ResultFn | None = None,
    ) -> None:
        """Arm (or re-arm) a delayed write of ``snapshot()``.

        The snapshot function is called when the write starts, so the value
        written is whatever the ledger holds at that moment.
        """
        self.cancel(manifest_id)
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self._debounce_s, self._fire, manifest_id)
        self._pending[manifest_id] = _PendingSave(snapshot, on_result, handle)

    def has_pending(self, manifest_id: int) -> bool:
        return manifest_id in self._pending or manifest_id in self._inflight

    def cancel(self, manifest_id: int) -> None:
        """Forget a pending debounced write without running it."""
        pending = self._pending.pop(manifest_id, None)
        if pending is not None:
            pending.handle.cancel()

    async def flush(self, manifest_id: int) -> bool:
        """Run any pending write now and wait for in-flight ones.

        Returns False if the flushed write failed.
        """
        ok = True
        inflight = self._inflight.get(manifest_id)
        if inflight is not None:
            await asyncio.gather(inflight, return_exceptions=True)
        pending = self._pending.pop(manifest_id, None)
        if pending is not None:
            pending.handle.cancel()
            ok = await self._run(manifest_id, pending)
        return ok

    async def flush_all(self) -> bool:
        results = [await self.flush(mid) for mid in list(self._pending) + list(self._inflight)]
        return all(results)

    # --- Internals ---

    def _fire(self, manifest_id: int) -> None:
        pending = self._pending.pop(manifest_id, None)
        if pending is None:
            return
        task = asyncio.ensure_future(self._run(manifest_id, pending))
        self._inflight[manifest_id] = task
        task.add_done_callback(lambda t, mid=manifest_id: self._forget(mid, t))

    def _forget(self, manifest_id: int, task: asyncio.Task) -> None:
        if self._inflight.get(manifest_id) is task:
            del self._inflight[manifest_id]

    async def _run(self, manifest_id: int, pending: _PendingSave) -> bool:
        ok = await self.save(manifest_id, pending.snapshot())
        if pending.on_result is not None:
            pending.on_result(ok)
        return ok

    async def _read_slot(self, key: str, manifest_id: int) -> LedgerSnapshot | None:
        try:
            raw = await self._kv.get(key)
        except Exception as e:
            logger.warning("Failed to read %s: %s", key, e)
            return None
        if not raw:
            return None
        try:
            snapshot = LedgerSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Corrupt ledger slot %s ignored: %s", key, e)
            return None
        if snapshot.manifest_id != manifest_id:
            logger.warning(
                "Slot %s holds manifest %d, expected %d", key, snapshot.manifest_id, manifest_id,
            )
            return None
        return snapshot
