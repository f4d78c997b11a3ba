# src/session/manifest_session.py — v1
"""The reconciliation engine for one open manifest.

Camera scans and typed codes both enter through ``submit_code``. The
session owns the Manifest, the ScanLedger and the SyncState of the active
manifest and wires the poller, the persistence store and the submission
coordinator around them:

    submit_code ─► try_confirm ─► schedule_save (debounced)
                                └► coordinator.evaluate
    poller ─► _apply_refresh (lines/headers only, ledger untouched)
    submit ─► coordinator.submit ─► poller stopped on terminal states

Only one session per manifest id is expected to be active at a time.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel

from fieldsync.client.base_client import BaseManifestClient
from fieldsync.config.settings import Settings
from fieldsync.core.errors import (
    InvalidTransitionError,
    ManifestAlreadySubmittedError,
    ManifestApiError,
    ManifestTransportError,
    PersistenceFatalError,
)
from fieldsync.core.manifest_index import IndexedLine, reconcile_keys
from fieldsync.core.models import Manifest, Notice
from fieldsync.ledger.models import ScanField, ScanLedger, ScanOutcome, ScanOutcomeKind
from fieldsync.ledger.scan_ledger import (
    display_order,
    is_complete,
    missing_summary,
    progress,
    try_confirm,
)
from fieldsync.logging.context import clear_context, component_context, set_session_context
from fieldsync.storage.base_kv_store import BaseKeyValueStore
from fieldsync.storage.persistence_store import PersistenceStore
from fieldsync.storage.submitted_registry import SubmittedRegistry
from fieldsync.sync.coordinator import SubmissionCoordinator
from fieldsync.sync.models import (
    SaveStatus,
    SubmissionOutcome,
    SubmissionState,
    SyncState,
)
from fieldsync.sync.poller import LiveSyncPoller
from fieldsync.sync.retry import RetryConfig

logger = logging.getLogger(__name__)

NoticeFn = Callable[[Notice], None]

_FATAL_SAVE_MESSAGE = (
    "Could not save your scans on this device; your work may be lost. "
    "Write down the scanned codes before continuing."
)


class OpenResult(BaseModel):
    """Outcome of opening a manifest."""

    opened: bool
    manifest: Manifest | None = None
    recovered_entries: int = 0
    notice: Notice


class ScanResult(BaseModel):
    """Outcome of one code offered to the session."""

    outcome: ScanOutcome
    notice: Notice
    complete: bool
    state: SubmissionState


class ManifestSession:
    """Engine facade for the manifest currently on screen."""

    def __init__(
        self,
        client: BaseManifestClient,
        persistence: PersistenceStore,
        registry: SubmittedRegistry,
        coordinator: SubmissionCoordinator | None = None,
        poller: LiveSyncPoller | None = None,
        on_notice: NoticeFn | None = None,
    ) -> None:
        self._client = client
        self._persistence = persistence
        self._registry = registry
        self._coordinator = coordinator or SubmissionCoordinator(client, persistence, registry)
        self._poller = poller or LiveSyncPoller()
        self._on_notice = on_notice
        self._manifest: Manifest | None = None
        self._ledger: ScanLedger | None = None
        self._sync_state = SyncState()
        self._session_id: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: BaseManifestClient | None = None,
        kv: BaseKeyValueStore | None = None,
        on_notice: NoticeFn | None = None,
    ) -> ManifestSession:
        """Wire a session from configuration."""
        if kv is None:
            from fieldsync.storage.kv_factory import create_kv_store
            kv = create_kv_store(settings)
        if client is None:
            from fieldsync.client.http_client import HttpManifestClient
            client = HttpManifestClient.from_settings(settings)

        persistence = PersistenceStore(kv, debounce_s=settings.save_debounce_s)
        registry = SubmittedRegistry(kv, retention=settings.submitted_retention)
        coordinator = SubmissionCoordinator(
            client,
            persistence,
            registry,
            retry=RetryConfig.from_settings(settings),
            stripped_fields=settings.stripped_fields_list,
            clear_on_sync=settings.clear_on_sync,
        )
        return cls(
            client,
            persistence,
            registry,
            coordinator=coordinator,
            poller=LiveSyncPoller(settings.poll_interval_s),
            on_notice=on_notice,
        )

    # --- Read-only views ---

    @property
    def manifest(self) -> Manifest | None:
        return self._manifest

    @property
    def ledger(self) -> ScanLedger | None:
        return self._ledger

    @property
    def sync_state(self) -> SyncState:
        return self._sync_state

    @property
    def state(self) -> SubmissionState:
        return self._coordinator.state

    @property
    def poller(self) -> LiveSyncPoller:
        return self._poller

    @property
    def is_open(self) -> bool:
        return self._manifest is not None

    def is_complete(self) -> bool:
        manifest, ledger = self._require_open()
        return is_complete(manifest, ledger)

    def missing_summary(self) -> str:
        manifest, ledger = self._require_open()
        return missing_summary(manifest, ledger)

    def progress(self) -> tuple[int, int]:
        manifest, ledger = self._require_open()
        return progress(manifest, ledger)

    def rows(self) -> list[IndexedLine]:
        """Lines in display order (latest confirmed first)."""
        manifest, ledger = self._require_open()
        return display_order(manifest, ledger)

    # --- Lifecycle ---

    async def open(self, manifest_id: int) -> OpenResult:
        """Fetch a manifest by explicit user search and start live sync."""
        if self.is_open:
            await self.close()

        self._session_id = uuid.uuid4().hex[:12]
        set_session_context(manifest_id, self._session_id)

        if await self._registry.is_submitted(manifest_id):
            return self._refuse(
                Notice(
                    level="warning",
                    code="already_submitted",
                    message=f"Manifest {manifest_id} was already submitted and cannot be scanned again.",
                )
            )

        try:
            manifest = await self._client.fetch_manifest(manifest_id)
        except ManifestTransportError as e:
            self._sync_state.online = False
            return self._refuse(
                Notice(level="error", code="offline", message=f"Could not reach the server: {e}")
            )
        except ManifestApiError as e:
            return self._refuse(Notice(level="error", code="server_error", message=e.message))

        self._sync_state.online = True
        if manifest is None:
            return self._refuse(
                Notice(
                    level="info",
                    code="not_found",
                    message=f"No data found for manifest {manifest_id}.",
                )
            )

        ledger = await self._persistence.load(manifest_id)
        self._manifest = manifest
        self._ledger = ledger
        self._sync_state = SyncState(online=True)
        self._coordinator.reset()
        self._coordinator.evaluate(manifest, ledger)
        self._poller.start(self._poll_fetch, self._apply_refresh)

        recovered = len(ledger.entries)
        done, total = progress(manifest, ledger)
        message = f"Manifest {manifest_id} loaded: {done}/{total} lines complete."
        if recovered:
            message += f" Recovered {recovered} previously scanned line(s)."
        logger.info("Opened manifest %d (%d lines, %d recovered)", manifest_id, total, recovered)
        return OpenResult(
            opened=True,
            manifest=manifest,
            recovered_entries=recovered,
            notice=Notice(level="info", code="opened", message=message),
        )

    async def close(self) -> bool:
        """Stop polling and flush pending saves. Returns False if the flush failed."""
        self._poller.stop()
        await self._poller.wait_stopped()
        ok = True
        if self._manifest is not None:
            ok = await self._persistence.flush(self._manifest.manifest_id)
            logger.info("Closed manifest %d", self._manifest.manifest_id)
        self._manifest = None
        self._ledger = None
        clear_context()
        return ok

    # --- Scanning ---

    def submit_code(self, raw: str) -> ScanResult:
        """Single input port for barcode readers and manual entry.

        Must be called from inside the running event loop; a MATCHED code
        arms a debounced save.
        """
        manifest, ledger = self._require_open()
        state = self._coordinator.state
        if state is SubmissionState.SUBMITTING or state.is_terminal:
            raise InvalidTransitionError(f"Manifest is {state.value}; scanning is closed")

        outcome = try_confirm(raw, manifest, ledger)
        if outcome.matched:
            self._sync_state.save_status = SaveStatus.SAVING
            self._persistence.schedule_save(
                manifest.manifest_id, lambda: self._ledger_or(ledger), self._on_saved,
            )
            self._coordinator.evaluate(manifest, ledger)

        complete = is_complete(manifest, ledger)
        return ScanResult(
            outcome=outcome,
            notice=_describe(outcome, complete),
            complete=complete,
            state=self._coordinator.state,
        )

    async def clear_ledger(self, confirmed: bool) -> bool:
        """Drop every scan of the open manifest, in memory and on disk.

        Does nothing unless the user confirmed.
        """
        manifest, ledger = self._require_open()
        if not confirmed:
            return False
        state = self._coordinator.state
        if state is SubmissionState.SUBMITTING or state.is_terminal:
            raise InvalidTransitionError(f"Cannot clear scans of a {state.value} manifest")

        ledger.clear()
        await self._persistence.clear(manifest.manifest_id)
        self._coordinator.reset()
        self._coordinator.evaluate(manifest, ledger)
        self._sync_state.save_status = SaveStatus.SAVED
        logger.info("Cleared scans of manifest %d", manifest.manifest_id)
        return True

    # --- Submission ---

    def request_incomplete(self) -> SubmissionState:
        self._require_open()
        return self._coordinator.request_incomplete()

    def cancel_incomplete(self) -> SubmissionState:
        return self._coordinator.cancel_incomplete()

    async def submit(self, comment: str = "") -> SubmissionOutcome:
        """Submit the open manifest; stops live sync on a terminal outcome."""
        manifest, ledger = self._require_open()
        self._coordinator.evaluate(manifest, ledger)
        try:
            with component_context("submission"):
                outcome = await self._coordinator.submit(manifest, ledger, comment)
        except PersistenceFatalError:
            self._sync_state.save_status = SaveStatus.ERROR
            notice = Notice(level="fatal", code="persistence_failed", message=_FATAL_SAVE_MESSAGE)
            self._emit(notice)
            return SubmissionOutcome(
                manifest_id=manifest.manifest_id,
                state=self._coordinator.state,
                notice=notice,
            )
        except ManifestAlreadySubmittedError as e:
            return SubmissionOutcome(
                manifest_id=manifest.manifest_id,
                state=self._coordinator.state,
                notice=Notice(level="warning", code="already_submitted", message=str(e)),
            )

        if outcome.state.is_terminal:
            self._poller.stop()
            await self._poller.wait_stopped()
            self._sync_state.save_status = SaveStatus.SAVED
            self._sync_state.last_saved_at = datetime.now(timezone.utc)
            self._sync_state.pending_sync = outcome.state is SubmissionState.SAVED_LOCAL_PENDING
            self._sync_state.online = outcome.state is SubmissionState.SYNCED
        return outcome

    # --- Internals ---

    def _require_open(self) -> tuple[Manifest, ScanLedger]:
        if self._manifest is None or self._ledger is None:
            raise InvalidTransitionError("No manifest is open")
        return self._manifest, self._ledger

    def _ledger_or(self, fallback: ScanLedger) -> ScanLedger:
        return self._ledger if self._ledger is not None else fallback

    def _refuse(self, notice: Notice) -> OpenResult:
        logger.info("Manifest not opened: %s", notice.message)
        return OpenResult(opened=False, notice=notice)

    def _emit(self, notice: Notice) -> None:
        if self._on_notice is not None:
            self._on_notice(notice)

    def _on_saved(self, ok: bool) -> None:
        if ok:
            self._sync_state.save_status = SaveStatus.SAVED
            self._sync_state.last_saved_at = datetime.now(timezone.utc)
            return
        self._sync_state.save_status = SaveStatus.ERROR
        self._emit(Notice(level="fatal", code="persistence_failed", message=_FATAL_SAVE_MESSAGE))

    async def _poll_fetch(self) -> Manifest | None:
        if self._manifest is None:
            return None
        try:
            manifest = await self._client.fetch_manifest(self._manifest.manifest_id)
        except ManifestTransportError:
            self._sync_state.online = False
            raise
        self._sync_state.online = True
        return manifest

    def _apply_refresh(self, fresh: Manifest) -> None:
        """Swap headers and lines; scan state stays keyed by line key."""
        if self._manifest is None or self._ledger is None:
            return
        if fresh.manifest_id != self._manifest.manifest_id:
            return
        previous_status = self._manifest.header_status
        self._manifest = self._manifest.with_refresh(fresh)

        keys = reconcile_keys(fresh.lines, self._ledger)
        if keys.orphaned:
            logger.warning(
                "%d scanned line(s) no longer in manifest %d: %s",
                len(keys.orphaned), fresh.manifest_id, ", ".join(keys.orphaned),
            )
        if self._manifest.header_status is not previous_status:
            logger.info(
                "Manifest %d status %s -> %s",
                fresh.manifest_id, previous_status.value, self._manifest.header_status.value,
            )
        self._coordinator.evaluate(self._manifest, self._ledger)


def _describe(outcome: ScanOutcome, complete: bool) -> Notice:
    code = outcome.code
    if outcome.kind is ScanOutcomeKind.MATCHED:
        what = "Invoice" if outcome.field is ScanField.INVOICE else "Note"
        message = f"{what} {code} recorded."
        if complete:
            message += " All lines are complete."
        return Notice(level="info", code="matched", message=message)
    if outcome.kind is ScanOutcomeKind.DUPLICATE:
        return Notice(
            level="info",
            code="duplicate",
            message=f"Code {code} is valid but was already recorded.",
        )
    return Notice(
        level="info",
        code="not_found",
        message=f"Code {code} does not belong to any invoice or note of this manifest.",
    )
