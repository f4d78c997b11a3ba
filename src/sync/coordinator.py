# src/sync/coordinator.py — v1
"""Submission state machine.

    EDITING ──(ledger complete)──────────────► COMPLETE
    EDITING ──(request_incomplete)───────────► INCOMPLETE_PENDING_REASON
    COMPLETE | INCOMPLETE_PENDING_REASON ──submit──► SUBMITTING
    SUBMITTING ──2xx / 409──────────────────► SYNCED
    SUBMITTING ──other 4xx──────────────────► EDITING
    SUBMITTING ──transport / 5xx, retries exhausted──► SAVED_LOCAL_PENDING

The ledger is always saved locally before anything is sent. A manifest
that reaches SYNCED or SAVED_LOCAL_PENDING is written to the submitted
registry and cannot be reopened.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable

from fieldsync.client.base_client import BaseManifestClient
from fieldsync.client.models import ApiResponse
from fieldsync.core.errors import (
    InvalidTransitionError,
    ManifestAlreadySubmittedError,
    ManifestTransportError,
    PersistenceFatalError,
)
from fieldsync.core.models import Manifest, Notice
from fieldsync.ledger.models import ScanLedger
from fieldsync.ledger.scan_ledger import is_complete, missing_summary
from fieldsync.storage.persistence_store import PersistenceStore
from fieldsync.storage.submitted_registry import SubmittedRegistry
from fieldsync.sync.models import SubmissionOutcome, SubmissionState
from fieldsync.sync.retry import AttemptClass, RetryConfig, classify_response, compute_delay
from fieldsync.sync.sanitize import DEFAULT_STRIPPED_FIELDS, build_payload

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]

_SUBMITTABLE = (SubmissionState.COMPLETE, SubmissionState.INCOMPLETE_PENDING_REASON)


class SubmissionCoordinator:
    """Drives one manifest from scanning to a server-confirmed submission."""

    def __init__(
        self,
        client: BaseManifestClient,
        persistence: PersistenceStore,
        registry: SubmittedRegistry,
        retry: RetryConfig | None = None,
        stripped_fields: Iterable[str] = DEFAULT_STRIPPED_FIELDS,
        clear_on_sync: bool = True,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._persistence = persistence
        self._registry = registry
        self._retry = retry or RetryConfig()
        self._stripped = tuple(stripped_fields)
        self._clear_on_sync = clear_on_sync
        self._sleep = sleep
        self._state = SubmissionState.EDITING

    @property
    def state(self) -> SubmissionState:
        return self._state

    def reset(self) -> None:
        self._state = SubmissionState.EDITING

    # --- Local transitions ---

    def evaluate(self, manifest: Manifest, ledger: ScanLedger) -> SubmissionState:
        """Follow the ledger: enter COMPLETE when it completes, leave it when not."""
        if self._state is SubmissionState.SUBMITTING or self._state.is_terminal:
            return self._state
        complete = is_complete(manifest, ledger)
        if complete:
            self._state = SubmissionState.COMPLETE
        elif self._state is SubmissionState.COMPLETE:
            self._state = SubmissionState.EDITING
        return self._state

    def request_incomplete(self) -> SubmissionState:
        """User wants to close the manifest with lines still missing."""
        if self._state is SubmissionState.EDITING:
            self._state = SubmissionState.INCOMPLETE_PENDING_REASON
        elif self._state not in _SUBMITTABLE:
            raise InvalidTransitionError(f"Cannot close as incomplete from {self._state.value}")
        return self._state

    def cancel_incomplete(self) -> SubmissionState:
        if self._state is SubmissionState.INCOMPLETE_PENDING_REASON:
            self._state = SubmissionState.EDITING
        return self._state

    # --- Submission ---

    async def submit(
        self, manifest: Manifest, ledger: ScanLedger, comment: str = "",
    ) -> SubmissionOutcome:
        """Save locally, then send with retries.

        Raises:
            InvalidTransitionError: Not in COMPLETE or INCOMPLETE_PENDING_REASON.
            ManifestAlreadySubmittedError: Manifest is in the submitted registry.
            PersistenceFatalError: The ledger could not be saved; nothing was sent.
        """
        if self._state not in _SUBMITTABLE:
            raise InvalidTransitionError(f"Cannot submit from {self._state.value}")

        manifest_id = manifest.manifest_id
        complete = self._state is SubmissionState.COMPLETE
        comment = (comment or "").strip()
        if not complete and not comment:
            return SubmissionOutcome(
                manifest_id=manifest_id,
                state=self._state,
                notice=Notice(
                    level="warning",
                    code="reason_required",
                    message="Enter a comment explaining why the manifest is incomplete.",
                ),
            )

        if await self._registry.is_submitted(manifest_id):
            raise ManifestAlreadySubmittedError(manifest_id)

        self._persistence.cancel(manifest_id)
        if not await self._persistence.save(manifest_id, ledger):
            raise PersistenceFatalError(manifest_id)

        summary = missing_summary(manifest, ledger)
        final_comment = f"{comment}\n\n{summary}" if comment else summary
        payload = build_payload(manifest, final_comment, complete, self._stripped)

        self._state = SubmissionState.SUBMITTING
        logger.info("Submitting manifest %d (complete=%s)", manifest_id, complete)
        verdict, attempts, response, detail = await self._send(manifest_id, payload)

        if verdict.is_synced:
            self._state = SubmissionState.SYNCED
            await self._mark_synced(manifest_id, attempts)
            message = (
                "The server already had this manifest; nothing was duplicated."
                if verdict is AttemptClass.CONFLICT
                else "Manifest saved and synchronized."
            )
            return SubmissionOutcome(
                manifest_id=manifest_id,
                state=self._state,
                attempts=attempts,
                status_code=response.status_code if response else None,
                notice=Notice(level="info", code="synced", message=message),
            )

        if verdict is AttemptClass.CLIENT_ERROR:
            self._state = SubmissionState.EDITING
            return SubmissionOutcome(
                manifest_id=manifest_id,
                state=self._state,
                attempts=attempts,
                status_code=response.status_code if response else None,
                notice=Notice(
                    level="error",
                    code="rejected",
                    message=f"The server rejected the manifest: {detail}",
                ),
            )

        self._state = SubmissionState.SAVED_LOCAL_PENDING
        try:
            await self._registry.record(
                manifest_id, "pending", attempts=attempts, payload=payload, last_error=detail,
            )
        except Exception as e:
            logger.error("Could not record pending submission %d: %s", manifest_id, e)
        return SubmissionOutcome(
            manifest_id=manifest_id,
            state=self._state,
            attempts=attempts,
            status_code=response.status_code if response else None,
            notice=Notice(
                level="warning",
                code="saved_local_pending",
                message=(
                    "No connection to the server. The manifest is safe on this "
                    "device and will be sent later."
                ),
            ),
        )

    async def resync_pending(self) -> list[SubmissionOutcome]:
        """Send every pending submission from the registry again."""
        outcomes: list[SubmissionOutcome] = []
        for record in await self._registry.pending():
            if record.payload is None:
                logger.warning("Pending record %d has no payload, skipped", record.manifest_id)
                continue
            verdict, attempts, response, detail = await self._send(
                record.manifest_id, record.payload,
            )
            total = record.attempts + attempts
            status_code = response.status_code if response else None

            if verdict.is_synced:
                await self._mark_synced(record.manifest_id, total)
                state = SubmissionState.SYNCED
                notice = Notice(level="info", code="synced", message="Pending manifest synchronized.")
            elif verdict is AttemptClass.CLIENT_ERROR:
                await self._registry.record(
                    record.manifest_id, "rejected", attempts=total, last_error=detail,
                )
                state = SubmissionState.EDITING
                notice = Notice(
                    level="error",
                    code="rejected",
                    message=f"The server rejected pending manifest {record.manifest_id}: {detail}",
                )
            else:
                await self._registry.record(
                    record.manifest_id, "pending", attempts=total,
                    payload=record.payload, last_error=detail,
                )
                state = SubmissionState.SAVED_LOCAL_PENDING
                notice = Notice(
                    level="warning",
                    code="saved_local_pending",
                    message=f"Manifest {record.manifest_id} is still waiting for a connection.",
                )
            outcomes.append(
                SubmissionOutcome(
                    manifest_id=record.manifest_id,
                    state=state,
                    attempts=attempts,
                    status_code=status_code,
                    notice=notice,
                )
            )
        return outcomes

    # --- Internals ---

    async def _send(
        self, manifest_id: int, payload: dict[str, Any],
    ) -> tuple[AttemptClass, int, ApiResponse | None, str]:
        """Run the attempt loop; returns (verdict, attempts, last response, detail)."""
        attempt = 0
        while True:
            attempt += 1
            response: ApiResponse | None
            try:
                response = await self._client.submit_manifest(payload)
                verdict = classify_response(response)
                detail = response.message
            except (ManifestTransportError, TimeoutError, ConnectionError) as e:
                response = None
                verdict = AttemptClass.TRANSIENT
                detail = str(e)

            if verdict is not AttemptClass.TRANSIENT:
                logger.info(
                    "Manifest %d submission ended %s after %d attempt(s)",
                    manifest_id, verdict.value, attempt,
                )
                return verdict, attempt, response, detail

            if attempt >= self._retry.max_attempts:
                logger.warning(
                    "Manifest %d: giving up after %d attempts (%s)",
                    manifest_id, attempt, detail,
                )
                return verdict, attempt, response, detail

            delay = compute_delay(self._retry, attempt)
            logger.warning(
                "Manifest %d submission failed (attempt %d/%d), retrying in %.1fs: %s",
                manifest_id, attempt, self._retry.max_attempts, delay, detail,
            )
            await self._sleep(delay)

    async def _mark_synced(self, manifest_id: int, attempts: int) -> None:
        try:
            await self._registry.record(manifest_id, "synced", attempts=attempts)
        except Exception as e:
            logger.error("Could not record synced manifest %d: %s", manifest_id, e)
        if self._clear_on_sync:
            await self._persistence.clear(manifest_id)
