# src/sync/models.py — v1
"""Sync domain models: SyncState, SubmissionState, SubmissionOutcome."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from fieldsync.core.models import Notice


class SaveStatus(str, Enum):
    SAVED = "SAVED"
    SAVING = "SAVING"
    ERROR = "ERROR"


class SyncState(BaseModel):
    """Transient per-session persistence and connectivity state."""

    save_status: SaveStatus = SaveStatus.SAVED
    last_saved_at: datetime | None = None
    online: bool = True
    pending_sync: bool = False


class SubmissionState(str, Enum):
    EDITING = "EDITING"
    COMPLETE = "COMPLETE"
    INCOMPLETE_PENDING_REASON = "INCOMPLETE_PENDING_REASON"
    SUBMITTING = "SUBMITTING"
    SYNCED = "SYNCED"
    SAVED_LOCAL_PENDING = "SAVED_LOCAL_PENDING"

    @property
    def is_terminal(self) -> bool:
        return self in (SubmissionState.SYNCED, SubmissionState.SAVED_LOCAL_PENDING)


class SubmissionOutcome(BaseModel):
    """Where a submit call left the coordinator and why."""

    manifest_id: int
    state: SubmissionState
    attempts: int = 0
    status_code: int | None = None
    notice: Notice

    @property
    def synced(self) -> bool:
        return self.state is SubmissionState.SYNCED
