# src/storage/models.py — v1
"""Storage domain models: SubmissionRecord."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

SubmissionStatus = Literal["synced", "pending", "rejected"]


class SubmissionRecord(BaseModel):
    """Entry of the local "already submitted" registry."""

    manifest_id: int
    status: SubmissionStatus
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0
    payload: dict[str, Any] | None = None
    last_error: str | None = None
