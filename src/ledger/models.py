# src/ledger/models.py — v1
"""Scan ledger models: ScanEntry, ScanLedger, ScanOutcome, LedgerSnapshot."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ScanField(str, Enum):
    """Which half of a line a code confirmed."""

    INVOICE = "invoice"
    NOTE = "note"


class ScanEntry(BaseModel):
    """Confirmation state of one line, keyed by line key in the ledger."""

    invoice_confirmed: bool = False
    note_confirmed: bool = False
    confirmed_at_invoice: datetime | None = None
    confirmed_at_note: datetime | None = None

    def is_confirmed(self, field: ScanField) -> bool:
        if field is ScanField.INVOICE:
            return self.invoice_confirmed
        return self.note_confirmed

    def confirm(self, field: ScanField, at: datetime) -> None:
        if field is ScanField.INVOICE:
            self.invoice_confirmed = True
            self.confirmed_at_invoice = at
        else:
            self.note_confirmed = True
            self.confirmed_at_note = at

    @property
    def last_confirmed_at(self) -> datetime | None:
        stamps = [t for t in (self.confirmed_at_invoice, self.confirmed_at_note) if t]
        return max(stamps) if stamps else None

    @property
    def any_confirmed(self) -> bool:
        return self.invoice_confirmed or self.note_confirmed


class ScanLedger(BaseModel):
    """Confirmation state of every scanned line of one manifest."""

    manifest_id: int
    entries: dict[str, ScanEntry] = Field(default_factory=dict)

    def get(self, key: str) -> ScanEntry | None:
        return self.entries.get(key)

    def entry_for(self, key: str) -> ScanEntry:
        """Return the entry for ``key``, creating it on first use."""
        if key not in self.entries:
            self.entries[key] = ScanEntry()
        return self.entries[key]

    def clear(self) -> None:
        self.entries.clear()

    @property
    def is_empty(self) -> bool:
        return not self.entries


class ScanOutcomeKind(str, Enum):
    MATCHED = "MATCHED"
    DUPLICATE = "DUPLICATE"
    NOT_FOUND = "NOT_FOUND"


class ScanOutcome(BaseModel):
    """Result of offering one code to the ledger."""

    kind: ScanOutcomeKind
    code: str = ""
    line_key: str | None = None
    field: ScanField | None = None
    line_index: int | None = None

    @property
    def matched(self) -> bool:
        return self.kind is ScanOutcomeKind.MATCHED


class LedgerSnapshot(BaseModel):
    """Persisted form of a ScanLedger."""

    manifest_id: int
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    entries: dict[str, ScanEntry] = Field(default_factory=dict)

    @classmethod
    def of(cls, ledger: ScanLedger) -> LedgerSnapshot:
        return cls(
            manifest_id=ledger.manifest_id,
            entries={k: v.model_copy() for k, v in ledger.entries.items()},
        )

    def to_ledger(self) -> ScanLedger:
        return ScanLedger(manifest_id=self.manifest_id, entries=dict(self.entries))
