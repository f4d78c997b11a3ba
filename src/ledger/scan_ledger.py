# src/ledger/scan_ledger.py — v1
"""Scan reducer and completeness queries over a ScanLedger.

All functions here are synchronous and never raise on bad input: a code
either matches a line, is a duplicate of an earlier confirmation, or is
not found. The only mutation is ``try_confirm`` on a MATCHED outcome.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Literal

from fieldsync.core.manifest_index import IndexedLine, line_key
from fieldsync.core.models import Manifest, ManifestLine
from fieldsync.core.normalizer import codes_match, normalize
from fieldsync.ledger.models import (
    ScanEntry,
    ScanField,
    ScanLedger,
    ScanOutcome,
    ScanOutcomeKind,
)

logger = logging.getLogger(__name__)

ALL_COMPLETE_SUMMARY = "All invoices and notes are complete."

LineStatus = Literal["full", "partial", "none"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def try_confirm(
    raw_code: str,
    manifest: Manifest,
    ledger: ScanLedger,
    now: Callable[[], datetime] = _utcnow,
) -> ScanOutcome:
    """Offer a raw code to the ledger.

    Lines are scanned in manifest order and the first line with a matching
    field decides the outcome (first match, not best match). Within that
    line the invoice is tried before the note. If every matching field of
    the line is already confirmed the outcome is DUPLICATE and later lines
    are not inspected.

    Args:
        raw_code: Value from a barcode reader or manual entry.
        manifest: Manifest currently on screen.
        ledger: Ledger of the same manifest; mutated on MATCHED only.
        now: Clock used for the confirmation timestamp.

    Returns:
        ScanOutcome describing what happened.
    """
    code = (raw_code or "").strip()
    normalized = normalize(code)
    if not code:
        return ScanOutcome(kind=ScanOutcomeKind.NOT_FOUND, code=normalized)

    for position, line in enumerate(manifest.lines):
        hits = [
            field
            for field, source in (
                (ScanField.INVOICE, line.invoice_code),
                (ScanField.NOTE, line.note_code),
            )
            if codes_match(code, source)
        ]
        if not hits:
            continue

        key = line_key(line)
        existing = ledger.get(key)
        for field in hits:
            if existing is None or not existing.is_confirmed(field):
                ledger.entry_for(key).confirm(field, now())
                logger.info(
                    "Confirmed %s %s on line %d (key=%s)",
                    field.value, normalized, position, key,
                )
                return ScanOutcome(
                    kind=ScanOutcomeKind.MATCHED,
                    code=normalized,
                    line_key=key,
                    field=field,
                    line_index=position,
                )

        logger.info("Duplicate %s %s on line %d", hits[0].value, normalized, position)
        return ScanOutcome(
            kind=ScanOutcomeKind.DUPLICATE,
            code=normalized,
            line_key=key,
            field=hits[0],
            line_index=position,
        )

    logger.info("Code %s not found in manifest %d", normalized, manifest.manifest_id)
    return ScanOutcome(kind=ScanOutcomeKind.NOT_FOUND, code=normalized)


def _missing_fields(line: ManifestLine, entry: ScanEntry | None) -> list[ScanField]:
    missing: list[ScanField] = []
    if line.has_invoice and not (entry and entry.invoice_confirmed):
        missing.append(ScanField.INVOICE)
    if line.has_note and not (entry and entry.note_confirmed):
        missing.append(ScanField.NOTE)
    return missing


def is_line_complete(line: ManifestLine, ledger: ScanLedger) -> bool:
    """Absent source fields count as confirmed."""
    return not _missing_fields(line, ledger.get(line_key(line)))


def line_status(line: ManifestLine, ledger: ScanLedger) -> LineStatus:
    """``full``, ``partial`` or ``none`` for row colouring."""
    if is_line_complete(line, ledger):
        return "full"
    entry = ledger.get(line_key(line))
    if entry is not None and entry.any_confirmed:
        return "partial"
    return "none"


def is_complete(manifest: Manifest, ledger: ScanLedger) -> bool:
    """True when every line is complete. An empty manifest is never complete."""
    if not manifest.lines:
        return False
    return all(is_line_complete(line, ledger) for line in manifest.lines)


def missing_summary(manifest: Manifest, ledger: ScanLedger) -> str:
    """Human-readable list of what is still missing, in manifest order."""
    bullets: list[str] = []
    for line in manifest.lines:
        missing = _missing_fields(line, ledger.get(line_key(line)))
        if not missing:
            continue
        parts = []
        if ScanField.INVOICE in missing:
            parts.append(f"Invoice: {line.invoice_code}")
        if ScanField.NOTE in missing:
            parts.append(f"Note: {line.note_code}")
        parts.append(f"Description: {line.description.strip()}")
        bullets.append("- " + " | ".join(parts))

    if not bullets:
        return ALL_COMPLETE_SUMMARY
    return "Missing:\n" + "\n".join(bullets)


def display_order(manifest: Manifest, ledger: ScanLedger) -> list[IndexedLine]:
    """Lines with any confirmation first (latest first), then the rest in order."""
    confirmed: list[tuple[datetime, IndexedLine]] = []
    pending: list[IndexedLine] = []
    for position, line in enumerate(manifest.lines):
        entry = ledger.get(line_key(line))
        stamp = entry.last_confirmed_at if entry is not None else None
        if stamp is not None:
            confirmed.append((stamp, IndexedLine(line, position)))
        else:
            pending.append(IndexedLine(line, position))
    # sort is stable, so equal timestamps keep manifest order
    confirmed.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in confirmed] + pending


def progress(manifest: Manifest, ledger: ScanLedger) -> tuple[int, int]:
    """(complete lines, total lines)."""
    done = sum(1 for line in manifest.lines if is_line_complete(line, ledger))
    return done, len(manifest.lines)
