# tests/unit/ledger/test_scan_ledger.py — v1
"""Tests for ledger/scan_ledger.py — scan reducer and completeness queries."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fieldsync.core.models import Manifest, ManifestLine
from fieldsync.ledger.models import ScanEntry, ScanField, ScanLedger, ScanOutcomeKind
from fieldsync.ledger.scan_ledger import (
    ALL_COMPLETE_SUMMARY,
    display_order,
    is_complete,
    is_line_complete,
    line_status,
    missing_summary,
    progress,
    try_confirm,
)

T0 = datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc)


def _clock(*stamps):
    it = iter(stamps)
    return lambda: next(it)


class TestTryConfirm:
    def test_matches_invoice(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        outcome = try_confirm("A2000010", single_line_manifest, ledger, now=lambda: T0)
        assert outcome.kind is ScanOutcomeKind.MATCHED
        assert outcome.field is ScanField.INVOICE
        assert outcome.code == "7000010"
        assert outcome.line_index == 0
        entry = ledger.get("7000010_55")
        assert entry.invoice_confirmed
        assert entry.confirmed_at_invoice == T0
        assert not entry.note_confirmed

    def test_matches_note_with_padding(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        outcome = try_confirm("055", single_line_manifest, ledger)
        assert outcome.kind is ScanOutcomeKind.MATCHED
        assert outcome.field is ScanField.NOTE
        assert outcome.code == "55"

    def test_duplicate_does_not_mutate(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        try_confirm("A2000010", single_line_manifest, ledger, now=lambda: T0)
        before = ledger.model_dump()
        outcome = try_confirm("7000010", single_line_manifest, ledger, now=lambda: T0 + timedelta(hours=1))
        assert outcome.kind is ScanOutcomeKind.DUPLICATE
        assert ledger.model_dump() == before

    def test_not_found(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        outcome = try_confirm("999", single_line_manifest, ledger)
        assert outcome.kind is ScanOutcomeKind.NOT_FOUND
        assert outcome.code == "999"
        assert ledger.is_empty

    def test_blank_is_not_found(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        assert try_confirm("   ", single_line_manifest, ledger).kind is ScanOutcomeKind.NOT_FOUND
        assert ledger.is_empty

    def test_absent_field_never_matches(self, sample_manifest, empty_ledger):
        # line 1 has no note: a blank note must not match anything
        outcome = try_confirm("", sample_manifest, empty_ledger)
        assert outcome.kind is ScanOutcomeKind.NOT_FOUND

    def test_first_matching_line_wins(self):
        manifest = Manifest(
            manifest_id=1,
            lines=[
                ManifestLine(invoice_code="100", note_code="1"),
                ManifestLine(invoice_code="100", note_code="2"),
            ],
        )
        ledger = ScanLedger(manifest_id=1)
        assert try_confirm("100", manifest, ledger).line_index == 0
        # second scan of the same code is a duplicate of line 0, not a match on line 1
        assert try_confirm("100", manifest, ledger).kind is ScanOutcomeKind.DUPLICATE
        assert ledger.get("100_2") is None

    def test_same_code_on_both_halves(self):
        manifest = Manifest(manifest_id=1, lines=[ManifestLine(invoice_code="7", note_code="007")])
        ledger = ScanLedger(manifest_id=1)
        first = try_confirm("7", manifest, ledger)
        second = try_confirm("7", manifest, ledger)
        third = try_confirm("7", manifest, ledger)
        assert first.field is ScanField.INVOICE
        assert second.field is ScanField.NOTE
        assert second.kind is ScanOutcomeKind.MATCHED
        assert third.kind is ScanOutcomeKind.DUPLICATE

    def test_confirmations_are_monotonic(self, sample_manifest, empty_ledger):
        codes = ["A2000010", "xx", "B0012345", "A2000010", "1234", "7", "404"]
        confirmed = 0
        for code in codes:
            try_confirm(code, sample_manifest, empty_ledger)
            now = sum(
                int(e.invoice_confirmed) + int(e.note_confirmed)
                for e in empty_ledger.entries.values()
            )
            assert now >= confirmed
            confirmed = now
        assert confirmed == 4

    def test_very_long_code_is_not_found(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        outcome = try_confirm("9" * 5000, single_line_manifest, ledger)
        assert outcome.kind is ScanOutcomeKind.NOT_FOUND
        assert ledger.is_empty


class TestCompleteness:
    def test_end_to_end_single_line(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        assert not is_complete(single_line_manifest, ledger)
        try_confirm("A2000010", single_line_manifest, ledger)
        assert not is_complete(single_line_manifest, ledger)
        try_confirm("055", single_line_manifest, ledger)
        assert is_line_complete(single_line_manifest.lines[0], ledger)
        assert is_complete(single_line_manifest, ledger)

    @pytest.mark.parametrize("n_lines", [2, 5, 40])
    @pytest.mark.parametrize("notes_first", [False, True])
    def test_every_code_once_completes_without_duplicates(self, n_lines, notes_first):
        manifest = Manifest(
            manifest_id=9,
            lines=[
                ManifestLine(invoice_code=f"A2{i:06d}", note_code=f"{1000 + i:07d}")
                for i in range(n_lines)
            ],
        )
        invoices = [line.invoice_code for line in manifest.lines]
        notes = [line.note_code for line in manifest.lines]
        codes = notes + invoices[::-1] if notes_first else invoices + notes
        ledger = ScanLedger(manifest_id=9)

        kinds = [try_confirm(code, manifest, ledger).kind for code in codes]

        assert kinds == [ScanOutcomeKind.MATCHED] * (2 * n_lines)
        assert is_complete(manifest, ledger)
        assert progress(manifest, ledger) == (n_lines, n_lines)

    def test_absent_fields_count_as_confirmed(self, sample_manifest, empty_ledger):
        try_confirm("1234", sample_manifest, empty_ledger)
        assert is_line_complete(sample_manifest.lines[1], empty_ledger)
        assert line_status(sample_manifest.lines[1], empty_ledger) == "full"

    def test_empty_manifest_never_complete(self):
        assert not is_complete(Manifest(manifest_id=1), ScanLedger(manifest_id=1))

    def test_line_status(self, sample_manifest, empty_ledger):
        line = sample_manifest.lines[0]
        assert line_status(line, empty_ledger) == "none"
        try_confirm("B0012345", sample_manifest, empty_ledger)
        assert line_status(line, empty_ledger) == "partial"
        try_confirm("A2000010", sample_manifest, empty_ledger)
        assert line_status(line, empty_ledger) == "full"

    def test_progress(self, sample_manifest, empty_ledger):
        assert progress(sample_manifest, empty_ledger) == (0, 3)
        try_confirm("007", sample_manifest, empty_ledger)
        assert progress(sample_manifest, empty_ledger) == (1, 3)


class TestMissingSummary:
    def test_lists_only_missing_halves(self, sample_manifest, empty_ledger):
        try_confirm("A2000010", sample_manifest, empty_ledger)
        summary = missing_summary(sample_manifest, empty_ledger)
        assert summary.splitlines() == [
            "Missing:",
            "- Note: B0012345 | Description: Pallet",
            "- Invoice: A0001234 | Description: Box",
            "- Note: 007 | Description: Crate",
        ]

    def test_all_complete(self, single_line_manifest):
        ledger = ScanLedger(manifest_id=500)
        try_confirm("A2000010", single_line_manifest, ledger)
        try_confirm("55", single_line_manifest, ledger)
        assert missing_summary(single_line_manifest, ledger) == ALL_COMPLETE_SUMMARY


class TestDisplayOrder:
    def test_confirmed_first_latest_first(self, sample_manifest, empty_ledger):
        try_confirm("1234", sample_manifest, empty_ledger, now=lambda: T0)
        try_confirm("007", sample_manifest, empty_ledger, now=lambda: T0 + timedelta(minutes=5))
        order = [item.index for item in display_order(sample_manifest, empty_ledger)]
        assert order == [2, 1, 0]

    def test_unscanned_keep_manifest_order(self, sample_manifest, empty_ledger):
        order = [item.index for item in display_order(sample_manifest, empty_ledger)]
        assert order == [0, 1, 2]

    def test_uses_latest_of_both_stamps(self, sample_manifest):
        ledger = ScanLedger(
            manifest_id=42,
            entries={
                "7000010_80012345": ScanEntry(
                    invoice_confirmed=True,
                    confirmed_at_invoice=T0,
                    note_confirmed=True,
                    confirmed_at_note=T0 + timedelta(hours=2),
                ),
                "1234_": ScanEntry(invoice_confirmed=True, confirmed_at_invoice=T0 + timedelta(hours=1)),
            },
        )
        order = [item.index for item in display_order(sample_manifest, ledger)]
        assert order == [0, 1, 2]
