# tests/unit/sync/test_sanitize.py — v1
"""Tests for sync/sanitize.py — submission payload."""

from __future__ import annotations

from fieldsync.core.models import Manifest
from fieldsync.sync.sanitize import build_payload, sanitize_row


class TestSanitizeRow:
    def test_drops_listed_fields(self):
        assert sanitize_row({"id": 1, "date": "x", "invoice": "7"}, ("id", "date")) == {"invoice": "7"}

    def test_keeps_everything_else(self):
        row = {"invoice": "7", "note": None}
        assert sanitize_row(row, ()) == row


class TestBuildPayload:
    def test_shape(self, fetch_body):
        manifest = Manifest.from_response(500, fetch_body)
        payload = build_payload(manifest, "late truck", complete=False)
        assert payload["id"] == 500
        assert payload["comment"] == "late truck"
        assert payload["complete"] is False
        [header] = payload["header"]
        [row] = payload["detail"]
        assert "status" not in header
        assert "date" not in header
        assert header["route"] == "R-12"
        assert "id" not in row
        assert row["invoice"] == "A2000010"
        assert row["note"] == "55"
        assert row["packages"] == 3

    def test_custom_stripped_fields(self, single_line_manifest):
        payload = build_payload(single_line_manifest, stripped_fields=("description",))
        assert "description" not in payload["detail"][0]
        assert payload["header"][0]["status"] == "A"

    def test_echoes_only_received_keys(self):
        body = {
            "header": [{"status": "F", "ruta": "R1"}],
            "detail": [{"factura": "A2000010", "nota": "55", "invoice": "A2000010", "id_ca": 7}],
        }
        manifest = Manifest.from_response(500, body)
        payload = build_payload(manifest, stripped_fields=("status", "id_ca"))
        assert payload["header"] == [{"ruta": "R1"}]
        assert payload["detail"] == [{"factura": "A2000010", "nota": "55", "invoice": "A2000010"}]

    def test_header_defaults_not_injected(self, fetch_body):
        del fetch_body["header"][0]["driver"]
        manifest = Manifest.from_response(500, fetch_body)
        [header] = build_payload(manifest)["header"]
        assert "driver" not in header
        assert header["vehicle"] == "TRK-7"
