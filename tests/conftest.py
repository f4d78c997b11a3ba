# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides sample manifests, an in-memory key/value store with failure
switches, and a mocked manifest client. No network; disk only via tmp_path.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fieldsync.client.base_client import BaseManifestClient
from fieldsync.client.models import ApiResponse
from fieldsync.core.models import Manifest, ManifestHeader, ManifestLine
from fieldsync.ledger.models import ScanLedger
from fieldsync.storage.base_kv_store import BaseKeyValueStore


class MemoryKeyValueStore(BaseKeyValueStore):
    """Dict-backed store; set ``fail_keys`` or ``fail_all`` to simulate disk errors."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.fail_keys: set[str] = set()
        self.fail_all = False
        self.fail_reads = False
        self.writes: list[str] = []

    async def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise OSError("read failed")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_all or key in self.fail_keys:
            raise OSError(f"write failed: {key}")
        self.writes.append(key)
        self.data[key] = value

    async def delete(self, key: str) -> None:
        if self.fail_all:
            raise OSError(f"delete failed: {key}")
        self.data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


# === FIXTURES: Sample data ===


@pytest.fixture
def single_line_manifest() -> Manifest:
    """Manifest 500 with one line (invoice A2000010, note 55)."""
    return Manifest(
        manifest_id=500,
        headers=[ManifestHeader(status="A", route="R-12", driver="D. Soto", vehicle="TRK-7")],
        lines=[
            ManifestLine(invoice_code="A2000010", note_code="55", package_count=3, description="X"),
        ],
    )


@pytest.fixture
def sample_manifest() -> Manifest:
    """Three lines: a full pair, an invoice-only line and a note-only line."""
    return Manifest(
        manifest_id=42,
        headers=[ManifestHeader(status="P", route="R-1")],
        lines=[
            ManifestLine(invoice_code="A2000010", note_code="B0012345", package_count=2, description="Pallet"),
            ManifestLine(invoice_code="A0001234", note_code=None, package_count=1, description="Box"),
            ManifestLine(invoice_code=None, note_code="007", package_count=4, description="Crate"),
        ],
    )


@pytest.fixture
def empty_ledger(sample_manifest: Manifest) -> ScanLedger:
    return ScanLedger(manifest_id=sample_manifest.manifest_id)


@pytest.fixture
def fetch_body() -> dict:
    """Raw fetch response for manifest 500."""
    return {
        "header": [{"status": "A", "route": "R-12", "driver": "D. Soto", "vehicle": "TRK-7", "date": "2026-10-17"}],
        "detail": [
            {"invoice": "A2000010", "note": 55, "packages": 3, "description": "X", "id": 9001},
        ],
    }


# === FIXTURES: Infrastructure ===


@pytest.fixture
def memory_kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def mock_client(single_line_manifest: Manifest) -> AsyncMock:
    """Manifest client returning manifest 500 and accepting every submission."""
    client = AsyncMock(spec=BaseManifestClient)
    client.fetch_manifest.return_value = single_line_manifest
    client.submit_manifest.return_value = ApiResponse(status_code=200, message="ok")
    return client
