# src/client/base_client.py — v1
"""Abstract manifest server client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from fieldsync.client.models import ApiResponse
from fieldsync.core.models import Manifest


class BaseManifestClient(ABC):
    """Port to the manifest server used by the poller and the coordinator."""

    @abstractmethod
    async def fetch_manifest(self, manifest_id: int) -> Manifest | None:
        """Fetch header and detail rows.

        Returns None when the server knows no such manifest.

        Raises:
            ManifestTransportError: Server unreachable or timed out.
            ManifestApiError: Server answered with a non-2xx status.
        """

    @abstractmethod
    async def submit_manifest(self, payload: dict[str, Any]) -> ApiResponse:
        """Post a sanitized submission payload.

        Any HTTP status, 4xx and 5xx included, is returned as an
        ApiResponse for the caller to classify.

        Raises:
            ManifestTransportError: Server unreachable or timed out.
        """
