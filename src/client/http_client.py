# src/client/http_client.py — v1
"""HTTP adapter for the manifest server, built on requests.

requests is blocking, so every call runs in the default executor through
``asyncio.to_thread`` to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from fieldsync.client.base_client import BaseManifestClient
from fieldsync.client.models import ApiResponse
from fieldsync.config.settings import Settings
from fieldsync.core.errors import ManifestApiError, ManifestTransportError
from fieldsync.core.models import Manifest

logger = logging.getLogger(__name__)


def _extract_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict):
        for field in ("message", "error", "detail"):
            value = data.get(field)
            if isinstance(value, str) and value:
                return value
    if isinstance(data, str) and data.strip():
        return data.strip()
    return f"HTTP Error {status_code}"


class HttpManifestClient(BaseManifestClient):
    """JSON-over-HTTP client with per-call timeouts."""

    def __init__(
        self,
        base_url: str,
        fetch_path: str = "/api/manifests/search",
        submit_path: str = "/api/manifests/submit",
        timeout_s: float = 60.0,
        submit_timeout_s: float = 8.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._fetch_path = fetch_path
        self._submit_path = submit_path
        self._timeout_s = timeout_s
        self._submit_timeout_s = submit_timeout_s
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpManifestClient:
        return cls(
            base_url=settings.api_base_url,
            fetch_path=settings.api_fetch_path,
            submit_path=settings.api_submit_path,
            timeout_s=settings.api_timeout_s,
            submit_timeout_s=settings.submit_timeout_s,
        )

    async def fetch_manifest(self, manifest_id: int) -> Manifest | None:
        response = await self._post(
            self._fetch_path, {"manifestId": manifest_id}, self._timeout_s,
        )
        if not response.ok:
            raise ManifestApiError(response.status_code, response.message)
        return Manifest.from_response(manifest_id, response.data)

    async def submit_manifest(self, payload: dict[str, Any]) -> ApiResponse:
        return await self._post(self._submit_path, payload, self._submit_timeout_s)

    async def _post(self, path: str, body: dict[str, Any], timeout: float) -> ApiResponse:
        url = f"{self._base_url}{path}"
        try:
            resp = await asyncio.to_thread(
                self._session.post, url, json=body, timeout=timeout,
            )
        except requests.Timeout as e:
            raise ManifestTransportError(f"Request to {path} timed out after {timeout}s") from e
        except requests.RequestException as e:
            raise ManifestTransportError(f"Request to {path} failed: {e}") from e

        content_type = resp.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data: Any = resp.json()
            except ValueError:
                data = resp.text
        else:
            data = resp.text

        if 200 <= resp.status_code < 300:
            message = data.get("message", "") if isinstance(data, dict) else ""
        else:
            message = _extract_message(data, resp.status_code)
            logger.warning("POST %s answered %d: %s", path, resp.status_code, message)
        return ApiResponse(status_code=resp.status_code, message=str(message or ""), data=data)

    def close(self) -> None:
        self._session.close()
