# src/core/models.py — v1
"""Manifest domain models: ManifestLine, ManifestHeader, Manifest, Notice.

Wire names (invoice, note, packages, description, status, route, driver,
vehicle) are mapped onto snake_case attributes through aliases. Fields the
engine does not know about are kept so that a submission can echo them back.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HeaderStatus(str, Enum):
    """Server-side manifest status."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    FINALIZED = "FINALIZED"
    UNKNOWN = "UNKNOWN"


_STATUS_ALIASES: dict[str, HeaderStatus] = {
    "F": HeaderStatus.FINALIZED,
    "FINALIZED": HeaderStatus.FINALIZED,
    "P": HeaderStatus.IN_PROGRESS,
    "IN_PROGRESS": HeaderStatus.IN_PROGRESS,
    "A": HeaderStatus.OPEN,
    "O": HeaderStatus.OPEN,
    "OPEN": HeaderStatus.OPEN,
}


def parse_header_status(raw: Any) -> HeaderStatus:
    """Map a raw server status code onto HeaderStatus."""
    if raw is None:
        return HeaderStatus.UNKNOWN
    return _STATUS_ALIASES.get(str(raw).strip().upper(), HeaderStatus.UNKNOWN)


class ManifestLine(BaseModel):
    """One expected delivery unit of a manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    invoice_code: str | None = Field(default=None, alias="invoice")
    note_code: str | None = Field(default=None, alias="note")
    package_count: float = Field(default=0, alias="packages")
    description: str = ""

    @field_validator("invoice_code", "note_code", mode="before")
    @classmethod
    def _coerce_code(cls, v: Any) -> str | None:
        # Upstream sends codes as numbers or strings depending on the screen.
        if v is None:
            return None
        return str(v)

    @field_validator("package_count", mode="before")
    @classmethod
    def _coerce_packages(cls, v: Any) -> Any:
        return 0 if v is None or v == "" else v

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def has_invoice(self) -> bool:
        return bool(self.invoice_code and self.invoice_code.strip())

    @property
    def has_note(self) -> bool:
        return bool(self.note_code and self.note_code.strip())


class ManifestHeader(BaseModel):
    """Manifest header row (route, driver, vehicle, status)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    status: str | None = None
    route: str = ""
    driver: str = ""
    vehicle: str = ""

    @field_validator("route", "driver", "vehicle", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v: Any) -> str | None:
        return None if v is None else str(v)


class Manifest(BaseModel):
    """A manifest as last fetched from the server.

    Replaced wholesale on every successful fetch. Scan state lives in the
    ScanLedger, keyed by line key, never in here.
    """

    manifest_id: int
    headers: list[ManifestHeader] = Field(default_factory=list)
    lines: list[ManifestLine] = Field(default_factory=list)

    @property
    def header_status(self) -> HeaderStatus:
        if not self.headers:
            return HeaderStatus.UNKNOWN
        return parse_header_status(self.headers[0].status)

    @property
    def is_finalized(self) -> bool:
        return self.header_status is HeaderStatus.FINALIZED

    @classmethod
    def from_response(cls, manifest_id: int, data: Any) -> Manifest | None:
        """Build a Manifest from a fetch response body.

        Returns None when the body carries neither header nor detail rows.
        """
        if not isinstance(data, dict):
            return None
        headers = data.get("header") or []
        detail = data.get("detail") or []
        if not headers and not detail:
            return None
        return cls(
            manifest_id=manifest_id,
            headers=[ManifestHeader.model_validate(h) for h in headers],
            lines=[ManifestLine.model_validate(d) for d in detail],
        )

    def with_refresh(self, other: Manifest) -> Manifest:
        """Return a copy carrying ``other``'s headers and lines."""
        return self.model_copy(update={"headers": other.headers, "lines": other.lines})


class Notice(BaseModel):
    """User-visible message produced by an engine operation."""

    level: Literal["info", "warning", "error", "fatal"]
    code: str
    message: str
