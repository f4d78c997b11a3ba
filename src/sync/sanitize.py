# src/sync/sanitize.py — v1
"""Submission payload construction.

The server derives some columns itself (manifest id, date, status) and
rejects rows that carry them, so those fields are stripped from every
header and detail row before sending.
"""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel

from fieldsync.core.models import Manifest

DEFAULT_STRIPPED_FIELDS = ("id", "manifest_id", "date", "status")


def sanitize_row(row: dict[str, Any], stripped: Iterable[str]) -> dict[str, Any]:
    drop = set(stripped)
    return {k: v for k, v in row.items() if k not in drop}


def _wire_row(row: BaseModel) -> dict[str, Any]:
    # Only the keys the server sent; its insert is built from them.
    data = row.model_dump(mode="json", by_alias=True, exclude_unset=True)
    data.update(row.model_extra or {})
    return data


def build_payload(
    manifest: Manifest,
    comment: str = "",
    complete: bool = True,
    stripped_fields: Iterable[str] = DEFAULT_STRIPPED_FIELDS,
) -> dict[str, Any]:
    """Build the sanitized submission body for ``manifest``.

    Header and detail rows echo the keys received from the server, minus
    ``stripped_fields``. Defaults of fields the server left out are not
    added.
    """
    stripped = tuple(stripped_fields)
    headers = [sanitize_row(_wire_row(h), stripped) for h in manifest.headers]
    detail = [sanitize_row(_wire_row(line), stripped) for line in manifest.lines]
    return {
        "id": manifest.manifest_id,
        "header": headers,
        "detail": detail,
        "comment": comment,
        "complete": complete,
    }
