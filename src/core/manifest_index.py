# src/core/manifest_index.py — v1
"""Line keys and per-manifest lookup.

A line key is ``normalize(invoice) + "_" + normalize(note)``. Normalized codes
never contain ``_`` for the numeric series, so the separator keeps the two
halves apart. Keys are used instead of positions because a re-fetch may
reorder or reformat the detail rows.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

from pydantic import BaseModel, Field

from fieldsync.core.models import ManifestLine
from fieldsync.core.normalizer import normalize

if TYPE_CHECKING:
    from fieldsync.ledger.models import ScanLedger

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "_"


class IndexedLine(NamedTuple):
    """A manifest line with its position in the manifest."""

    line: ManifestLine
    index: int


def line_key(line: ManifestLine) -> str:
    """Stable key of a line, derived from its normalized codes."""
    return f"{normalize(line.invoice_code)}{KEY_SEPARATOR}{normalize(line.note_code)}"


def build_index(lines: list[ManifestLine]) -> dict[str, IndexedLine]:
    """Map each line key to its first line.

    Two lines whose normalized codes are equal collide; the first one wins.
    """
    index: dict[str, IndexedLine] = {}
    for position, line in enumerate(lines):
        key = line_key(line)
        if key in index:
            logger.debug(
                "Line key collision %r at positions %d and %d",
                key, index[key].index, position,
            )
            continue
        index[key] = IndexedLine(line=line, index=position)
    return index


class KeyReconciliation(BaseModel):
    """Result of matching ledger entries against a refreshed line list."""

    matched: list[str] = Field(default_factory=list)
    orphaned: list[str] = Field(default_factory=list)
    unscanned: list[str] = Field(default_factory=list)


def reconcile_keys(lines: list[ManifestLine], ledger: ScanLedger) -> KeyReconciliation:
    """Report which ledger entries still map onto ``lines``.

    Orphaned entries are kept in the ledger; they reappear if the server
    returns the line again.
    """
    index = build_index(lines)
    result = KeyReconciliation()
    for key in ledger.entries:
        if key in index:
            result.matched.append(key)
        else:
            result.orphaned.append(key)
    result.unscanned = [k for k in index if k not in ledger.entries]
    return result
