# src/core/normalizer.py — v1
"""Canonical comparison keys for scanned and typed codes.

Upstream systems number invoices and delivery notes inconsistently: the
same document may arrive as ``A2000010`` from the printer and ``7000010``
from the ERP, or as ``007`` on paper and ``7`` in the database. ``normalize``
folds every known variant onto one key. It is the single source of truth
for code equivalence; line keys in ``manifest_index`` are derived from it.
"""

from __future__ import annotations

import re
from typing import Any

_SERIES_A = re.compile(r"^A[0-9]{7}$")
_SERIES_B = re.compile(r"^B[0-9]{7}$")
_DIGITS = re.compile(r"^[0-9]+$")

# Series B documents below this suffix belong to the old numbering range.
_SERIES_B_CUTOFF = "0050000"


def _strip_zeros(digits: str) -> str:
    return digits.lstrip("0") or "0"


def normalize(raw: Any) -> str:
    """Map a raw code onto its canonical comparison key.

    Rules, applied to the trimmed, uppercased input:
      * ``A`` + 7 digits starting ``A2``: the ``A`` becomes ``7``.
      * ``A`` + 7 digits otherwise: the ``A`` is dropped, leading zeros stripped.
      * ``B`` + 7 digits: prefix ``8`` below ``0050000``, ``5`` otherwise.
      * Digits only: leading zeros stripped.
      * Anything else is returned as-is.

    Never raises; ``None`` maps to the empty string.
    """
    if raw is None:
        return ""
    code = str(raw).strip().upper()

    if _SERIES_A.match(code):
        if code.startswith("A2"):
            return "7" + code[1:]
        return _strip_zeros(code[1:])

    if _SERIES_B.match(code):
        suffix = code[1:]
        return ("8" if suffix < _SERIES_B_CUTOFF else "5") + suffix

    if _DIGITS.match(code):
        return _strip_zeros(code)

    return code


def codes_match(raw: str, source: str | None) -> bool:
    """Symmetric match between a scanned value and a manifest field.

    Accepts raw/raw, normalized/normalized and both one-sided
    normalized-vs-raw equalities, so a scanner that already returns the
    normalized form or a zero-padded raw form both still match. An absent
    source field never matches.
    """
    if source is None:
        return False
    source_trim = str(source).strip()
    raw_trim = raw.strip()
    if not source_trim or not raw_trim:
        return False

    raw_norm = normalize(raw_trim)
    source_norm = normalize(source_trim)
    return (
        raw_trim == source_trim
        or raw_norm == source_norm
        or raw_norm == source_trim
        or raw_trim == source_norm
    )
