# src/logging/handlers.py — v1
"""Size-rotated log files for devices without a log collector."""

from __future__ import annotations

import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_SIZE_RE = re.compile(r"^(\d+)\s*(KB|MB|GB)$", re.IGNORECASE)
_UNITS = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}


def _parse_size(size_str: str) -> int:
    """Bytes in a size such as ``"10MB"`` (KB, MB or GB, any case)."""
    match = _SIZE_RE.match(size_str.strip())
    if match is None:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    count, unit = match.groups()
    return int(count) * _UNITS[unit.upper()]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 30,
) -> RotatingFileHandler:
    """Rotating handler for ``log_file``, creating its directory if needed.

    ``retention`` is the number of rotated files kept next to the live one.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=_parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
