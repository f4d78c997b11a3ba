# src/logging/logger.py — v1
"""Logging setup for the engine and the CLI.

Modules log through ``logging.getLogger(__name__)``, which places every
record under the ``fieldsync`` logger. ``setup_logging`` attaches one
stderr handler (stdout is left to the CLI) and, when a log file is set,
a rotating file handler. Both share the formatter picked by LOG_FORMAT.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fieldsync.logging.context import get_context

ROOT_LOGGER = "fieldsync"

# Third-party loggers that are too chatty at INFO on a scanning device.
_QUIET_LOGGERS = ("urllib3", "requests")


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with manifest/session context when set."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line human-readable format for development."""

    def format(self, record: logging.LogRecord) -> str:
        line = f"{_timestamp(record):%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] {record.name}"
        label = get_context().label()
        if label:
            line += f" {label}"
        line += f" - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "text": TextFormatter,
}


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """(Re)configure the ``fieldsync`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional log file; rotated by size.
        rotation: Size that triggers rotation, e.g. "10MB".
        retention: Number of rotated files kept.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = _FORMATTERS.get(log_format, TextFormatter)()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        from fieldsync.logging.handlers import create_rotating_handler

        file_handler = create_rotating_handler(log_file, rotation=rotation, retention=retention)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
