# src/logging/context.py — v1
"""Manifest and session tags for log records.

One context variable holds the tags of the current manifest session.
``ManifestSession.open`` sets them and ``close`` clears them. The poller
task copies the context when it is created, so its records carry the
manifest it refreshes. ``component_context`` tags a block of work (a
submission, a poll loop) and restores the previous tag on exit.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Any, Iterator


@dataclass(frozen=True)
class LogContext:
    manifest_id: int | None = None
    session_id: str | None = None
    component: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Set tags only, for the JSON formatter."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def label(self) -> str:
        """Compact tag string for the text formatter, e.g. ``[manifest 42] (poller)``."""
        parts = []
        if self.manifest_id is not None:
            parts.append(f"[manifest {self.manifest_id}]")
        if self.component:
            parts.append(f"({self.component})")
        return " ".join(parts)


_EMPTY = LogContext()

_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "fieldsync_log_context", default=_EMPTY
)


def get_context() -> LogContext:
    return _current.get()


def set_session_context(
    manifest_id: int, session_id: str, component: str | None = "session",
) -> None:
    """Tag everything that follows with an opened manifest."""
    _current.set(LogContext(manifest_id=manifest_id, session_id=session_id, component=component))


@contextmanager
def component_context(component: str) -> Iterator[LogContext]:
    token = _current.set(replace(_current.get(), component=component))
    try:
        yield _current.get()
    finally:
        _current.reset(token)


def clear_context() -> None:
    _current.set(_EMPTY)
