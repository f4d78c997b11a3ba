# src/sync/retry.py — v1
"""Retry policy and outcome classification for manifest submission."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum

from fieldsync.client.models import ApiResponse
from fieldsync.config.settings import Settings


class AttemptClass(str, Enum):
    """How one submission attempt ended."""

    SUCCESS = "success"
    CONFLICT = "conflict"
    CLIENT_ERROR = "client_error"
    TRANSIENT = "transient"

    @property
    def is_synced(self) -> bool:
        return self in (AttemptClass.SUCCESS, AttemptClass.CONFLICT)


@dataclass(frozen=True)
class RetryConfig:
    """Backoff configuration for submission attempts."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryConfig:
        return cls(
            max_attempts=settings.submit_max_attempts,
            base_delay_s=settings.submit_base_delay_s,
            backoff_factor=settings.submit_backoff_factor,
            jitter=settings.submit_jitter,
        )


def classify_response(response: ApiResponse) -> AttemptClass:
    """Classify an HTTP answer.

    409 means the server already stored this manifest id, which is as good
    as a success. Other 4xx will fail the same way again; 5xx may not.
    """
    code = response.status_code
    if 200 <= code < 300:
        return AttemptClass.SUCCESS
    if code == 409:
        return AttemptClass.CONFLICT
    if 400 <= code < 500:
        return AttemptClass.CLIENT_ERROR
    return AttemptClass.TRANSIENT


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Delay before retrying after ``attempt`` failures (1-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** (attempt - 1))
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay
