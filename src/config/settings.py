# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Manifest server ===
    api_base_url: str = "http://localhost:8080"
    api_fetch_path: str = "/api/manifests/search"
    api_submit_path: str = "/api/manifests/submit"
    api_timeout_s: float = 60.0
    submit_timeout_s: float = 8.0

    # === Live sync ===
    poll_interval_s: float = 2.0

    # === Local persistence ===
    save_debounce_s: float = 0.5
    storage_backend: Literal["json", "sqlite", "redis"] = "json"
    storage_root: Path = Path("~/.fieldsync/store")
    storage_redis_url: str = ""

    # === Submission ===
    submit_max_attempts: int = 3
    submit_base_delay_s: float = 1.0
    submit_backoff_factor: float = 2.0
    submit_jitter: bool = True
    submission_stripped_fields: str = "id,manifest_id,date,status"
    clear_on_sync: bool = True
    submitted_retention_hours: float = 6.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("poll_interval_s", "api_timeout_s", "submit_timeout_s")
    @classmethod
    def validate_positive(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("save_debounce_s", "submit_base_delay_s")
    @classmethod
    def validate_non_negative(cls, v: float, info) -> float:  # noqa: N805
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("submit_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("submit_max_attempts must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not self.api_base_url.startswith(("http://", "https://")):
            errors.append("API_BASE_URL must start with http:// or https://")

        if self.submit_timeout_s > self.api_timeout_s:
            errors.append("SUBMIT_TIMEOUT_S must not exceed API_TIMEOUT_S")

        if self.submit_backoff_factor < 1.0:
            errors.append("SUBMIT_BACKOFF_FACTOR must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def stripped_fields_list(self) -> list[str]:
        """Parse comma-separated submission field blacklist."""
        return [f.strip() for f in self.submission_stripped_fields.split(",") if f.strip()]

    @property
    def submitted_retention(self) -> timedelta:
        return timedelta(hours=self.submitted_retention_hours)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
