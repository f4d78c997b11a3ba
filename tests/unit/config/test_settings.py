# tests/unit/config/test_settings.py — v1
"""Tests for config/settings.py — typed Settings and validation rules."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from fieldsync.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_default_api(self):
        s = Settings(_env_file=None)
        assert s.api_base_url == "http://localhost:8080"
        assert s.api_timeout_s == 60.0
        assert s.submit_timeout_s == 8.0

    def test_default_polling_and_storage(self):
        s = Settings(_env_file=None)
        assert s.poll_interval_s == 2.0
        assert s.save_debounce_s == 0.5
        assert s.storage_backend == "json"

    def test_default_submission(self):
        s = Settings(_env_file=None)
        assert s.submit_max_attempts == 3
        assert s.clear_on_sync is True
        assert s.submitted_retention == timedelta(hours=6)

    def test_default_logging(self):
        s = Settings(_env_file=None)
        assert s.log_format == "json"
        assert s.log_file is None


class TestSettingsValidation:
    def test_base_url_scheme(self):
        with pytest.raises(ConfigurationError, match="API_BASE_URL"):
            Settings(_env_file=None, api_base_url="ftp://server")

    def test_submit_timeout_above_fetch_timeout(self):
        with pytest.raises(ConfigurationError, match="SUBMIT_TIMEOUT_S"):
            Settings(_env_file=None, api_timeout_s=5, submit_timeout_s=8)

    def test_backoff_factor_below_one(self):
        with pytest.raises(ConfigurationError, match="BACKOFF"):
            Settings(_env_file=None, submit_backoff_factor=0.5)

    def test_errors_are_joined(self):
        with pytest.raises(ConfigurationError, match="API_BASE_URL.*BACKOFF"):
            Settings(_env_file=None, api_base_url="server", submit_backoff_factor=0.1)

    def test_non_positive_interval(self):
        with pytest.raises(ValueError, match="poll_interval_s"):
            Settings(_env_file=None, poll_interval_s=0)

    def test_negative_debounce(self):
        with pytest.raises(ValueError, match="save_debounce_s"):
            Settings(_env_file=None, save_debounce_s=-0.1)

    def test_zero_attempts(self):
        with pytest.raises(ValueError, match="submit_max_attempts"):
            Settings(_env_file=None, submit_max_attempts=0)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, storage_backend="mongodb")


class TestSettingsHelpers:
    def test_stripped_fields_list(self):
        s = Settings(_env_file=None, submission_stripped_fields=" id, date ,,status")
        assert s.stripped_fields_list == ["id", "date", "status"]

    def test_default_stripped_fields(self):
        assert Settings(_env_file=None).stripped_fields_list == ["id", "manifest_id", "date", "status"]


class TestEnvironment:
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("POLL_INTERVAL_S", "5")
        monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
        s = Settings(_env_file=None)
        assert s.poll_interval_s == 5.0
        assert s.storage_backend == "sqlite"

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("API_BASE_URL=https://depot.example\nUNRELATED=1\n")
        s = Settings(_env_file=env)
        assert s.api_base_url == "https://depot.example"


class TestLoadSettings:
    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        s = load_settings(storage_root=tmp_path / "store")
        assert s.storage_root == Path(tmp_path / "store")
