# tests/unit/logging/test_log_formatters.py — v1
"""Tests for logging/logger.py — formatters and setup."""

from __future__ import annotations

import json
import logging
import sys

from fieldsync.logging.context import clear_context, set_session_context
from fieldsync.logging.logger import JsonFormatter, TextFormatter, setup_logging


def _record(msg="Hello", level=logging.INFO):
    return logging.LogRecord(
        name="test", level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_session_context(500, "sess1")
        parsed = json.loads(JsonFormatter().format(_record("scan")))
        assert parsed["context"]["manifest_id"] == 500
        assert parsed["context"]["session_id"] == "sess1"

    def test_format_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record("failed", logging.ERROR)
            record.exc_info = sys.exc_info()
        parsed = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in parsed["exception"]


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_format_with_context(self):
        set_session_context(42, "s", component="poller")
        output = TextFormatter().format(_record())
        assert "[manifest 42]" in output
        assert "(poller)" in output


class TestSetupLogging:
    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json")
        root = logging.getLogger("fieldsync")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("fieldsync")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_setup_with_file(self, tmp_path):
        log_file = tmp_path / "fieldsync.log"
        setup_logging(level="INFO", log_format="json", log_file=log_file)
        root = logging.getLogger("fieldsync")
        assert len(root.handlers) == 2
        root.info("written")
        for h in root.handlers:
            h.flush()
        assert "written" in log_file.read_text()
        root.handlers[1].close()
        setup_logging(level="INFO")
