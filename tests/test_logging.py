"""Tests for structured logging configuration."""

import json
import logging
import sys

from formfill.app.core.config import Settings
from formfill.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
    request_id_var,
)


def _record(msg: str = "Test message", level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        record = _record("Upstream attempt failed")
        record.request_id = "req-1"
        record.attempt = 2
        record.fingerprint = "abc123"
        record.duration_ms = 150.5

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["attempt"] == 2
        assert data["fingerprint"] == "abc123"
        assert data["duration_ms"] == 150.5

    def test_json_format_with_extra_fields(self):
        record = _record()
        record.retries_left = 3
        record.error = "Timeout"

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["retries_left"] == 3
        assert data["extra"]["error"] == "Timeout"

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = _record()
        assert ContextFilter().filter(record) is True

        for field in ("request_id", "path", "method", "status_code", "duration_ms", "attempt", "fingerprint"):
            assert hasattr(record, field)

    def test_fills_request_id_from_context(self):
        token = request_id_var.set("req-42")
        try:
            record = _record()
            ContextFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-42"

    def test_preserves_existing_values(self):
        record = _record()
        record.request_id = "explicit"
        record.attempt = 3

        ContextFilter().filter(record)

        assert record.request_id == "explicit"
        assert record.attempt == 3


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        config = get_logging_config(Settings(_env_file=None, log_format="text"))

        assert "standard" in config["formatters"]
        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        config = get_logging_config(
            Settings(_env_file=None, log_format="structured", log_level="debug")
        )

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        config = get_logging_config(Settings(_env_file=None, log_format="json"))

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["()"].endswith("JSONFormatter")
        assert config["loggers"]["formfill"]["propagate"] is False


class TestHelpers:
    def test_get_log_context_drops_none(self):
        assert get_log_context(attempt=2, retries_left=1) == {"attempt": 2, "retries_left": 1}

    def test_get_logger(self):
        assert get_logger("formfill.test").name == "formfill.test"
