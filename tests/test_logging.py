"""Tests for logging setup."""
import json
import logging

from focusflow.core.logging import JSONFormatter, setup_logging


def _record(**extra):
    record = logging.LogRecord("focusflow.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test structured log output."""

    def test_basic_fields(self):
        out = json.loads(JSONFormatter().format(_record()))
        assert out["message"] == "hello world"
        assert out["level"] == "INFO"
        assert out["logger"] == "focusflow.test"

    def test_context_fields_are_copied(self):
        out = json.loads(JSONFormatter().format(_record(session_key="react/7", provider="groq", other="x")))
        assert out["session_key"] == "react/7"
        assert out["provider"] == "groq"
        assert "other" not in out


class TestSetupLogging:
    """Test root logger configuration."""

    def test_json_format_installs_json_formatter(self):
        root = setup_logging("debug", "json")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_defaults_to_info(self):
        root = setup_logging("chatty", "text")
        assert root.level == logging.INFO
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
