"""Tests for formrules/lib/logging.py and formrules/lib/settings.py."""

import json
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from formrules.lib.logging import JSONFormatter, setup_logging
from formrules.lib.settings import EngineSettings, get_settings


def _record(message="hello", **extra):
    record = logging.LogRecord("formrules.test", logging.WARNING, __file__, 10, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        """Test level, logger, message and source location."""
        data = json.loads(JSONFormatter().format(_record()))
        assert data["level"] == "WARNING"
        assert data["logger"] == "formrules.test"
        assert data["message"] == "hello"
        assert data["source"]["line"] == 10
        assert data["timestamp"].endswith("Z")

    def test_extra_attributes(self):
        """Test attributes passed via extra= are nested under 'extra'."""
        data = json.loads(JSONFormatter().format(_record(rule_id="r1")))
        assert data["extra"] == {"rule_id": "r1"}

    def test_include_and_exclude(self):
        """Test promoted and suppressed extra fields."""
        formatter = JSONFormatter(include_fields=["rule_id"], exclude_fields=["noise"])
        data = json.loads(formatter.format(_record(rule_id="r1", noise="x")))
        assert data["rule_id"] == "r1"
        assert "extra" not in data


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_verbose(self, restore_root_logger):
        """Test verbose enables DEBUG with a single console handler."""
        setup_logging(verbose=True)
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1

    def test_level_and_json(self, restore_root_logger):
        """Test a named level and JSON formatting."""
        setup_logging(json_format=True, level="warning")
        assert restore_root_logger.level == logging.WARNING
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_log_file(self, restore_root_logger, tmp_path):
        """Test a file handler is added and written to."""
        log_file = tmp_path / "engine.log"
        setup_logging(log_file=str(log_file))
        logging.getLogger("formrules.test").info("to file")
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "to file" in log_file.read_text(encoding="utf-8")


class TestEngineSettings:
    """Tests for EngineSettings."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        for name in ("LOG_LEVEL", "LOG_FORMAT", "LOG_FILE", "DEFAULT_JOINER", "STRICT_VALIDATION"):
            monkeypatch.delenv(f"FORMRULES_{name}", raising=False)
        settings = EngineSettings(_env_file=None)
        assert settings.log_level == "INFO"
        assert settings.default_joiner == "AND"
        assert settings.strict_validation is False
        assert settings.json_logs is False

    def test_environment(self, monkeypatch):
        """Test FORMRULES_ environment variables are read and normalised."""
        monkeypatch.setenv("FORMRULES_DEFAULT_JOINER", "or")
        monkeypatch.setenv("FORMRULES_LOG_FORMAT", "JSON")
        monkeypatch.setenv("FORMRULES_STRICT_VALIDATION", "true")
        settings = EngineSettings(_env_file=None)
        assert settings.default_joiner == "OR"
        assert settings.json_logs is True
        assert settings.strict_validation is True

    @pytest.mark.parametrize(
        "overrides",
        [{"log_level": "LOUD"}, {"log_format": "xml"}, {"default_joiner": "XOR"}],
    )
    def test_invalid_values(self, overrides):
        """Test unknown values are rejected."""
        with pytest.raises(PydanticValidationError):
            EngineSettings(_env_file=None, **overrides)

    def test_get_settings_overrides(self, monkeypatch):
        """Test explicit overrides win and None overrides are ignored."""
        monkeypatch.setenv("FORMRULES_LOG_LEVEL", "ERROR")
        settings = get_settings(log_level="debug", log_file=None)
        assert settings.log_level == "DEBUG"
        assert settings.log_file is None
