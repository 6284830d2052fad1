"""Tests for Settings configuration model and logging setup."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from courier.config import Settings
from courier.log import LOG_FORMAT, setup_logging


class TestDefaults:
    def test_check_interval(self):
        assert Settings().scheduler_check_interval_ms == 1000

    def test_timezone(self):
        assert Settings().scheduler_timezone == "UTC"

    def test_hook_timeout_disabled(self):
        assert Settings().plugin_hook_timeout_seconds is None

    def test_snapshot_path(self):
        assert Settings().snapshot_path == Path("data/courier.db")

    def test_log_level(self):
        assert Settings().log_level == "INFO"


class TestValidation:
    def test_check_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(scheduler_check_interval_ms=0)

    def test_hook_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(plugin_hook_timeout_seconds=0)

    def test_explicit_values(self):
        s = Settings(scheduler_check_interval_ms=250, plugin_hook_timeout_seconds=2.5)
        assert s.scheduler_check_interval_ms == 250
        assert s.plugin_hook_timeout_seconds == 2.5


class TestSetupLogging:
    def test_configures_root_logger(self, monkeypatch: pytest.MonkeyPatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        setup_logging("debug")
        assert calls == [{"format": LOG_FORMAT, "level": logging.DEBUG}]

    def test_uses_settings_level(self, monkeypatch: pytest.MonkeyPatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        monkeypatch.setattr("courier.config.settings.log_level", "WARNING")
        setup_logging()
        assert calls[0]["level"] == logging.WARNING
