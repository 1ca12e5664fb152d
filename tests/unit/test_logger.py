"""Unit tests for xssgate/utils/logger.py — env settings and structlog setup."""

from __future__ import annotations

import json

import pytest
import structlog

from xssgate.utils.logger import LogSettings, configure_logging, get_logger, settings_from_env


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    structlog.reset_defaults()
    configure_logging()


class TestSettingsFromEnv:

    def test_defaults(self) -> None:
        assert settings_from_env({}) == LogSettings(debug=False, level="INFO", json_output=True)

    def test_debug_lowers_default_level(self) -> None:
        settings = settings_from_env({"DEBUG": "TRUE"})
        assert settings.debug is True
        assert settings.level == "DEBUG"

    def test_explicit_level_wins_over_debug(self) -> None:
        assert settings_from_env({"DEBUG": "true", "LOG_LEVEL": "warning"}).level == "WARNING"

    def test_console_output(self) -> None:
        assert settings_from_env({"JSON_LOGS": "false"}).json_output is False


class TestConfigureLogging:

    def test_json_line_with_iso_timestamp(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_level="INFO", json_output=True)
        get_logger("xssgate.test").info("log_queue_full", dropped_count=3)

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["event"] == "log_queue_full"
        assert record["dropped_count"] == 3
        assert record["level"] == "info"
        assert record["timestamp"].endswith("Z")

    def test_level_filters_lower_events(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_level="WARNING", json_output=True)
        get_logger("xssgate.test").info("quiet")
        assert capsys.readouterr().out == ""

    def test_unknown_level_falls_back_to_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_level="chatty", json_output=True)
        logger = get_logger("xssgate.test")
        logger.debug("hidden")
        logger.info("shown")
        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out
