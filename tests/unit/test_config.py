"""Unit tests for engine settings and logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from stepflow.config import EngineSettings


def test_engine_settings_defaults() -> None:
    """Test engine settings default values."""
    settings = EngineSettings()

    assert settings.log_level == "INFO"
    assert settings.log_format == "json"
    assert settings.debug is False
    assert settings.max_loop_iterations is None
    assert settings.validate_outputs is True


def test_engine_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STEPFLOW_MAX_LOOP_ITERATIONS", "25")
    monkeypatch.setenv("STEPFLOW_VALIDATE_OUTPUTS", "false")

    settings = EngineSettings()

    assert settings.max_loop_iterations == 25
    assert settings.validate_outputs is False


def test_engine_settings_loads_from_dotenv(isolated_env: Path) -> None:
    (isolated_env / ".env").write_text(
        "\n".join(["STEPFLOW_LOG_LEVEL=DEBUG", "STEPFLOW_LOG_FORMAT=text", ""]),
        encoding="utf-8",
    )

    settings = EngineSettings()

    assert settings.log_level == "DEBUG"
    assert settings.log_format == "text"


def test_engine_settings_rejects_non_positive_loop_cap() -> None:
    with pytest.raises(ValidationError):
        EngineSettings(max_loop_iterations=0)


def test_setup_logging_emits_json_lines(capsys: pytest.CaptureFixture[str]) -> None:
    EngineSettings(log_level="INFO", log_format="json").setup_logging()

    logging.getLogger("stepflow.test").info("hello", extra={"run_id": "abc"})

    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["extra"] == {"run_id": "abc"}


def test_setup_logging_text_appends_extra_fields(capsys: pytest.CaptureFixture[str]) -> None:
    EngineSettings(log_level="INFO", log_format="text").setup_logging()

    logging.getLogger("stepflow.test").info("hello", extra={"step": "increment"})

    line = capsys.readouterr().out.strip().splitlines()[-1]
    assert "hello" in line
    assert line.endswith("step=increment")


def test_setup_logging_debug_enables_stepflow_loggers() -> None:
    EngineSettings(log_level="WARNING", debug=True).setup_logging()

    assert logging.getLogger("stepflow").level == logging.DEBUG
