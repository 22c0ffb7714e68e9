"""Unit tests for agentdispatch.observability.logging module."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from agentdispatch.collaboration.invoker import FunctionInvoker
from agentdispatch.collaboration.orchestrator import CollaborationOrchestrator
from agentdispatch.collaboration.strategies import voting
from agentdispatch.observability.logging import (
    LoggingConfig,
    LogMode,
    bind_context,
    clear_context,
    configure_logging,
    get_current_config,
    get_logger,
    is_configured,
    reset_logging,
    set_console_logging,
    unbind_context,
)


@pytest.fixture(autouse=True)
def reset_logging_state() -> Any:
    """Reset logging state before and after each test."""
    reset_logging()
    set_console_logging(True)
    yield
    reset_logging()
    set_console_logging(True)


def _json_lines(err: str) -> list[dict[str, Any]]:
    return [json.loads(line) for line in err.strip().split("\n") if line.startswith("{")]


class TestLoggingConfig:
    """Test LoggingConfig Pydantic model."""

    def test_default_config(self) -> None:
        """LoggingConfig defaults to dev mode, INFO, console only."""
        config = LoggingConfig()

        assert config.mode == LogMode.DEV
        assert config.log_level == "INFO"
        assert config.max_log_days == 7
        assert config.enable_file_logging is False
        assert config.log_dir == Path.home() / ".agentdispatch" / "logs"

    def test_config_is_frozen(self) -> None:
        """LoggingConfig is immutable."""
        from pydantic import ValidationError as PydanticValidationError

        config = LoggingConfig()
        with pytest.raises(PydanticValidationError):
            config.mode = LogMode.PROD  # type: ignore[misc]

    @pytest.mark.parametrize("days", [0, 400])
    def test_max_log_days_bounds(self, days: int) -> None:
        """max_log_days must be within 1..365."""
        from pydantic import ValidationError as PydanticValidationError

        with pytest.raises(PydanticValidationError):
            LoggingConfig(max_log_days=days)


class TestConfigureLogging:
    """Test configure_logging function."""

    def test_configure_sets_current_config(self) -> None:
        """configure_logging stores the config and marks logging configured."""
        config = LoggingConfig(mode=LogMode.PROD, log_level="DEBUG")

        configure_logging(config)

        assert is_configured()
        assert get_current_config() == config

    def test_configure_uses_env_mode(self) -> None:
        """AGENTDISPATCH_LOG_MODE=prod selects JSON output."""
        with patch.dict(os.environ, {"AGENTDISPATCH_LOG_MODE": "prod"}):
            configure_logging()

        config = get_current_config()
        assert config is not None
        assert config.mode == LogMode.PROD

    def test_configure_env_mode_invalid_defaults_to_dev(self) -> None:
        """Unknown mode values fall back to dev."""
        with patch.dict(os.environ, {"AGENTDISPATCH_LOG_MODE": "verbose"}):
            configure_logging()

        config = get_current_config()
        assert config is not None
        assert config.mode == LogMode.DEV

    def test_get_logger_auto_configures(self) -> None:
        """get_logger configures defaults on first use."""
        assert not is_configured()

        get_logger(__name__)

        assert is_configured()

    def test_reset_clears_state(self) -> None:
        """reset_logging forgets the configuration."""
        configure_logging()

        reset_logging()

        assert not is_configured()
        assert get_current_config() is None


class TestOutput:
    """Test rendered output."""

    def test_dev_mode_human_readable(self, capsys: Any) -> None:
        """Dev mode is not JSON."""
        configure_logging(LoggingConfig(mode=LogMode.DEV))

        get_logger().info("test.dev.mode")

        captured = capsys.readouterr()
        assert "test.dev.mode" in captured.err
        assert not captured.err.strip().startswith("{")

    def test_prod_mode_json(self, capsys: Any) -> None:
        """Prod mode writes one JSON object per entry with level and timestamp."""
        configure_logging(LoggingConfig(mode=LogMode.PROD))

        get_logger().warning("selection.scored", agent_count=3)

        (entry,) = _json_lines(capsys.readouterr().err)
        assert entry["event"] == "selection.scored"
        assert entry["level"] == "warning"
        assert entry["agent_count"] == 3
        assert "T" in entry["timestamp"]

    def test_level_filtering(self, capsys: Any) -> None:
        """Entries below the configured level are dropped."""
        configure_logging(LoggingConfig(log_level="WARNING"))
        log = get_logger()

        log.info("info.message")
        log.warning("warning.message")

        captured = capsys.readouterr()
        assert "info.message" not in captured.err
        assert "warning.message" in captured.err

    def test_console_can_be_silenced(self, capsys: Any) -> None:
        """set_console_logging(False) suppresses stderr output."""
        configure_logging(LoggingConfig())
        set_console_logging(False)

        get_logger().info("silent.event")

        assert "silent.event" not in capsys.readouterr().err

    def test_exception_logged(self, capsys: Any) -> None:
        """log.exception includes the traceback."""
        configure_logging(LoggingConfig(mode=LogMode.DEV))
        log = get_logger()

        try:
            raise ValueError("combiner exploded")
        except ValueError:
            log.exception("collaboration.strategy.combiner_failed")

        captured = capsys.readouterr()
        assert "collaboration.strategy.combiner_failed" in captured.err
        assert "combiner exploded" in captured.err


class TestContext:
    """Test context binding."""

    def test_bind_and_unbind(self, capsys: Any) -> None:
        """Bound keys appear until unbound."""
        configure_logging(LoggingConfig(mode=LogMode.PROD))
        log = get_logger()

        bind_context(collaboration_id="collab_abc", strategy="voting")
        log.info("first")
        unbind_context("strategy")
        log.info("second")

        first, second = _json_lines(capsys.readouterr().err)
        assert first["collaboration_id"] == "collab_abc"
        assert first["strategy"] == "voting"
        assert "strategy" not in second

    def test_clear_context(self, capsys: Any) -> None:
        """clear_context removes everything."""
        configure_logging(LoggingConfig(mode=LogMode.PROD))
        bind_context(collaboration_id="collab_abc")

        clear_context()
        get_logger().info("after.clear")

        (entry,) = _json_lines(capsys.readouterr().err)
        assert "collaboration_id" not in entry

    async def test_collaboration_id_reaches_unit_logs(self, capsys: Any) -> None:
        """The id bound by collaborate() is visible in every entry of the call."""
        configure_logging(LoggingConfig(mode=LogMode.PROD, log_level="DEBUG"))

        async def answer(agent_name: str, prompt: str) -> str:
            get_logger("test.invoker").info("test.invoker.called", agent_name=agent_name)
            return "42"

        result = await CollaborationOrchestrator().collaborate(
            "q", ["a", "b"], FunctionInvoker(answer), voting()
        )

        assert result.is_ok
        entries = [
            e for e in _json_lines(capsys.readouterr().err) if e["event"] == "test.invoker.called"
        ]
        assert len(entries) == 2
        ids = {e["collaboration_id"] for e in entries}
        assert len(ids) == 1
        assert ids.pop().startswith("collab_")


class TestRedaction:
    """Test that secret-looking keys are redacted."""

    def test_sensitive_keys_redacted(self, capsys: Any) -> None:
        """api_key and token values never reach the output."""
        configure_logging(LoggingConfig(mode=LogMode.PROD))

        get_logger().info("config.loaded", api_key="sk-1234567890", token="abc123secret")

        (entry,) = _json_lines(capsys.readouterr().err)
        assert entry["api_key"] == "<REDACTED>"
        assert entry["token"] == "<REDACTED>"

    def test_normal_fields_kept(self, capsys: Any) -> None:
        """Other fields are untouched."""
        configure_logging(LoggingConfig(mode=LogMode.PROD))

        get_logger().info("selection.scored", selected="reviewer")

        (entry,) = _json_lines(capsys.readouterr().err)
        assert entry["selected"] == "reviewer"


class TestFileLogging:
    """Test the rotating log file."""

    def test_log_file_contains_message(self, tmp_path: Path) -> None:
        """Entries are written to agentdispatch.log when enabled."""
        log_dir = tmp_path / "nested" / "logs"
        configure_logging(LoggingConfig(log_dir=log_dir, enable_file_logging=True))

        get_logger().info("unique.test.message.12345")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "unique.test.message.12345" in (log_dir / "agentdispatch.log").read_text()

    def test_no_log_file_when_disabled(self, tmp_path: Path) -> None:
        """No directory is created when file logging is off."""
        log_dir = tmp_path / "no_logs"
        configure_logging(LoggingConfig(log_dir=log_dir))

        get_logger().info("test.no.file")

        assert not log_dir.exists()
