"""Structured logging configuration for agentdispatch.

Configures structlog with a shared processor chain. Development mode renders
human-readable console output; production mode renders JSON.

Features:
- ISO 8601 timestamps
- Log level in all entries
- contextvars integration so a collaboration id bound in the caller follows
  every concurrent unit task
- Optional daily log rotation with configurable retention
- Mode selection via AGENTDISPATCH_LOG_MODE or explicit config

Standard log keys:
- collaboration_id: Identifier of one fan-out call
- agent_name: Agent an entry is attributed to
- attempt: 1-based attempt counter of an execution unit
- strategy: Aggregation strategy name
- policy: Failure policy name

Event naming convention:
- dot.notation, domain.entity.verb_past_tense
  (e.g. "collaboration.unit.succeeded", "selection.cache.rebuilt")

Prompts and agent outputs are never logged verbatim; log their lengths.

Usage:
    from agentdispatch.observability import configure_logging, get_logger

    configure_logging(LoggingConfig(mode=LogMode.DEV))
    log = get_logger(__name__)
    log.info("collaboration.started", agent_count=3, policy="require_majority")
"""

from __future__ import annotations

from enum import Enum
import logging
from logging.handlers import TimedRotatingFileHandler
import os
from pathlib import Path
import sys
from typing import Any

from pydantic import BaseModel, Field
import structlog

# Keys whose values are redacted regardless of content
_SENSITIVE_KEYS = frozenset({
    "api_key", "apikey", "password", "secret", "token", "credential", "authorization",
})


class LogMode(str, Enum):
    """Logging output mode."""

    DEV = "dev"
    PROD = "prod"


class LoggingConfig(BaseModel):
    """Configuration for structured logging.

    Attributes:
        mode: Output mode (dev for human-readable, prod for JSON).
        log_level: Minimum log level to output.
        log_dir: Directory for log files.
        max_log_days: Number of days to retain rotated log files.
        enable_file_logging: Whether to write logs to files.
    """

    mode: LogMode = Field(default=LogMode.DEV)
    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".agentdispatch" / "logs")
    max_log_days: int = Field(default=7, ge=1, le=365)
    enable_file_logging: bool = Field(default=False)

    model_config = {"frozen": True}


_configured: bool = False
_current_config: LoggingConfig | None = None


def _get_mode_from_env() -> LogMode:
    """Read the logging mode from AGENTDISPATCH_LOG_MODE (defaults to dev)."""
    env_mode = os.environ.get("AGENTDISPATCH_LOG_MODE", "dev").lower()
    if env_mode == "prod":
        return LogMode.PROD
    return LogMode.DEV


def _get_log_level(level_str: str) -> int:
    """Convert a log level name to its logging constant."""
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(level_str.upper(), logging.INFO)


def _setup_file_handler(config: LoggingConfig) -> TimedRotatingFileHandler | None:
    """Create the midnight-rotating file handler, or None if disabled."""
    if not config.enable_file_logging:
        return None

    config.log_dir.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        filename=str(config.log_dir / "agentdispatch.log"),
        when="midnight",
        interval=1,
        backupCount=config.max_log_days,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(_get_log_level(config.log_level))
    return handler


def _redact_sensitive_keys(
    _logger: Any,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that redacts values of secret-looking keys."""
    for key in list(event_dict):
        if key.lower() in _SENSITIVE_KEYS:
            event_dict[key] = "<REDACTED>"
    return event_dict


def _get_shared_processors() -> list[Any]:
    """Processors applied before rendering, shared by every output."""
    return [
        structlog.contextvars.merge_contextvars,
        _redact_sensitive_keys,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
    ]


def _get_console_processors(mode: LogMode) -> list[Any]:
    """Shared processors plus the renderer for the given mode."""
    processors = _get_shared_processors()
    processors.append(structlog.processors.format_exc_info)

    if mode == LogMode.DEV:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    return processors


_console_logging_enabled: bool = True


def set_console_logging(enabled: bool) -> None:
    """Enable or disable console log output."""
    global _console_logging_enabled
    _console_logging_enabled = enabled


class _FileWritingPrintLogger:
    """Print logger writing to stderr and, optionally, a file handler."""

    def __init__(self, file_handler: TimedRotatingFileHandler | None = None) -> None:
        self._file_handler = file_handler

    def _log(self, message: str, level: int = logging.INFO) -> None:
        if _console_logging_enabled:
            print(message, file=sys.stderr)

        if self._file_handler:
            record = logging.LogRecord(
                name="agentdispatch",
                level=level,
                pathname="",
                lineno=0,
                msg=message,
                args=(),
                exc_info=None,
            )
            self._file_handler.emit(record)

    def msg(self, message: str) -> None:
        self._log(message, logging.INFO)

    def __call__(self, message: str) -> None:
        self.msg(message)

    def debug(self, message: str) -> None:
        self._log(message, logging.DEBUG)

    def info(self, message: str) -> None:
        self._log(message, logging.INFO)

    def warning(self, message: str) -> None:
        self._log(message, logging.WARNING)

    warn = warning

    def error(self, message: str) -> None:
        self._log(message, logging.ERROR)

    def critical(self, message: str) -> None:
        self._log(message, logging.CRITICAL)

    fatal = critical

    def exception(self, message: str) -> None:
        self._log(message, logging.ERROR)


class _FileWritingPrintLoggerFactory:
    """Factory for creating file-writing print loggers."""

    def __init__(self, file_handler: TimedRotatingFileHandler | None = None) -> None:
        self._file_handler = file_handler

    def __call__(self, *_args: Any) -> _FileWritingPrintLogger:
        return _FileWritingPrintLogger(self._file_handler)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog for the application.

    Call once at application startup. Reconfiguring replaces the previous
    handlers.

    Args:
        config: Logging configuration. If None, uses defaults with the mode
            taken from AGENTDISPATCH_LOG_MODE.
    """
    global _configured, _current_config

    if config is None:
        config = LoggingConfig(mode=_get_mode_from_env())

    _current_config = config
    log_level = _get_log_level(config.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    file_handler = _setup_file_handler(config)
    if file_handler:
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=_get_console_processors(config.mode),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_FileWritingPrintLoggerFactory(file_handler),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger, configuring defaults on first use.

    Example:
        log = get_logger(__name__)
        log.info("selection.scored", agent_count=4, selected="reviewer")
    """
    if not _configured:
        configure_logging()

    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables for cross-task propagation.

    Tasks created after binding inherit the context, so a collaboration id
    bound before fan-out appears in every unit's log entries.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove context variables from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def get_current_config() -> LoggingConfig | None:
    """Return the active LoggingConfig, or None if not configured."""
    return _current_config


def is_configured() -> bool:
    """Return True once configure_logging has been called."""
    return _configured


def reset_logging() -> None:
    """Reset logging configuration state. Intended for tests."""
    global _configured, _current_config
    _configured = False
    _current_config = None
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
