"""Observability for agentdispatch: structured logging via structlog."""

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

__all__ = [
    "LoggingConfig",
    "LogMode",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_current_config",
    "get_logger",
    "is_configured",
    "reset_logging",
    "set_console_logging",
    "unbind_context",
]
