"""Helpers shared by CLI commands: config and catalog loading."""

from pathlib import Path

from rich.markup import escape
import typer

from agentdispatch.catalog import AgentCatalog, load_catalog
from agentdispatch.cli.formatters.panels import print_error
from agentdispatch.config import DispatchConfig, get_agents_path, load_config_or_default
from agentdispatch.core.errors import ConfigError


def load_runtime(
    config_path: Path | None,
    agents_path: Path | None,
) -> tuple[DispatchConfig, AgentCatalog]:
    """Load configuration and the agent catalog, exiting with code 1 on error."""
    try:
        config = load_config_or_default(config_path)
        catalog = load_catalog(agents_path or get_agents_path(config))
    except ConfigError as e:
        print_error(escape(e.message), title="Configuration Error")
        raise typer.Exit(1) from e
    return config, catalog
