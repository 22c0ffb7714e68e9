"""Config command group for agentdispatch.

Show and initialize configuration.
"""

from pathlib import Path
from typing import Annotated

from rich.markup import escape
import typer

from agentdispatch.cli.formatters.panels import print_error, print_info, print_success
from agentdispatch.cli.formatters.tables import create_key_value_table, print_table
from agentdispatch.config import (
    create_default_config,
    get_agents_path,
    get_config_dir,
    load_config_or_default,
)
from agentdispatch.core.errors import ConfigError

app = typer.Typer(
    name="config",
    help="Manage agentdispatch configuration.",
    no_args_is_help=True,
)


@app.command()
def show(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file."),
    ] = None,
) -> None:
    """Display the effective configuration."""
    config_path = config or get_config_dir() / "config.yaml"
    try:
        dispatch_config = load_config_or_default(config_path)
    except ConfigError as e:
        print_error(escape(e.message), title="Configuration Error")
        raise typer.Exit(1) from e

    selector = dispatch_config.selector
    collaboration = dispatch_config.collaboration
    weights = selector.field_weights
    data = {
        "config_file": f"{config_path}" + ("" if config_path.exists() else " (defaults)"),
        "agents_file": get_agents_path(dispatch_config),
        "selector.confidence_threshold": selector.confidence_threshold,
        "selector.fallback_agent": selector.fallback_agent or "-",
        "selector.field_weights": (
            f"capabilities={weights.capabilities} tags={weights.tags} "
            f"description={weights.description} name={weights.name}"
        ),
        "collaboration.failure_policy": collaboration.failure_policy,
        "collaboration.max_concurrency": collaboration.max_concurrency or "unbounded",
        "collaboration.overall_timeout": collaboration.overall_timeout or "none",
        "collaboration.per_unit_timeout": collaboration.per_unit_timeout or "none",
        "collaboration.retry": (
            f"max_retries={collaboration.retry.max_retries} "
            f"delay={collaboration.retry.retry_delay}s"
        ),
        "logging.level": dispatch_config.logging.level,
    }
    print_table(create_key_value_table(data, "Current Configuration"))


@app.command()
def init(
    directory: Annotated[
        Path | None,
        typer.Option("--dir", "-d", help="Directory to create files in."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite existing files."),
    ] = False,
) -> None:
    """Create default config.yaml and an example agents.yaml."""
    try:
        config_path, agents_path = create_default_config(directory, overwrite=force)
    except ConfigError as e:
        print_error(escape(e.message), title="Configuration Error")
        print_info("Use --force to overwrite.")
        raise typer.Exit(1) from e

    print_success(f"Created {config_path}\nCreated {agents_path}", title="Configuration")


__all__ = ["app"]
