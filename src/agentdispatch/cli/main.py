"""agentdispatch CLI main entry point.

This module defines the main Typer application and registers all
commands for the agentdispatch CLI.
"""

from typing import Annotated

import typer

from agentdispatch import __version__
from agentdispatch.cli.commands import collaborate, config, select
from agentdispatch.cli.formatters import console
from agentdispatch.observability.logging import (
    LoggingConfig,
    configure_logging,
    set_console_logging,
)

app = typer.Typer(
    name="agentdispatch",
    help="agentdispatch - Agent selection and parallel collaboration",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("select")(select.select)
app.command("collaborate")(collaborate.collaborate)
app.add_typer(config.app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]agentdispatch[/] version [green]{__version__}[/]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Print structured logs to stderr."),
    ] = False,
) -> None:
    """agentdispatch - route requests to agents and run them in parallel.

    Use [bold cyan]agentdispatch COMMAND --help[/] for command-specific help.
    """
    configure_logging(LoggingConfig(log_level="DEBUG" if verbose else "INFO"))
    set_console_logging(verbose)


__all__ = ["app", "main"]
