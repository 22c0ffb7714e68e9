"""Select command for agentdispatch.

Rank the agents of a catalog against a free-text request.
"""

from pathlib import Path
from typing import Annotated

import typer

from agentdispatch.cli.commands._shared import load_runtime
from agentdispatch.cli.formatters import console
from agentdispatch.cli.formatters.panels import print_success, print_warning
from agentdispatch.cli.formatters.tables import create_scores_table, print_table
from agentdispatch.core.errors import ValidationError
from agentdispatch.selection.selector import AgentSelector, SelectorOptions


def select(
    query: Annotated[str, typer.Argument(help="Free-text request to route.")],
    agents: Annotated[
        Path | None,
        typer.Option("--agents", "-a", help="Agent catalog YAML (default from config)."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file."),
    ] = None,
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", "-t", help="Confidence threshold (0.0-1.0)."),
    ] = None,
    fallback: Annotated[
        str | None,
        typer.Option("--fallback", "-f", help="Agent used when nothing matches."),
    ] = None,
    top: Annotated[
        int | None,
        typer.Option("--top", "-n", help="Show only the N best agents."),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit with code 1 when no agent is selected."),
    ] = False,
) -> None:
    """Rank catalog agents against QUERY and pick one."""
    dispatch_config, catalog = load_runtime(config, agents)
    selector_config = dispatch_config.selector
    base = selector_config.to_options()

    try:
        options = SelectorOptions(
            confidence_threshold=base.confidence_threshold if threshold is None else threshold,
            fallback_agent=fallback or base.fallback_agent,
            field_weights=base.field_weights,
        )
    except ValidationError as e:
        raise typer.BadParameter(e.message, param_hint="--threshold") from e

    selector = AgentSelector(options, selector_config.to_normalizer())
    result = selector.score(query, catalog.descriptors())

    if result.scores:
        print_table(create_scores_table(result, limit=top))

    selection = result.require_selection()
    if selection.is_ok:
        suffix = " (fallback)" if result.used_fallback else ""
        print_success(
            f"Selected [bold]{selection.value}[/]{suffix} "
            f"with confidence {result.confidence:.2f}\n{result.reason}",
            title="Selection",
        )
        return

    print_warning(
        f"{selection.error.message}\nThreshold: {result.threshold:.2f}",
        title="No Confident Match",
    )
    console.print("[muted]Lower --threshold or set --fallback to force a pick.[/]")
    if strict:
        raise typer.Exit(1)


__all__ = ["select"]
