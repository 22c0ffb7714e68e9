"""Rich tables for selection scores and execution units."""

from collections.abc import Sequence
from typing import Any

from rich.markup import escape
from rich.table import Table

from agentdispatch.cli.formatters import console
from agentdispatch.collaboration.models import ExecutionUnit, UnitState
from agentdispatch.selection.models import SelectionField, SelectionResult


def create_table(
    title: str | None = None,
    *,
    show_header: bool = True,
    border_style: str = "blue",
    header_style: str = "bold cyan",
) -> Table:
    """Create a Rich Table with consistent agentdispatch styling.

    Example:
        table = create_table("Results")
        table.add_column("Name", style="cyan")
        table.add_row("reviewer")
        print_table(table)
    """
    return Table(
        title=title,
        show_header=show_header,
        border_style=border_style,
        header_style=header_style,
        row_styles=["", "dim"],
    )


def create_key_value_table(
    data: dict[str, Any],
    title: str | None = None,
    *,
    key_style: str = "cyan",
) -> Table:
    """Create a two-column table for key-value data."""
    table = create_table(title, show_header=False)
    table.add_column("Key", style=key_style, no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(str(key), str(value))

    return table


def create_scores_table(result: SelectionResult, *, limit: int | None = None) -> Table:
    """Ranked selection scores, best first, with per-field contributions."""
    table = create_table("Agent Scores")
    table.add_column("#", justify="right", style="muted")
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("Score", justify="right")
    table.add_column("Raw", justify="right", style="muted")
    for selection_field in SelectionField:
        table.add_column(selection_field.value.capitalize(), justify="right", style="muted")
    table.add_column("Matched")

    ranked = result.ranked[:limit] if limit else result.ranked
    for position, score in enumerate(ranked, start=1):
        style = "highlight" if score.agent_name == result.selected_agent else ""
        table.add_row(
            str(position),
            f"[{style}]{score.agent_name}[/]" if style else score.agent_name,
            f"{score.score:.2f}",
            f"{score.raw_score:.3f}",
            *(f"{score.contributions.get(f.value, 0.0):.3f}" for f in SelectionField),
            escape(score.describe()) or "-",
        )
    return table


_STATE_STYLES = {
    UnitState.SUCCEEDED: "success",
    UnitState.FAILED: "error",
    UnitState.TIMED_OUT: "error",
    UnitState.CANCELLED: "warning",
    UnitState.PENDING: "warning",
    UnitState.RUNNING: "info",
}


def create_units_table(units: Sequence[ExecutionUnit]) -> Table:
    """Per-unit outcome of a collaboration, in completion order."""
    table = create_table("Agents")
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("State", justify="center")
    table.add_column("Attempts", justify="right")
    table.add_column("Seconds", justify="right")
    table.add_column("Detail")

    for unit in sorted(units, key=lambda u: u.completion_key):
        duration = unit.duration
        if unit.succeeded:
            detail = f"{len(unit.output or '')} chars"
        else:
            detail = unit.error.message if unit.error else ""
        table.add_row(
            unit.agent_name,
            f"[{_STATE_STYLES[unit.state]}]{unit.state.value}[/]",
            str(unit.attempt),
            f"{duration:.2f}" if duration is not None else "-",
            escape(detail),
        )
    return table


def print_table(table: Table) -> None:
    """Print a Rich Table to the shared console."""
    console.print(table)


__all__ = [
    "create_table",
    "create_key_value_table",
    "create_scores_table",
    "create_units_table",
    "print_table",
]
