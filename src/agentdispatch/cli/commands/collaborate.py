"""Collaborate command for agentdispatch.

Run several catalog agents on one prompt in parallel and aggregate their
outputs.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from enum import StrEnum
from pathlib import Path
from typing import Annotated

from rich.markup import escape
import typer

from agentdispatch.catalog import AgentCatalog
from agentdispatch.cli.commands._shared import load_runtime
from agentdispatch.cli.formatters import console
from agentdispatch.cli.formatters.panels import print_error, print_success
from agentdispatch.cli.formatters.tables import create_units_table, print_table
from agentdispatch.collaboration.models import (
    CollaborationOptions,
    RequireMinimum,
    RetryOptions,
)
from agentdispatch.collaboration.orchestrator import CollaborationOrchestrator
from agentdispatch.collaboration.policy import parse_policy
from agentdispatch.collaboration.strategies import (
    AggregationStrategy,
    best_of_n_by_length,
    best_of_n_by_speed,
    ensemble_concatenate,
    first_success,
    voting,
    voting_fuzzy,
    voting_normalized,
)
from agentdispatch.config.models import CollaborationConfig
from agentdispatch.core.errors import ValidationError


class StrategyChoice(StrEnum):
    """Aggregation strategies available from the command line."""

    VOTING = "voting"
    FUZZY_VOTING = "fuzzy-voting"
    NORMALIZED_VOTING = "normalized-voting"
    LONGEST = "longest"
    FASTEST = "fastest"
    ENSEMBLE = "ensemble"
    FIRST_SUCCESS = "first-success"


class PolicyChoice(StrEnum):
    """Failure policies available from the command line."""

    REQUIRE_ALL = "require-all"
    REQUIRE_MAJORITY = "require-majority"
    REQUIRE_MINIMUM = "require-minimum"
    BEST_EFFORT = "best-effort"
    FIRST_SUCCESS = "first-success"


def build_strategy(choice: StrategyChoice, fuzzy_threshold: float) -> AggregationStrategy:
    """Map a command-line strategy name to a strategy."""
    match choice:
        case StrategyChoice.VOTING:
            return voting()
        case StrategyChoice.FUZZY_VOTING:
            return voting_fuzzy(fuzzy_threshold)
        case StrategyChoice.NORMALIZED_VOTING:
            return voting_normalized()
        case StrategyChoice.LONGEST:
            return best_of_n_by_length()
        case StrategyChoice.FASTEST:
            return best_of_n_by_speed()
        case StrategyChoice.ENSEMBLE:
            return ensemble_concatenate()
        case StrategyChoice.FIRST_SUCCESS:
            return first_success()


def build_options(
    base: CollaborationConfig,
    *,
    policy: PolicyChoice | None,
    min_successes: int | None,
    timeout: float | None,
    unit_timeout: float | None,
    concurrency: int | None,
    retries: int | None,
    fail_fast: bool,
) -> CollaborationOptions:
    """Apply command-line overrides to the configured options."""
    options = base.to_options()
    overrides: dict[str, object] = {}
    policy_name = policy.value if policy is not None else base.failure_policy
    if min_successes is not None and not isinstance(parse_policy(policy_name), RequireMinimum):
        raise ValidationError(
            "--min-successes only applies to the require-minimum policy",
            field="min_successes",
            value=min_successes,
        )
    if policy is not None or min_successes is not None:
        overrides["failure_policy"] = parse_policy(
            policy_name, base.minimum_successes if min_successes is None else min_successes
        )
    if timeout is not None:
        overrides["overall_timeout"] = timeout
    if unit_timeout is not None:
        overrides["per_unit_timeout"] = unit_timeout
    if concurrency is not None:
        overrides["max_concurrency"] = concurrency
    if retries is not None:
        overrides["retry"] = RetryOptions(
            max_retries=retries, retry_delay=options.retry.retry_delay
        )
    if fail_fast:
        overrides["continue_on_failure"] = False
    return replace(options, **overrides)  # type: ignore[arg-type]


def _resolve_agents(catalog: AgentCatalog, requested: list[str] | None) -> list[str]:
    runnable = [entry.name for entry in catalog.agents if entry.command]
    if not requested:
        return runnable

    unknown = [name for name in requested if name not in catalog.names()]
    if unknown:
        raise typer.BadParameter(f"Unknown agent(s): {', '.join(unknown)}", param_hint="--agent")
    missing = [name for name in requested if name not in runnable]
    if missing:
        raise typer.BadParameter(
            f"Agent(s) without a command: {', '.join(missing)}", param_hint="--agent"
        )
    return requested


def collaborate(
    prompt: Annotated[str, typer.Argument(help="Prompt sent to every agent.")],
    agent: Annotated[
        list[str] | None,
        typer.Option("--agent", "-a", help="Agent to run (repeatable; default: all)."),
    ] = None,
    agents_file: Annotated[
        Path | None,
        typer.Option("--agents", help="Agent catalog YAML (default from config)."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file."),
    ] = None,
    strategy: Annotated[
        StrategyChoice,
        typer.Option("--strategy", "-s", help="Aggregation strategy."),
    ] = StrategyChoice.VOTING,
    policy: Annotated[
        PolicyChoice | None,
        typer.Option("--policy", "-p", help="Failure policy (default from config)."),
    ] = None,
    min_successes: Annotated[
        int | None,
        typer.Option("--min-successes", help="Successes needed by require-minimum."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Overall timeout in seconds."),
    ] = None,
    unit_timeout: Annotated[
        float | None,
        typer.Option("--unit-timeout", help="Per-agent timeout in seconds."),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", help="Maximum agents running at once (0 = all)."),
    ] = None,
    retries: Annotated[
        int | None,
        typer.Option("--retries", help="Retries per agent after the first attempt."),
    ] = None,
    fail_fast: Annotated[
        bool,
        typer.Option("--fail-fast", help="Cancel remaining agents at the first failure."),
    ] = False,
) -> None:
    """Run several agents on PROMPT in parallel and aggregate the outputs."""
    dispatch_config, catalog = load_runtime(config, agents_file)
    agent_names = _resolve_agents(catalog, agent)
    if not agent_names:
        print_error("No runnable agents: add a 'command' to catalog entries.")
        raise typer.Exit(1)

    collaboration_config = dispatch_config.collaboration
    try:
        options = build_options(
            collaboration_config,
            policy=policy,
            min_successes=min_successes,
            timeout=timeout,
            unit_timeout=unit_timeout,
            concurrency=concurrency,
            retries=retries,
            fail_fast=fail_fast,
        )
    except ValidationError as e:
        raise typer.BadParameter(str(e)) from e

    aggregation = build_strategy(strategy, collaboration_config.fuzzy_threshold)
    orchestrator = CollaborationOrchestrator(options)

    with console.status(f"[info]Running {len(agent_names)} agent(s)...[/]"):
        result = asyncio.run(
            orchestrator.collaborate(prompt, agent_names, catalog.invoker(), aggregation)
        )

    if result.is_err:
        error = result.error
        if error.units:
            print_table(create_units_table(error.units))
        print_error(escape(str(error)), title=type(error).__name__)
        raise typer.Exit(1)

    collaboration = result.value
    print_table(create_units_table(collaboration.units))
    source = f" from {collaboration.selected_agent}" if collaboration.selected_agent else ""
    print_success(
        f"{collaboration.strategy_name}{source}: {collaboration.result_count} result(s), "
        f"confidence {collaboration.confidence_score:.2f}",
        title="Collaboration",
    )
    console.print(collaboration.output, markup=False, highlight=False)


__all__ = ["collaborate", "StrategyChoice", "PolicyChoice", "build_strategy", "build_options"]
