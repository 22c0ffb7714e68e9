"""Parallel collaboration orchestrator.

Fans one prompt out to several agents, runs them concurrently under a
concurrency limit, per-unit and overall timeouts and a retry budget, then:

1. Evaluates the failure policy over the terminal unit states.
2. If it passed, reduces the succeeded units with the aggregation strategy.

Expected failures come back as ``Result.err(CollaborationError)`` carrying
every unit; exceptions are only raised for invalid arguments.

Usage:
    orchestrator = CollaborationOrchestrator()
    result = await orchestrator.collaborate(
        "What is 2+2?",
        ["math-a", "math-b", "math-c"],
        invoker,
        voting(),
        CollaborationOptions(failure_policy=RequireMajority()),
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import contextlib
from datetime import UTC, datetime
import itertools
from uuid import uuid4

import stamina

from agentdispatch.collaboration.invoker import AgentInvoker, CancellationToken
from agentdispatch.collaboration.models import (
    CollaborationOptions,
    CollaborationResult,
    ExecutionUnit,
    UnitState,
)
from agentdispatch.collaboration.policy import policy_satisfied, stops_early
from agentdispatch.collaboration.strategies import (
    AggregationStrategy,
    accepts,
    aggregate,
    strategy_summary,
)
from agentdispatch.core.errors import (
    CollaborationError,
    InvokerError,
    OverallTimeoutError,
    PolicyNotSatisfiedError,
    UnitCancelledError,
    UnitError,
    UnitTimeoutError,
    ValidationError,
)
from agentdispatch.core.types import Result
from agentdispatch.observability.logging import bind_context, get_logger, unbind_context

log = get_logger(__name__)

# Invoker failures and per-unit timeouts are retried; cancellation is not
_RETRYABLE = (InvokerError, UnitTimeoutError)

# Longest wait for cancelled invocations to wind down before they are abandoned
_CANCEL_GRACE = 0.5


def _discard_outcome(task: asyncio.Task[str]) -> None:
    """Retrieve an abandoned invocation's exception so asyncio does not report it."""
    if not task.cancelled():
        task.exception()


class _UnitRun:
    """Mutable in-flight state of one unit. Terminal state is written once."""

    def __init__(self, agent_name: str, completions: itertools.count[int]) -> None:
        self.agent_name = agent_name
        self.state = UnitState.PENDING
        self.output: str | None = None
        self.error: UnitError | None = None
        self.attempt = 0
        self.started_at: datetime | None = None
        self.finished_at: datetime | None = None
        self.sequence = 0
        self.token = CancellationToken()
        self.abandoned: list[asyncio.Task[str]] = []
        self._completions = completions

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def start_attempt(self) -> CancellationToken:
        self.attempt += 1
        self.state = UnitState.RUNNING
        if self.started_at is None:
            self.started_at = datetime.now(UTC)
        self.token = CancellationToken()
        return self.token

    def abandon(self, invocation: asyncio.Task[str], reason: str) -> None:
        """Stop waiting for ``invocation``; it may keep running in the background."""
        self.token.cancel(reason)
        invocation.cancel()
        invocation.add_done_callback(_discard_outcome)
        self.abandoned.append(invocation)

    def finish(
        self,
        state: UnitState,
        *,
        output: str | None = None,
        error: UnitError | None = None,
    ) -> bool:
        """Record the terminal state. Returns False if already terminal."""
        if self.is_terminal:
            return False
        self.state = state
        self.output = output
        self.error = error
        self.finished_at = datetime.now(UTC)
        if self.started_at is None:
            self.started_at = self.finished_at
        self.sequence = next(self._completions)
        return True

    def freeze(self) -> ExecutionUnit:
        return ExecutionUnit(
            agent_name=self.agent_name,
            state=self.state,
            output=self.output,
            error=self.error,
            attempt=max(self.attempt, 1),
            started_at=self.started_at,
            finished_at=self.finished_at,
            sequence=self.sequence,
        )


class CollaborationOrchestrator:
    """Runs agents concurrently and aggregates their outputs.

    Stateless between calls; one instance may serve concurrent callers.

    Args:
        options: Defaults used when collaborate() is called without options.
    """

    def __init__(self, options: CollaborationOptions | None = None) -> None:
        self._options = options or CollaborationOptions()

    @property
    def options(self) -> CollaborationOptions:
        return self._options

    async def collaborate(
        self,
        prompt: str,
        agent_names: Sequence[str],
        invoker: AgentInvoker,
        strategy: AggregationStrategy,
        options: CollaborationOptions | None = None,
    ) -> Result[CollaborationResult, CollaborationError]:
        """Fan ``prompt`` out to ``agent_names`` and aggregate the outputs.

        Args:
            prompt: Prompt sent to every agent.
            agent_names: Agents to run; duplicates run as separate units.
            invoker: Executes one agent.
            strategy: Aggregation strategy for the succeeded units.
            options: Per-call options; defaults to the orchestrator's.

        Returns:
            Result with the CollaborationResult, or a CollaborationError:
            OverallTimeoutError, PolicyNotSatisfiedError or
            StrategyConstraintUnmetError.

        Raises:
            ValidationError: If ``agent_names`` is empty.
        """
        if not agent_names:
            raise ValidationError(
                "At least one agent is required", field="agent_names", value=list(agent_names)
            )

        opts = options or self._options
        policy = opts.failure_policy
        collaboration_id = f"collab_{uuid4().hex[:12]}"
        bind_context(collaboration_id=collaboration_id)
        try:
            log.info(
                "collaboration.started",
                agents=list(agent_names),
                prompt_length=len(prompt),
                policy=policy.name,
                max_concurrency=opts.max_concurrency,
                **strategy_summary(strategy),
            )

            completions = itertools.count(1)
            runs = [_UnitRun(name, completions) for name in agent_names]
            timed_out = await self._run_all(runs, prompt, invoker, strategy, opts)

            units = tuple(run.freeze() for run in runs)
            succeeded = sum(1 for u in units if u.succeeded)
            total = len(units)
            satisfied = policy_satisfied(policy, succeeded, total)

            if timed_out and not satisfied:
                log.warning(
                    "collaboration.timed_out",
                    timeout=opts.overall_timeout,
                    succeeded=succeeded,
                    total=total,
                )
                return Result.err(
                    OverallTimeoutError(
                        timeout=opts.overall_timeout or 0.0,
                        succeeded=succeeded,
                        total=total,
                        units=units,
                    )
                )

            if not satisfied:
                log.warning(
                    "collaboration.policy.failed",
                    policy=policy.name,
                    succeeded=succeeded,
                    total=total,
                )
                return Result.err(
                    PolicyNotSatisfiedError(
                        policy=policy.name, succeeded=succeeded, total=total, units=units
                    )
                )

            result = await aggregate(strategy, units, policy=policy)
            if result.is_err:
                return Result.err(result.error)

            log.info(
                "collaboration.completed",
                succeeded=succeeded,
                total=total,
                strategy=result.value.strategy_name,
                output_length=len(result.value.output),
            )
            return Result.ok(result.value)
        finally:
            unbind_context("collaboration_id")

    async def _run_all(
        self,
        runs: list[_UnitRun],
        prompt: str,
        invoker: AgentInvoker,
        strategy: AggregationStrategy,
        opts: CollaborationOptions,
    ) -> bool:
        """Drive every unit to a terminal state. Returns True on overall timeout."""
        semaphore = asyncio.Semaphore(opts.max_concurrency) if opts.max_concurrency else None
        tasks = {
            asyncio.create_task(self._run_unit(run, prompt, invoker, opts, semaphore)): run
            for run in runs
        }

        timed_out = False
        stop_reason = "collaboration finished"
        try:
            async with asyncio.timeout(opts.overall_timeout):
                stop_reason = await self._wait(tasks, strategy, opts)
        except TimeoutError:
            timed_out = True
            stop_reason = "overall timeout"
        finally:
            await self._cancel_remaining(tasks, stop_reason, opts)
        return timed_out

    async def _wait(
        self,
        tasks: dict[asyncio.Task[None], _UnitRun],
        strategy: AggregationStrategy,
        opts: CollaborationOptions,
    ) -> str:
        """Wait for units to finish, stopping early when the policy says so."""
        pending = set(tasks)
        early = stops_early(opts.failure_policy)
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            finished = [tasks[task] for task in done]

            if early and any(accepts(strategy, run.freeze()) for run in finished):
                log.info("collaboration.first_success", cancelled=len(pending))
                return "another agent succeeded first"

            if not opts.continue_on_failure and any(
                run.state in (UnitState.FAILED, UnitState.TIMED_OUT) for run in finished
            ):
                log.info("collaboration.fail_fast", cancelled=len(pending))
                return "another agent failed"
        return "collaboration finished"

    async def _cancel_remaining(
        self,
        tasks: dict[asyncio.Task[None], _UnitRun],
        reason: str,
        opts: CollaborationOptions,
    ) -> None:
        """Cancel unfinished units, then wait a bounded grace for their invocations."""
        remaining = [task for task in tasks if not task.done()]
        for task in remaining:
            run = tasks[task]
            run.token.cancel(reason)
            run.finish(
                UnitState.CANCELLED,
                error=UnitCancelledError(
                    agent_name=run.agent_name, reason=reason, attempt=max(run.attempt, 1)
                ),
            )
            task.cancel()

        grace = min(opts.per_unit_timeout or _CANCEL_GRACE, _CANCEL_GRACE)
        if remaining:
            await asyncio.wait(remaining, timeout=grace)

        # Invokers that swallow cancellation are left running in the background
        lingering = {
            invocation: run.agent_name
            for run in tasks.values()
            for invocation in run.abandoned
            if not invocation.done()
        }
        if lingering:
            _, stuck = await asyncio.wait(lingering, timeout=grace)
            if stuck:
                log.warning(
                    "collaboration.units_abandoned",
                    count=len(stuck),
                    agents=sorted(lingering[invocation] for invocation in stuck),
                )

    async def _run_unit(
        self,
        run: _UnitRun,
        prompt: str,
        invoker: AgentInvoker,
        opts: CollaborationOptions,
        semaphore: asyncio.Semaphore | None,
    ) -> None:
        delay = opts.retry.retry_delay

        @stamina.retry(
            on=_RETRYABLE,
            attempts=opts.retry.attempts,
            timeout=None,
            wait_initial=delay,
            wait_max=delay,
            wait_jitter=0.0,
            wait_exp_base=1.0,
        )
        async def _attempt() -> str:
            async with semaphore if semaphore else contextlib.nullcontext():
                return await self._invoke_once(run, prompt, invoker, opts)

        try:
            output = await _attempt()
        except UnitTimeoutError as e:
            run.finish(UnitState.TIMED_OUT, error=e)
        except UnitCancelledError as e:
            run.finish(UnitState.CANCELLED, error=e)
        except UnitError as e:
            run.finish(UnitState.FAILED, error=e)
        else:
            if run.finish(UnitState.SUCCEEDED, output=output):
                log.info(
                    "collaboration.unit.succeeded",
                    agent_name=run.agent_name,
                    attempt=run.attempt,
                    output_length=len(output),
                )
            return

        log.warning(
            "collaboration.unit.failed",
            agent_name=run.agent_name,
            state=run.state,
            attempt=run.attempt,
            error=str(run.error),
        )

    async def _invoke_once(
        self,
        run: _UnitRun,
        prompt: str,
        invoker: AgentInvoker,
        opts: CollaborationOptions,
    ) -> str:
        token = run.start_attempt()
        attempt = run.attempt
        log.debug("collaboration.unit.started", agent_name=run.agent_name, attempt=attempt)

        # Deadline enforced here, whether or not the invoker honours cancellation
        invocation = asyncio.create_task(invoker.invoke(run.agent_name, prompt, token))
        try:
            done, _ = await asyncio.wait({invocation}, timeout=opts.per_unit_timeout)
        except asyncio.CancelledError:
            run.abandon(invocation, "unit cancelled")
            raise

        if not done:
            run.abandon(invocation, "per-unit timeout")
            raise UnitTimeoutError(
                agent_name=run.agent_name,
                timeout=opts.per_unit_timeout or 0.0,
                attempt=attempt,
            )

        if invocation.cancelled():
            raise UnitCancelledError(
                agent_name=run.agent_name, reason="invocation cancelled", attempt=attempt
            )
        try:
            return invocation.result()
        except UnitError as e:
            e.attempt = attempt
            raise
        except Exception as e:
            raise InvokerError.from_exception(e, agent_name=run.agent_name, attempt=attempt) from e
