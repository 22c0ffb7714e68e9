"""Agent invocation seam.

The orchestrator knows nothing about how an agent runs. It calls an
``AgentInvoker`` and passes a ``CancellationToken`` that is cancelled when
the unit times out, loses a first-success race, or the call is aborted.
Invokers that ignore the token are still bounded: the orchestrator enforces
per-unit timeouts itself.

Usage:
    class EchoInvoker:
        async def invoke(self, agent_name, prompt, cancellation):
            return f"{agent_name}: {prompt}"
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
import contextlib
import os
from pathlib import Path
import shlex
from typing import Protocol, runtime_checkable

from agentdispatch.core.errors import InvokerError, UnitCancelledError
from agentdispatch.observability.logging import get_logger

log = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation signal for one invocation.

    Cancelling is idempotent; the first reason wins.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self) -> str | None:
        """Block until cancelled, then return the reason."""
        await self._event.wait()
        return self._reason


@runtime_checkable
class AgentInvoker(Protocol):
    """Runs one agent on one prompt.

    Implementations raise any exception to signal failure; the orchestrator
    wraps it in InvokerError attributed to ``agent_name``.
    """

    async def invoke(
        self,
        agent_name: str,
        prompt: str,
        cancellation: CancellationToken,
    ) -> str: ...


class FunctionInvoker:
    """Adapt a plain ``async (agent_name, prompt) -> str`` function.

    The function is not told about cancellation; it is cancelled through
    asyncio when the orchestrator gives up on it.
    """

    def __init__(self, func: Callable[[str, str], Awaitable[str]]) -> None:
        self._func = func

    async def invoke(
        self,
        agent_name: str,
        prompt: str,
        cancellation: CancellationToken,
    ) -> str:
        return await self._func(agent_name, prompt)


class CommandInvoker:
    """Run each agent as a local command with the prompt on stdin.

    Args:
        commands: Agent name -> command line (string, split with shlex, or argv).
        cwd: Working directory for every command.
        env: Extra environment variables, merged over the current environment.
    """

    def __init__(
        self,
        commands: Mapping[str, str | Sequence[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._commands = {
            name: tuple(shlex.split(cmd)) if isinstance(cmd, str) else tuple(cmd)
            for name, cmd in commands.items()
        }
        self._cwd = cwd
        self._env = {**os.environ, **env} if env else None

    def command_for(self, agent_name: str) -> tuple[str, ...]:
        command = self._commands.get(agent_name)
        if not command:
            raise InvokerError(
                f"No command configured for agent '{agent_name}'",
                agent_name=agent_name,
            )
        return command

    async def invoke(
        self,
        agent_name: str,
        prompt: str,
        cancellation: CancellationToken,
    ) -> str:
        command = self.command_for(agent_name)
        log.debug("collaboration.command.starting", agent_name=agent_name, command=command[0])

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                env=self._env,
            )
        except OSError as e:
            raise InvokerError(
                f"Agent '{agent_name}' could not start: {e}",
                agent_name=agent_name,
                details={"command": command[0]},
            ) from e

        communicate = asyncio.ensure_future(process.communicate(prompt.encode("utf-8")))
        cancelled = asyncio.ensure_future(cancellation.wait())
        try:
            done, _ = await asyncio.wait(
                {communicate, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            communicate.cancel()
            await _kill(process)
            raise
        finally:
            cancelled.cancel()

        if communicate not in done:
            communicate.cancel()
            await _kill(process)
            raise UnitCancelledError(
                agent_name=agent_name,
                reason=cancellation.reason or "cancelled",
            )

        stdout, stderr = communicate.result()
        if process.returncode != 0:
            raise InvokerError(
                f"Agent '{agent_name}' exited with code {process.returncode}",
                agent_name=agent_name,
                details={"stderr": stderr.decode("utf-8", errors="replace").strip()[:500]},
            )
        return stdout.decode("utf-8", errors="replace").strip()


async def _kill(process: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    await process.wait()
