"""Registry of agent descriptors.

Holds the current agent set for a long-running caller. Every register or
unregister bumps ``generation``; ``descriptors()`` returns an immutable
tuple, so handing it to ``AgentSelector.score`` after a change makes the
selector rebuild its TF-IDF snapshot in full.

Usage:
    registry = AgentRegistry()
    registry.register(AgentDescriptor.create("reviewer", capabilities=["review"]))
    result = selector.score("review this diff", registry.descriptors())
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import threading

from agentdispatch.core.errors import ValidationError
from agentdispatch.observability.logging import get_logger
from agentdispatch.selection.models import AgentDescriptor

log = get_logger(__name__)


class AgentRegistry:
    """Ordered, name-keyed collection of agent descriptors."""

    def __init__(self, agents: Iterable[AgentDescriptor] = ()) -> None:
        self._lock = threading.Lock()
        self._agents: dict[str, AgentDescriptor] = {}
        self._generation = 0
        for agent in agents:
            self.register(agent)

    @property
    def generation(self) -> int:
        """Incremented on every change to the agent set."""
        return self._generation

    def register(self, agent: AgentDescriptor, *, replace: bool = False) -> None:
        """Add an agent.

        Raises:
            ValidationError: If the name is empty, or already registered and
                ``replace`` is False.
        """
        if not agent.name.strip():
            raise ValidationError("Agent name must not be empty", field="name", value=agent.name)

        with self._lock:
            if agent.name in self._agents and not replace:
                raise ValidationError(
                    f"Agent already registered: {agent.name}",
                    field="name",
                    value=agent.name,
                )
            self._agents[agent.name] = agent
            self._generation += 1

        log.debug("selection.registry.registered", agent_name=agent.name)

    def unregister(self, name: str) -> bool:
        """Remove an agent by name. Returns False if it was not registered."""
        with self._lock:
            if name not in self._agents:
                return False
            del self._agents[name]
            self._generation += 1

        log.debug("selection.registry.unregistered", agent_name=name)
        return True

    def get(self, name: str) -> AgentDescriptor | None:
        return self._agents.get(name)

    def descriptors(self) -> tuple[AgentDescriptor, ...]:
        """Snapshot of the registered agents in registration order."""
        with self._lock:
            return tuple(self._agents.values())

    def names(self) -> list[str]:
        return [agent.name for agent in self.descriptors()]

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[AgentDescriptor]:
        return iter(self.descriptors())
