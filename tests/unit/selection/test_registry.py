"""Unit tests for agentdispatch.selection.registry module."""

import pytest

from agentdispatch.core.errors import ValidationError
from agentdispatch.selection.models import AgentDescriptor
from agentdispatch.selection.registry import AgentRegistry
from agentdispatch.selection.selector import AgentSelector


class TestAgentRegistry:
    """Tests for AgentRegistry."""

    def test_register_keeps_order(self) -> None:
        """Agents are listed in registration order."""
        registry = AgentRegistry([AgentDescriptor("b"), AgentDescriptor("a")])

        assert registry.names() == ["b", "a"]
        assert len(registry) == 2
        assert "a" in registry
        assert registry.generation == 2

    def test_duplicate_rejected(self) -> None:
        """Registering an existing name without replace is an error."""
        registry = AgentRegistry([AgentDescriptor("a")])

        with pytest.raises(ValidationError):
            registry.register(AgentDescriptor("a"))

    def test_replace(self) -> None:
        """replace=True swaps the descriptor in place."""
        registry = AgentRegistry([AgentDescriptor("a")])

        registry.register(AgentDescriptor("a", "new"), replace=True)

        agent = registry.get("a")
        assert agent is not None
        assert agent.description == "new"
        assert len(registry) == 1

    def test_empty_name_rejected(self) -> None:
        """Blank names are rejected."""
        with pytest.raises(ValidationError):
            AgentRegistry().register(AgentDescriptor("  "))

    def test_unregister(self) -> None:
        """unregister removes an agent and reports whether it existed."""
        registry = AgentRegistry([AgentDescriptor("a")])

        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert registry.get("a") is None
        assert registry.generation == 2

    def test_iteration(self) -> None:
        """Iterating yields descriptors."""
        registry = AgentRegistry([AgentDescriptor("a"), AgentDescriptor("b")])

        assert [agent.name for agent in registry] == ["a", "b"]

    def test_change_triggers_selector_rebuild(self) -> None:
        """A registry change is picked up by the selector on the next query."""
        registry = AgentRegistry([AgentDescriptor.create("a", capabilities=["review"])])
        selector = AgentSelector()
        selector.score("review", registry.descriptors())

        registry.register(AgentDescriptor.create("b", capabilities=["deploy"]))
        result = selector.score("deploy", registry.descriptors())

        assert selector.generation == 2
        assert result.selected_agent == "b"
