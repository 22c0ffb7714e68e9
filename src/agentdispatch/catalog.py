"""Agent catalog: the YAML file listing agents the CLI can select and run.

Format:
    agents:
      - name: code-reviewer
        description: Reviews pull requests
        capabilities: [review]
        tags: [python]
        command: "my-agent --role reviewer"   # prompt is piped to stdin

The catalog is glue for the CLI; the selector and orchestrator take plain
descriptors and invokers.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
import yaml

from agentdispatch.collaboration.invoker import CommandInvoker
from agentdispatch.config.loader import format_validation_errors
from agentdispatch.core.errors import ConfigError
from agentdispatch.selection.models import AgentDescriptor
from agentdispatch.selection.registry import AgentRegistry


class AgentEntry(BaseModel, frozen=True):
    """One agent in the catalog.

    Attributes:
        name: Unique agent name
        description: Free-text description
        capabilities: Capability tags
        tags: Secondary tags
        command: Command line run by the CLI, prompt on stdin
    """

    name: str = Field(min_length=1)
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    command: str | None = None

    def to_descriptor(self) -> AgentDescriptor:
        return AgentDescriptor.create(
            self.name,
            description=self.description,
            capabilities=self.capabilities,
            tags=self.tags,
        )


class AgentCatalog(BaseModel, frozen=True):
    """All agents in a catalog file."""

    agents: list[AgentEntry] = Field(default_factory=list)

    @field_validator("agents")
    @classmethod
    def validate_unique_names(cls, v: list[AgentEntry]) -> list[AgentEntry]:
        """Validate that agent names are unique."""
        seen: set[str] = set()
        for entry in v:
            if entry.name in seen:
                msg = f"Duplicate agent name: {entry.name}"
                raise ValueError(msg)
            seen.add(entry.name)
        return v

    def names(self) -> list[str]:
        return [entry.name for entry in self.agents]

    def descriptors(self) -> tuple[AgentDescriptor, ...]:
        return tuple(entry.to_descriptor() for entry in self.agents)

    def registry(self) -> AgentRegistry:
        return AgentRegistry(self.descriptors())

    def invoker(self, *, cwd: Path | None = None) -> CommandInvoker:
        """CommandInvoker for every agent that declares a command."""
        return CommandInvoker(
            {entry.name: entry.command for entry in self.agents if entry.command},
            cwd=cwd,
        )


def load_catalog(path: Path) -> AgentCatalog:
    """Load and validate an agent catalog.

    Raises:
        ConfigError: If the file is missing, malformed, or invalid.
    """
    if not path.exists():
        raise ConfigError(
            f"Agent catalog not found: {path}. "
            "Run `agentdispatch config init` to create an example catalog.",
            config_file=str(path),
        )

    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse agent catalog: {e}",
            config_file=str(path),
            details={"yaml_error": str(e)},
        ) from e

    try:
        return AgentCatalog.model_validate(data or {})
    except PydanticValidationError as e:
        raise ConfigError(
            "Agent catalog validation failed:\n" + format_validation_errors(e),
            config_file=str(path),
            details={"validation_errors": e.errors()},
        ) from e
