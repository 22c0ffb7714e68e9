"""Configuration loading and management for agentdispatch.

Functions:
    load_config: Load configuration from ~/.agentdispatch/config.yaml
    create_default_config: Create default configuration and agent catalog
    ensure_config_dir: Ensure ~/.agentdispatch/ directory exists
    get_agents_path: Get agent catalog path from env var or config
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
import yaml

# Load .env file from current directory and ~/.agentdispatch/
load_dotenv()
load_dotenv(Path.home() / ".agentdispatch" / ".env")

from agentdispatch.config.models import (  # noqa: E402
    DispatchConfig,
    get_config_dir,
    get_default_config,
)
from agentdispatch.core.errors import ConfigError  # noqa: E402

EXAMPLE_CATALOG: dict[str, Any] = {
    "agents": [
        {
            "name": "code-reviewer",
            "description": "Reviews pull requests for bugs and style problems",
            "capabilities": ["review", "code-quality"],
            "tags": ["python", "git"],
            "command": "cat",
        },
        {
            "name": "test-writer",
            "description": "Writes unit tests for existing code",
            "capabilities": ["testing", "pytest"],
            "tags": ["python"],
            "command": "cat",
        },
    ]
}


def ensure_config_dir() -> Path:
    """Ensure the configuration directory exists.

    Creates ~/.agentdispatch/ and its logs/ subdirectory if missing.

    Returns:
        Path to the configuration directory.
    """
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "logs").mkdir(exist_ok=True)
    return config_dir


def _dump_yaml(data: dict[str, Any], path: Path) -> None:
    with path.open("w") as f:
        yaml.dump(
            data,
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )


def create_default_config(
    config_dir: Path | None = None,
    *,
    overwrite: bool = False,
) -> tuple[Path, Path]:
    """Create default configuration files.

    Writes config.yaml with default values and an example agents.yaml
    catalog.

    Args:
        config_dir: Directory to create files in. Defaults to ~/.agentdispatch/
        overwrite: If True, overwrite existing files. Defaults to False.

    Returns:
        Tuple of (config_path, agents_path).

    Raises:
        ConfigError: If files exist and overwrite=False.
    """
    if config_dir is None:
        config_dir = ensure_config_dir()
    else:
        config_dir.mkdir(parents=True, exist_ok=True)
        (config_dir / "logs").mkdir(exist_ok=True)

    default_config = get_default_config()
    config_path = config_dir / "config.yaml"
    agents_path = config_dir / default_config.agents_file

    if not overwrite:
        for path in (config_path, agents_path):
            if path.exists():
                raise ConfigError(
                    f"Configuration file already exists: {path}",
                    config_file=str(path),
                )

    _dump_yaml(default_config.model_dump(mode="json"), config_path)
    _dump_yaml(EXAMPLE_CATALOG, agents_path)
    return config_path, agents_path


def load_config(config_path: Path | None = None) -> DispatchConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to ~/.agentdispatch/config.yaml.

    Returns:
        Validated DispatchConfig instance.

    Raises:
        ConfigError: If file doesn't exist, is malformed, or fails validation.
    """
    if config_path is None:
        config_path = get_config_dir() / "config.yaml"

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}. "
            "Run `agentdispatch config init` to create default configuration.",
            config_file=str(config_path),
        )

    try:
        with config_path.open() as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse configuration file: {e}",
            config_file=str(config_path),
            details={"yaml_error": str(e)},
        ) from e

    if config_dict is None:
        config_dict = {}

    try:
        return DispatchConfig.model_validate(config_dict)
    except PydanticValidationError as e:
        raise ConfigError(
            "Configuration validation failed:\n" + format_validation_errors(e),
            config_file=str(config_path),
            details={"validation_errors": e.errors()},
        ) from e


def load_config_or_default(config_path: Path | None = None) -> DispatchConfig:
    """Load configuration, falling back to defaults when the file is missing.

    A file that exists but is invalid still raises ConfigError.
    """
    path = config_path or get_config_dir() / "config.yaml"
    if not path.exists():
        return get_default_config()
    return load_config(path)


def format_validation_errors(error: PydanticValidationError) -> str:
    """Render pydantic errors as '  - loc: msg' lines."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"  - {loc}: {item['msg']}")
    return "\n".join(lines)


def config_exists() -> bool:
    """Check if config.yaml exists."""
    return (get_config_dir() / "config.yaml").exists()


def get_agents_path(config: DispatchConfig | None = None) -> Path:
    """Get the agent catalog path.

    Priority:
        1. AGENTDISPATCH_AGENTS_FILE environment variable
        2. agents_file from config (relative paths resolve against the config dir)

    Returns:
        Path to the agent catalog.
    """
    env_path = os.environ.get("AGENTDISPATCH_AGENTS_FILE", "").strip()
    if env_path:
        return Path(env_path).expanduser()

    agents_file = Path((config or get_default_config()).agents_file).expanduser()
    if agents_file.is_absolute():
        return agents_file
    return get_config_dir() / agents_file
