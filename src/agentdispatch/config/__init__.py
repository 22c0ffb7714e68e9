"""Configuration module for agentdispatch.

Configuration is stored in ~/.agentdispatch/ and only read by the CLI;
library callers pass runtime options directly.

Main exports:
    DispatchConfig: Main configuration model
    load_config: Load config from YAML file
    create_default_config: Create default config files
    config_exists: Check if the config file exists

Usage:
    from agentdispatch.config import load_config

    config = load_config()
    selector = AgentSelector(config.selector.to_options(), config.selector.to_normalizer())
    options = config.collaboration.to_options()
"""

from agentdispatch.config.loader import (
    config_exists,
    create_default_config,
    ensure_config_dir,
    get_agents_path,
    load_config,
    load_config_or_default,
)
from agentdispatch.config.models import (
    CollaborationConfig,
    DispatchConfig,
    FieldWeightsConfig,
    LoggingConfig,
    RetryConfig,
    SelectorConfig,
    get_config_dir,
    get_default_config,
)

__all__ = [
    # Models
    "DispatchConfig",
    "SelectorConfig",
    "FieldWeightsConfig",
    "CollaborationConfig",
    "RetryConfig",
    "LoggingConfig",
    # Loader functions
    "load_config",
    "load_config_or_default",
    "create_default_config",
    "ensure_config_dir",
    "config_exists",
    "get_agents_path",
    # Model helpers
    "get_config_dir",
    "get_default_config",
]
