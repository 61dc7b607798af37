"""Configuration module for rulesim.

Usage:
    from rulesim.config import load_config, Config

    config = load_config(required=False)  # Defaults when no file is found
    config = load_config("/path/to/rulesim.yaml")  # Explicit path
"""

from rulesim.config.loader import (
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    EnvironmentVariableError,
    discover_config_path,
    load_config,
)
from rulesim.config.schema import (
    Config,
    FixturesConfig,
    PluginsConfig,
    SimulationDefaults,
)

__all__ = [
    "Config",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "EnvironmentVariableError",
    "FixturesConfig",
    "PluginsConfig",
    "SimulationDefaults",
    "discover_config_path",
    "load_config",
]
