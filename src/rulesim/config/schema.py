"""Pydantic schema models for configuration.

This module defines the configuration models:
- Config: Top-level configuration container
- FixturesConfig: Where and how project fixtures are loaded
- SimulationDefaults: Default SimulationOptions for CLI runs
- PluginsConfig: Which built-in plugins are registered
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rulesim.paths import get_default_fixtures_dir

KNOWN_PLUGINS = ("filesystem", "patterns")


class FixturesConfig(BaseModel):
    """Fixture loading configuration.

    Attributes:
        directory: Directory holding named fixtures (default: XDG data dir)
        default: Fixture loaded when no project name is given
        exclude_patterns: Glob patterns hidden from the available file list
        ignore_dirs: Directory names skipped when loading a directory fixture
        max_file_size: Files larger than this (bytes) are skipped
        manifest_file: File parsed as the project manifest
        remote_timeout: Timeout in seconds for http(s) bundle downloads
        headers: Extra HTTP headers for remote bundles (supports ${VAR})
    """

    model_config = ConfigDict(extra="forbid")

    directory: str | None = None
    default: Annotated[str, Field(min_length=1)] = "node-fullstack"
    exclude_patterns: list[str] = Field(default_factory=lambda: [".gitignore"])
    ignore_dirs: list[str] = Field(
        default_factory=lambda: [".git", "node_modules", "__pycache__", ".venv"]
    )
    max_file_size: Annotated[int, Field(gt=0)] = 1024 * 1024
    manifest_file: str = "package.json"
    remote_timeout: Annotated[float, Field(gt=0, le=300)] = 30.0
    headers: dict[str, str] = Field(default_factory=dict)

    def get_directory(self) -> Path:
        """Get the fixtures directory path, expanding ~ if needed."""
        if self.directory:
            return Path(self.directory).expanduser()
        return get_default_fixtures_dir()


class SimulationDefaults(BaseModel):
    """Default simulation options applied by the CLI.

    Attributes:
        verbose: Report unknown facts/operators without failing the run
        timeout: Seconds before the CLI abandons a simulation (None: no limit)
        skip_ast: Hint passed to facts that AST generation can be skipped
    """

    model_config = ConfigDict(extra="forbid")

    verbose: bool = False
    timeout: Annotated[float | None, Field(gt=0)] = None
    skip_ast: bool = False


class PluginsConfig(BaseModel):
    """Plugin registration configuration."""

    model_config = ConfigDict(extra="forbid")

    enabled: list[str] = Field(default_factory=lambda: list(KNOWN_PLUGINS))

    @field_validator("enabled")
    @classmethod
    def validate_known_plugins(cls, v: list[str]) -> list[str]:
        """Ensure only built-in plugin names are listed."""
        unknown = [name for name in v if name not in KNOWN_PLUGINS]
        if unknown:
            msg = f"Unknown plugin(s): {unknown}. Available: {list(KNOWN_PLUGINS)}"
            raise ValueError(msg)
        return v


class Config(BaseModel):
    """Top-level configuration loaded from YAML.

    Attributes:
        version: Schema version (must be 1)
        fixtures: Fixture loading settings
        simulation: Default simulation options
        plugins: Plugin registration settings
    """

    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    fixtures: FixturesConfig = Field(default_factory=FixturesConfig)
    simulation: SimulationDefaults = Field(default_factory=SimulationDefaults)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
