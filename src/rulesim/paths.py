"""XDG Base Directory Specification path utilities.

This module provides XDG-compliant paths for:
- Configuration files ($XDG_CONFIG_HOME/rulesim, default: ~/.config/rulesim)
- Fixture bundles ($XDG_DATA_HOME/rulesim/fixtures, default: ~/.local/share/rulesim/fixtures)

Reference: https://specifications.freedesktop.org/basedir-spec/latest/
"""

from __future__ import annotations

import os
from pathlib import Path

# XDG environment variable names
XDG_CONFIG_HOME = "XDG_CONFIG_HOME"
XDG_DATA_HOME = "XDG_DATA_HOME"

# Application name used in XDG directories
APP_NAME = "rulesim"


def get_config_home() -> Path:
    """Get the XDG config home directory.

    Returns:
        Path from $XDG_CONFIG_HOME or ~/.config if not set
    """
    xdg_config = os.environ.get(XDG_CONFIG_HOME)
    if xdg_config:
        return Path(xdg_config).expanduser()
    return Path.home() / ".config"


def get_data_home() -> Path:
    """Get the XDG data home directory.

    Returns:
        Path from $XDG_DATA_HOME or ~/.local/share if not set
    """
    xdg_data = os.environ.get(XDG_DATA_HOME)
    if xdg_data:
        return Path(xdg_data).expanduser()
    return Path.home() / ".local" / "share"


def get_config_dir() -> Path:
    """Get the application config directory."""
    return get_config_home() / APP_NAME


def get_default_config_path() -> Path:
    """Get the default config file path.

    Returns:
        Path to config.yaml in the config directory
    """
    return get_config_dir() / "config.yaml"


def get_default_fixtures_dir() -> Path:
    """Get the directory searched for named fixture bundles.

    Returns:
        Path to the fixtures directory under the XDG data home
    """
    return get_data_home() / APP_NAME / "fixtures"
