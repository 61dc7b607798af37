"""Fact and operator plugins for rulesim.

Usage:
    from rulesim.plugins import create_default_registry

    registry = create_default_registry(["filesystem", "patterns"])
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rulesim.plugins.base import FunctionFact, FunctionOperator
from rulesim.plugins.filesystem import FilesystemPlugin
from rulesim.plugins.patterns import PatternsPlugin
from rulesim.plugins.registry import (
    Fact,
    Operator,
    Plugin,
    PluginError,
    PluginRegistry,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

BUILTIN_PLUGINS: dict[str, Callable[[], Plugin]] = {
    "filesystem": FilesystemPlugin,
    "patterns": PatternsPlugin,
}


def create_default_registry(enabled: Iterable[str] | None = None) -> PluginRegistry:
    """Create a registry holding the enabled built-in plugins.

    Args:
        enabled: Plugin names to register (default: all built-ins)

    Returns:
        A new PluginRegistry

    Raises:
        PluginError: If a name is not a built-in plugin
    """
    registry = PluginRegistry()
    names = list(BUILTIN_PLUGINS) if enabled is None else list(enabled)
    for name in names:
        factory = BUILTIN_PLUGINS.get(name)
        if factory is None:
            msg = f"Unknown plugin: {name}. Available: {list(BUILTIN_PLUGINS)}"
            raise PluginError(msg)
        registry.register_plugin(factory())
    return registry


__all__ = [
    "BUILTIN_PLUGINS",
    "Fact",
    "FilesystemPlugin",
    "FunctionFact",
    "FunctionOperator",
    "Operator",
    "PatternsPlugin",
    "Plugin",
    "PluginError",
    "PluginRegistry",
    "create_default_registry",
]
