"""Plugin registry for facts and operators.

A registry is built once per engine initialization and then only read:
the evaluator looks facts and operators up by name and never mutates it.
It is passed explicitly to every evaluation call rather than kept as a
module-level singleton.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from rulesim.rules.context import EvaluationContext, ProjectData

logger = logging.getLogger(__name__)


class PluginError(Exception):
    """Raised when a plugin cannot be registered or initialized."""


@runtime_checkable
class Fact(Protocol):
    """A named, asynchronously computed input value."""

    name: str

    def calculate(
        self, params: dict[str, Any] | None, context: EvaluationContext
    ) -> Awaitable[Any]:
        """Compute the fact for the target bound in ``context``."""
        ...


@runtime_checkable
class Operator(Protocol):
    """A named binary predicate over (fact value, compare value)."""

    name: str

    def evaluate(self, fact_value: Any, compare_value: Any) -> bool | Awaitable[bool]:
        """Compare a fact value against the condition's value."""
        ...


class Plugin:
    """A bundle of facts and operators.

    Subclasses populate ``facts`` and ``operators`` and may override
    ``initialize`` to precompute data from the loaded project.
    """

    name: str = "plugin"
    version: str = "0.0.0"
    description: str = ""

    def __init__(
        self,
        facts: list[Fact] | None = None,
        operators: list[Operator] | None = None,
    ) -> None:
        self.facts: dict[str, Fact] = {fact.name: fact for fact in facts or []}
        self.operators: dict[str, Operator] = {op.name: op for op in operators or []}

    async def initialize(self, project: ProjectData) -> None:
        """Prepare the plugin for a loaded project. Default: no-op."""


class PluginRegistry:
    """Lookup table from fact/operator names to their implementations."""

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._facts: dict[str, Fact] = {}
        self._operators: dict[str, Operator] = {}

    def register_plugin(self, plugin: Plugin) -> None:
        """Register a plugin and every fact and operator it provides.

        Later plugins override facts/operators of the same name.

        Raises:
            PluginError: If a plugin with the same name is already registered
        """
        if plugin.name in self._plugins:
            msg = f"Plugin '{plugin.name}' is already registered"
            raise PluginError(msg)

        logger.info("Registering plugin: %s", plugin.name)
        self._plugins[plugin.name] = plugin

        for fact_name, fact in plugin.facts.items():
            if fact_name in self._facts:
                logger.warning("Fact '%s' from %s overrides an earlier plugin", fact_name, plugin.name)
            self._facts[fact_name] = fact
            logger.debug("  Registered fact: %s", fact_name)

        for operator_name, operator in plugin.operators.items():
            if operator_name in self._operators:
                logger.warning(
                    "Operator '%s' from %s overrides an earlier plugin",
                    operator_name,
                    plugin.name,
                )
            self._operators[operator_name] = operator
            logger.debug("  Registered operator: %s", operator_name)

    def get_plugin(self, name: str) -> Plugin | None:
        """Get a plugin by name."""
        return self._plugins.get(name)

    def get_fact(self, name: str) -> Fact | None:
        """Get a fact by name."""
        return self._facts.get(name)

    def get_operator(self, name: str) -> Operator | None:
        """Get an operator by name."""
        return self._operators.get(name)

    @property
    def plugin_names(self) -> list[str]:
        """Names of registered plugins, in registration order."""
        return list(self._plugins)

    def fact_names(self) -> list[str]:
        """Sorted names of all registered facts."""
        return sorted(self._facts)

    def operator_names(self) -> list[str]:
        """Sorted names of all registered operators."""
        return sorted(self._operators)

    async def initialize_all(self, project: ProjectData) -> None:
        """Initialize every registered plugin with the loaded project.

        Raises:
            PluginError: If a plugin fails to initialize
        """
        logger.info("Initializing %d plugins with project '%s'", len(self._plugins), project.name)
        for name, plugin in self._plugins.items():
            try:
                await plugin.initialize(project)
            except Exception as e:
                logger.error("Failed to initialize plugin %s: %s", name, e)
                msg = f"Plugin '{name}' failed to initialize: {e}"
                raise PluginError(msg) from e
            logger.debug("  Initialized plugin: %s", name)
