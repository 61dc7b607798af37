"""Simulation engine.

This module provides the SimulationEngine class, the public entry point
for simulating a rule against project data. It handles:
- One-time initialization (fixture loading and plugin initialization)
- Rule validation at the boundary
- Per-run contexts, the diagnostic tree walk and the trigger decision
- Error demotion for conditions that failed to evaluate
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from rulesim.config.loader import format_validation_errors
from rulesim.config.schema import Config
from rulesim.fixtures.loader import FixtureLoader
from rulesim.plugins import create_default_registry
from rulesim.rules.context import GLOBAL_TARGET, EvaluationContext, ProjectData
from rulesim.rules.evaluator import ROOT_PATH, are_conditions_met, evaluate_conditions
from rulesim.rules.facts import UNKNOWN_FACT_PREFIX
from rulesim.rules.operators import UNKNOWN_OPERATOR_PREFIX
from rulesim.rules.results import (
    ConditionResult,
    FinalResult,
    SimulationOptions,
    SimulationResult,
)
from rulesim.rules.schema import RuleDefinition

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

    from rulesim.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)

NOT_INITIALIZED_ERROR = (
    "Simulation engine not initialized. Please wait for initialization to complete."
)
MISSING_CONDITIONS_ERROR = "Invalid rule: missing conditions"
NO_PROJECT_ERROR = "No fixture data loaded"
CONDITIONS_FAILED_ERROR = (
    "One or more conditions failed to evaluate. Check condition results for details."
)


class InvalidRuleError(Exception):
    """Raised when a raw rule mapping fails validation."""


def coerce_rule(rule: RuleDefinition | Mapping[str, Any]) -> RuleDefinition:
    """Validate a raw rule mapping, passing RuleDefinition through.

    Raises:
        InvalidRuleError: If the mapping is not a valid rule
    """
    if isinstance(rule, RuleDefinition):
        return rule
    try:
        return RuleDefinition.model_validate(rule)
    except ValidationError as e:
        details = (line.removeprefix("  - ") for line in format_validation_errors(e))
        msg = "Invalid rule: " + "; ".join(details)
        raise InvalidRuleError(msg) from e


def _is_reportable_gap(error: str) -> bool:
    return UNKNOWN_FACT_PREFIX in error or UNKNOWN_OPERATOR_PREFIX in error


def has_evaluation_faults(results: list[ConditionResult]) -> bool:
    """Check whether leaf errors should turn a run into an error outcome.

    A leaf counts when it has an error and a false result. The run is
    faulted unless every errored leaf is an unknown fact or operator.
    """
    if not any(r.error and not r.result for r in results):
        return False
    return not all(_is_reportable_gap(r.error) for r in results if r.error)


class SimulationEngine:
    """Simulates rules against a loaded project.

    States: uninitialized, initializing, ready. ``reset`` returns the
    engine to uninitialized with a freshly built registry.

    Example:
        engine = SimulationEngine(config)
        await engine.initialize("node-fullstack")
        result = await engine.simulate(rule, "src/index.js")
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        registry_factory: Callable[[], PluginRegistry] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Configuration (default: built-in defaults)
            registry_factory: Builds the plugin registry (default: the
                plugins enabled in ``config``)
        """
        self._config = config or Config()
        self._registry_factory = registry_factory or (
            lambda: create_default_registry(self._config.plugins.enabled)
        )
        self._registry = self._registry_factory()
        self._loader = FixtureLoader(self._config.fixtures)
        self._initialized = False
        self._init_task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def config(self) -> Config:
        """Engine configuration."""
        return self._config

    @property
    def registry(self) -> PluginRegistry:
        """Plugin registry used for every run."""
        return self._registry

    async def initialize(
        self,
        project: str | Path | ProjectData | None = None,
        on_progress: Callable[[str, int], None] | None = None,
    ) -> None:
        """Load project data and initialize plugins.

        Does nothing when already initialized. Concurrent callers share one
        in-flight initialization. On failure the engine stays uninitialized
        and the error propagates to every waiting caller.

        Args:
            project: Fixture name, path, URL or ready project data
                (default: ``fixtures.default`` from config)
            on_progress: Called with (message, percent) at each step

        Raises:
            FixtureError: If the project cannot be loaded
            PluginError: If a plugin fails to initialize
        """
        if self._initialized:
            return

        task = self._init_task
        if task is None:
            task = asyncio.ensure_future(self._do_initialize(project, on_progress))
            self._init_task = task

        try:
            await asyncio.shield(task)
        finally:
            if self._init_task is task and task.done():
                self._init_task = None

    async def _do_initialize(
        self,
        project: str | Path | ProjectData | None,
        on_progress: Callable[[str, int], None] | None,
    ) -> None:
        def progress(message: str, percent: int) -> None:
            logger.debug("Initialization: %s (%d%%)", message, percent)
            if on_progress is not None:
                on_progress(message, percent)

        generation = self._generation
        loader = self._loader
        registry = self._registry

        progress("Loading fixture data...", 10)
        if isinstance(project, ProjectData):
            loaded = loader.adopt(project)
        else:
            loaded = await loader.load(project or self._config.fixtures.default)

        progress("Initializing plugins...", 70)
        await registry.initialize_all(loaded)

        if generation != self._generation:
            logger.info("Discarding initialization of '%s' superseded by reset", loaded.name)
            return

        self._initialized = True
        logger.info(
            "Simulation engine ready: project '%s', plugins %s",
            loaded.name,
            self._registry.plugin_names,
        )
        progress("Ready", 100)

    def is_initialized(self) -> bool:
        """Check if the engine is ready to simulate."""
        return self._initialized

    def get_project_data(self) -> ProjectData | None:
        """Get the loaded project data."""
        return self._loader.get_project()

    def get_available_files(self) -> list[str]:
        """List simulatable files, minus the configured exclude patterns."""
        return self._loader.list_files(
            exclude_patterns=self._config.fixtures.exclude_patterns
        )

    def reset(self) -> None:
        """Forget the loaded project and rebuild the registry.

        An initialization still in flight is abandoned: it finishes against
        the previous loader and registry and leaves the engine uninitialized.
        """
        self._loader.clear()
        self._generation += 1
        self._loader = FixtureLoader(self._config.fixtures)
        self._registry = self._registry_factory()
        self._initialized = False
        self._init_task = None
        logger.info("Simulation engine reset")

    async def simulate(
        self,
        rule: RuleDefinition | Mapping[str, Any],
        file_name: str,
        options: SimulationOptions | None = None,
    ) -> SimulationResult:
        """Simulate a rule against one file of the loaded project.

        Args:
            rule: Rule model or raw rule mapping
            file_name: Project-relative path of the target file
            options: Simulation options

        Returns:
            SimulationResult; never raises
        """
        return await self._run(rule, file_name, options, failure_prefix="Simulation failed")

    async def simulate_with_content(
        self,
        rule: RuleDefinition | Mapping[str, Any],
        file_name: str,
        content: str,
        options: SimulationOptions | None = None,
    ) -> SimulationResult:
        """Simulate a rule against caller-supplied content.

        The run sees a one-file project holding only ``file_name``; loaded
        project data is not consulted.
        """
        project = ProjectData.from_files({file_name: content})
        return await self._run(
            rule, file_name, options, project=project, failure_prefix="Simulation failed"
        )

    async def simulate_all(
        self,
        rule: RuleDefinition | Mapping[str, Any],
        options: SimulationOptions | None = None,
    ) -> dict[str, SimulationResult]:
        """Simulate a rule against every available file, one after another.

        Returns:
            Mapping of file path to result, in file order
        """
        results: dict[str, SimulationResult] = {}
        for file_name in self.get_available_files():
            results[file_name] = await self.simulate(rule, file_name, options)
        return results

    async def simulate_global(
        self,
        rule: RuleDefinition | Mapping[str, Any],
        additional_files: Mapping[str, str] | None = None,
        options: SimulationOptions | None = None,
    ) -> SimulationResult:
        """Simulate a project-wide rule against the GLOBAL target.

        Args:
            rule: Rule model or raw rule mapping
            additional_files: Files overlaid on the loaded project for
                this run only
            options: Simulation options
        """
        return await self._run(
            rule,
            GLOBAL_TARGET,
            options,
            additional_files=additional_files,
            failure_prefix="Global simulation failed",
        )

    async def _run(
        self,
        rule: RuleDefinition | Mapping[str, Any],
        target: str,
        options: SimulationOptions | None,
        *,
        failure_prefix: str,
        project: ProjectData | None = None,
        additional_files: Mapping[str, str] | None = None,
    ) -> SimulationResult:
        start = time.perf_counter()

        def error_result(
            message: str, condition_results: list[ConditionResult] | None = None
        ) -> SimulationResult:
            logger.debug("Simulation of %s ended in error: %s", target, message)
            return SimulationResult(
                success=False,
                file_name=target,
                duration=(time.perf_counter() - start) * 1000,
                condition_results=condition_results or [],
                final_result=FinalResult.ERROR,
                error=message,
            )

        options = options or SimulationOptions()

        try:
            if not self._initialized:
                return error_result(NOT_INITIALIZED_ERROR)

            try:
                definition = coerce_rule(rule)
            except InvalidRuleError as e:
                return error_result(str(e))
            if definition.conditions is None:
                return error_result(MISSING_CONDITIONS_ERROR)

            if project is None:
                project = self._loader.get_project()
                if project is None:
                    return error_result(NO_PROJECT_ERROR)
                if additional_files:
                    project = project.with_files(dict(additional_files))

            context = EvaluationContext.for_target(project, target, options)
            condition_results = await evaluate_conditions(
                definition.conditions, list(ROOT_PATH), context, self._registry
            )

            if not options.verbose and has_evaluation_faults(condition_results):
                return error_result(CONDITIONS_FAILED_ERROR, condition_results)

            triggered = are_conditions_met(definition.conditions, condition_results)
            return SimulationResult(
                success=True,
                file_name=target,
                duration=(time.perf_counter() - start) * 1000,
                condition_results=condition_results,
                final_result=FinalResult.TRIGGERED if triggered else FinalResult.NOT_TRIGGERED,
                event=definition.event.model_copy(deep=True) if triggered else None,
            )
        except Exception as e:
            logger.exception("Simulation of %s failed", target)
            return error_result(f"{failure_prefix}: {e}")
