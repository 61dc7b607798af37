"""CLI entry point for rulesim.

This module provides the Typer-based CLI with commands:
- rulesim simulate: Simulate a rule against a file, every file, or the project
- rulesim validate: Check a rule file and report unprovided facts/operators
- rulesim facts: List registered facts and operators

Exit codes:
- 0: Success (rule not triggered, or triggered with a non-fatal event)
- 1: Configuration, rule or evaluation error
- 2: Rule triggered with a fatality event
- 4: Fatal error
"""

from __future__ import annotations

import asyncio
import json
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from rulesim import __version__
from rulesim.config import load_config
from rulesim.config.loader import ConfigError, load_yaml
from rulesim.fixtures import FixtureError
from rulesim.logging import (
    configure_logging,
    get_logger,
    log_condition_evaluated,
    log_simulation_complete,
)
from rulesim.plugins import PluginError, create_default_registry
from rulesim.rules.context import FILE_DATA_FACT, ProjectData
from rulesim.rules.operators import BUILTIN_OPERATORS
from rulesim.rules.paths import collect_facts_used, collect_operators_used
from rulesim.rules.results import FinalResult, SimulationOptions, SimulationResult
from rulesim.rules.schema import EventLevel
from rulesim.simulation import InvalidRuleError, SimulationEngine, coerce_rule

if TYPE_CHECKING:
    import structlog

    from rulesim.config.schema import Config
    from rulesim.rules.schema import RuleDefinition


class ExitCode(IntEnum):
    """CLI exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1
    FATALITY = 2
    FATAL_ERROR = 4


app = typer.Typer(
    name="rulesim",
    help="rulesim - simulate rule conditions against project fixtures.",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"rulesim {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """rulesim - simulate rule conditions against project fixtures."""


def _fail(message: str, code: ExitCode = ExitCode.CONFIG_ERROR) -> typer.Exit:
    typer.echo(typer.style(f"✗ {message}", fg=typer.colors.RED), err=True)
    return typer.Exit(code)


def _load_settings(config: Path | None) -> Config:
    try:
        return load_config(config, required=False)
    except ConfigError as e:
        raise _fail(f"Configuration error: {e}") from e


def _load_rule(rule_file: Path) -> RuleDefinition:
    try:
        return coerce_rule(load_yaml(rule_file))
    except ConfigError as e:
        raise _fail(str(e)) from e
    except InvalidRuleError as e:
        raise _fail(f"{rule_file}: {e}") from e


def _exit_code_for(results: list[SimulationResult]) -> ExitCode:
    if any(r.triggered and r.event and r.event.type == EventLevel.FATALITY for r in results):
        return ExitCode.FATALITY
    if any(r.final_result == FinalResult.ERROR for r in results):
        return ExitCode.CONFIG_ERROR
    return ExitCode.SUCCESS


_RESULT_COLORS = {
    FinalResult.TRIGGERED: typer.colors.YELLOW,
    FinalResult.NOT_TRIGGERED: typer.colors.GREEN,
    FinalResult.ERROR: typer.colors.RED,
}


def _print_result(result: SimulationResult, verbose: bool) -> None:
    label = result.final_result.value.upper()
    typer.echo(
        typer.style(f"{label:<14}", fg=_RESULT_COLORS[result.final_result], bold=True)
        + f"{result.file_name}  ({result.duration:.2f} ms)"
    )
    if result.event is not None:
        typer.echo(f"  Event: [{result.event.type.value}] {result.event.message}")
    if result.error:
        typer.echo(f"  Error: {result.error}")

    if not verbose and result.final_result != FinalResult.ERROR:
        return
    for condition in result.condition_results:
        mark = "✓" if condition.result else "✗"
        line = (
            f"    {mark} {'.'.join(condition.path)}: "
            f"{condition.fact_name} {condition.operator} {condition.compare_value!r}"
        )
        if condition.error:
            line += f"  ({condition.error})"
        typer.echo(line)


def _log_results(
    rule: RuleDefinition, results: list[SimulationResult], verbose: bool
) -> None:
    for result in results:
        if verbose:
            for condition in result.condition_results:
                log_condition_evaluated(
                    condition.path,
                    condition.fact_name,
                    condition.operator,
                    condition.result,
                    fact_value=condition.fact_value,
                    error=condition.error,
                )
        log_simulation_complete(
            rule.name,
            result.file_name,
            result.final_result.value,
            len(result.condition_results),
            result.duration,
            error=result.error,
        )


async def _run_simulation(
    engine: SimulationEngine,
    rule: RuleDefinition,
    *,
    project: str | None,
    file: str | None,
    content: str | None,
    run_all: bool,
    run_global: bool,
    options: SimulationOptions,
    log: structlog.stdlib.BoundLogger,
) -> dict[str, SimulationResult]:
    if content is not None and project is None:
        await engine.initialize(ProjectData.from_files({}, name="content"))
    else:
        await engine.initialize(project)
    log.debug("Engine initialized", files=len(engine.get_available_files()))

    if run_all:
        return await engine.simulate_all(rule, options)
    if run_global:
        result = await engine.simulate_global(rule, options=options)
        return {result.file_name: result}
    assert file is not None
    if content is not None:
        result = await engine.simulate_with_content(rule, file, content, options)
    else:
        result = await engine.simulate(rule, file, options)
    return {file: result}


@app.command()
def simulate(
    rule_file: Annotated[
        Path,
        typer.Argument(help="Rule file (YAML or JSON)."),
    ],
    file: Annotated[
        str | None,
        typer.Option("--file", "-f", help="Project-relative file to simulate against."),
    ] = None,
    run_all: Annotated[
        bool,
        typer.Option("--all", help="Simulate against every project file."),
    ] = False,
    run_global: Annotated[
        bool,
        typer.Option("--global", help="Simulate a project-wide rule."),
    ] = False,
    content_file: Annotated[
        Path | None,
        typer.Option(
            "--content-file",
            help="Use this file's content for --file instead of the project's.",
        ),
    ] = None,
    project: Annotated[
        str | None,
        typer.Option(
            "--project",
            "-p",
            help="Fixture name, directory, bundle file or URL.",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show every condition and keep evaluation errors non-fatal.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print results as JSON."),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Abort after this many seconds.", min=0.001),
    ] = None,
) -> None:
    """Simulate a rule and report whether it triggers.

    Exactly one of --file, --all or --global selects the target.
    """
    configure_logging(verbose=verbose, json_output=False)
    log = get_logger("rulesim.cli")

    if sum([file is not None, run_all, run_global]) != 1:
        raise _fail("Choose exactly one of --file, --all or --global")
    if content_file is not None and file is None:
        raise _fail("--content-file requires --file")

    cfg = _load_settings(config)
    rule = _load_rule(rule_file)

    content = None
    if content_file is not None:
        try:
            content = content_file.read_text(encoding="utf-8")
        except OSError as e:
            raise _fail(f"Cannot read content file: {e}") from e

    options = SimulationOptions(
        verbose=verbose or cfg.simulation.verbose,
        timeout=timeout or cfg.simulation.timeout,
        skip_ast=cfg.simulation.skip_ast,
    )

    try:
        engine = SimulationEngine(cfg)
        results = asyncio.run(
            asyncio.wait_for(
                _run_simulation(
                    engine,
                    rule,
                    project=project,
                    file=file,
                    content=content,
                    run_all=run_all,
                    run_global=run_global,
                    options=options,
                    log=log,
                ),
                timeout=options.timeout,
            )
        )
    except (FixtureError, PluginError) as e:
        raise _fail(str(e)) from e
    except TimeoutError as e:
        raise _fail(f"Simulation timed out after {options.timeout}s", ExitCode.FATAL_ERROR) from e
    except Exception as e:
        log.exception("Simulation failed")
        raise _fail(f"Simulation failed: {e}", ExitCode.FATAL_ERROR) from e

    _log_results(rule, list(results.values()), options.verbose)

    if json_output:
        if file is not None or run_global:
            (result,) = results.values()
            typer.echo(result.model_dump_json(by_alias=True, indent=2))
        else:
            payload = {
                name: result.model_dump(by_alias=True, mode="json")
                for name, result in results.items()
            }
            typer.echo(json.dumps(payload, indent=2))
    else:
        typer.echo(typer.style(f"Rule: {rule.name}", bold=True))
        if not results:
            typer.echo("No files to simulate.")
        for result in results.values():
            _print_result(result, options.verbose)
        if run_all:
            triggered = sum(1 for r in results.values() if r.triggered)
            typer.echo()
            typer.echo(f"  Files: {len(results)}, triggered: {triggered}")

    raise typer.Exit(_exit_code_for(list(results.values())))


@app.command()
def validate(
    rule_file: Annotated[
        Path,
        typer.Argument(help="Rule file (YAML or JSON)."),
    ],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file."),
    ] = None,
) -> None:
    """Validate a rule file without simulating it.

    Reports facts and operators the rule uses that no enabled plugin
    provides. Those are warnings: a simulation reports them per condition.
    """
    configure_logging(verbose=False, json_output=False)

    cfg = _load_settings(config)
    rule = _load_rule(rule_file)
    try:
        registry = create_default_registry(cfg.plugins.enabled)
    except PluginError as e:
        raise _fail(str(e)) from e

    typer.echo(typer.style(f"✓ Rule '{rule.name}' is valid", fg=typer.colors.GREEN))

    if rule.conditions is None:
        typer.echo(typer.style("  Warning: rule has no conditions", fg=typer.colors.YELLOW))
        raise typer.Exit(ExitCode.SUCCESS)

    unknown_facts = sorted(
        name
        for name in collect_facts_used(rule.conditions)
        if name != FILE_DATA_FACT and registry.get_fact(name) is None
    )
    unknown_operators = sorted(
        name
        for name in collect_operators_used(rule.conditions)
        if name not in BUILTIN_OPERATORS and registry.get_operator(name) is None
    )

    for name in unknown_facts:
        typer.echo(typer.style(f"  Warning: unknown fact '{name}'", fg=typer.colors.YELLOW))
    for name in unknown_operators:
        typer.echo(
            typer.style(f"  Warning: unknown operator '{name}'", fg=typer.colors.YELLOW)
        )

    raise typer.Exit(ExitCode.SUCCESS)


@app.command()
def facts(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file."),
    ] = None,
) -> None:
    """List the facts and operators available to rules."""
    configure_logging(verbose=False, json_output=False)

    cfg = _load_settings(config)
    try:
        registry = create_default_registry(cfg.plugins.enabled)
    except PluginError as e:
        raise _fail(str(e)) from e

    typer.echo(typer.style("Built-in", bold=True))
    typer.echo(f"  Facts: {FILE_DATA_FACT}")
    typer.echo(f"  Operators: {', '.join(BUILTIN_OPERATORS)}")

    for name in registry.plugin_names:
        plugin = registry.get_plugin(name)
        assert plugin is not None
        typer.echo()
        typer.echo(typer.style(f"{plugin.name} {plugin.version}", bold=True))
        if plugin.description:
            typer.echo(f"  {plugin.description}")
        for fact in plugin.facts.values():
            typer.echo(f"  fact      {fact.name:<24} {getattr(fact, 'description', '')}")
        for operator in plugin.operators.values():
            typer.echo(
                f"  operator  {operator.name:<24} {getattr(operator, 'description', '')}"
            )

    raise typer.Exit(ExitCode.SUCCESS)
