"""Tests for fact resolution and the per-run cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rulesim.rules.context import FILE_DATA_FACT
from rulesim.rules.facts import resolve_fact

if TYPE_CHECKING:
    from collections.abc import Callable

    from rulesim.plugins import PluginRegistry
    from rulesim.rules.context import EvaluationContext

    from .conftest import CountingPlugin


async def test_file_data_is_current_target(
    make_context: Callable[..., EvaluationContext], empty_registry: PluginRegistry
) -> None:
    context = make_context("src/App.tsx")
    resolution = await resolve_fact("fileData", None, context, empty_registry)
    assert resolution.success
    assert resolution.value["fileName"] == "App.tsx"
    assert resolution.value["filePath"] == "src/App.tsx"
    assert "React" in resolution.value["fileContent"]


async def test_unknown_fact(
    make_context: Callable[..., EvaluationContext], empty_registry: PluginRegistry
) -> None:
    resolution = await resolve_fact("doesNotExist", None, make_context(), empty_registry)
    assert not resolution.success
    assert resolution.value is None
    assert "Unknown fact" in resolution.error
    assert "doesNotExist" in resolution.error


async def test_registry_fact_is_memoized(
    make_context: Callable[..., EvaluationContext],
    registry: PluginRegistry,
    counting_plugin: CountingPlugin,
) -> None:
    context = make_context()
    first = await resolve_fact("a", None, context, registry)
    second = await resolve_fact("a", None, context, registry)
    assert first.value == second.value == 2
    assert second.duration == 0.0
    assert counting_plugin.calls["a"] == 1


async def test_cached_none_is_not_recomputed(
    make_context: Callable[..., EvaluationContext],
    registry: PluginRegistry,
    counting_plugin: CountingPlugin,
) -> None:
    context = make_context()
    await resolve_fact("nothing", None, context, registry)
    resolution = await resolve_fact("nothing", None, context, registry)
    assert resolution.success
    assert resolution.value is None
    assert counting_plugin.calls["nothing"] == 1


async def test_cache_is_per_context(
    make_context: Callable[..., EvaluationContext],
    registry: PluginRegistry,
    counting_plugin: CountingPlugin,
) -> None:
    await resolve_fact("a", None, make_context(), registry)
    await resolve_fact("a", None, make_context(), registry)
    assert counting_plugin.calls["a"] == 2


async def test_raising_fact_is_captured_and_not_cached(
    make_context: Callable[..., EvaluationContext],
    registry: PluginRegistry,
    counting_plugin: CountingPlugin,
) -> None:
    context = make_context()
    resolution = await resolve_fact("explodes", None, context, registry)
    assert not resolution.success
    assert resolution.error == "fact backend unavailable"
    assert not context.has_runtime_fact("explodes")

    await resolve_fact("explodes", None, context, registry)
    assert counting_plugin.calls["explodes"] == 2


async def test_runtime_fact_shadows_registry(
    make_context: Callable[..., EvaluationContext],
    registry: PluginRegistry,
    counting_plugin: CountingPlugin,
) -> None:
    context = make_context()
    context.add_runtime_fact("a", 99)
    resolution = await resolve_fact("a", None, context, registry)
    assert resolution.value == 99
    assert "a" not in counting_plugin.calls


async def test_fact_reads_project_manifest(
    make_context: Callable[..., EvaluationContext], registry: PluginRegistry
) -> None:
    resolution = await resolve_fact("dependencies", None, make_context(), registry)
    assert resolution.value == {"react": "^18.0.0"}


async def test_context_fact_value_answers_file_data(
    make_context: Callable[..., EvaluationContext],
) -> None:
    context = make_context("src/index.js")
    file_data = await context.fact_value(FILE_DATA_FACT)
    assert file_data is context.current_file
    assert file_data["fileName"] == "index.js"
    assert await context.fact_value("a") is None
