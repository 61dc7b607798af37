"""Tests for the plugin registry and built-in plugins."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from rulesim.plugins import (
    FilesystemPlugin,
    FunctionFact,
    Plugin,
    PluginError,
    PluginRegistry,
    create_default_registry,
)
from rulesim.plugins.filesystem import file_contains, has_missing_files
from rulesim.plugins.patterns import compile_pattern, regex_match
from rulesim.rules.context import make_file_data
from rulesim.rules.facts import resolve_fact

if TYPE_CHECKING:
    from collections.abc import Callable

    from rulesim.rules.context import EvaluationContext, ProjectData


class TestRegistry:
    def test_default_registry(self) -> None:
        registry = create_default_registry()
        assert registry.plugin_names == ["filesystem", "patterns"]
        assert registry.fact_names() == [
            "missingRequiredFiles",
            "repoFileAnalysis",
            "repoFilesystemFacts",
        ]
        assert registry.operator_names() == ["fileContains", "hasMissingFiles", "regexMatch"]

    def test_enabled_subset(self) -> None:
        registry = create_default_registry(["patterns"])
        assert registry.get_fact("repoFilesystemFacts") is None
        assert registry.get_operator("regexMatch") is not None

    def test_unknown_plugin(self) -> None:
        with pytest.raises(PluginError, match="Unknown plugin"):
            create_default_registry(["telemetry"])

    def test_duplicate_plugin(self) -> None:
        registry = PluginRegistry()
        registry.register_plugin(FilesystemPlugin())
        with pytest.raises(PluginError, match="already registered"):
            registry.register_plugin(FilesystemPlugin())

    def test_later_plugin_overrides_fact(self) -> None:
        class Override(Plugin):
            name = "override"

            def __init__(self) -> None:
                super().__init__(
                    facts=[FunctionFact("repoFilesystemFacts", lambda _p, _c: [])]
                )

        registry = create_default_registry()
        override = Override()
        registry.register_plugin(override)
        assert registry.get_fact("repoFilesystemFacts") is override.facts["repoFilesystemFacts"]

    async def test_initialize_all_wraps_failures(self, sample_project: ProjectData) -> None:
        class Broken(Plugin):
            name = "broken"

            async def initialize(self, project: ProjectData) -> None:
                msg = "no index"
                raise RuntimeError(msg)

        registry = PluginRegistry()
        registry.register_plugin(Broken())
        with pytest.raises(PluginError, match="broken"):
            await registry.initialize_all(sample_project)


class TestFilesystemFacts:
    async def test_repo_filesystem_facts(
        self, make_context: Callable[..., EvaluationContext]
    ) -> None:
        registry = create_default_registry()
        resolution = await resolve_fact("repoFilesystemFacts", None, make_context(), registry)
        names = [f["filePath"] for f in resolution.value]
        assert "src/index.js" in names
        assert len(names) == 5

    async def test_repo_file_analysis(
        self, make_context: Callable[..., EvaluationContext]
    ) -> None:
        registry = create_default_registry()
        context = make_context("src/index.js")
        params: dict[str, Any] = {
            "checkPattern": [r"console\.log\((.*)\)"],
            "captureGroups": True,
            "resultFact": "consoleCalls",
        }
        resolution = await resolve_fact("repoFileAnalysis", params, context, registry)
        value = resolution.value
        assert value["summary"]["totalMatches"] == 1
        match = value["matches"][0]
        assert match["range"]["start"] == {"line": 2, "column": 1}
        assert match["groups"] == ["'debug'"]
        assert value["result"] == [
            {"match": r"console\.log\((.*)\)", "lineNumber": 2, "line": "console.log('debug');"}
        ]
        assert context.runtime_facts["consoleCalls"] == value["result"]

    async def test_repo_file_analysis_bad_pattern(
        self, make_context: Callable[..., EvaluationContext]
    ) -> None:
        registry = create_default_registry()
        resolution = await resolve_fact(
            "repoFileAnalysis", {"checkPattern": "("}, make_context(), registry
        )
        assert resolution.success
        assert resolution.value["summary"]["totalMatches"] == 0

    async def test_missing_required_files(
        self, make_context: Callable[..., EvaluationContext]
    ) -> None:
        registry = create_default_registry()
        resolution = await resolve_fact(
            "missingRequiredFiles",
            {"requiredFiles": ["README.md", "LICENSE", "App.tsx"]},
            make_context(),
            registry,
        )
        assert resolution.value == {
            "missing": ["LICENSE"],
            "found": ["README.md", "App.tsx"],
            "total": 3,
        }


class TestFilesystemOperators:
    def test_file_contains(self) -> None:
        files = [make_file_data("a.js", "const x = 1;"), make_file_data("b.js", "eval(x)")]
        assert file_contains(files, r"eval\(")
        assert file_contains({"files": files}, "const")
        assert file_contains(files[0], "const")
        assert not file_contains(files, "require")
        assert not file_contains(files, 3)

    def test_has_missing_files(self) -> None:
        assert has_missing_files({"missing": ["LICENSE"]}, True)
        assert has_missing_files({"missing": []}, False)
        assert not has_missing_files({"missing": []}, True)
        assert not has_missing_files(None, True)


class TestPatterns:
    def test_regex_match(self) -> None:
        assert regex_match("version 1.2.3", r"\d+\.\d+\.\d+")
        assert not regex_match("none", r"\d")
        assert not regex_match(42, r"\d")

    def test_regex_match_flags(self) -> None:
        assert regex_match("HELLO", {"pattern": "hello", "flags": "i"})
        assert not regex_match("HELLO", {"pattern": "hello"})

    def test_regex_match_file_data(self) -> None:
        assert regex_match(make_file_data("a.js", "debugger;"), "debugger")

    def test_compile_pattern(self) -> None:
        assert compile_pattern(3) is None
        assert compile_pattern({"pattern": "^a", "flags": "gm"}).search("b\na")
