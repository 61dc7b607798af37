"""Shared pytest fixtures for rulesim tests.

This module provides common fixtures for:
- Temporary directories and config/rule file writers
- A small sample project (files plus package.json manifest)
- Plugin registries, including a call-counting fact
- Initialized simulation engines
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import yaml

from rulesim.plugins import (
    FunctionFact,
    FunctionOperator,
    Plugin,
    PluginRegistry,
    create_default_registry,
)
from rulesim.rules.context import EvaluationContext, ProjectData
from rulesim.simulation import SimulationEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


# ============================================================================
# Filesystem Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory (cleaned up after test)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
    """Keep config discovery away from the developer's real files."""
    monkeypatch.delenv("RULESIM_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(temp_dir / "xdg-data"))
    monkeypatch.chdir(temp_dir)


@pytest.fixture
def write_config(temp_dir: Path) -> Callable[..., Path]:
    """Factory fixture to write config files.

    Args:
        config: Configuration dictionary
        filename: Name of the config file (default: config.yaml)

    Returns:
        Path to the written config file
    """

    def _write(config: dict[str, Any], filename: str = "config.yaml") -> Path:
        path = temp_dir / filename
        with path.open("w") as f:
            yaml.safe_dump(config, f)
        return path

    return _write


@pytest.fixture
def write_rule(temp_dir: Path) -> Callable[..., Path]:
    """Factory fixture to write rule files (YAML, or JSON by extension)."""

    def _write(rule: dict[str, Any], filename: str = "rule.yaml") -> Path:
        path = temp_dir / filename
        if filename.endswith(".json"):
            path.write_text(json.dumps(rule))
        else:
            with path.open("w") as f:
                yaml.safe_dump(rule, f)
        return path

    return _write


# ============================================================================
# Project Fixtures
# ============================================================================


@pytest.fixture
def sample_manifest() -> dict[str, Any]:
    """Return a package.json manifest for the sample project."""
    return {
        "name": "demo-app",
        "version": "1.2.0",
        "dependencies": {"react": "^18.0.0"},
    }


@pytest.fixture
def sample_files(sample_manifest: dict[str, Any]) -> dict[str, str]:
    """Return file contents of the sample project, keyed by relative path."""
    return {
        "package.json": json.dumps(sample_manifest),
        "src/App.tsx": "import React from 'react';\nexport const App = () => null;\n",
        "src/index.js": "import App from './App';\nconsole.log('debug');\n",
        "README.md": "# Demo\n",
        ".gitignore": "node_modules\n",
    }


@pytest.fixture
def sample_project(
    sample_files: dict[str, str], sample_manifest: dict[str, Any]
) -> ProjectData:
    """Return the sample project as ProjectData."""
    return ProjectData.from_files(sample_files, sample_manifest, name="demo-app")


@pytest.fixture
def project_dir(temp_dir: Path, sample_files: dict[str, str]) -> Path:
    """Write the sample project to disk and return its root."""
    root = temp_dir / "demo-app"
    for relative, content in sample_files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def make_context(sample_project: ProjectData) -> Callable[..., EvaluationContext]:
    """Factory fixture for contexts bound to a sample project file."""

    def _make(file_path: str = "src/App.tsx", project: ProjectData | None = None) -> EvaluationContext:
        return EvaluationContext.for_target(project or sample_project, file_path)

    return _make


# ============================================================================
# Registry Fixtures
# ============================================================================


class CountingPlugin(Plugin):
    """Test plugin whose facts record how often they are computed."""

    name = "counting"
    version = "0.0.1"

    def __init__(self) -> None:
        self.calls: dict[str, int] = {}
        super().__init__(
            facts=[
                FunctionFact("a", self._counted("a", lambda _p, _c: 2)),
                FunctionFact(
                    "dependencies",
                    self._counted(
                        "dependencies",
                        lambda _p, c: c.project.manifest.get("dependencies", {}),
                    ),
                ),
                FunctionFact("explodes", self._counted("explodes", self._explode)),
                FunctionFact("nothing", self._counted("nothing", lambda _p, _c: None)),
            ],
            operators=[
                FunctionOperator("isEven", lambda value, _v: value % 2 == 0),
                FunctionOperator("asyncEqual", self._async_equal),
            ],
        )

    def _counted(self, name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
        def wrapper(params: Any, context: Any) -> Any:
            self.calls[name] = self.calls.get(name, 0) + 1
            return fn(params, context)

        return wrapper

    @staticmethod
    def _explode(_params: Any, _context: Any) -> Any:
        msg = "fact backend unavailable"
        raise RuntimeError(msg)

    @staticmethod
    async def _async_equal(fact_value: Any, compare_value: Any) -> bool:
        return fact_value == compare_value


@pytest.fixture
def counting_plugin() -> CountingPlugin:
    """Return a fresh CountingPlugin."""
    return CountingPlugin()


@pytest.fixture
def registry(counting_plugin: CountingPlugin) -> PluginRegistry:
    """Return the built-in plugins plus the counting test plugin."""
    reg = create_default_registry()
    reg.register_plugin(counting_plugin)
    return reg


@pytest.fixture
def empty_registry() -> PluginRegistry:
    """Return a registry without any plugins."""
    return PluginRegistry()


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def engine_factory(counting_plugin: CountingPlugin) -> Callable[[], SimulationEngine]:
    """Factory for engines whose registry includes the counting plugin."""

    def _registry() -> PluginRegistry:
        reg = create_default_registry()
        reg.register_plugin(counting_plugin)
        return reg

    def _make() -> SimulationEngine:
        return SimulationEngine(registry_factory=_registry)

    return _make


@pytest.fixture
async def engine(
    engine_factory: Callable[[], SimulationEngine], sample_project: ProjectData
) -> SimulationEngine:
    """Return an engine initialized with the sample project."""
    eng = engine_factory()
    await eng.initialize(sample_project)
    return eng


# ============================================================================
# Rule Fixtures
# ============================================================================


@pytest.fixture
def file_name_rule() -> dict[str, Any]:
    """Rule that triggers for every file not named X."""
    return {
        "name": "not-x",
        "conditions": {
            "all": [
                {
                    "fact": "fileData",
                    "operator": "notEqual",
                    "value": "X",
                    "path": "$.fileName",
                }
            ]
        },
        "event": {"type": "warning", "params": {"message": "File is not X"}},
    }
