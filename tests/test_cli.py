"""Tests for the rulesim CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
from typer.testing import CliRunner

from rulesim import __version__
from rulesim.cli import ExitCode, app

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

runner = CliRunner()


def _json_payload(output: str) -> Any:
    """Extract the indented JSON document from CLI output."""
    lines = output.splitlines()
    start = lines.index("{")
    end = len(lines) - 1 - lines[::-1].index("}")
    return json.loads("\n".join(lines[start : end + 1]))


@pytest.fixture
def fatal_rule() -> dict[str, Any]:
    """Rule that fires a fatality event for console.log calls."""
    return {
        "name": "no-console",
        "conditions": {
            "any": [
                {
                    "fact": "repoFilesystemFacts",
                    "operator": "fileContains",
                    "value": r"console\.log",
                }
            ]
        },
        "event": {"type": "fatality", "params": {"message": "Remove console.log"}},
    }


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"rulesim {__version__}" in result.output


class TestSimulate:
    def test_file_triggered(
        self,
        write_rule: Callable[..., Path],
        project_dir: Path,
        file_name_rule: dict[str, Any],
    ) -> None:
        rule_path = write_rule(file_name_rule)
        result = runner.invoke(
            app, ["simulate", str(rule_path), "--file", "src/App.tsx", "--project", str(project_dir)]
        )
        assert result.exit_code == ExitCode.SUCCESS
        assert "TRIGGERED" in result.output
        assert "File is not X" in result.output

    def test_json_output(
        self,
        write_rule: Callable[..., Path],
        project_dir: Path,
        file_name_rule: dict[str, Any],
    ) -> None:
        rule_path = write_rule(file_name_rule, "rule.json")
        result = runner.invoke(
            app,
            [
                "simulate",
                str(rule_path),
                "-f",
                "src/App.tsx",
                "-p",
                str(project_dir),
                "--json",
            ],
        )
        assert result.exit_code == ExitCode.SUCCESS
        payload = _json_payload(result.stdout)
        assert payload["finalResult"] == "triggered"
        assert payload["conditionResults"][0]["factValue"] == "App.tsx"

    def test_fatality_exit_code(
        self,
        write_rule: Callable[..., Path],
        project_dir: Path,
        fatal_rule: dict[str, Any],
    ) -> None:
        rule_path = write_rule(fatal_rule)
        result = runner.invoke(
            app, ["simulate", str(rule_path), "--global", "--project", str(project_dir)]
        )
        assert result.exit_code == ExitCode.FATALITY
        assert "GLOBAL" in result.output

    def test_all_files(
        self,
        write_rule: Callable[..., Path],
        project_dir: Path,
        file_name_rule: dict[str, Any],
    ) -> None:
        rule_path = write_rule(file_name_rule)
        result = runner.invoke(
            app, ["simulate", str(rule_path), "--all", "--project", str(project_dir), "--json"]
        )
        assert result.exit_code == ExitCode.SUCCESS
        payload = _json_payload(result.stdout)
        assert ".gitignore" not in payload
        assert payload["src/App.tsx"]["finalResult"] == "triggered"

    def test_content_file(
        self,
        write_rule: Callable[..., Path],
        temp_dir: Path,
        file_name_rule: dict[str, Any],
    ) -> None:
        rule_path = write_rule(file_name_rule)
        content = temp_dir / "content.txt"
        content.write_text("hello")
        result = runner.invoke(
            app, ["simulate", str(rule_path), "--file", "X", "--content-file", str(content)]
        )
        assert result.exit_code == ExitCode.SUCCESS
        assert "NOT-TRIGGERED" in result.output

    def test_evaluation_error_exit_code(
        self, write_rule: Callable[..., Path], project_dir: Path
    ) -> None:
        rule_path = write_rule(
            {
                "name": "bad-regex",
                "conditions": {
                    "all": [{"fact": "fileData", "operator": "regexMatch", "value": "("}]
                },
                "event": {"type": "warning"},
            }
        )
        result = runner.invoke(
            app, ["simulate", str(rule_path), "-f", "src/App.tsx", "-p", str(project_dir)]
        )
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "ERROR" in result.output

    def test_requires_one_target(
        self, write_rule: Callable[..., Path], file_name_rule: dict[str, Any]
    ) -> None:
        rule_path = write_rule(file_name_rule)
        result = runner.invoke(app, ["simulate", str(rule_path), "--all", "--global"])
        assert result.exit_code == ExitCode.CONFIG_ERROR

    def test_content_file_requires_file(
        self, write_rule: Callable[..., Path], temp_dir: Path, file_name_rule: dict[str, Any]
    ) -> None:
        rule_path = write_rule(file_name_rule)
        result = runner.invoke(
            app, ["simulate", str(rule_path), "--all", "--content-file", str(rule_path)]
        )
        assert result.exit_code == ExitCode.CONFIG_ERROR

    def test_invalid_rule(self, write_rule: Callable[..., Path]) -> None:
        rule_path = write_rule({"name": "r", "conditions": {"all": [], "any": []}, "event": {"type": "info"}})
        result = runner.invoke(app, ["simulate", str(rule_path), "--global"])
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Invalid rule" in result.output

    def test_unknown_project(
        self, write_rule: Callable[..., Path], file_name_rule: dict[str, Any]
    ) -> None:
        rule_path = write_rule(file_name_rule)
        result = runner.invoke(
            app, ["simulate", str(rule_path), "--global", "--project", "no-such-fixture"]
        )
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Unknown fixture" in result.output

    def test_missing_config(
        self, write_rule: Callable[..., Path], temp_dir: Path, file_name_rule: dict[str, Any]
    ) -> None:
        rule_path = write_rule(file_name_rule)
        result = runner.invoke(
            app, ["simulate", str(rule_path), "--global", "--config", str(temp_dir / "nope.yaml")]
        )
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Configuration error" in result.output


class TestValidate:
    def test_valid_rule(
        self, write_rule: Callable[..., Path], file_name_rule: dict[str, Any]
    ) -> None:
        result = runner.invoke(app, ["validate", str(write_rule(file_name_rule))])
        assert result.exit_code == ExitCode.SUCCESS
        assert "Rule 'not-x' is valid" in result.output
        assert "Warning" not in result.output

    def test_reports_unknown_names(self, write_rule: Callable[..., Path]) -> None:
        rule_path = write_rule(
            {
                "name": "gaps",
                "conditions": {
                    "all": [
                        {"fact": "dependencyVersion", "operator": "semverGte", "value": "1.0.0"},
                        {"fact": "fileData", "operator": "regexMatch", "value": "x"},
                    ]
                },
                "event": {"type": "info"},
            }
        )
        result = runner.invoke(app, ["validate", str(rule_path)])
        assert result.exit_code == ExitCode.SUCCESS
        assert "unknown fact 'dependencyVersion'" in result.output
        assert "unknown operator 'semverGte'" in result.output
        assert "regexMatch" not in result.output

    def test_unreadable_rule(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["validate", str(temp_dir / "missing.yaml")])
        assert result.exit_code == ExitCode.CONFIG_ERROR


def test_facts_lists_plugins() -> None:
    result = runner.invoke(app, ["facts"])
    assert result.exit_code == ExitCode.SUCCESS
    assert "filesystem 1.0.0" in result.output
    assert "repoFilesystemFacts" in result.output
    assert "regexMatch" in result.output
    assert "fileData" in result.output
