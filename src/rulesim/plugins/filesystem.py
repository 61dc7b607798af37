"""Filesystem plugin: facts about project files and their contents.

Facts:
- repoFilesystemFacts: descriptors for every file in the project
- repoFileAnalysis: regex matches (``checkPattern``) in the current file
- missingRequiredFiles: which ``requiredFiles`` are absent from the project

Operators:
- fileContains: any file in the fact value matches the regex compare value
- hasMissingFiles: a missingRequiredFiles result reports missing files
  (compared against a boolean)
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from rulesim.plugins.base import FunctionFact, FunctionOperator
from rulesim.plugins.registry import Plugin
from rulesim.rules.context import FILE_DATA_FACT

if TYPE_CHECKING:
    from rulesim.rules.context import EvaluationContext, FileData

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LENGTH = 50


def _as_pattern_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [p for p in value if isinstance(p, str)]
    return []


def _line_context(line: str, start: int, end: int, context_length: int) -> str:
    if context_length <= 0 or context_length >= len(line):
        return line
    half = context_length // 2
    context_start = max(0, start - half)
    context_end = min(len(line), end + half)
    context = line[context_start:context_end]
    if context_start > 0:
        context = "..." + context
    if context_end < len(line):
        context = context + "..."
    return context


async def repo_filesystem_facts(
    _params: dict[str, Any] | None, context: EvaluationContext
) -> list[FileData]:
    files = context.project.iter_file_data()
    logger.debug("repoFilesystemFacts: collected %d files", len(files))
    return files


async def repo_file_analysis(
    params: dict[str, Any] | None, context: EvaluationContext
) -> dict[str, Any]:
    """Find ``checkPattern`` regex matches line by line in the current file.

    Params:
        checkPattern: Regex or list of regexes
        captureGroups: Include capture groups in match details
        contextLength: Characters of surrounding context kept per match
        resultFact: Also publish the result list as a runtime fact
    """
    params = params or {}
    patterns = _as_pattern_list(params.get("checkPattern"))
    capture_groups = bool(params.get("captureGroups", False))
    context_length = int(params.get("contextLength", DEFAULT_CONTEXT_LENGTH))

    file_data = await context.fact_value(FILE_DATA_FACT)
    content = file_data.get("fileContent", "") if file_data else ""

    matches: list[dict[str, Any]] = []
    if content and patterns:
        compiled: list[tuple[str, re.Pattern[str]]] = []
        for pattern in patterns:
            try:
                compiled.append((pattern, re.compile(pattern)))
            except re.error as e:
                logger.error("Pattern error: %s - %s", pattern, e)

        for line_number, line in enumerate(content.split("\n"), start=1):
            for pattern, regex in compiled:
                for match in regex.finditer(line):
                    matches.append(
                        {
                            "pattern": pattern,
                            "match": match.group(0),
                            "range": {
                                "start": {"line": line_number, "column": match.start() + 1},
                                "end": {"line": line_number, "column": match.end() + 1},
                            },
                            "context": _line_context(
                                line, match.start(), match.end(), context_length
                            ),
                            "groups": list(match.groups())
                            if capture_groups and match.groups()
                            else None,
                        }
                    )

    result = [
        {"match": m["pattern"], "lineNumber": m["range"]["start"]["line"], "line": m["context"]}
        for m in matches
    ]

    result_fact = params.get("resultFact")
    if isinstance(result_fact, str) and result_fact:
        context.add_runtime_fact(result_fact, result)

    return {
        "result": result,
        "matches": matches,
        "summary": {
            "totalMatches": len(matches),
            "patterns": patterns,
            "hasPositionData": True,
        },
    }


async def missing_required_files(
    params: dict[str, Any] | None, context: EvaluationContext
) -> dict[str, Any]:
    """Report which ``requiredFiles`` are absent from the project.

    A required entry matches a project file equal to it or ending in
    ``/<entry>``.
    """
    required = _as_pattern_list((params or {}).get("requiredFiles"))
    paths = context.project.file_list
    missing = [
        name
        for name in required
        if not any(path == name or path.endswith("/" + name) for path in paths)
    ]
    return {
        "missing": missing,
        "found": [name for name in required if name not in missing],
        "total": len(required),
    }


def _files_of(fact_value: Any) -> list[Any]:
    if isinstance(fact_value, dict) and isinstance(fact_value.get("files"), list):
        return fact_value["files"]
    if isinstance(fact_value, list):
        return fact_value
    if isinstance(fact_value, dict) and "fileContent" in fact_value:
        return [fact_value]
    return []


def file_contains(fact_value: Any, compare_value: Any) -> bool:
    """True if any file's content matches the regex ``compare_value``."""
    if not isinstance(compare_value, str):
        return False
    regex = re.compile(compare_value)
    for file in _files_of(fact_value):
        content = file.get("fileContent") if isinstance(file, dict) else None
        if isinstance(content, str) and regex.search(content):
            return True
    return False


def has_missing_files(fact_value: Any, compare_value: Any) -> bool:
    """True if the presence of missing files equals ``compare_value``."""
    missing = fact_value.get("missing") if isinstance(fact_value, dict) else None
    has_missing = bool(missing)
    return has_missing == bool(compare_value)


class FilesystemPlugin(Plugin):
    """Facts and operators over project files."""

    name = "filesystem"
    version = "1.0.0"
    description = "Project file listing, content analysis and required-file checks"

    def __init__(self) -> None:
        super().__init__(
            facts=[
                FunctionFact(
                    "repoFilesystemFacts",
                    repo_filesystem_facts,
                    "Descriptors for every file in the project",
                ),
                FunctionFact(
                    "repoFileAnalysis",
                    repo_file_analysis,
                    "Regex pattern analysis of the current file",
                ),
                FunctionFact(
                    "missingRequiredFiles",
                    missing_required_files,
                    "Required files absent from the project",
                ),
            ],
            operators=[
                FunctionOperator(
                    "fileContains", file_contains, "Any file content matches a regex"
                ),
                FunctionOperator(
                    "hasMissingFiles",
                    has_missing_files,
                    "A missingRequiredFiles result reports missing files",
                ),
            ],
        )
