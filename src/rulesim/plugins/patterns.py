"""Patterns plugin: regex operators."""

from __future__ import annotations

import re
from typing import Any

from rulesim.plugins.base import FunctionOperator
from rulesim.plugins.registry import Plugin

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


def compile_pattern(value: Any) -> re.Pattern[str] | None:
    """Compile ``"regex"`` or ``{"pattern": "regex", "flags": "im"}``.

    Unknown flag letters are ignored (``g`` has no meaning for a search).

    Raises:
        re.error: If the pattern is not a valid regex
    """
    if isinstance(value, str):
        return re.compile(value)
    if isinstance(value, dict) and isinstance(value.get("pattern"), str):
        flags = 0
        for letter in str(value.get("flags", "")):
            flags |= _FLAG_MAP.get(letter, 0)
        return re.compile(value["pattern"], flags)
    return None


def regex_match(fact_value: Any, compare_value: Any) -> bool:
    """True if the fact value (or a file descriptor's content) matches."""
    if isinstance(fact_value, dict):
        fact_value = fact_value.get("fileContent")
    if not isinstance(fact_value, str):
        return False
    regex = compile_pattern(compare_value)
    if regex is None:
        return False
    return regex.search(fact_value) is not None


class PatternsPlugin(Plugin):
    """Regex-based operators."""

    name = "patterns"
    version = "1.0.0"
    description = "Regular-expression operators"

    def __init__(self) -> None:
        super().__init__(
            operators=[
                FunctionOperator(
                    "regexMatch",
                    regex_match,
                    "String fact value (or file content) matches a regex",
                ),
            ],
        )
