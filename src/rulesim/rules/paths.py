"""JSON-path-like value extraction and rule introspection helpers."""

from __future__ import annotations

import dataclasses
import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from rulesim.rules.schema import AllCondition, AnyCondition, FactCondition, NotCondition

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rulesim.rules.schema import Condition

_ROOT_PREFIX = re.compile(r"^\$\.?")
_TOKEN_SPLIT = re.compile(r"[.\[\]]")


def split_path(path: str) -> list[str]:
    """Split ``$.a.b[0].c`` (or ``a.b[0].c``) into ``["a", "b", "0", "c"]``."""
    clean = _ROOT_PREFIX.sub("", path, count=1)
    return [token for token in _TOKEN_SPLIT.split(clean) if token]


def _lookup_field(record: Any, token: str) -> Any:
    if isinstance(record, BaseModel):
        if token in type(record).model_fields:
            return getattr(record, token)
        for name, info in type(record).model_fields.items():
            if info.alias == token:
                return getattr(record, name)
        return None
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return getattr(record, token, None)
    return None


def _step(current: Any, token: str) -> Any:
    if isinstance(current, dict):
        return current.get(token)
    if isinstance(current, list | tuple):
        if not token.isdigit():
            return None
        index = int(token)
        return current[index] if index < len(current) else None
    return _lookup_field(current, token)


def get_value_at_path(value: Any, path: str | None = None) -> Any:
    """Extract the sub-value of ``value`` addressed by ``path``.

    Mapping keys and record fields are looked up by name, numeric tokens
    index into lists and tuples. Walking into None, a scalar, a missing key
    or an out-of-range index yields None rather than raising.

    Args:
        value: Resolved fact value
        path: Path such as ``$.items[0].name``; None or empty returns value

    Returns:
        The addressed sub-value, or None when it is absent

    Examples:
        >>> get_value_at_path({"items": [{"name": "first"}]}, "$.items[0].name")
        'first'
        >>> get_value_at_path({"items": []}, "$.items[3].name") is None
        True
    """
    if not path:
        return value

    tokens = split_path(path)
    if not tokens:
        return value

    current = value
    for token in tokens:
        if current is None:
            return None
        current = _step(current, token)
    return current


def iter_fact_conditions(conditions: Condition | None) -> Iterator[FactCondition]:
    """Yield every leaf condition of a tree in document order."""
    if conditions is None:
        return
    if isinstance(conditions, FactCondition):
        yield conditions
    elif isinstance(conditions, AllCondition):
        for child in conditions.all:
            yield from iter_fact_conditions(child)
    elif isinstance(conditions, AnyCondition):
        for child in conditions.any:
            yield from iter_fact_conditions(child)
    elif isinstance(conditions, NotCondition):
        yield from iter_fact_conditions(conditions.not_)


def collect_facts_used(conditions: Condition | None) -> set[str]:
    """Return the names of all facts referenced by a condition tree."""
    return {leaf.fact for leaf in iter_fact_conditions(conditions)}


def collect_operators_used(conditions: Condition | None) -> set[str]:
    """Return the names of all operators referenced by a condition tree."""
    return {leaf.operator for leaf in iter_fact_conditions(conditions)}
