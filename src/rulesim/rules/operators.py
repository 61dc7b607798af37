"""Operator table for leaf conditions.

Built-in operators are pure, total predicates over ``(fact_value,
compare_value)``: operands of the wrong type make them return False
instead of raising. Names that are not built in are looked up in the
plugin registry. Dispatch never raises; unknown operators and operator
faults are reported through ``OperatorOutcome.error``.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from rulesim.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)

UNKNOWN_OPERATOR_PREFIX = "Unknown operator"


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, list | tuple)


def strict_equal(a: Any, b: Any) -> bool:
    """Equality that never treats a boolean as equal to a number."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _member(item: Any, sequence: list[Any] | tuple[Any, ...]) -> bool:
    return any(strict_equal(item, candidate) for candidate in sequence)


def _less_than(a: Any, b: Any) -> bool:
    return _is_number(a) and _is_number(b) and a < b


def _less_than_inclusive(a: Any, b: Any) -> bool:
    return _is_number(a) and _is_number(b) and a <= b


def _greater_than(a: Any, b: Any) -> bool:
    return _is_number(a) and _is_number(b) and a > b


def _greater_than_inclusive(a: Any, b: Any) -> bool:
    return _is_number(a) and _is_number(b) and a >= b


def _in(a: Any, b: Any) -> bool:
    return _is_sequence(b) and _member(a, b)


def _not_in(a: Any, b: Any) -> bool:
    return _is_sequence(b) and not _member(a, b)


def _contains(a: Any, b: Any) -> bool:
    if isinstance(a, str):
        return isinstance(b, str) and b in a
    if _is_sequence(a):
        return _member(b, a)
    return False


def _does_not_contain(a: Any, b: Any) -> bool:
    if isinstance(a, str):
        return isinstance(b, str) and b not in a
    if _is_sequence(a):
        return not _member(b, a)
    return False


BUILTIN_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equal": strict_equal,
    "notEqual": lambda a, b: not strict_equal(a, b),
    "lessThan": _less_than,
    "lessThanInclusive": _less_than_inclusive,
    "greaterThan": _greater_than,
    "greaterThanInclusive": _greater_than_inclusive,
    "in": _in,
    "notIn": _not_in,
    "contains": _contains,
    "doesNotContain": _does_not_contain,
}


def is_builtin_operator(name: str) -> bool:
    """Check if ``name`` is one of the built-in operators."""
    return name in BUILTIN_OPERATORS


@dataclass(frozen=True)
class OperatorOutcome:
    """Result of applying an operator."""

    result: bool
    error: str | None = None


async def dispatch_operator(
    name: str,
    fact_value: Any,
    compare_value: Any,
    registry: PluginRegistry,
) -> OperatorOutcome:
    """Apply operator ``name`` to ``(fact_value, compare_value)``.

    Built-in operators take precedence over registry operators of the same
    name. Custom operators may be synchronous or return an awaitable.

    Args:
        name: Operator name
        fact_value: Left operand (fact value after path extraction)
        compare_value: Right operand from the condition
        registry: Registry consulted for non-built-in operators

    Returns:
        OperatorOutcome with the boolean result and any error message
    """
    builtin = BUILTIN_OPERATORS.get(name)
    if builtin is not None:
        try:
            return OperatorOutcome(result=bool(builtin(fact_value, compare_value)))
        except Exception as e:
            logger.warning("Built-in operator '%s' failed: %s", name, e)
            return OperatorOutcome(result=False, error=str(e) or type(e).__name__)

    operator = registry.get_operator(name)
    if operator is None:
        return OperatorOutcome(
            result=False,
            error=(
                f"{UNKNOWN_OPERATOR_PREFIX}: {name}. "
                "This operator is not provided by any registered plugin."
            ),
        )

    try:
        outcome = operator.evaluate(fact_value, compare_value)
        if inspect.isawaitable(outcome):
            outcome = await outcome
    except Exception as e:
        logger.warning("Operator '%s' failed: %s", name, e)
        return OperatorOutcome(result=False, error=str(e) or type(e).__name__)

    logger.debug("Operator '%s' returned %s", name, outcome)
    return OperatorOutcome(result=bool(outcome))
