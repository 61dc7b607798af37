"""Condition tree evaluation.

Two passes over the same condition tree:

- ``evaluate_conditions`` is the diagnostic pass. It evaluates every leaf
  in document order, with no short-circuiting under ``all`` or ``any``,
  and returns a flat list of ConditionResult keyed by structural path.
  Under a ``not`` node each produced leaf result is inverted.
- ``are_conditions_met`` recomputes the trigger decision from the tree
  structure, reading leaf outcomes from that list by path and
  short-circuiting ``all``/``any``. A ``not`` node negates the aggregate
  of its child.

For a ``not`` over a single leaf both views agree. For a ``not`` over a
group they do not: the aggregate is the negation of a group whose leaves
were already inverted (``not {all: [a, b]}`` aggregates to ``a or b``).
This is the rule-builder's established behaviour and is kept as is.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from rulesim.rules.facts import resolve_fact
from rulesim.rules.operators import dispatch_operator
from rulesim.rules.paths import get_value_at_path
from rulesim.rules.results import ConditionResult
from rulesim.rules.schema import AllCondition, AnyCondition, FactCondition, NotCondition

if TYPE_CHECKING:
    from rulesim.plugins.registry import PluginRegistry
    from rulesim.rules.context import EvaluationContext
    from rulesim.rules.schema import Condition

logger = logging.getLogger(__name__)

ROOT_PATH: tuple[str, ...] = ("conditions",)


async def evaluate_condition(
    condition: FactCondition,
    path: list[str],
    context: EvaluationContext,
    registry: PluginRegistry,
) -> ConditionResult:
    """Evaluate a single leaf condition.

    Never raises: fact failures, operator failures and unexpected errors
    all produce a result with ``result=False`` and ``error`` set.

    Args:
        condition: Leaf condition
        path: Structural path of the leaf
        context: Per-run evaluation context
        registry: Plugin registry

    Returns:
        ConditionResult for this leaf
    """
    start = time.perf_counter()

    try:
        resolution = await resolve_fact(
            condition.fact, condition.params, context, registry
        )

        if not resolution.success:
            return ConditionResult(
                path=path,
                fact_name=condition.fact,
                fact_value=None,
                operator=condition.operator,
                compare_value=condition.value,
                result=False,
                error=resolution.error,
                duration=resolution.duration,
                params=condition.params,
            )

        fact_value = resolution.value
        if condition.path:
            fact_value = get_value_at_path(fact_value, condition.path)

        outcome = await dispatch_operator(
            condition.operator, fact_value, condition.value, registry
        )

        return ConditionResult(
            path=path,
            fact_name=condition.fact,
            fact_value=fact_value,
            operator=condition.operator,
            compare_value=condition.value,
            result=outcome.result,
            error=outcome.error,
            duration=(time.perf_counter() - start) * 1000,
            json_path=condition.path,
            params=condition.params,
        )
    except Exception as e:
        logger.exception("Unexpected error evaluating condition at %s", ".".join(path))
        return ConditionResult(
            path=path,
            fact_name=condition.fact,
            fact_value=None,
            operator=condition.operator,
            compare_value=condition.value,
            result=False,
            error=str(e) or type(e).__name__,
            duration=(time.perf_counter() - start) * 1000,
            params=condition.params,
        )


async def evaluate_conditions(
    conditions: Condition,
    path: list[str],
    context: EvaluationContext,
    registry: PluginRegistry,
) -> list[ConditionResult]:
    """Evaluate every leaf of a condition tree.

    Children are awaited one after another in document order. ``all`` and
    ``any`` children get paths ``[*path, "all"|"any", index]``; the child of
    a ``not`` gets ``[*path, "not"]`` and each of its leaf results is
    inverted.

    Args:
        conditions: Leaf or group to evaluate
        path: Structural path of ``conditions``
        context: Per-run evaluation context
        registry: Plugin registry

    Returns:
        Flat list of leaf results in document order
    """
    if isinstance(conditions, FactCondition):
        return [await evaluate_condition(conditions, path, context, registry)]

    results: list[ConditionResult] = []

    if isinstance(conditions, AllCondition | AnyCondition):
        key = "all" if isinstance(conditions, AllCondition) else "any"
        children = conditions.all if key == "all" else conditions.any
        for index, child in enumerate(children):
            child_path = [*path, key, str(index)]
            results.extend(await evaluate_conditions(child, child_path, context, registry))
        return results

    if isinstance(conditions, NotCondition):
        child_results = await evaluate_conditions(
            conditions.not_, [*path, "not"], context, registry
        )
        results.extend(result.inverted() for result in child_results)
        return results

    # InvalidCondition: skipped, no leaf results.
    logger.warning("Invalid condition structure at path: %s", ".".join(path))
    return results


def _build_result_map(results: list[ConditionResult]) -> dict[tuple[str, ...], bool]:
    return {result.path_key: result.result for result in results}


def _aggregate(
    conditions: Any,
    path: tuple[str, ...],
    result_map: dict[tuple[str, ...], bool],
) -> bool:
    if isinstance(conditions, FactCondition):
        return result_map.get(path, False)

    if isinstance(conditions, AllCondition):
        return all(
            _aggregate(child, (*path, "all", str(index)), result_map)
            for index, child in enumerate(conditions.all)
        )

    if isinstance(conditions, AnyCondition):
        return any(
            _aggregate(child, (*path, "any", str(index)), result_map)
            for index, child in enumerate(conditions.any)
        )

    if isinstance(conditions, NotCondition):
        return not _aggregate(conditions.not_, (*path, "not"), result_map)

    # InvalidCondition and anything unrecognized never hold.
    return False


def are_conditions_met(
    conditions: Condition,
    results: list[ConditionResult],
) -> bool:
    """Decide whether a rule's conditions hold, given the leaf results.

    ``all`` over no children is true and ``any`` over no children is false.
    Leaves missing from ``results`` count as false.

    Args:
        conditions: Root condition of the rule (at path ``["conditions"]``)
        results: Output of ``evaluate_conditions`` for the same tree

    Returns:
        True if the rule triggers
    """
    return _aggregate(conditions, ROOT_PATH, _build_result_map(results))
