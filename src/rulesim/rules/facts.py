"""Fact resolution with per-run memoization.

Resolution order for a fact name:
1. A value already cached in the run's context (zero duration)
2. The reserved ``fileData`` fact, answered from the bound target
3. The plugin registry; an unknown name is a reportable gap, a raising
   fact is captured into the error field
"""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from rulesim.rules.context import FILE_DATA_FACT

if TYPE_CHECKING:
    from rulesim.plugins.registry import PluginRegistry
    from rulesim.rules.context import EvaluationContext

logger = logging.getLogger(__name__)

UNKNOWN_FACT_PREFIX = "Unknown fact"


@dataclass(frozen=True)
class FactResolution:
    """Outcome of resolving one fact.

    Attributes:
        value: Resolved value (None on failure)
        success: Whether resolution succeeded
        error: Error message on failure
        duration: Resolution time in milliseconds
    """

    value: Any
    success: bool
    error: str | None = None
    duration: float = 0.0


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


async def resolve_fact(
    name: str,
    params: dict[str, Any] | None,
    context: EvaluationContext,
    registry: PluginRegistry,
) -> FactResolution:
    """Resolve fact ``name`` for the target bound in ``context``.

    Successful registry resolutions are cached in the context, so a fact
    referenced by several conditions is computed once per run. Failures are
    not cached.

    Args:
        name: Fact name
        params: Parameters passed to the fact's calculate()
        context: Per-run evaluation context
        registry: Registry holding fact implementations

    Returns:
        FactResolution describing the value or the failure
    """
    if context.has_runtime_fact(name):
        logger.debug("Fact '%s' served from run cache", name)
        return FactResolution(value=context.runtime_facts[name], success=True)

    start = time.perf_counter()

    if name == FILE_DATA_FACT:
        return FactResolution(
            value=context.current_file,
            success=True,
            duration=_elapsed_ms(start),
        )

    fact = registry.get_fact(name)
    if fact is None:
        return FactResolution(
            value=None,
            success=False,
            error=(
                f"{UNKNOWN_FACT_PREFIX}: {name}. "
                "This fact is not provided by any registered plugin."
            ),
            duration=_elapsed_ms(start),
        )

    try:
        value = fact.calculate(params, context)
        if inspect.isawaitable(value):
            value = await value
    except Exception as e:
        logger.warning("Error executing fact '%s' for %s: %s", name, context.target, e)
        return FactResolution(
            value=None,
            success=False,
            error=str(e) or type(e).__name__,
            duration=_elapsed_ms(start),
        )

    context.add_runtime_fact(name, value)
    duration = _elapsed_ms(start)
    logger.debug("Fact '%s' resolved in %.2fms", name, duration)
    return FactResolution(value=value, success=True, duration=duration)
