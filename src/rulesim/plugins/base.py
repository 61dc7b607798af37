"""Function-backed fact and operator implementations.

Most facts and operators are a single function; these wrappers give such
functions the ``name`` plus ``calculate``/``evaluate`` shape the registry
expects.

Example:
    >>> async def version(params, context):
    ...     return context.project.manifest.get("version")
    >>> plugin = Plugin(facts=[FunctionFact("projectVersion", version)])
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from rulesim.rules.context import EvaluationContext


@dataclass(frozen=True)
class FunctionFact:
    """Fact whose value is computed by ``fn(params, context)``.

    ``fn`` may be a coroutine function or a plain function.
    """

    name: str
    fn: Callable[[dict[str, Any] | None, EvaluationContext], Any]
    description: str = ""

    async def calculate(
        self, params: dict[str, Any] | None, context: EvaluationContext
    ) -> Any:
        value = self.fn(params, context)
        if inspect.isawaitable(value):
            value = await value
        return value


@dataclass(frozen=True)
class FunctionOperator:
    """Operator backed by ``fn(fact_value, compare_value)``."""

    name: str
    fn: Callable[[Any, Any], Any]
    description: str = ""

    def evaluate(self, fact_value: Any, compare_value: Any) -> Any:
        return self.fn(fact_value, compare_value)
