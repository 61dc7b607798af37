"""Simulation result models.

These models are the serialization boundary toward report and UI
consumers. Attribute names are snake_case; ``model_dump(by_alias=True)``
produces the camelCase wire shape (``factName``, ``finalResult``, ...).
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rulesim.rules.schema import RuleEvent  # noqa: TC001 - pydantic field type

_RESULT_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class FinalResult(str, Enum):
    """Outcome of a simulation run."""

    TRIGGERED = "triggered"
    NOT_TRIGGERED = "not-triggered"
    ERROR = "error"


class SimulationOptions(BaseModel):
    """Per-call simulation options.

    Attributes:
        verbose: Keep unknown-fact/operator gaps and fault errors from
            turning the run into an error outcome
        timeout: Seconds a caller-side wrapper should allow (not enforced
            by the engine)
        skip_ast: Hint to facts that AST generation can be skipped
    """

    model_config = _RESULT_CONFIG

    verbose: bool = False
    timeout: Annotated[float | None, Field(gt=0)] = None
    skip_ast: bool = False


class ConditionResult(BaseModel):
    """Result of evaluating one leaf condition.

    Attributes:
        path: Structural position in the rule, e.g. ["conditions", "all", "0"]
        fact_name: Fact the condition reads
        fact_value: Fact value after path extraction
        operator: Operator name
        compare_value: Comparison operand from the rule
        result: Boolean outcome (already inverted under a ``not`` node)
        error: Resolution or operator error, if any
        duration: Evaluation time in milliseconds
        json_path: Path expression applied to the fact value
        params: Parameters passed to the fact
    """

    model_config = _RESULT_CONFIG

    path: list[str]
    fact_name: str
    fact_value: Any = None
    operator: str
    compare_value: Any = None
    result: bool
    error: str | None = None
    duration: float = 0.0
    json_path: str | None = None
    params: dict[str, Any] | None = None

    @property
    def path_key(self) -> tuple[str, ...]:
        """Hashable form of ``path``."""
        return tuple(self.path)

    def inverted(self) -> ConditionResult:
        """Return a copy with ``result`` negated."""
        return self.model_copy(update={"result": not self.result})


class SimulationResult(BaseModel):
    """Outcome of one simulation run.

    Attributes:
        success: Whether the run completed without an evaluation fault
        file_name: Target file, or GLOBAL for project-wide runs
        timestamp: When the run finished (UTC)
        duration: Total run time in milliseconds
        condition_results: One entry per leaf, in document order
        final_result: triggered, not-triggered or error
        event: The rule's event when triggered
        error: Run-level error message
    """

    model_config = _RESULT_CONFIG

    success: bool
    file_name: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    duration: float = 0.0
    condition_results: list[ConditionResult] = Field(default_factory=list)
    final_result: FinalResult
    event: RuleEvent | None = None
    error: str | None = None

    @property
    def triggered(self) -> bool:
        """Check if the rule fired."""
        return self.final_result == FinalResult.TRIGGERED

    @property
    def failed_conditions(self) -> list[ConditionResult]:
        """Leaf results whose outcome is false."""
        return [r for r in self.condition_results if not r.result]

    @property
    def errored_conditions(self) -> list[ConditionResult]:
        """Leaf results carrying an error."""
        return [r for r in self.condition_results if r.error]
