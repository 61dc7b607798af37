"""Rule models and condition evaluation."""

from rulesim.rules.context import (
    GLOBAL_TARGET,
    EvaluationContext,
    FileData,
    ProjectData,
    make_file_data,
)
from rulesim.rules.evaluator import (
    are_conditions_met,
    evaluate_condition,
    evaluate_conditions,
)
from rulesim.rules.facts import FactResolution, resolve_fact
from rulesim.rules.operators import BUILTIN_OPERATORS, dispatch_operator
from rulesim.rules.paths import (
    collect_facts_used,
    collect_operators_used,
    get_value_at_path,
)
from rulesim.rules.results import (
    ConditionResult,
    FinalResult,
    SimulationOptions,
    SimulationResult,
)
from rulesim.rules.schema import (
    AllCondition,
    AnyCondition,
    Condition,
    EventLevel,
    FactCondition,
    InvalidCondition,
    NotCondition,
    RuleDefinition,
    RuleEvent,
)

__all__ = [
    "BUILTIN_OPERATORS",
    "GLOBAL_TARGET",
    "AllCondition",
    "AnyCondition",
    "Condition",
    "ConditionResult",
    "EvaluationContext",
    "EventLevel",
    "FactCondition",
    "FactResolution",
    "FileData",
    "FinalResult",
    "InvalidCondition",
    "NotCondition",
    "ProjectData",
    "RuleDefinition",
    "RuleEvent",
    "SimulationOptions",
    "SimulationResult",
    "are_conditions_met",
    "collect_facts_used",
    "collect_operators_used",
    "dispatch_operator",
    "evaluate_condition",
    "evaluate_conditions",
    "get_value_at_path",
    "make_file_data",
    "resolve_fact",
]
