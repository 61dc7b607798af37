"""Rule simulation against project data."""

from rulesim.simulation.engine import (
    InvalidRuleError,
    SimulationEngine,
    coerce_rule,
    has_evaluation_faults,
)

__all__ = [
    "InvalidRuleError",
    "SimulationEngine",
    "coerce_rule",
    "has_evaluation_faults",
]
