"""Core abstractions: problems, tableaux, errors and configuration."""

from nordsieck.core.config import EventConfig, StepControl
from nordsieck.core.counter import EvaluationCounter
from nordsieck.core.exceptions import (
    DimensionMismatchError,
    IntegrationError,
    MaxCountExceededError,
    NoBracketingError,
    NumberTooSmallError,
    StarterStoppedEarlyError,
    StepSizeTooSmallError,
)
from nordsieck.core.method import ButcherTableau, StageType
from nordsieck.core.problem import (
    EquationsMapper,
    ExpandableODE,
    FirstOrderProblem,
    FunctionProblem,
    SecondaryEquations,
)

__all__ = [
    "EventConfig",
    "StepControl",
    "EvaluationCounter",
    "DimensionMismatchError",
    "IntegrationError",
    "MaxCountExceededError",
    "NoBracketingError",
    "NumberTooSmallError",
    "StarterStoppedEarlyError",
    "StepSizeTooSmallError",
    "ButcherTableau",
    "StageType",
    "EquationsMapper",
    "ExpandableODE",
    "FirstOrderProblem",
    "FunctionProblem",
    "SecondaryEquations",
]
