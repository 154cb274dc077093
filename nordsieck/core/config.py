"""Configuration records shared by the integrators."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class EventConfig:
    """Settings for locating the roots of one switching function.

    Attributes:
        max_check_interval: Largest time span scanned without checking
            for a sign change of the switching function.
        convergence: Absolute time accuracy of the located event.
        max_iteration_count: Budget of root finder iterations per event.
    """

    max_check_interval: float = np.inf
    convergence: float = 1e-9
    max_iteration_count: int = 100

    def __post_init__(self):
        if not self.max_check_interval > 0:
            raise ValueError("max_check_interval must be positive")
        if not self.convergence > 0:
            raise ValueError("convergence must be positive")
        if self.max_iteration_count < 1:
            raise ValueError("max_iteration_count must be at least 1")


@dataclass(frozen=True)
class StepControl:
    """Step size bounds and tolerances of an adaptive integrator.

    Tolerances are either scalars or arrays over the primary state.
    """

    min_step: float
    max_step: float
    absolute_tolerance: object = 1e-6
    relative_tolerance: object = 1e-6

    @property
    def vector_tolerance(self) -> bool:
        return np.ndim(self.absolute_tolerance) > 0
