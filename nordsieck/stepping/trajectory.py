"""Dense output storage over a whole integration."""

import numpy as np
from numpy.typing import NDArray

from nordsieck.stepping.handlers import StepHandler
from nordsieck.stepping.interpolator import StepInterpolator


class ContinuousOutput(StepHandler):
    """Keeps a copy of every step interpolator for later evaluation."""

    def __init__(self):
        self.steps: list[StepInterpolator] = []
        self.forward = True

    def init(self, t0, y0, t):
        self.steps = []
        self.forward = t >= t0

    def handle_step(self, interpolator, is_last):
        self.steps.append(interpolator.copy())

    @property
    def N(self) -> int:
        """Number of stored steps."""
        return len(self.steps)

    @property
    def initial_time(self) -> float:
        return self.steps[0].soft_previous_time

    @property
    def final_time(self) -> float:
        return self.steps[-1].soft_current_time

    def _locate(self, t: float) -> StepInterpolator:
        if not self.steps:
            raise ValueError("no step stored")
        ends = np.array([step.soft_current_time for step in self.steps])
        if self.forward:
            index = np.searchsorted(ends, t, side="left")
        else:
            index = np.searchsorted(-ends, -t, side="left")
        return self.steps[min(index, len(self.steps) - 1)]

    def interpolate(self, t: float) -> tuple[NDArray, NDArray]:
        """Complete state and derivative at t, from the step covering t."""
        step = self._locate(t)
        step.set_interpolated_time(t)
        return step.interpolated_state, step.interpolated_derivatives
