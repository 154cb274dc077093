"""Dense output over the last accepted step."""

import copy
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from nordsieck.core.problem import EquationsMapper


def rescale_nordsieck(
    scaled: NDArray, high_order: NDArray, ratio: float
) -> None:
    """Rescale a Nordsieck vector in place for a step size changed by ``ratio``.

    Row i of the high order block carries h^(i+2), the scaled derivative h.
    """
    scaled *= ratio
    power = ratio
    for row in high_order:
        power = power * ratio
        row *= power


class StepInterpolator(ABC):
    """Interpolates the complete state inside the last step.

    The global previous/current times delimit the step actually computed.
    The soft times can be narrowed by the event machinery so that step
    handlers only see the part of the step before an event.
    """

    def __init__(
        self,
        forward: bool,
        primary_mapper: EquationsMapper,
        secondary_mappers: Sequence[EquationsMapper] = (),
    ):
        self.forward = forward
        self.primary_mapper = primary_mapper
        self.secondary_mappers = list(secondary_mappers)
        self.global_previous_time = np.nan
        self.global_current_time = np.nan
        self.soft_previous_time = np.nan
        self.soft_current_time = np.nan
        self.interpolated_time = np.nan
        self._cache: Optional[tuple[NDArray, NDArray]] = None

    @property
    def h(self) -> float:
        """Signed span of the global step."""
        return self.global_current_time - self.global_previous_time

    def store_time(self, t: float) -> None:
        """Set the end of the current step."""
        self.global_current_time = t
        self.soft_current_time = t
        self._cache = None

    def shift(self) -> None:
        """Start a new step where the previous one ended."""
        self.global_previous_time = self.global_current_time
        self.soft_previous_time = self.global_current_time
        self._cache = None

    def set_soft_previous_time(self, t: float) -> None:
        self.soft_previous_time = t

    def set_soft_current_time(self, t: float) -> None:
        self.soft_current_time = t

    def set_interpolated_time(self, t: float) -> None:
        if t != self.interpolated_time:
            self._cache = None
        self.interpolated_time = t

    def _evaluate(self) -> tuple[NDArray, NDArray]:
        if self._cache is None:
            self._cache = self.compute_interpolated(self.interpolated_time)
        return self._cache

    @abstractmethod
    def compute_interpolated(self, t: float) -> tuple[NDArray, NDArray]:
        """Complete state and derivative at time t."""
        ...

    @property
    def interpolated_state(self) -> NDArray:
        return self._evaluate()[0].copy()

    @property
    def interpolated_derivatives(self) -> NDArray:
        return self._evaluate()[1].copy()

    @property
    def interpolated_primary_state(self) -> NDArray:
        return self.primary_mapper.extract(self._evaluate()[0])

    @property
    def interpolated_primary_derivatives(self) -> NDArray:
        return self.primary_mapper.extract(self._evaluate()[1])

    def interpolated_secondary_state(self, index: int) -> NDArray:
        return self.secondary_mappers[index].extract(self._evaluate()[0])

    def interpolated_secondary_derivatives(self, index: int) -> NDArray:
        return self.secondary_mappers[index].extract(self._evaluate()[1])

    def copy(self) -> "StepInterpolator":
        """Independent copy, safe to keep after the integrator moves on."""
        return copy.deepcopy(self)


class NordsieckStepInterpolator(StepInterpolator):
    """Taylor expansion around a Nordsieck vector.

    The interpolator owns copies of the reference state, the scaled first
    derivative and the high order block; the integrator's arrays are never
    aliased.
    """

    def __init__(self, forward, primary_mapper, secondary_mappers=()):
        super().__init__(forward, primary_mapper, secondary_mappers)
        self.reference_time = np.nan
        self.scaling_h = np.nan
        self.reference_state: Optional[NDArray] = None
        self.scaled: Optional[NDArray] = None
        self.nordsieck: Optional[NDArray] = None

    def reinitialize(
        self,
        time: float,
        step_size: float,
        state: NDArray,
        scaled: NDArray,
        nordsieck: NDArray,
    ) -> None:
        """
        Load the Nordsieck vector the expansion is built on.

        Args:
            time: Reference time of the vector
            step_size: Step size the vector is scaled with
            state: State at the reference time
            scaled: h times the first derivative at the reference time
            nordsieck: (k-1, n) high order block
        """
        self.reference_time = time
        self.scaling_h = step_size
        self.reference_state = np.array(state, copy=True)
        self.scaled = np.array(scaled, copy=True)
        self.nordsieck = np.array(nordsieck, copy=True)
        self._cache = None

    def rescale(self, step_size: float) -> None:
        """Rescale the owned Nordsieck vector to a new step size."""
        rescale_nordsieck(self.scaled, self.nordsieck, step_size / self.scaling_h)
        self.scaling_h = step_size
        self._cache = None

    def compute_interpolated(self, t):
        x = t - self.reference_time
        normalized = x / self.scaling_h

        state = self.reference_state + self.scaled * normalized
        derivative = self.scaled.copy()
        power = normalized
        for i, row in enumerate(self.nordsieck):
            # power == normalized^(i+1)
            derivative = derivative + (i + 2) * row * power
            power = power * normalized
            state = state + row * power
        return state, derivative / self.scaling_h


class HermiteStepInterpolator(StepInterpolator):
    """Cubic Hermite interpolation from both step ends.

    Third order accurate inside the step, which is what the Runge-Kutta
    starters need for event location and output.
    """

    def __init__(self, forward, primary_mapper, secondary_mappers=()):
        super().__init__(forward, primary_mapper, secondary_mappers)
        self.y0: Optional[NDArray] = None
        self.f0: Optional[NDArray] = None
        self.y1: Optional[NDArray] = None
        self.f1: Optional[NDArray] = None

    def reinitialize(self, y0, f0, y1, f1) -> None:
        """States and derivatives at the global previous and current times."""
        self.y0 = np.array(y0, copy=True)
        self.f0 = np.array(f0, copy=True)
        self.y1 = np.array(y1, copy=True)
        self.f1 = np.array(f1, copy=True)
        self._cache = None

    def compute_interpolated(self, t):
        h = self.h
        if h == 0:
            return self.y1.copy(), self.f1.copy()
        theta = (t - self.global_previous_time) / h
        theta2 = theta * theta
        theta3 = theta2 * theta

        h00 = 2 * theta3 - 3 * theta2 + 1
        h10 = theta3 - 2 * theta2 + theta
        h01 = -2 * theta3 + 3 * theta2
        h11 = theta3 - theta2
        state = h00 * self.y0 + h10 * h * self.f0 + h01 * self.y1 + h11 * h * self.f1

        d00 = (6 * theta2 - 6 * theta) / h
        d10 = 3 * theta2 - 4 * theta + 1
        d11 = 3 * theta2 - 2 * theta
        derivative = d00 * (self.y0 - self.y1) + d10 * self.f0 + d11 * self.f1
        return state, derivative
