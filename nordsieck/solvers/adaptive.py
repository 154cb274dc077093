"""Step size control shared by the adaptive integrators."""

import logging
import math

import numpy as np
from numpy.typing import ArrayLike, NDArray

from nordsieck.core.config import StepControl
from nordsieck.core.exceptions import DimensionMismatchError, StepSizeTooSmallError
from nordsieck.core.problem import ExpandableODE
from nordsieck.solvers.base import AbstractIntegrator

logger = logging.getLogger(__name__)


class AdaptiveStepsizeIntegrator(AbstractIntegrator):
    """Integrator whose step size is driven by a local error estimate.

    The error on each primary component i is compared to
    ``abs_tol[i] + rel_tol[i] * |y[i]|``; secondary components are not
    controlled.

    Args:
        name: Method name
        min_step: Minimal step magnitude
        max_step: Maximal step magnitude
        absolute_tolerance: Scalar or one entry per primary component
        relative_tolerance: Scalar or one entry per primary component
    """

    def __init__(
        self,
        name: str,
        min_step: float,
        max_step: float,
        absolute_tolerance: ArrayLike,
        relative_tolerance: ArrayLike,
    ):
        super().__init__(name)
        self.main_set_dimension = 0
        self.set_step_size_control(
            min_step, max_step, absolute_tolerance, relative_tolerance
        )
        self.reset_internal_state()

    def set_step_size_control(
        self,
        min_step: float,
        max_step: float,
        absolute_tolerance: ArrayLike,
        relative_tolerance: ArrayLike,
    ) -> None:
        self.min_step = abs(min_step)
        self.max_step = abs(max_step)
        self.initial_step = -1.0

        if np.ndim(absolute_tolerance) == 0 and np.ndim(relative_tolerance) == 0:
            self.scal_absolute_tolerance = float(absolute_tolerance)
            self.scal_relative_tolerance = float(relative_tolerance)
            self.vec_absolute_tolerance = None
            self.vec_relative_tolerance = None
        else:
            abs_tol, rel_tol = np.broadcast_arrays(
                np.asarray(absolute_tolerance, dtype=float),
                np.asarray(relative_tolerance, dtype=float),
            )
            self.scal_absolute_tolerance = 0.0
            self.scal_relative_tolerance = 0.0
            self.vec_absolute_tolerance = abs_tol.copy()
            self.vec_relative_tolerance = rel_tol.copy()

    @property
    def step_control(self) -> StepControl:
        """Current bounds and tolerances, e.g. to configure a companion integrator."""
        if self.vec_absolute_tolerance is None:
            return StepControl(
                self.min_step, self.max_step,
                self.scal_absolute_tolerance, self.scal_relative_tolerance,
            )
        return StepControl(
            self.min_step, self.max_step,
            self.vec_absolute_tolerance.copy(), self.vec_relative_tolerance.copy(),
        )

    def set_initial_step_size(self, initial_step_size: float) -> None:
        """User supplied first step; ignored if outside [min_step, max_step]."""
        if initial_step_size < self.min_step or initial_step_size > self.max_step:
            self.initial_step = -1.0
        else:
            self.initial_step = initial_step_size

    def sanity_checks(self, equations: ExpandableODE, t: float) -> None:
        super().sanity_checks(equations, t)
        self.main_set_dimension = equations.primary_mapper.dimension
        if self.vec_absolute_tolerance is not None:
            if self.vec_absolute_tolerance.shape[0] != self.main_set_dimension:
                raise DimensionMismatchError(
                    self.vec_absolute_tolerance.shape[0], self.main_set_dimension
                )

    def tolerance(self, y_scale: NDArray) -> NDArray:
        """Allowed error for each primary component at magnitude ``y_scale``."""
        if self.vec_absolute_tolerance is None:
            return self.scal_absolute_tolerance + self.scal_relative_tolerance * y_scale
        return self.vec_absolute_tolerance + self.vec_relative_tolerance * y_scale

    def initialize_step(
        self,
        forward: bool,
        order: int,
        scale: NDArray,
        t0: float,
        y0: NDArray,
        y_dot0: NDArray,
    ) -> float:
        """
        Guess the first step size.

        The step is chosen so that h^order * max(||y'/tol||, ||y''/tol||)
        is about 0.01, with y'' estimated from an explicit Euler trial
        step (one derivative evaluation at t0 + h).

        Args:
            forward: Integration direction
            order: Order of the method
            scale: Tolerance of each primary component at y0
            t0: Start time
            y0: Complete state at t0
            y_dot0: Complete derivative at t0

        Returns:
            Signed first step
        """
        if self.initial_step > 0:
            return self.initial_step if forward else -self.initial_step

        main = self.main_set_dimension
        y_on_scale2 = float(np.sum((y0[:main] / scale) ** 2))
        y_dot_on_scale2 = float(np.sum((y_dot0[:main] / scale) ** 2))
        if y_on_scale2 < 1.0e-10 or y_dot_on_scale2 < 1.0e-10:
            h = 1.0e-6
        else:
            h = 0.01 * math.sqrt(y_on_scale2 / y_dot_on_scale2)
        if not forward:
            h = -h

        # explicit Euler trial step
        y1 = y0 + h * y_dot0
        y_dot1 = self.compute_derivatives(t0 + h, y1)
        y_ddot_on_scale = math.sqrt(
            float(np.sum(((y_dot1[:main] - y_dot0[:main]) / scale) ** 2))
        ) / abs(h)

        max_inv2 = max(math.sqrt(y_dot_on_scale2), y_ddot_on_scale)
        if max_inv2 < 1.0e-15:
            h1 = max(1.0e-6, 0.001 * abs(h))
        else:
            h1 = (0.01 / max_inv2) ** (1.0 / order)
        h = min(100.0 * abs(h), h1)
        # keep t0 + h distinguishable from t0
        h = max(h, 1.0e-12 * abs(t0))
        h = min(max(h, self.min_step), self.max_step)
        logger.debug("%s: initial step %r", self.name, h)
        return h if forward else -h

    def filter_step(self, h: float, forward: bool, accept_small: bool) -> float:
        """
        Bound a proposed step to [min_step, max_step] in magnitude.

        Args:
            h: Proposed signed step
            forward: Integration direction
            accept_small: Whether a step below min_step is raised to
                min_step (e.g. for the last step) instead of failing

        Returns:
            Filtered signed step
        """
        filtered = h
        if abs(h) < self.min_step:
            if accept_small:
                filtered = self.min_step if forward else -self.min_step
            else:
                raise StepSizeTooSmallError(h, self.min_step)
        if filtered > self.max_step:
            filtered = self.max_step
        elif filtered < -self.max_step:
            filtered = -self.max_step
        return filtered

    def reset_internal_state(self) -> None:
        self.step_start = np.nan
        self.step_size = math.sqrt(self.min_step * self.max_step)
