"""Explicit embedded Runge-Kutta integrators."""

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray

from nordsieck.core.method import ButcherTableau, StageType
from nordsieck.core.problem import ExpandableODE
from nordsieck.methods.runge_kutta import bogacki_shampine32, dormand_prince54
from nordsieck.solvers.adaptive import AdaptiveStepsizeIntegrator
from nordsieck.stepping.interpolator import HermiteStepInterpolator

logger = logging.getLogger(__name__)


class EmbeddedRungeKuttaIntegrator(AdaptiveStepsizeIntegrator):
    """Adaptive explicit Runge-Kutta integrator over an embedded pair.

    Dense output is a cubic Hermite interpolant between step ends. For
    FSAL tableaux the last stage is reused as the first stage of the
    next step.
    """

    def __init__(
        self,
        name: str,
        tableau: ButcherTableau,
        min_step: float,
        max_step: float,
        absolute_tolerance: ArrayLike = 1e-6,
        relative_tolerance: ArrayLike = 1e-6,
    ):
        if tableau.stage_type != StageType.EXPLICIT:
            raise ValueError(f"{name} needs an explicit tableau")
        super().__init__(
            name, min_step, max_step, absolute_tolerance, relative_tolerance
        )
        self.tableau = tableau
        self.exp = -1.0 / tableau.order
        self.safety = 0.9
        self.min_reduction = 0.2
        self.max_growth = 10.0

    @property
    def order(self) -> int:
        return self.tableau.order

    def estimate_error(
        self, y_dot_k: NDArray, y0: NDArray, y1: NDArray, h: float
    ) -> float:
        """RMS of the local error over the primary components, in tolerance units."""
        main = self.main_set_dimension
        err = h * (self.tableau.e @ y_dot_k[:, :main])
        y_scale = np.maximum(np.abs(y0[:main]), np.abs(y1[:main]))
        ratio = err / self.tolerance(y_scale)
        return float(np.sqrt(np.mean(ratio * ratio)))

    def compute_step_grow_shrink_factor(self, error: float) -> float:
        if error == 0:
            return self.max_growth
        return min(self.max_growth, max(self.min_reduction, self.safety * error ** self.exp))

    def _attempt_step(self, t0: float, y: NDArray, y_dot: NDArray, h: float):
        tab = self.tableau
        y_dot_k = np.empty((tab.s, y.shape[0]), dtype=y.dtype)
        y_dot_k[0] = y_dot
        for k in range(1, tab.s):
            y_tmp = y + h * (tab.A[k, :k] @ y_dot_k[:k])
            y_dot_k[k] = self.compute_derivatives(t0 + tab.c[k] * h, y_tmp)
        y_new = y + h * (tab.b @ y_dot_k)
        return y_new, y_dot_k

    def integrate(self, equations: ExpandableODE, t: float) -> NDArray:
        self.sanity_checks(equations, t)
        self.equations = equations
        forward = t > equations.time

        y0 = equations.complete_state
        y = y0.copy()

        interpolator = HermiteStepInterpolator(
            forward, equations.primary_mapper, equations.secondary_mappers
        )
        interpolator.store_time(equations.time)

        self.step_start = equations.time
        self.init_integration(equations.time, y0, t)

        y_dot = self.compute_derivatives(self.step_start, y)
        scale = self.tolerance(np.abs(y[: self.main_set_dimension]))
        h_new = self.initialize_step(
            forward, self.order, scale, self.step_start, y, y_dot
        )

        while not self.is_last_step:
            interpolator.shift()

            error = 10.0
            while error >= 1.0:
                self.step_size = h_new
                if forward:
                    if self.step_start + self.step_size >= t:
                        self.step_size = t - self.step_start
                elif self.step_start + self.step_size <= t:
                    self.step_size = t - self.step_start

                y_new, y_dot_k = self._attempt_step(
                    self.step_start, y, y_dot, self.step_size
                )
                error = self.estimate_error(y_dot_k, y, y_new, self.step_size)
                if error >= 1.0:
                    factor = self.compute_step_grow_shrink_factor(error)
                    h_new = self.filter_step(self.step_size * factor, forward, False)
                    logger.debug(
                        "%s: step %r rejected at t=%r (error %.3g)",
                        self.name, self.step_size, self.step_start, error,
                    )

            step_end = self.step_start + self.step_size
            if self.tableau.fsal:
                y_dot_new = y_dot_k[-1].copy()
            else:
                y_dot_new = self.compute_derivatives(step_end, y_new)

            interpolator.store_time(step_end)
            interpolator.reinitialize(y, y_dot, y_new, y_dot_new)
            y = y_new
            y_dot = y_dot_new
            self.step_start = self.accept_step(interpolator, y, y_dot, t)

            if not self.is_last_step:
                interpolator.store_time(self.step_start)

                factor = self.compute_step_grow_shrink_factor(error)
                scaled_h = self.step_size * factor
                next_t = self.step_start + scaled_h
                next_is_last = next_t >= t if forward else next_t <= t
                h_new = self.filter_step(scaled_h, forward, next_is_last)

                filtered_next_t = self.step_start + h_new
                filtered_next_is_last = (
                    filtered_next_t >= t if forward else filtered_next_t <= t
                )
                if filtered_next_is_last:
                    h_new = t - self.step_start

        equations.time = self.step_start
        equations.complete_state = y
        self.reset_internal_state()
        return y.copy()


class DormandPrince54Integrator(EmbeddedRungeKuttaIntegrator):
    """Dormand-Prince 5(4), the default multistep starter."""

    def __init__(self, min_step, max_step, absolute_tolerance=1e-6, relative_tolerance=1e-6):
        super().__init__(
            "Dormand-Prince 5(4)", dormand_prince54(),
            min_step, max_step, absolute_tolerance, relative_tolerance,
        )


class BogackiShampine32Integrator(EmbeddedRungeKuttaIntegrator):
    """Bogacki-Shampine 3(2)."""

    def __init__(self, min_step, max_step, absolute_tolerance=1e-6, relative_tolerance=1e-6):
        super().__init__(
            "Bogacki-Shampine 3(2)", bogacki_shampine32(),
            min_step, max_step, absolute_tolerance, relative_tolerance,
        )
