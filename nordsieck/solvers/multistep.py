"""Multistep integrators built on a Nordsieck vector."""

import logging
from abc import abstractmethod
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from nordsieck.algebra.transformer import (
    AdamsNordsieckTransformer,
    TransformerRegistry,
    default_registry,
)
from nordsieck.core.exceptions import NumberTooSmallError, StarterStoppedEarlyError
from nordsieck.core.problem import ExpandableODE
from nordsieck.solvers.adaptive import AdaptiveStepsizeIntegrator
from nordsieck.solvers.runge_kutta import DormandPrince54Integrator
from nordsieck.stepping.handlers import StepHandler
from nordsieck.stepping.interpolator import NordsieckStepInterpolator, rescale_nordsieck

logger = logging.getLogger(__name__)


class _InitializationCompleted(Exception):
    """Raised by the initializer once the starter produced enough points."""


class _NordsieckInitializer(StepHandler):
    """Collects the start point and the ends of the first starter steps."""

    def __init__(self, n_points: int):
        self.n_points = n_points
        self.count = 0
        self.t: list[float] = []
        self.y: list[NDArray] = []
        self.y_dot: list[NDArray] = []

    def _store(self, interpolator, t):
        interpolator.set_interpolated_time(t)
        self.t.append(t)
        self.y.append(interpolator.interpolated_state)
        self.y_dot.append(interpolator.interpolated_derivatives)

    def handle_step(self, interpolator, is_last):
        if self.count == 0:
            self._store(interpolator, interpolator.soft_previous_time)
        self.count += 1
        self._store(interpolator, interpolator.soft_current_time)
        if self.count == self.n_points - 1:
            raise _InitializationCompleted()


class MultistepIntegrator(AdaptiveStepsizeIntegrator):
    """Adaptive multistep integrator using the Nordsieck representation.

    The Nordsieck vector at step start is held in three parts: the state
    ``y``, the scaled first derivative ``scaled = h y'`` and the high order
    block ``nordsieck`` with ``n_steps - 1`` rows. ``step_size`` is always
    the h these are scaled with.

    A one-step starter integrator (Dormand-Prince 5(4) by default, with the
    same step bounds and tolerances) produces the first points, from which
    the initial Nordsieck vector is fitted. The same happens again after
    an event resets the state.
    """

    def __init__(
        self,
        name: str,
        n_steps: int,
        order: int,
        min_step: float,
        max_step: float,
        absolute_tolerance: ArrayLike,
        relative_tolerance: ArrayLike,
    ):
        super().__init__(
            name, min_step, max_step, absolute_tolerance, relative_tolerance
        )
        if n_steps < 1:
            raise NumberTooSmallError(n_steps, 1, what="number of steps")
        self.n_steps = n_steps
        self.order = order
        control = self.step_control
        self.starter = DormandPrince54Integrator(
            control.min_step, control.max_step,
            control.absolute_tolerance, control.relative_tolerance,
        )
        self.exp = -1.0 / order
        self.safety = 0.9
        self.min_reduction = 0.2
        self.max_growth = 2.0 ** (-self.exp)
        self.scaled: Optional[NDArray] = None
        self.nordsieck: Optional[NDArray] = None

    @property
    def starter_integrator(self) -> AdaptiveStepsizeIntegrator:
        return self.starter

    @starter_integrator.setter
    def starter_integrator(self, starter: AdaptiveStepsizeIntegrator) -> None:
        self.starter = starter

    @abstractmethod
    def initialize_high_order_derivatives(
        self, h: float, t: NDArray, y: NDArray, y_dot: NDArray
    ) -> NDArray:
        """Fit the high order block from the starter points."""
        ...

    def compute_step_grow_shrink_factor(self, error: float) -> float:
        """Step size ratio for a normalized error (1.0 is the tolerance)."""
        if error == 0:
            return self.max_growth
        return min(
            self.max_growth,
            max(self.min_reduction, self.safety * error ** self.exp),
        )

    def start(self, t0: float, y0: NDArray, t: float) -> None:
        """
        Build the Nordsieck vector at t0 by running the starter integrator.

        Sets ``step_start``, ``step_size``, ``scaled`` and ``nordsieck``.
        The starter's derivative evaluations count against this
        integrator's budget.

        Args:
            t0: Start time
            y0: Complete state at t0
            t: Target time, only used to orient the starter
        """
        starter = self.starter
        starter.clear_event_handlers()
        starter.clear_step_handlers()
        initializer = _NordsieckInitializer((self.n_steps + 3) // 2)
        starter.add_step_handler(initializer)
        if self.max_evaluations is None:
            starter.max_evaluations = None
        else:
            starter.max_evaluations = max(0, self.max_evaluations - self.evaluation_count)

        try:
            starter.integrate(self.equations.copy_at(t0, y0), t)
        except _InitializationCompleted:
            self.evaluations.increment(starter.evaluation_count)
        else:
            raise StarterStoppedEarlyError(initializer.count, initializer.n_points - 1)
        finally:
            starter.clear_step_handlers()

        times = np.array(initializer.t)
        self.step_start = initializer.t[0]
        self.step_size = (initializer.t[-1] - initializer.t[0]) / (len(times) - 1)
        self.scaled = initializer.y_dot[0] * self.step_size
        self.nordsieck = self.initialize_high_order_derivatives(
            self.step_size, times, np.array(initializer.y), np.array(initializer.y_dot)
        )
        logger.debug(
            "%s: Nordsieck vector initialized at t=%r with h=%r from %d points",
            self.name, self.step_start, self.step_size, len(times),
        )

    def _rescale(self, step_size: float, interpolator: NordsieckStepInterpolator) -> None:
        """Rescale both the integrator's and the interpolator's Nordsieck vectors."""
        rescale_nordsieck(self.scaled, self.nordsieck, step_size / self.step_size)
        self.step_size = step_size
        interpolator.rescale(step_size)

    def _setup(self, equations: ExpandableODE, t: float):
        self.sanity_checks(equations, t)
        self.equations = equations
        forward = t > equations.time

        y = equations.complete_state
        interpolator = NordsieckStepInterpolator(
            forward, equations.primary_mapper, equations.secondary_mappers
        )
        self.init_integration(equations.time, y, t)

        self.start(equations.time, y, t)
        interpolator.reinitialize(
            self.step_start, self.step_size, y, self.scaled, self.nordsieck
        )
        interpolator.store_time(self.step_start)
        return forward, y, interpolator

    def _predict(self, interpolator: NordsieckStepInterpolator) -> tuple[float, NDArray]:
        """Step end and state extrapolated from the current Nordsieck vector."""
        step_end = self.step_start + self.step_size
        interpolator.store_time(step_end)
        interpolator.set_interpolated_time(step_end)
        return step_end, interpolator.interpolated_state

    def _reject(self, error: float, forward: bool, interpolator) -> None:
        factor = self.compute_step_grow_shrink_factor(error)
        h_new = self.filter_step(self.step_size * factor, forward, False)
        logger.debug(
            "%s: step %r rejected at t=%r (error %.3g), retrying with %r",
            self.name, self.step_size, self.step_start, error, h_new,
        )
        self._rescale(h_new, interpolator)

    def _prepare_next_step(
        self,
        interpolator: NordsieckStepInterpolator,
        y: NDArray,
        t: float,
        forward: bool,
        error: float,
    ) -> None:
        interpolator.store_time(self.step_start)
        if self.reset_occurred:
            # derivatives are no longer consistent, rebuild from scratch
            logger.info("%s: restarting at t=%r", self.name, self.step_start)
            self.start(self.step_start, y, t)
            interpolator.reinitialize(
                self.step_start, self.step_size, y, self.scaled, self.nordsieck
            )

        factor = self.compute_step_grow_shrink_factor(error)
        scaled_h = self.step_size * factor
        next_t = self.step_start + scaled_h
        next_is_last = next_t >= t if forward else next_t <= t
        h_new = self.filter_step(scaled_h, forward, next_is_last)

        filtered_next_t = self.step_start + h_new
        filtered_next_is_last = filtered_next_t >= t if forward else filtered_next_t <= t
        if filtered_next_is_last:
            h_new = t - self.step_start
        self._rescale(h_new, interpolator)

    def _finish(self, equations: ExpandableODE, y: NDArray) -> NDArray:
        equations.time = self.step_start
        equations.complete_state = y
        self.reset_internal_state()
        return y.copy()


class AdamsIntegrator(MultistepIntegrator):
    """Base class of the Adams integrators.

    Binds the order dependent transformer, taken from ``registry`` (the
    process-wide registry by default).
    """

    def __init__(
        self,
        name: str,
        n_steps: int,
        order: int,
        min_step: float,
        max_step: float,
        absolute_tolerance: ArrayLike,
        relative_tolerance: ArrayLike,
        registry: Optional[TransformerRegistry] = None,
    ):
        super().__init__(
            name, n_steps, order, min_step, max_step,
            absolute_tolerance, relative_tolerance,
        )
        registry = registry if registry is not None else default_registry
        self.transformer: AdamsNordsieckTransformer = registry.get(n_steps)

    def initialize_high_order_derivatives(self, h, t, y, y_dot):
        return self.transformer.initialize_high_order_derivatives(h, t, y, y_dot)

    def update_high_order_derivatives_phase1(self, high_order: NDArray) -> NDArray:
        return self.transformer.update_high_order_derivatives_phase1(high_order)

    def update_high_order_derivatives_phase2(
        self, start: NDArray, end: NDArray, high_order: NDArray
    ) -> None:
        self.transformer.update_high_order_derivatives_phase2(start, end, high_order)
