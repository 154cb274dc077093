"""Implicit Adams-Moulton integrator (PECE mode)."""

from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from nordsieck.algebra.transformer import TransformerRegistry
from nordsieck.core.problem import ExpandableODE
from nordsieck.solvers.multistep import AdamsIntegrator


class AdamsMoultonIntegrator(AdamsIntegrator):
    """Adaptive Adams-Moulton method in Nordsieck form, PECE mode.

    Each step predicts with the Adams-Bashforth formula, evaluates, applies
    the Moulton correction and evaluates again, so two derivative
    evaluations per step (k = ``n_steps``). No iteration is done on the
    implicit formula. The observed convergence order is k (k = 2 is the
    trapezoidal rule); ``order = k + 1`` is the exponent used by step
    size control.

    The correction reads the updated Nordsieck block backwards from the
    step end: y_{n+1} = y_n + s1 - R'[0] + R'[1] - R'[2] + ..., and the
    error is the distance between corrected and predicted states.

    Args:
        n_steps: Number of steps k (>= 1)
        min_step: Minimal step magnitude
        max_step: Maximal step magnitude
        absolute_tolerance: Scalar or one entry per primary component
        relative_tolerance: Scalar or one entry per primary component
        registry: Transformer registry, the shared one by default
    """

    METHOD_NAME = "Adams-Moulton"

    def __init__(
        self,
        n_steps: int,
        min_step: float,
        max_step: float,
        absolute_tolerance: ArrayLike,
        relative_tolerance: ArrayLike,
        registry: Optional[TransformerRegistry] = None,
    ):
        super().__init__(
            self.METHOD_NAME, n_steps, n_steps + 1, min_step, max_step,
            absolute_tolerance, relative_tolerance, registry,
        )

    def correct(
        self,
        previous: NDArray,
        predicted: NDArray,
        scaled: NDArray,
        nordsieck: NDArray,
    ) -> tuple[NDArray, float]:
        """
        Corrected state and its normalized error.

        Args:
            previous: State at step start
            predicted: Predicted state at step end
            scaled: h f(t_end, predicted)
            nordsieck: Updated high order block at step end

        Returns:
            (corrected complete state, RMS error over the primary part)
        """
        corrected = np.zeros_like(predicted)
        for row, values in enumerate(nordsieck):
            if row % 2 == 0:
                corrected -= values
            else:
                corrected += values
        corrected += previous + scaled

        main = self.main_set_dimension
        y_scale = np.maximum(np.abs(previous[:main]), np.abs(corrected[:main]))
        ratio = (corrected[:main] - predicted[:main]) / self.tolerance(y_scale)
        return corrected, float(np.sqrt(np.mean(ratio * ratio)))

    def integrate(self, equations: ExpandableODE, t: float) -> NDArray:
        forward, y, interpolator = self._setup(equations, t)

        while not self.is_last_step:
            interpolator.shift()

            error = 10.0
            while error >= 1.0:
                # P
                step_end, predicted_y = self._predict(interpolator)
                # E
                y_dot = self.compute_derivatives(step_end, predicted_y)

                predicted_scaled = self.step_size * y_dot
                nordsieck_tmp = self.update_high_order_derivatives_phase1(self.nordsieck)
                self.update_high_order_derivatives_phase2(
                    self.scaled, predicted_scaled, nordsieck_tmp
                )

                # C
                corrected_y, error = self.correct(
                    y, predicted_y, predicted_scaled, nordsieck_tmp
                )
                if error >= 1.0:
                    self._reject(error, forward, interpolator)

            # E
            y_dot = self.compute_derivatives(step_end, corrected_y)
            corrected_scaled = self.step_size * y_dot
            self.update_high_order_derivatives_phase2(
                predicted_scaled, corrected_scaled, nordsieck_tmp
            )

            y = corrected_y
            interpolator.reinitialize(
                step_end, self.step_size, y, corrected_scaled, nordsieck_tmp
            )
            interpolator.store_time(step_end)
            self.step_start = self.accept_step(interpolator, y, y_dot, t)
            self.scaled = corrected_scaled
            self.nordsieck = nordsieck_tmp
            interpolator.reinitialize(
                self.step_start, self.step_size, y, self.scaled, self.nordsieck
            )

            if not self.is_last_step:
                self._prepare_next_step(interpolator, y, t, forward, error)

        return self._finish(equations, y)
