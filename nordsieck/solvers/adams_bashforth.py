"""Explicit Adams-Bashforth integrator."""

from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from nordsieck.algebra.transformer import TransformerRegistry
from nordsieck.core.problem import ExpandableODE
from nordsieck.solvers.multistep import AdamsIntegrator


class AdamsBashforthIntegrator(AdamsIntegrator):
    """Adaptive explicit Adams-Bashforth method in Nordsieck form.

    With k = ``n_steps`` the method is of order k and uses one derivative
    evaluation per step:

        y_{n+1} = y_n + s1_n + sum(R_n)
        s1_{n+1} = h f(t_{n+1}, y_{n+1})
        R_{n+1} = update R_n + c1 (s1_n - s1_{n+1})

    The error is estimated by running the updated Nordsieck vector
    backwards over one step and comparing with the previous state.

    In practice k should stay at or below 7: from k = 8 on, the back
    extrapolated error estimate no longer decreases with h and tight
    tolerances end in StepSizeTooSmallError.

    Args:
        n_steps: Number of steps k (>= 1)
        min_step: Minimal step magnitude
        max_step: Maximal step magnitude
        absolute_tolerance: Scalar or one entry per primary component
        relative_tolerance: Scalar or one entry per primary component
        registry: Transformer registry, the shared one by default
    """

    METHOD_NAME = "Adams-Bashforth"

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
            self.METHOD_NAME, n_steps, n_steps, min_step, max_step,
            absolute_tolerance, relative_tolerance, registry,
        )

    def error_estimation(
        self,
        previous_state: NDArray,
        predicted_state: NDArray,
        predicted_scaled: NDArray,
        predicted_nordsieck: NDArray,
    ) -> float:
        """RMS over the primary components of the back-extrapolation error."""
        main = self.main_set_dimension
        # Taylor sum from high order to low order
        variation = np.zeros(main, dtype=predicted_state.dtype)
        for row in range(predicted_nordsieck.shape[0] - 1, -1, -1):
            sign = -1 if row % 2 else 1
            variation += sign * predicted_nordsieck[row, :main]
        variation -= predicted_scaled[:main]

        tol = self.tolerance(np.abs(predicted_state[:main]))
        ratio = (predicted_state[:main] - previous_state[:main] + variation) / tol
        return float(np.sqrt(np.mean(ratio * ratio)))

    def integrate(self, equations: ExpandableODE, t: float) -> NDArray:
        forward, y, interpolator = self._setup(equations, t)

        while not self.is_last_step:
            interpolator.shift()

            error = 10.0
            while error >= 1.0:
                step_end, predicted_y = self._predict(interpolator)
                y_dot = self.compute_derivatives(step_end, predicted_y)

                predicted_scaled = self.step_size * y_dot
                predicted_nordsieck = self.update_high_order_derivatives_phase1(
                    self.nordsieck
                )
                self.update_high_order_derivatives_phase2(
                    self.scaled, predicted_scaled, predicted_nordsieck
                )

                error = self.error_estimation(
                    y, predicted_y, predicted_scaled, predicted_nordsieck
                )
                if error >= 1.0:
                    self._reject(error, forward, interpolator)

            interpolator.reinitialize(
                step_end, self.step_size, predicted_y, predicted_scaled, predicted_nordsieck
            )
            interpolator.store_time(step_end)
            y = predicted_y
            self.step_start = self.accept_step(interpolator, y, y_dot, t)
            self.scaled = predicted_scaled
            self.nordsieck = predicted_nordsieck
            interpolator.reinitialize(
                self.step_start, self.step_size, y, self.scaled, self.nordsieck
            )

            if not self.is_last_step:
                self._prepare_next_step(interpolator, y, t, forward, error)

        return self._finish(equations, y)
