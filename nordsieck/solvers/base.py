"""Base integrator: handlers, events, evaluation counting and step acceptance."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from nordsieck.core.config import EventConfig
from nordsieck.core.counter import EvaluationCounter
from nordsieck.core.exceptions import NumberTooSmallError
from nordsieck.core.problem import ExpandableODE, FirstOrderProblem, FunctionProblem
from nordsieck.stepping.events import EventHandler, EventState
from nordsieck.stepping.handlers import StepHandler
from nordsieck.stepping.interpolator import StepInterpolator

logger = logging.getLogger(__name__)


class AbstractIntegrator(ABC):
    """Common machinery of all integrators.

    Subclasses implement ``integrate``; they report each computed step
    through ``accept_step``, which locates events, broadcasts the step to
    the step handlers and tells whether the integration must stop or
    restart.
    """

    def __init__(self, name: str):
        self.name = name
        self.step_handlers: list[StepHandler] = []
        self.events_states: list[EventState] = []
        self.states_initialized = False
        self.step_start = np.nan
        self.step_size = np.nan
        self.is_last_step = False
        self.reset_occurred = False
        self.evaluations = EvaluationCounter()
        self.equations: Optional[ExpandableODE] = None

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"

    def add_step_handler(self, handler: StepHandler) -> None:
        self.step_handlers.append(handler)

    def clear_step_handlers(self) -> None:
        self.step_handlers.clear()

    def add_event_handler(
        self,
        handler: EventHandler,
        max_check_interval: Optional[float] = None,
        convergence: Optional[float] = None,
        max_iteration_count: Optional[int] = None,
        config: Optional[EventConfig] = None,
    ) -> None:
        """Register a switching function.

        Either pass an ``EventConfig`` or override its fields one by one.
        """
        config = config if config is not None else EventConfig()
        overrides = {
            "max_check_interval": max_check_interval,
            "convergence": convergence,
            "max_iteration_count": max_iteration_count,
        }
        config = EventConfig(**{
            name: value if value is not None else getattr(config, name)
            for name, value in overrides.items()
        })
        self.events_states.append(EventState(handler, config))

    @property
    def event_handlers(self) -> list[EventHandler]:
        return [state.handler for state in self.events_states]

    def clear_event_handlers(self) -> None:
        self.events_states.clear()

    @property
    def max_evaluations(self) -> Optional[int]:
        return self.evaluations.maximal_count

    @max_evaluations.setter
    def max_evaluations(self, value: Optional[int]) -> None:
        self.evaluations.maximal_count = None if value is None or value < 0 else value

    @property
    def evaluation_count(self) -> int:
        return self.evaluations.count

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        """Complete derivative at (t, y), counted against the budget."""
        self.evaluations.increment()
        return self.equations.compute_derivatives(t, y)

    def sanity_checks(self, equations: ExpandableODE, t: float) -> None:
        """Reject integration intervals too small to be represented."""
        threshold = 1000 * np.spacing(max(abs(equations.time), abs(t)))
        dt = abs(equations.time - t)
        if dt <= threshold:
            raise NumberTooSmallError(dt, threshold, what="integration interval")

    def init_integration(self, t0: float, y0: NDArray, t: float) -> None:
        self.evaluations.reset()
        for state in self.events_states:
            state.handler.init(t0, y0, t)
        for handler in self.step_handlers:
            handler.init(t0, y0, t)
        self.states_initialized = False
        self.is_last_step = False
        self.reset_occurred = False

    def accept_step(
        self,
        interpolator: StepInterpolator,
        y: NDArray,
        y_dot: NDArray,
        t_end: float,
    ) -> float:
        """
        Handle events and step handlers for the step held by the interpolator.

        Args:
            interpolator: Interpolator over the just computed step
            y: Complete state at step end, overwritten by the event state
                if the step is truncated by an event
            y_dot: Derivative at step end, recomputed after a reset
            t_end: Final integration time

        Returns:
            Time at which the step really ends
        """
        previous_t = interpolator.global_previous_time
        current_t = interpolator.global_current_time
        self.reset_occurred = False

        if not self.states_initialized:
            for state in self.events_states:
                state.reinitialize_begin(interpolator)
            self.states_initialized = True

        ordering_sign = 1.0 if interpolator.forward else -1.0
        occurring = [s for s in self.events_states if s.evaluate_step(interpolator)]

        while occurring:
            # chronologically first event
            current_event = min(occurring, key=lambda s: ordering_sign * s.event_time)
            occurring.remove(current_event)

            event_t = current_event.event_time
            interpolator.set_soft_previous_time(previous_t)
            interpolator.set_soft_current_time(event_t)

            interpolator.set_interpolated_time(event_t)
            event_y = interpolator.interpolated_state

            for state in self.events_states:
                state.step_accepted(event_t, event_y)
                self.is_last_step = self.is_last_step or state.stop()

            for handler in self.step_handlers:
                handler.handle_step(interpolator, self.is_last_step)

            if self.is_last_step:
                y[:] = event_y
                return event_t

            need_reset = False
            for state in self.events_states:
                need_reset = state.reset(event_t, event_y) or need_reset
            if need_reset:
                y[:] = event_y
                y_dot[:] = self.compute_derivatives(event_t, y)
                self.reset_occurred = True
                logger.info("%s: state reset by event at t=%r", self.name, event_t)
                return event_t

            # remaining part of the step
            previous_t = event_t
            interpolator.set_soft_previous_time(event_t)
            interpolator.set_soft_current_time(current_t)

            if current_event.evaluate_step(interpolator):
                occurring.append(current_event)

        interpolator.set_interpolated_time(current_t)
        current_y = interpolator.interpolated_state
        for state in self.events_states:
            state.step_accepted(current_t, current_y)
            self.is_last_step = self.is_last_step or state.stop()
        self.is_last_step = self.is_last_step or (
            abs(current_t - t_end) <= np.spacing(max(abs(current_t), abs(t_end)))
        )

        for handler in self.step_handlers:
            handler.handle_step(interpolator, self.is_last_step)

        return current_t

    @abstractmethod
    def integrate(self, equations: ExpandableODE, t: float) -> NDArray:
        """
        Integrate the equations from their current time up to t.

        Args:
            equations: Equations with time and complete state set; updated
                in place to the final time and state
            t: Target time, may be before the current time

        Returns:
            Copy of the final complete state
        """
        ...

    def solve(
        self, problem: FirstOrderProblem, t0: float, y0: ArrayLike, t: float
    ) -> tuple[float, NDArray]:
        """
        Convenience wrapper around ``integrate`` for a bare problem.

        Args:
            problem: Object with ``dimension`` and ``compute_derivatives``,
                or a plain callable f(t, y)
            t0: Initial time
            y0: Initial state
            t: Target time

        Returns:
            (stop time, final state); the stop time differs from t when an
            event stopped the integration
        """
        y0 = np.asarray(y0)
        dtype = y0.dtype if np.issubdtype(y0.dtype, np.floating) else np.float64
        if not hasattr(problem, "compute_derivatives"):
            problem = FunctionProblem(problem, y0.size)
        equations = ExpandableODE(problem, dtype=dtype)
        equations.time = t0
        equations.primary_state = y0
        y = self.integrate(equations, t)
        return equations.time, y
