"""Discrete events detected through switching functions."""

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Optional

import numpy as np
import scipy.optimize
from numpy.typing import NDArray

from nordsieck.core.config import EventConfig
from nordsieck.core.exceptions import MaxCountExceededError, NoBracketingError
from nordsieck.stepping.interpolator import StepInterpolator

logger = logging.getLogger(__name__)


class Action(Enum):
    """What the integrator does once an event has occurred."""
    STOP = auto()               # stop integration at the event
    RESET_STATE = auto()        # call reset_state, then restart
    RESET_DERIVATIVES = auto()  # restart from the event (derivatives changed)
    CONTINUE = auto()           # keep going


class EventHandler(ABC):
    """User side of an event: a switching function and its reaction.

    An event occurs when ``g`` changes sign. ``g`` must be continuous in
    the neighborhood of the event.
    """

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        """Called once at the start of each integration."""

    @abstractmethod
    def g(self, t: float, y: NDArray) -> float:
        """Switching function on the complete state."""
        ...

    @abstractmethod
    def event_occurred(self, t: float, y: NDArray, increasing: bool) -> Action:
        """Called at the event; ``increasing`` is the direction of g in time."""
        ...

    def reset_state(self, t: float, y: NDArray) -> None:
        """Modify y in place when ``event_occurred`` returned RESET_STATE."""


class EventState:
    """Tracks the sign of one switching function along the integration."""

    def __init__(self, handler: EventHandler, config: Optional[EventConfig] = None):
        config = config if config is not None else EventConfig()
        self.handler = handler
        self.max_check_interval = abs(config.max_check_interval)
        self.convergence = abs(config.convergence)
        self.max_iteration_count = config.max_iteration_count

        self.t0 = np.nan
        self.g0 = np.nan
        self.g0_positive = True
        self.pending_event = False
        self.pending_event_time = np.nan
        self.previous_event_time = np.nan
        self.increasing = True
        self.forward = True
        self.next_action = Action.CONTINUE

    def _g_at(self, interpolator: StepInterpolator, t: float) -> float:
        interpolator.set_interpolated_time(t)
        return float(self.handler.g(t, interpolator.interpolated_state))

    def reinitialize_begin(self, interpolator: StepInterpolator) -> None:
        """Record the sign of g at the start of the first step."""
        self.forward = interpolator.forward
        self.t0 = interpolator.soft_previous_time
        self.g0 = self._g_at(interpolator, self.t0)
        if self.g0 == 0:
            # a root exactly at the start is ignored: use the sign just after it
            epsilon = max(self.convergence, abs(self.convergence * self.t0))
            t_start = self.t0 + (0.5 if self.forward else -0.5) * epsilon
            self.g0 = self._g_at(interpolator, t_start)
        self.g0_positive = self.g0 >= 0

    def _find_root(self, interpolator, ta, ga, tb, gb) -> float:
        def f(t):
            return self._g_at(interpolator, t)

        lo, hi = (ta, tb) if ta <= tb else (tb, ta)
        try:
            root = scipy.optimize.brentq(
                f, lo, hi, xtol=self.convergence, maxiter=self.max_iteration_count
            )
        except ValueError as exc:
            raise NoBracketingError(ta, tb, ga, gb) from exc
        except RuntimeError as exc:
            raise MaxCountExceededError(
                self.max_iteration_count, "event root iterations"
            ) from exc

        # select a root at or just past the sign change
        step = self.convergence if self.forward else -self.convergence
        for _ in range(self.max_iteration_count):
            if (f(root) >= 0) != self.g0_positive:
                return root
            root = min(root + step, tb) if self.forward else max(root + step, tb)
        raise MaxCountExceededError(self.max_iteration_count, "event root iterations")

    def evaluate_step(self, interpolator: StepInterpolator) -> bool:
        """Check whether an event occurs in the (soft) current step.

        Returns:
            True if an event is pending inside the step
        """
        self.forward = interpolator.forward
        t1 = interpolator.soft_current_time
        dt = t1 - self.t0
        if abs(dt) < self.convergence:
            # too small to do anything on
            return False
        n = max(1, math.ceil(abs(dt) / self.max_check_interval))
        h = dt / n

        ta = self.t0
        ga = self.g0
        i = 0
        while i < n:
            tb = t1 if i == n - 1 else self.t0 + (i + 1) * h
            gb = self._g_at(interpolator, tb)

            if self.g0_positive ^ (gb >= 0):
                self.increasing = gb >= ga
                root = self._find_root(interpolator, ta, ga, tb, gb)

                if (
                    not np.isnan(self.previous_event_time)
                    and abs(root - ta) <= self.convergence
                    and abs(root - self.previous_event_time) <= self.convergence
                ):
                    # found the previous event again, retry past it
                    while True:
                        ta = ta + self.convergence if self.forward else ta - self.convergence
                        ga = self._g_at(interpolator, ta)
                        if not ((self.g0_positive ^ (ga >= 0)) and (self.forward ^ (ta >= tb))):
                            break
                    if self.forward ^ (ta >= tb):
                        # retry the same substep from the new start
                        continue
                    self.pending_event_time = root
                    self.pending_event = True
                    return True
                if np.isnan(self.previous_event_time) or (
                    abs(self.previous_event_time - root) > self.convergence
                ):
                    self.pending_event_time = root
                    self.pending_event = True
                    return True

            ta = tb
            ga = gb
            i += 1

        self.pending_event = False
        self.pending_event_time = np.nan
        return False

    @property
    def event_time(self) -> float:
        if self.pending_event:
            return self.pending_event_time
        return np.inf if self.forward else -np.inf

    def step_accepted(self, t: float, y: NDArray) -> None:
        """Move the reference point to t, triggering the event if it is due."""
        self.t0 = t
        self.g0 = float(self.handler.g(t, y))
        if self.pending_event and abs(self.pending_event_time - t) <= self.convergence:
            # force the sign to its value just after the event
            self.previous_event_time = t
            self.g0_positive = self.increasing
            self.next_action = self.handler.event_occurred(
                t, y, not (self.increasing ^ self.forward)
            )
            logger.debug("event at t=%r, action %s", t, self.next_action.name)
        else:
            self.g0_positive = self.g0 >= 0
            self.next_action = Action.CONTINUE

    def stop(self) -> bool:
        return self.next_action == Action.STOP

    def reset(self, t: float, y: NDArray) -> bool:
        """Apply a pending state reset; True if the integrator must restart."""
        if not (self.pending_event and abs(self.pending_event_time - t) <= self.convergence):
            return False
        if self.next_action == Action.RESET_STATE:
            self.handler.reset_state(t, y)
        self.pending_event = False
        self.pending_event_time = np.nan
        return self.next_action in (Action.RESET_STATE, Action.RESET_DERIVATIVES)
