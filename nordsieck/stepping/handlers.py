"""Step handlers: callbacks invoked after each accepted step."""

from abc import ABC, abstractmethod
from enum import Enum, auto

import numpy as np
from numpy.typing import NDArray

from nordsieck.stepping.interpolator import StepInterpolator


class StepHandler(ABC):
    """Receives the interpolator of every accepted (part of a) step."""

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        """Called once before the first step."""

    @abstractmethod
    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        ...


class FixedStepHandler(ABC):
    """Receives the solution on a regular time grid (see StepNormalizer)."""

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        """Called once before the first step."""

    @abstractmethod
    def handle_step(
        self, t: float, y: NDArray, y_dot: NDArray, is_last: bool
    ) -> None:
        ...


class NormalizerMode(Enum):
    """How the output grid is built."""
    INCREMENT = auto()  # first time, first time + h, ...
    MULTIPLES = auto()  # integer multiples of h


class NormalizerBounds(Enum):
    """Whether the integration bounds are output when off the grid."""
    NEITHER = auto()
    FIRST = auto()
    LAST = auto()
    BOTH = auto()

    @property
    def first_included(self) -> bool:
        return self in (NormalizerBounds.FIRST, NormalizerBounds.BOTH)

    @property
    def last_included(self) -> bool:
        return self in (NormalizerBounds.LAST, NormalizerBounds.BOTH)


class StepNormalizer(StepHandler):
    """Turns variable steps into fixed-interval calls of a FixedStepHandler.

    Args:
        h: Grid spacing, sign ignored (the integration direction is used)
        handler: Receiver of the grid points
        mode: Grid construction mode
        bounds: Which off-grid integration bounds are also output
    """

    def __init__(
        self,
        h: float,
        handler: FixedStepHandler,
        mode: NormalizerMode = NormalizerMode.INCREMENT,
        bounds: NormalizerBounds = NormalizerBounds.FIRST,
    ):
        if h == 0:
            raise ValueError("normalizer step must be nonzero")
        self.h = abs(h)
        self.handler = handler
        self.mode = mode
        self.bounds = bounds
        self._reset()

    def _reset(self):
        self.first_time = np.nan
        self.last_time = np.nan
        self.last_state = None
        self.last_derivatives = None
        self.forward = True

    def init(self, t0, y0, t):
        self._reset()
        self.h = abs(self.h)
        self.handler.init(t0, y0, t)

    def _store_step(self, interpolator: StepInterpolator, t: float) -> None:
        self.last_time = t
        interpolator.set_interpolated_time(t)
        self.last_state = interpolator.interpolated_state
        self.last_derivatives = interpolator.interpolated_derivatives

    def _do_normalized_step(self, is_last: bool) -> None:
        if not self.bounds.first_included and self.first_time == self.last_time:
            return
        self.handler.handle_step(
            self.last_time, self.last_state, self.last_derivatives, is_last
        )

    def _next_in_step(self, next_time: float, interpolator: StepInterpolator) -> bool:
        if self.forward:
            return next_time <= interpolator.soft_current_time
        return next_time >= interpolator.soft_current_time

    def handle_step(self, interpolator, is_last):
        if self.last_state is None:
            self.first_time = interpolator.soft_previous_time
            self._store_step(interpolator, self.first_time)
            self.forward = interpolator.soft_current_time >= self.last_time
            if not self.forward:
                self.h = -self.h

        if self.mode == NormalizerMode.INCREMENT:
            next_time = self.last_time + self.h
        else:
            next_time = (np.floor(self.last_time / self.h) + 1) * self.h
            if abs(next_time - self.last_time) <= np.spacing(abs(self.last_time)):
                next_time += self.h

        while self._next_in_step(next_time, interpolator):
            self._do_normalized_step(False)
            self._store_step(interpolator, next_time)
            next_time += self.h

        if is_last:
            add_last = (
                self.bounds.last_included
                and self.last_time != interpolator.soft_current_time
            )
            self._do_normalized_step(not add_last)
            if add_last:
                self._store_step(interpolator, interpolator.soft_current_time)
                self._do_normalized_step(True)
