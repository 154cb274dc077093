"""Event handler wrapper triggering on one crossing direction only."""

import bisect
from enum import Enum, auto

import numpy as np
from numpy.typing import NDArray

from nordsieck.stepping.events import Action, EventHandler

_TINY = np.finfo(np.float64).tiny


class Transformer(Enum):
    """Transform applied to the raw switching function between two roots."""
    UNINITIALIZED = auto()  # identically zero
    PLUS = auto()           # g
    MINUS = auto()          # -g
    MIN = auto()            # always negative
    MAX = auto()            # always positive

    def transformed(self, g: float) -> float:
        if self is Transformer.PLUS:
            return g
        if self is Transformer.MINUS:
            return -g
        if self is Transformer.MIN:
            return min(-_TINY, -abs(g))
        if self is Transformer.MAX:
            return max(_TINY, abs(g))
        return 0.0


class FilterType(Enum):
    """Crossing direction (in time) that is reported to the wrapped handler."""
    TRIGGER_ONLY_DECREASING_EVENTS = auto()
    TRIGGER_ONLY_INCREASING_EVENTS = auto()

    @property
    def triggered_increasing(self) -> bool:
        return self is FilterType.TRIGGER_ONLY_INCREASING_EVENTS

    def select_transformer(
        self, previous: Transformer, positive: bool, g: float, forward: bool
    ) -> tuple[Transformer, bool]:
        """
        Transformer in force after observing ``g``.

        Args:
            previous: Transformer in force so far
            positive: Sign of the raw g while ``previous`` was selected
            g: Raw switching function value at the newest time
            forward: Integration direction

        Returns:
            (transformer, sign of the raw g it applies to)
        """
        if previous is Transformer.UNINITIALIZED:
            if g == 0:
                return previous, positive
            positive = g > 0
            # direction of the (virtual) crossing that led to this sign
            increasing = positive == forward
            if increasing == self.triggered_increasing:
                return Transformer.PLUS, positive
            return (Transformer.MAX if positive else Transformer.MIN), positive

        crossed = g <= 0 if positive else g >= 0
        if not crossed:
            return previous, positive

        before = previous.transformed(1.0 if positive else -1.0) > 0
        after = not positive
        increasing = after == forward
        if increasing == self.triggered_increasing:
            # triggered: the transformed function changes sign with g
            if after == (not before):
                return Transformer.PLUS, after
            return Transformer.MINUS, after
        # ignored: keep the transformed sign across the root
        return (Transformer.MAX if before else Transformer.MIN), after


class EventFilter(EventHandler):
    """Wrap an event handler so only one crossing direction is seen.

    The raw switching function is replaced by a transformed one whose sign
    only changes at the wanted roots; the other roots become invisible to
    root finding. The transform in force depends on the integration history,
    so the wrapper keeps the last ``HISTORY_SIZE`` switches to answer
    evaluations at times already passed (as done while locating a root).

    Args:
        handler: Wrapped handler
        filter_type: Crossing direction to keep
    """

    HISTORY_SIZE = 100

    def __init__(self, handler: EventHandler, filter_type: FilterType):
        self.handler = handler
        self.filter_type = filter_type
        self.forward = True
        self.extreme_t = -np.inf
        self._updates: list[float] = []
        self._transformers: list[tuple[Transformer, bool]] = []

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        self.handler.init(t0, y0, t)
        self.forward = t >= t0
        self.extreme_t = -np.inf if self.forward else np.inf
        # switch times stored as keys increasing along the integration
        self._updates = [-np.inf]
        self._transformers = [(Transformer.UNINITIALIZED, True)]

    def _key(self, t: float) -> float:
        return t if self.forward else -t

    def g(self, t: float, y: NDArray) -> float:
        raw_g = float(self.handler.g(t, y))

        if self._key(t) > self._key(self.extreme_t):
            previous = self._transformers[-1]
            selected = self.filter_type.select_transformer(
                previous[0], previous[1], raw_g, self.forward
            )
            if selected != previous:
                self._updates.append(self._key(self.extreme_t))
                self._transformers.append(selected)
                if len(self._updates) > self.HISTORY_SIZE:
                    del self._updates[0]
                    del self._transformers[0]
            self.extreme_t = t
            return selected[0].transformed(raw_g)

        index = bisect.bisect_right(self._updates, self._key(t)) - 1
        return self._transformers[max(index, 0)][0].transformed(raw_g)

    def event_occurred(self, t: float, y: NDArray, increasing: bool) -> Action:
        return self.handler.event_occurred(
            t, y, self.filter_type.triggered_increasing
        )

    def reset_state(self, t: float, y: NDArray) -> None:
        self.handler.reset_state(t, y)
