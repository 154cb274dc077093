"""Tests for direction filtered event handlers."""

import numpy as np
import pytest

from nordsieck.solvers.adams_moulton import AdamsMoultonIntegrator
from nordsieck.solvers.runge_kutta import DormandPrince54Integrator
from nordsieck.stepping.event_filter import EventFilter, FilterType, Transformer
from nordsieck.stepping.events import Action, EventHandler


class Oscillator:
    """x' = v, v' = -x, so x = cos(t) from (1, 0)"""

    dimension = 2

    def compute_derivatives(self, t, y):
        return np.array([y[1], -y[0]])


class PositionCrossing(EventHandler):
    """Switching function g = x, recording every reported event."""

    def __init__(self):
        self.occurrences = []
        self.initialized = False

    def init(self, t0, y0, t):
        self.initialized = True

    def g(self, t, y):
        return y[0]

    def event_occurred(self, t, y, increasing):
        self.occurrences.append((t, increasing))
        return Action.CONTINUE


def run_filtered(integrator, filter_type, t0, t1):
    handler = PositionCrossing()
    integrator.add_event_handler(
        EventFilter(handler, filter_type), max_check_interval=0.25, convergence=1e-10
    )
    y0 = np.array([np.cos(t0), -np.sin(t0)])
    integrator.solve(Oscillator(), t0, y0, t1)
    return handler


def test_unfiltered_reference():
    """Test the raw handler sees all three crossings of cos(t) on [0, 10]."""
    handler = PositionCrossing()
    integrator = DormandPrince54Integrator(1e-8, 0.5, 1e-10, 1e-10)
    integrator.add_event_handler(handler, max_check_interval=0.25, convergence=1e-10)

    integrator.solve(Oscillator(), 0.0, np.array([1.0, 0.0]), 10.0)

    assert len(handler.occurrences) == 3


def test_only_decreasing_forward():
    """Test decreasing crossings of cos(t) at pi/2 and 5pi/2 are kept."""
    integrator = DormandPrince54Integrator(1e-8, 0.5, 1e-10, 1e-10)

    handler = run_filtered(integrator, FilterType.TRIGGER_ONLY_DECREASING_EVENTS, 0.0, 10.0)

    times = [t for t, _ in handler.occurrences]
    assert handler.initialized
    assert np.allclose(times, [np.pi / 2, 5 * np.pi / 2], atol=1e-7)
    assert [inc for _, inc in handler.occurrences] == [False, False]


def test_only_increasing_forward():
    """Test the single increasing crossing at 3pi/2 is kept."""
    integrator = AdamsMoultonIntegrator(4, 1e-8, 0.5, 1e-10, 1e-10)

    handler = run_filtered(integrator, FilterType.TRIGGER_ONLY_INCREASING_EVENTS, 0.0, 10.0)

    assert len(handler.occurrences) == 1
    t, increasing = handler.occurrences[0]
    assert np.isclose(t, 3 * np.pi / 2, atol=1e-7)
    assert increasing


def test_only_decreasing_backward():
    """Test the filter keeps the time direction when integrating backward."""
    integrator = DormandPrince54Integrator(1e-8, 0.5, 1e-10, 1e-10)

    handler = run_filtered(integrator, FilterType.TRIGGER_ONLY_DECREASING_EVENTS, 10.0, 0.0)

    times = [t for t, _ in handler.occurrences]
    assert np.allclose(times, [5 * np.pi / 2, np.pi / 2], atol=1e-7)


@pytest.mark.parametrize(
    "filter_type, g, transformer",
    [
        (FilterType.TRIGGER_ONLY_DECREASING_EVENTS, 1.0, Transformer.MAX),
        (FilterType.TRIGGER_ONLY_DECREASING_EVENTS, -1.0, Transformer.PLUS),
        (FilterType.TRIGGER_ONLY_INCREASING_EVENTS, 1.0, Transformer.PLUS),
        (FilterType.TRIGGER_ONLY_INCREASING_EVENTS, -1.0, Transformer.MIN),
        (FilterType.TRIGGER_ONLY_INCREASING_EVENTS, 0.0, Transformer.UNINITIALIZED),
    ],
)
def test_initial_transformer(filter_type, g, transformer):
    """Test the transformer picked from the first forward value of g."""
    selected, _ = filter_type.select_transformer(Transformer.UNINITIALIZED, True, g, True)

    assert selected is transformer


def test_transformed_signs_forward_decreasing():
    """Test the transformed sign only flips at decreasing crossings."""
    filter_type = FilterType.TRIGGER_ONLY_DECREASING_EVENTS
    state = (Transformer.UNINITIALIZED, True)
    signs = []
    for g in (1.0, -1.0, 1.0, -1.0):
        state = filter_type.select_transformer(state[0], state[1], g, True)
        signs.append(state[0].transformed(g) > 0)

    # down (kept), up (ignored), down (kept)
    assert signs == [True, False, False, True]


def test_history_used_for_past_times():
    """Test evaluations before the newest time reuse the older transform."""
    handler = PositionCrossing()
    wrapped = EventFilter(handler, FilterType.TRIGGER_ONLY_INCREASING_EVENTS)
    wrapped.init(0.0, np.array([1.0, 0.0]), 10.0)

    early = wrapped.g(1.0, np.array([0.5, 0.0]))
    wrapped.g(2.0, np.array([-0.5, 0.0]))
    wrapped.g(5.0, np.array([0.5, 0.0]))

    assert early == 0.5
    assert wrapped.g(1.0, np.array([0.5, 0.0])) == 0.5
    assert wrapped.g(4.0, np.array([0.5, 0.0])) < 0
    assert wrapped.g(5.0, np.array([0.5, 0.0])) == -0.5
