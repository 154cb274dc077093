"""Tests for event detection and integrator restarts."""

import numpy as np
import pytest

from nordsieck.core.config import EventConfig
from nordsieck.solvers.adams_bashforth import AdamsBashforthIntegrator
from nordsieck.solvers.adams_moulton import AdamsMoultonIntegrator
from nordsieck.solvers.runge_kutta import DormandPrince54Integrator
from nordsieck.stepping.events import Action, EventHandler


class ExponentialDecay:
    """dy/dt = -y"""

    dimension = 1

    def compute_derivatives(self, t, y):
        return -y


class TimeEvent(EventHandler):
    """Switching function g = t - t_event, reacting with a fixed action."""

    def __init__(self, t_event, action, reset_value=None):
        self.t_event = t_event
        self.action = action
        self.reset_value = reset_value
        self.occurrences = []

    def g(self, t, y):
        return t - self.t_event

    def event_occurred(self, t, y, increasing):
        self.occurrences.append((t, increasing))
        return self.action

    def reset_state(self, t, y):
        y[:] = self.reset_value


class ThresholdEvent(EventHandler):
    """Switching function g = y - level."""

    def __init__(self, level):
        self.level = level
        self.occurrences = []

    def g(self, t, y):
        return y[0] - self.level

    def event_occurred(self, t, y, increasing):
        self.occurrences.append((t, increasing))
        return Action.CONTINUE


class ThresholdEventStop(ThresholdEvent):
    """Stops the integration at the threshold crossing."""

    def event_occurred(self, t, y, increasing):
        super().event_occurred(t, y, increasing)
        return Action.STOP


class CountingStarter(DormandPrince54Integrator):
    """Starter that counts how many times it was run."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.runs = 0

    def integrate(self, equations, t):
        self.runs += 1
        return super().integrate(equations, t)


@pytest.mark.parametrize(
    "integrator_cls", [AdamsBashforthIntegrator, AdamsMoultonIntegrator]
)
def test_reset_derivatives_restarts(integrator_cls):
    """Test an event reset rebuilds the Nordsieck vector without corrupting it."""
    integrator = integrator_cls(4, 1e-8, 1.0, 1e-10, 1e-10)
    starter = CountingStarter(1e-8, 1.0, 1e-10, 1e-10)
    integrator.starter_integrator = starter
    handler = TimeEvent(0.5, Action.RESET_DERIVATIVES)
    integrator.add_event_handler(handler, convergence=1e-12)

    _, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert starter.runs >= 2
    assert len(handler.occurrences) == 1
    t_event, increasing = handler.occurrences[0]
    assert np.isclose(t_event, 0.5, atol=1e-10)
    assert increasing
    assert abs(y[0] - np.exp(-1.0)) < 1e-8


def test_reset_state():
    """Test a state reset at t=0.5 restarts the decay from 1."""
    integrator = AdamsMoultonIntegrator(4, 1e-8, 1.0, 1e-10, 1e-10)
    integrator.add_event_handler(
        TimeEvent(0.5, Action.RESET_STATE, reset_value=1.0), convergence=1e-12
    )

    _, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert abs(y[0] - np.exp(-0.5)) < 1e-8


@pytest.mark.parametrize(
    "integrator_cls",
    [AdamsBashforthIntegrator, AdamsMoultonIntegrator, DormandPrince54Integrator],
)
def test_stop_event(integrator_cls):
    """Test a STOP event ends the integration at the event time."""
    if integrator_cls is DormandPrince54Integrator:
        integrator = integrator_cls(1e-8, 1.0, 1e-10, 1e-10)
    else:
        integrator = integrator_cls(4, 1e-8, 1.0, 1e-10, 1e-10)
    integrator.add_event_handler(
        ThresholdEventStop(np.exp(-0.3)), config=EventConfig(convergence=1e-12)
    )

    t_stop, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert np.isclose(t_stop, 0.3, atol=1e-8)
    assert np.isclose(y[0], np.exp(-0.3), atol=1e-8)


def test_continue_event_reports_direction():
    """Test a decreasing crossing is reported and integration continues."""
    integrator = AdamsBashforthIntegrator(4, 1e-8, 1.0, 1e-10, 1e-10)
    handler = ThresholdEvent(0.5)
    integrator.add_event_handler(handler, convergence=1e-12)

    t_stop, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert np.isclose(t_stop, 1.0, atol=1e-14)
    assert len(handler.occurrences) == 1
    t_event, increasing = handler.occurrences[0]
    assert np.isclose(t_event, np.log(2.0), atol=1e-8)
    assert not increasing


def test_backward_event_direction():
    """Test the increasing flag follows time, not the integration direction."""
    integrator = AdamsMoultonIntegrator(4, 1e-8, 1.0, 1e-10, 1e-10)
    handler = ThresholdEvent(0.5)
    integrator.add_event_handler(handler, convergence=1e-12)

    integrator.solve(ExponentialDecay(), 1.0, np.array([np.exp(-1.0)]), 0.0)

    assert len(handler.occurrences) == 1
    t_event, increasing = handler.occurrences[0]
    assert np.isclose(t_event, np.log(2.0), atol=1e-8)
    assert not increasing


def test_several_events_in_order():
    """Test events are handled chronologically."""
    integrator = AdamsMoultonIntegrator(3, 1e-8, 1.0, 1e-9, 1e-9)
    order = []

    class Recorder(TimeEvent):
        def event_occurred(self, t, y, increasing):
            order.append(self.t_event)
            return Action.CONTINUE

    for t_event in (0.7, 0.2, 0.45):
        integrator.add_event_handler(Recorder(t_event, Action.CONTINUE), max_check_interval=0.1)

    integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert order == [0.2, 0.45, 0.7]


def test_event_handler_management():
    """Test registering and clearing event handlers."""
    integrator = AdamsBashforthIntegrator(4, 1e-8, 1.0, 1e-8, 1e-8)
    handler = ThresholdEvent(0.5)

    integrator.add_event_handler(handler, max_check_interval=0.5, max_iteration_count=50)
    state = integrator.events_states[0]

    assert integrator.event_handlers == [handler]
    assert state.max_check_interval == 0.5
    assert state.max_iteration_count == 50
    assert state.convergence == EventConfig().convergence

    integrator.clear_event_handlers()
    assert integrator.event_handlers == []


def test_event_config_validation():
    """Test event settings are validated."""
    with pytest.raises(ValueError):
        EventConfig(convergence=0.0)
    with pytest.raises(ValueError):
        EventConfig(max_check_interval=-1.0)
    with pytest.raises(ValueError):
        EventConfig(max_iteration_count=0)
