"""Tests for the Adams-Moulton integrator."""

import numpy as np
import pytest

from nordsieck.core.exceptions import StarterStoppedEarlyError, StepSizeTooSmallError
from nordsieck.core.problem import ExpandableODE
from nordsieck.solvers.adams_bashforth import AdamsBashforthIntegrator
from nordsieck.solvers.adams_moulton import AdamsMoultonIntegrator
from nordsieck.solvers.runge_kutta import (
    BogackiShampine32Integrator,
    DormandPrince54Integrator,
)


class ExponentialDecay:
    """dy/dt = -y, recording the evaluation times."""

    dimension = 1

    def __init__(self):
        self.times = []

    def compute_derivatives(self, t, y):
        self.times.append(t)
        return -y


class Oscillator:
    """Harmonic oscillator: x' = v, v' = -x"""

    dimension = 2

    def compute_derivatives(self, t, y):
        return np.array([y[1], -y[0]])


class Quadrature:
    """Secondary equation z' = y[0], accumulating the primary solution."""

    dimension = 1

    def compute_derivatives(self, t, primary, primary_dot, secondary):
        return np.array([primary[0]])


def fixed_step_error(integrator_cls, n_steps, h, t_end):
    integrator = integrator_cls(n_steps, 1e-10, h, 1e3, 1e3)
    integrator.starter_integrator.set_initial_step_size(h)
    _, y = integrator.solve(Oscillator(), 0.0, np.array([1.0, 0.0]), t_end)
    return np.max(np.abs(y - np.array([np.cos(t_end), -np.sin(t_end)])))


def test_decay_to_one():
    """Test y' = -y integrated to t=1 with k=4 at 1e-10 tolerances."""
    integrator = AdamsMoultonIntegrator(4, 1e-8, 1.0, 1e-10, 1e-10)

    t_stop, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert np.isclose(t_stop, 1.0, rtol=0, atol=1e-14)
    assert abs(y[0] - np.exp(-1.0)) < 1e-8


def test_method_order_and_name():
    """Test the Moulton family is one order above its step count."""
    integrator = AdamsMoultonIntegrator(3, 1e-8, 1.0, 1e-6, 1e-6)

    assert integrator.name == "Adams-Moulton"
    assert integrator.order == 4
    assert np.isclose(integrator.max_growth, 2.0 ** 0.25)


@pytest.mark.parametrize("n_steps", [2, 3, 4])
def test_moulton_beats_bashforth(n_steps):
    """Test equal steps and step count give Moulton a smaller error."""
    bashforth = fixed_step_error(AdamsBashforthIntegrator, n_steps, 0.05, 2.0)
    moulton = fixed_step_error(AdamsMoultonIntegrator, n_steps, 0.05, 2.0)

    assert moulton < bashforth


@pytest.mark.parametrize("n_steps", [2, 3, 4])
def test_convergence_order(n_steps):
    """Test fixed step convergence at order k (k = 2 is the trapezoidal rule)."""
    e1 = fixed_step_error(AdamsMoultonIntegrator, n_steps, 0.1, 1.0)
    e2 = fixed_step_error(AdamsMoultonIntegrator, n_steps, 0.05, 1.0)

    assert np.log2(e1 / e2) > n_steps - 0.5


@pytest.mark.parametrize(
    "integrator_cls", [AdamsBashforthIntegrator, AdamsMoultonIntegrator]
)
def test_single_evaluation_at_start(integrator_cls):
    """Test the right-hand side is evaluated only once at the start time."""
    problem = ExponentialDecay()
    integrator = integrator_cls(4, 1e-8, 1.0, 1e-10, 1e-10)

    integrator.solve(problem, 0.0, np.array([1.0]), 1.0)

    assert problem.times.count(0.0) == 1
    assert integrator.evaluation_count == len(problem.times)


def test_minimal_step_too_large():
    """Test a step floor above what the tolerance demands fails."""
    integrator = AdamsMoultonIntegrator(4, 0.25, 1.0, 1e-10, 1e-10)

    with pytest.raises(StepSizeTooSmallError):
        integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)


def test_oscillator_long_run():
    """Test a periodic solution over several periods."""
    integrator = AdamsMoultonIntegrator(5, 1e-8, 1.0, 1e-10, 1e-10)
    t_end = 4 * np.pi

    _, y = integrator.solve(Oscillator(), 0.0, np.array([1.0, 0.0]), t_end)

    assert np.allclose(y, [1.0, 0.0], atol=1e-7)


def test_backward_integration():
    """Test integrating from t=1 back to t=0."""
    integrator = AdamsMoultonIntegrator(4, 1e-8, 1.0, 1e-10, 1e-10)

    _, y = integrator.solve(ExponentialDecay(), 1.0, np.array([np.exp(-1.0)]), 0.0)

    assert abs(y[0] - 1.0) < 1e-8


def test_secondary_equations():
    """Test secondary components are carried along with the primary ones."""
    equations = ExpandableODE(ExponentialDecay())
    index = equations.add_secondary_equations(Quadrature())
    equations.time = 0.0
    equations.primary_state = np.array([1.0])
    integrator = AdamsMoultonIntegrator(4, 1e-8, 1.0, 1e-10, 1e-10)

    y = integrator.integrate(equations, 1.0)

    assert integrator.main_set_dimension == 1
    assert y.shape == (2,)
    assert np.isclose(y[0], np.exp(-1.0), atol=1e-8)
    assert np.isclose(equations.secondary_state(index)[0], 1.0 - np.exp(-1.0), atol=1e-7)


def test_custom_starter():
    """Test a replacement starter integrator is used."""
    integrator = AdamsMoultonIntegrator(3, 1e-8, 1.0, 1e-9, 1e-9)
    starter = BogackiShampine32Integrator(1e-8, 1.0, 1e-9, 1e-9)
    integrator.starter_integrator = starter

    _, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert integrator.starter_integrator is starter
    assert abs(y[0] - np.exp(-1.0)) < 1e-7


def test_default_starter_configuration():
    """Test the default starter shares the step bounds and tolerances."""
    integrator = AdamsMoultonIntegrator(4, 1e-6, 0.5, 1e-7, 1e-8)
    starter = integrator.starter_integrator

    assert isinstance(starter, DormandPrince54Integrator)
    assert starter.min_step == 1e-6
    assert starter.max_step == 0.5
    assert starter.scal_absolute_tolerance == 1e-7
    assert starter.scal_relative_tolerance == 1e-8
    assert starter.step_control == integrator.step_control


def test_default_starter_vector_tolerances():
    """Test vector tolerances are handed to the default starter."""
    integrator = AdamsBashforthIntegrator(3, 1e-6, 0.5, [1e-7, 1e-6], [1e-8, 0.0])
    control = integrator.starter_integrator.step_control

    assert control.vector_tolerance
    assert np.array_equal(control.absolute_tolerance, [1e-7, 1e-6])
    assert np.array_equal(control.relative_tolerance, [1e-8, 0.0])

    # the starter keeps its own copies
    control.absolute_tolerance[0] = 1.0
    assert integrator.starter_integrator.vec_absolute_tolerance[0] == 1e-7


def test_starter_stopped_early():
    """Test an interval covered by a single starter step cannot be started."""
    integrator = AdamsMoultonIntegrator(6, 1e-8, 10.0, 1e3, 1e3)
    integrator.starter_integrator.set_initial_step_size(5.0)

    with pytest.raises(StarterStoppedEarlyError):
        integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 0.1)
