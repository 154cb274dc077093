"""Tests for the embedded Runge-Kutta tableaux and integrators."""

import numpy as np
import pytest

from nordsieck.core.method import ButcherTableau, StageType
from nordsieck.methods.runge_kutta import (
    bogacki_shampine32,
    dormand_prince54,
    heun_euler,
)
from nordsieck.solvers.runge_kutta import (
    BogackiShampine32Integrator,
    DormandPrince54Integrator,
    EmbeddedRungeKuttaIntegrator,
)


class ExponentialDecay:
    """dy/dt = -y"""

    dimension = 1

    def compute_derivatives(self, t, y):
        return -y


class TimeDependent:
    """dy/dt = cos(t), y = sin(t)"""

    dimension = 1

    def compute_derivatives(self, t, y):
        return np.array([np.cos(t)])


@pytest.mark.parametrize("tableau", [heun_euler(), bogacki_shampine32(), dormand_prince54()])
def test_tableau_consistency(tableau):
    """Test row sums, weights and error weights of each pair."""
    assert tableau.stage_type == StageType.EXPLICIT
    assert np.allclose(tableau.A.sum(axis=1), tableau.c)
    assert np.isclose(tableau.b.sum(), 1.0)
    assert np.isclose(tableau.e.sum(), 0.0)


def test_dormand_prince_structure():
    """Test Dormand-Prince 5(4) is a 7 stage FSAL pair of order 5."""
    method = dormand_prince54()

    assert method.s == 7
    assert method.order == 5
    assert method.fsal


def test_bogacki_shampine_structure():
    """Test Bogacki-Shampine 3(2) is a 4 stage FSAL pair of order 3."""
    method = bogacki_shampine32()

    assert method.s == 4
    assert method.order == 3
    assert method.fsal


def test_heun_euler_not_fsal():
    """Test Heun-Euler does not reuse its last stage."""
    assert not heun_euler().fsal


def test_tableau_immutable():
    """Test that tableaux are frozen."""
    method = dormand_prince54()

    with pytest.raises(Exception):  # FrozenInstanceError
        method.order = 4


def test_implicit_tableau_rejected():
    """Test the explicit integrator refuses implicit stages."""
    A = np.array([[0.5]])
    tableau = ButcherTableau(
        A=A, b=np.array([1.0]), e=np.array([0.0]), c=np.array([0.5]), order=2
    )

    assert tableau.stage_type == StageType.DIAGONALLY_IMPLICIT
    with pytest.raises(ValueError):
        EmbeddedRungeKuttaIntegrator("midpoint", tableau, 1e-8, 1.0)


def test_dormand_prince_accuracy():
    """Test Dormand-Prince on y' = -y at tight tolerances."""
    integrator = DormandPrince54Integrator(1e-8, 1.0, 1e-10, 1e-10)

    t_stop, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert np.isclose(t_stop, 1.0, atol=1e-14)
    assert abs(y[0] - np.exp(-1.0)) < 1e-8


def test_bogacki_shampine_accuracy():
    """Test Bogacki-Shampine on a time dependent right-hand side."""
    integrator = BogackiShampine32Integrator(1e-8, 1.0, 1e-9, 1e-9)

    _, y = integrator.solve(TimeDependent(), 0.0, np.array([0.0]), 2.0)

    assert abs(y[0] - np.sin(2.0)) < 1e-6


def test_non_fsal_integrator():
    """Test a generic pair without FSAL."""
    integrator = EmbeddedRungeKuttaIntegrator("Heun-Euler", heun_euler(), 1e-10, 1.0, 1e-7, 1e-7)

    _, y = integrator.solve(ExponentialDecay(), 0.0, np.array([1.0]), 1.0)

    assert abs(y[0] - np.exp(-1.0)) < 1e-4


def test_plain_callable_problem():
    """Test solve accepts a bare function f(t, y)."""
    integrator = DormandPrince54Integrator(1e-8, 1.0, 1e-10, 1e-10)

    _, y = integrator.solve(lambda t, y: -2.0 * y, 0.0, [1.0, 2.0], 0.5)

    assert np.allclose(y, np.array([1.0, 2.0]) * np.exp(-1.0), atol=1e-8)


def test_backward_integration():
    """Test integrating toward an earlier time."""
    integrator = DormandPrince54Integrator(1e-8, 1.0, 1e-10, 1e-10)

    t_stop, y = integrator.solve(ExponentialDecay(), 1.0, np.array([np.exp(-1.0)]), 0.0)

    assert np.isclose(t_stop, 0.0, atol=1e-14)
    assert abs(y[0] - 1.0) < 1e-8


def test_grow_shrink_bounds():
    """Test the step ratio is bounded on both sides."""
    integrator = DormandPrince54Integrator(1e-8, 1.0)

    assert integrator.compute_step_grow_shrink_factor(0.0) == integrator.max_growth
    assert integrator.compute_step_grow_shrink_factor(1e-30) == 10.0
    assert integrator.compute_step_grow_shrink_factor(1e30) == 0.2
    assert np.isclose(
        integrator.compute_step_grow_shrink_factor(2.0), 0.9 * 2.0 ** (-1.0 / 5.0)
    )
