"""Adaptive integrators."""

from nordsieck.solvers.base import AbstractIntegrator
from nordsieck.solvers.adaptive import AdaptiveStepsizeIntegrator
from nordsieck.solvers.runge_kutta import (
    BogackiShampine32Integrator,
    DormandPrince54Integrator,
    EmbeddedRungeKuttaIntegrator,
)
from nordsieck.solvers.multistep import AdamsIntegrator, MultistepIntegrator
from nordsieck.solvers.adams_bashforth import AdamsBashforthIntegrator
from nordsieck.solvers.adams_moulton import AdamsMoultonIntegrator
from nordsieck.solvers.factory import IntegratorKind, create_integrator

__all__ = [
    "AbstractIntegrator",
    "AdaptiveStepsizeIntegrator",
    "BogackiShampine32Integrator",
    "DormandPrince54Integrator",
    "EmbeddedRungeKuttaIntegrator",
    "AdamsIntegrator",
    "MultistepIntegrator",
    "AdamsBashforthIntegrator",
    "AdamsMoultonIntegrator",
    "IntegratorKind",
    "create_integrator",
]
