"""
Nordsieck: adaptive multistep ODE integrators.

This library provides Adams-Bashforth and Adams-Moulton integrators for
first-order systems y' = f(t, y), carried in Nordsieck form so that the
step size can change freely between steps. It includes:
- The order dependent Adams-Nordsieck transform, cached per step count
- Adaptive step size control with scalar or per-component tolerances
- Embedded Runge-Kutta integrators, used to start the multistep methods
- Event detection, fixed-interval output and continuous output
"""

import logging

__version__ = "0.1.0"

from nordsieck.algebra.transformer import AdamsNordsieckTransformer, get_transformer
from nordsieck.core.problem import ExpandableODE
from nordsieck.solvers.adams_bashforth import AdamsBashforthIntegrator
from nordsieck.solvers.adams_moulton import AdamsMoultonIntegrator
from nordsieck.solvers.runge_kutta import DormandPrince54Integrator
from nordsieck.stepping.events import Action, EventHandler

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AdamsNordsieckTransformer",
    "get_transformer",
    "ExpandableODE",
    "AdamsBashforthIntegrator",
    "AdamsMoultonIntegrator",
    "DormandPrince54Integrator",
    "Action",
    "EventHandler",
]
