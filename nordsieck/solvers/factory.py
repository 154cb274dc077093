"""Integrator factory and dispatch logic."""

from enum import Enum, auto
from typing import Optional

from numpy.typing import ArrayLike

from nordsieck.algebra.transformer import TransformerRegistry
from nordsieck.solvers.adaptive import AdaptiveStepsizeIntegrator
from nordsieck.solvers.adams_bashforth import AdamsBashforthIntegrator
from nordsieck.solvers.adams_moulton import AdamsMoultonIntegrator
from nordsieck.solvers.runge_kutta import (
    BogackiShampine32Integrator,
    DormandPrince54Integrator,
)


class IntegratorKind(Enum):
    """Available adaptive integrators."""
    ADAMS_BASHFORTH = auto()
    ADAMS_MOULTON = auto()
    DORMAND_PRINCE_54 = auto()
    BOGACKI_SHAMPINE_32 = auto()


def create_integrator(
    kind: IntegratorKind,
    min_step: float,
    max_step: float,
    absolute_tolerance: ArrayLike = 1e-6,
    relative_tolerance: ArrayLike = 1e-6,
    n_steps: Optional[int] = None,
    registry: Optional[TransformerRegistry] = None,
) -> AdaptiveStepsizeIntegrator:
    """
    Build an integrator from its kind.

    Args:
        kind: Integrator family
        min_step: Minimal step magnitude
        max_step: Maximal step magnitude
        absolute_tolerance: Scalar or per primary component
        relative_tolerance: Scalar or per primary component
        n_steps: Number of steps, required for the Adams kinds
        registry: Transformer registry for the Adams kinds

    Returns:
        Configured integrator
    """
    if kind in (IntegratorKind.ADAMS_BASHFORTH, IntegratorKind.ADAMS_MOULTON):
        if n_steps is None:
            raise ValueError(f"{kind.name} needs n_steps")
        cls = (
            AdamsBashforthIntegrator
            if kind == IntegratorKind.ADAMS_BASHFORTH
            else AdamsMoultonIntegrator
        )
        return cls(
            n_steps, min_step, max_step,
            absolute_tolerance, relative_tolerance, registry=registry,
        )

    if n_steps is not None:
        raise ValueError(f"{kind.name} is a one-step method")
    if kind == IntegratorKind.DORMAND_PRINCE_54:
        return DormandPrince54Integrator(
            min_step, max_step, absolute_tolerance, relative_tolerance
        )
    return BogackiShampine32Integrator(
        min_step, max_step, absolute_tolerance, relative_tolerance
    )
