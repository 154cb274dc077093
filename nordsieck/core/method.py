"""Embedded Runge-Kutta method specification."""

from dataclasses import dataclass
from functools import cached_property
from enum import Enum, auto
import numpy as np
from numpy.typing import NDArray


class StageType(Enum):
    """Classification of stage matrix structure."""
    EXPLICIT = auto()   # A strictly lower triangular
    DIAGONALLY_IMPLICIT = auto()  # A lower triangular, some nonzero diagonal
    IMPLICIT = auto()   # A dense


@dataclass(frozen=True)
class ButcherTableau:
    """Embedded Runge-Kutta tableau.

    ``e`` holds the error weights, i.e. the difference between the
    propagated and the embedded solution weights, so that the local error
    estimate of a step is ``h * sum(e[l] * k[l])``.
    """

    A: NDArray  # (s, s) - stage coefficients
    b: NDArray  # (s,)   - solution weights
    e: NDArray  # (s,)   - error weights
    c: NDArray  # (s,)   - abscissae
    order: int  # order of the propagated solution

    @cached_property
    def s(self) -> int:
        """Number of stages."""
        return self.A.shape[0]

    @cached_property
    def stage_type(self) -> StageType:
        """Classify the stage matrix structure."""
        return _classify_stage_structure(self.A)

    @cached_property
    def fsal(self) -> bool:
        """First Same As Last: the last stage is evaluated at the new state."""
        return bool(
            np.isclose(self.c[-1], 1.0)
            and np.allclose(self.A[-1], self.b)
        )


def _classify_stage_structure(A: NDArray) -> StageType:
    """Classify stage matrix structure."""
    if np.allclose(A, np.tril(A, -1)):
        return StageType.EXPLICIT
    if np.allclose(A, np.tril(A)):
        return StageType.DIAGONALLY_IMPLICIT
    return StageType.IMPLICIT
