"""Problem specification protocols and the expandable state container."""

from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np
from numpy.typing import ArrayLike, NDArray

from nordsieck.core.exceptions import DimensionMismatchError


class FirstOrderProblem(Protocol):
    """User provides the right-hand side of y' = f(t, y)."""

    @property
    def dimension(self) -> int:
        """State dimension n."""
        ...

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        """RHS evaluation: y' = f(t, y)."""
        ...


class SecondaryEquations(Protocol):
    """Extra equations driven by the primary state (e.g. quadratures)."""

    @property
    def dimension(self) -> int:
        """Secondary state dimension."""
        ...

    def compute_derivatives(
        self, t: float, primary: NDArray, primary_dot: NDArray, secondary: NDArray
    ) -> NDArray:
        """Secondary RHS, given the primary state and its derivative."""
        ...


@dataclass(frozen=True)
class EquationsMapper:
    """Location of one equation set inside the complete state vector."""

    first_index: int
    dimension: int

    @property
    def slice(self) -> slice:
        return slice(self.first_index, self.first_index + self.dimension)

    def extract(self, complete: NDArray) -> NDArray:
        """Copy this set's components out of a complete vector."""
        return np.array(complete[self.slice], copy=True)

    def insert(self, part: NDArray, complete: NDArray) -> None:
        """Write this set's components into a complete vector in place."""
        part = np.asarray(part)
        if part.shape[-1] != self.dimension:
            raise DimensionMismatchError(part.shape[-1], self.dimension)
        complete[self.slice] = part


class ExpandableODE:
    """Primary ODE plus any number of secondary equation sets.

    The complete state is the primary state followed by each secondary
    block in registration order. Error control only looks at the primary
    part (``primary_mapper.dimension``).
    """

    def __init__(
        self,
        primary: FirstOrderProblem,
        dtype: Optional[np.dtype] = None,
    ):
        self.primary = primary
        self.primary_mapper = EquationsMapper(0, primary.dimension)
        self.secondary: list[SecondaryEquations] = []
        self.secondary_mappers: list[EquationsMapper] = []
        self.dtype = np.dtype(dtype) if dtype is not None else np.dtype(np.float64)
        self.time = np.nan
        self._primary_state = np.zeros(primary.dimension, dtype=self.dtype)
        self._secondary_states: list[NDArray] = []

    def add_secondary_equations(self, secondary: SecondaryEquations) -> int:
        """Register a secondary set and return its index."""
        first = self.total_dimension
        self.secondary.append(secondary)
        self.secondary_mappers.append(EquationsMapper(first, secondary.dimension))
        self._secondary_states.append(np.zeros(secondary.dimension, dtype=self.dtype))
        return len(self.secondary) - 1

    @property
    def total_dimension(self) -> int:
        if self.secondary_mappers:
            last = self.secondary_mappers[-1]
            return last.first_index + last.dimension
        return self.primary_mapper.dimension

    @property
    def primary_state(self) -> NDArray:
        return self._primary_state.copy()

    @primary_state.setter
    def primary_state(self, value: ArrayLike) -> None:
        value = np.asarray(value)
        if value.shape != (self.primary_mapper.dimension,):
            raise DimensionMismatchError(value.size, self.primary_mapper.dimension)
        if np.issubdtype(value.dtype, np.floating):
            self.dtype = np.result_type(self.dtype, value.dtype)
        self._primary_state = np.array(value, dtype=self.dtype)
        self._secondary_states = [s.astype(self.dtype) for s in self._secondary_states]

    def secondary_state(self, index: int) -> NDArray:
        return self._secondary_states[index].copy()

    def set_secondary_state(self, index: int, value: ArrayLike) -> None:
        value = np.asarray(value, dtype=self.dtype)
        mapper = self.secondary_mappers[index]
        if value.shape != (mapper.dimension,):
            raise DimensionMismatchError(value.size, mapper.dimension)
        self._secondary_states[index] = value.copy()

    @property
    def complete_state(self) -> NDArray:
        y = np.empty(self.total_dimension, dtype=self.dtype)
        self.primary_mapper.insert(self._primary_state, y)
        for mapper, state in zip(self.secondary_mappers, self._secondary_states):
            mapper.insert(state, y)
        return y

    @complete_state.setter
    def complete_state(self, y: ArrayLike) -> None:
        y = np.asarray(y, dtype=self.dtype)
        if y.shape != (self.total_dimension,):
            raise DimensionMismatchError(y.size, self.total_dimension)
        self._primary_state = self.primary_mapper.extract(y)
        self._secondary_states = [m.extract(y) for m in self.secondary_mappers]

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        """Derivative of the complete state."""
        y_dot = np.empty_like(y)
        primary = y[self.primary_mapper.slice]
        primary_dot = np.asarray(self.primary.compute_derivatives(t, primary))
        if primary_dot.shape != primary.shape:
            raise DimensionMismatchError(primary_dot.size, primary.size)
        y_dot[self.primary_mapper.slice] = primary_dot
        for equations, mapper in zip(self.secondary, self.secondary_mappers):
            y_dot[mapper.slice] = equations.compute_derivatives(
                t, primary, primary_dot, y[mapper.slice]
            )
        return y_dot

    def copy_at(self, t: float, y: NDArray) -> "ExpandableODE":
        """Same equations, with state set to (t, y)."""
        other = ExpandableODE(self.primary, dtype=self.dtype)
        for equations in self.secondary:
            other.add_secondary_equations(equations)
        other.time = t
        other.complete_state = y
        return other


class FunctionProblem:
    """Adapter turning a plain callable ``f(t, y)`` into a problem."""

    def __init__(self, f, dimension: int):
        self.f = f
        self.dimension = dimension

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        return np.asarray(self.f(t, y))
