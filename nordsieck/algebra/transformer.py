"""Transformation between classical multistep history and Nordsieck vectors.

The Nordsieck vector at time t_n holds, for a step size h,

    [ y_n, h y'_n, h^2/2 y''_n, ..., h^k/k! y(k)_n ]

The first two entries are carried separately by the integrators (state and
scaled first derivative); the transformer works on the block R of the
remaining k-1 rows. Adams methods only need two operations on it:

    R_{n+1} = update R_n + c1 (s1_n - s1_{n+1})

split into a pure part (``update @ R``, Phase 1) and an in-place
correction (Phase 2). ``update`` and ``c1`` depend on k only.

With P the (k-1, k-1) matrix P[i, j] = (j + 2) (-(i + 1))^(j + 1), the
classical differences of scaled derivatives
q_i = h y'_{n-i-1} - h y'_n are Q = P R.
"""

import logging
import threading
from typing import Optional

import numpy as np
import sympy
from numpy.typing import NDArray

from nordsieck.algebra.dense import DenseBackend, RationalBackend
from nordsieck.algebra.protocols import LinearAlgebraBackend
from nordsieck.core.exceptions import DimensionMismatchError, NumberTooSmallError

logger = logging.getLogger(__name__)


def _build_p(rows: int) -> sympy.Matrix:
    return sympy.Matrix(
        rows, rows, lambda i, j: (j + 2) * sympy.Integer(-(i + 1)) ** (j + 1)
    )


class AdamsNordsieckTransformer:
    """Order dependent coefficients of the Adams methods in Nordsieck form.

    Instances are immutable; obtain them through a ``TransformerRegistry``
    (or ``get_instance``) so that each step count is only built once.
    """

    def __init__(self, n_steps: int, backend: Optional[LinearAlgebraBackend] = None):
        if n_steps < 1:
            raise NumberTooSmallError(n_steps, 1, what="number of steps")
        self.n_steps = n_steps
        self.rows = n_steps - 1
        self.backend = backend if backend is not None else DenseBackend()

        exact = RationalBackend()
        if self.rows > 0:
            p = _build_p(self.rows)
            factorization = exact.lu_factor(p)
            c1 = exact.lu_solve(factorization, sympy.ones(self.rows, 1))
            shifted = sympy.Matrix(
                self.rows, self.rows, lambda i, j: p[i - 1, j] if i > 0 else 0
            )
            update = exact.lu_solve(factorization, shifted)
        else:
            p = c1 = update = sympy.zeros(0, 0)
        self._exact = {"P": p, "c1": c1, "update": update}
        self._by_dtype: dict = {}
        self._by_dtype_lock = threading.Lock()

        self.P = self._array("P", np.float64)
        self.update = self._array("update", np.float64)
        self.c1 = self._array("c1", np.float64).reshape(self.rows)
        self._p_factorization = (
            self.backend.lu_factor(np.array(self.P)) if self.rows > 0 else None
        )
        logger.debug("built Adams-Nordsieck transformer for %d steps", n_steps)

    @classmethod
    def get_instance(cls, n_steps: int) -> "AdamsNordsieckTransformer":
        """Shared transformer from the process-wide registry."""
        return default_registry.get(n_steps)

    def _array(self, name: str, dtype) -> NDArray:
        M = self._exact[name]
        if M.rows == 0:
            arr = np.zeros((self.rows, self.rows), dtype=dtype)
            arr.setflags(write=False)
            return arr
        return RationalBackend.to_array(M, dtype)

    def coefficients(self, dtype) -> tuple[NDArray, NDArray]:
        """(update, c1) rounded to the precision of ``dtype``."""
        dtype = np.dtype(dtype)
        if dtype == np.float64:
            return self.update, self.c1
        with self._by_dtype_lock:
            pair = self._by_dtype.get(dtype)
            if pair is None:
                pair = (
                    self._array("update", dtype),
                    self._array("c1", dtype).reshape(self.rows),
                )
                self._by_dtype[dtype] = pair
        return pair

    def initialize_high_order_derivatives(
        self,
        h: float,
        t: NDArray,
        y: NDArray,
        y_dot: NDArray,
    ) -> NDArray:
        """
        Fit the high order block R from a few solution points.

        Args:
            h: Step size the Nordsieck vector is scaled with
            t: (m,) sample times, t[0] is the reference time
            y: (m, n) states at the sample times
            y_dot: (m, n) derivatives at the sample times

        Returns:
            (k-1, n) block of scaled derivatives of orders 2 to k
        """
        t = np.asarray(t)
        y = np.asarray(y)
        y_dot = np.asarray(y_dot)
        if y.shape != y_dot.shape or y.shape[0] != t.shape[0]:
            raise DimensionMismatchError(y_dot.shape[0], y.shape[0])
        dtype = np.result_type(y.dtype, y_dot.dtype, np.float64)
        n = y.shape[1]
        if self.rows == 0:
            return np.zeros((0, n), dtype=dtype)

        # unknowns are the scaled derivatives of orders 2 .. k+1
        unknowns = self.n_steps
        m = t.shape[0] - 1
        orders = np.arange(2, unknowns + 2)
        a = np.zeros((2 * m, unknowns), dtype=dtype)
        b = np.zeros((2 * m, n), dtype=dtype)
        for i in range(1, m + 1):
            di = t[i] - t[0]
            ratio = di / h
            a[2 * i - 2] = ratio ** orders
            a[2 * i - 1] = orders * ratio ** (orders - 1) / h
            b[2 * i - 2] = y[i] - y[0] - di * y_dot[0]
            b[2 * i - 1] = y_dot[i] - y_dot[0]

        x = self.backend.lstsq(a, b)
        return np.array(x[: self.rows], dtype=dtype)

    def update_high_order_derivatives_phase1(self, high_order: NDArray) -> NDArray:
        """Pure part of the update: returns ``update @ R``."""
        update, _ = self.coefficients(high_order.dtype)
        return update @ high_order

    def update_high_order_derivatives_phase2(
        self, start: NDArray, end: NDArray, high_order: NDArray
    ) -> None:
        """Add ``c1 (start - end)`` to each row of R, in place."""
        _, c1 = self.coefficients(high_order.dtype)
        high_order += np.outer(c1, np.asarray(start) - np.asarray(end))

    def nordsieck_to_classical(self, high_order: NDArray) -> NDArray:
        """Differences of scaled derivatives h y'_{n-i-1} - h y'_n."""
        return self.P @ high_order

    def classical_to_nordsieck(self, differences: NDArray) -> NDArray:
        if self.rows == 0:
            return np.zeros_like(differences)
        return self.backend.lu_solve(self._p_factorization, differences)


class TransformerRegistry:
    """Cache of transformers keyed by step count.

    Lookup and construction happen under one lock, so concurrent requests
    for the same step count always observe a single instance.
    """

    def __init__(self, backend: Optional[LinearAlgebraBackend] = None):
        self.backend = backend
        self._lock = threading.Lock()
        self._cache: dict[int, AdamsNordsieckTransformer] = {}

    def get(self, n_steps: int) -> AdamsNordsieckTransformer:
        with self._lock:
            transformer = self._cache.get(n_steps)
            if transformer is None:
                transformer = AdamsNordsieckTransformer(n_steps, self.backend)
                self._cache[n_steps] = transformer
            return transformer

    def __contains__(self, n_steps: int) -> bool:
        with self._lock:
            return n_steps in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


default_registry = TransformerRegistry()


def get_transformer(n_steps: int) -> AdamsNordsieckTransformer:
    """Transformer for ``n_steps`` from the process-wide registry."""
    return default_registry.get(n_steps)
