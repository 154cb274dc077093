"""Dense linear algebra backends: floating point (SciPy) and exact (SymPy)."""

from typing import Tuple
import numpy as np
import scipy.linalg
import sympy
from numpy.typing import NDArray


class DenseBackend:
    """NumPy/SciPy implementation of linear algebra operations."""

    def lu_factor(self, A: NDArray) -> Tuple[NDArray, NDArray]:
        """
        Compute LU factorization using scipy.

        Returns:
            (lu, piv) tuple from scipy.linalg.lu_factor
        """
        return scipy.linalg.lu_factor(A)

    def lu_solve(self, factorization: Tuple[NDArray, NDArray], b: NDArray) -> NDArray:
        """Solve using (lu, piv) from lu_factor."""
        return scipy.linalg.lu_solve(factorization, b)

    def lstsq(self, A: NDArray, b: NDArray) -> NDArray:
        """Least squares solution; SciPy does not accept extended precision."""
        dtype = np.result_type(A, b)
        if dtype.itemsize > 8:
            x, *_ = np.linalg.lstsq(A.astype(np.float64), b.astype(np.float64), rcond=None)
        else:
            x, *_ = scipy.linalg.lstsq(A, b)
        return x.astype(dtype, copy=False)


class RationalBackend:
    """Exact rational arithmetic through sympy matrices.

    Matrices are sympy ``Matrix`` objects with ``Rational`` entries, so
    solves introduce no rounding at all.
    """

    def lu_factor(self, A: sympy.Matrix) -> sympy.Matrix:
        """SymPy factors on every solve; the matrix itself is the handle."""
        return sympy.Matrix(A)

    def lu_solve(self, factorization: sympy.Matrix, b: sympy.Matrix) -> sympy.Matrix:
        return factorization.LUsolve(sympy.Matrix(b))

    @staticmethod
    def to_array(M: sympy.Matrix, dtype=np.float64) -> NDArray:
        """Round an exact matrix to a read-only array of the given dtype."""
        scalar = np.dtype(dtype).type
        arr = np.empty((M.rows, M.cols), dtype=dtype)
        for i in range(M.rows):
            for j in range(M.cols):
                q = sympy.Rational(M[i, j])
                arr[i, j] = scalar(int(q.p)) / scalar(int(q.q))
        arr.setflags(write=False)
        return arr
