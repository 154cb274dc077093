"""Linear algebra backend protocol."""

from typing import Protocol, Any
from numpy.typing import NDArray


class LinearAlgebraBackend(Protocol):
    """
    Protocol for the linear algebra used by the Nordsieck transform.
    Allows swapping the floating point solvers used while integrating;
    the exact rational backend only factors the construction matrices.
    """

    def lu_factor(self, A: NDArray) -> Any:
        """
        Compute LU factorization of A.

        Args:
            A: Square matrix to factor

        Returns:
            Factorization object (implementation-specific)
        """
        ...

    def lu_solve(self, factorization: Any, b: NDArray) -> NDArray:
        """
        Solve using precomputed LU factorization.

        Args:
            factorization: Precomputed factorization
            b: Right-hand side, vector or matrix

        Returns:
            Solution x
        """
        ...

    def lstsq(self, A: NDArray, b: NDArray) -> NDArray:
        """
        Least squares solution of an overdetermined system.

        Args:
            A: (m, p) matrix with m >= p
            b: (m,) or (m, q) right-hand side

        Returns:
            Minimizer x of ||Ax - b||
        """
        ...
