"""Linear algebra backend protocol."""

from typing import Protocol, Any
from numpy.typing import NDArray


class LinearAlgebraBackend(Protocol):
    """
    Protocol for the dense kernels used by the Riccati recursion.
    Allows swapping the factorisation of the control Hessian Quu.
    """

    def cho_factor(self, A: NDArray) -> Any:
        """
        Cholesky factorisation of a symmetric matrix.

        Args:
            A: Symmetric matrix to factor

        Returns:
            Factorisation object (implementation-specific)

        Raises:
            numpy.linalg.LinAlgError: A is not positive definite
        """
        ...

    def cho_solve(self, factorization: Any, b: NDArray) -> NDArray:
        """
        Solve A x = b using a precomputed Cholesky factorisation.

        Args:
            factorization: Result of cho_factor
            b: Right-hand side, vector or matrix

        Returns:
            Solution x
        """
        ...
