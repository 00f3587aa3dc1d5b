"""Dense linear algebra backend using NumPy/SciPy."""

from typing import Tuple
import numpy as np
import scipy.linalg
from numpy.typing import NDArray


class DenseBackend:
    """NumPy/SciPy implementation of linear algebra operations."""

    def cho_factor(self, A: NDArray) -> Tuple[NDArray, bool]:
        """
        Compute Cholesky factorization using scipy.

        Returns:
            (c, lower) tuple from scipy.linalg.cho_factor

        Raises:
            numpy.linalg.LinAlgError: A is not positive definite or holds
                non-finite entries
        """
        if not np.all(np.isfinite(A)):
            raise np.linalg.LinAlgError("matrix holds non-finite entries")
        return scipy.linalg.cho_factor(A, lower=True, check_finite=False)

    def cho_solve(self, factorization: Tuple[NDArray, bool], b: NDArray) -> NDArray:
        """Solve using precomputed Cholesky factorization."""
        return scipy.linalg.cho_solve(factorization, b, check_finite=False)
