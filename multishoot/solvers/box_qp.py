"""Box-constrained quadratic programs solved by projected Newton."""

from dataclasses import dataclass
from typing import Optional
import numpy as np
from loguru import logger
from numpy.typing import NDArray

from multishoot.algebra import DenseBackend, LinearAlgebraBackend
from multishoot.core.errors import check_size


@dataclass
class BoxQPSolution:
    """Minimiser and the reduced Hessian inverse on its free set."""

    x: NDArray              # (nx,)
    Hff_inv: NDArray        # (nf, nf)
    free_idx: list[int]
    clamped_idx: list[int]


class BoxQP:
    """
    min 0.5 x^T H x + q^T x  subject to  lb <= x <= ub.

    Each iteration splits the variables into a clamped set (on a bound with
    the gradient pushing outward) and a free set, takes a Newton step on the
    free set and projects a backtracking line search onto the box.

    Args:
        nx: Number of decision variables
        maxiter: Maximum projected-Newton iterations
        th: Stop when the squared free-set gradient norm drops below this
        reg: Added to the diagonal of the free Hessian before factorising
        backend: Linear algebra used for the free-set factorisation
    """

    th_acceptstep = 0.1
    alphas = tuple(2.0 ** -i for i in range(10))

    def __init__(
        self,
        nx: int,
        maxiter: int = 100,
        th: float = 1e-9,
        reg: float = 1e-9,
        backend: Optional[LinearAlgebraBackend] = None,
    ):
        if nx < 0:
            raise ValueError(f"nx must be >= 0, got {nx}")
        if maxiter < 1:
            raise ValueError(f"maxiter must be >= 1, got {maxiter}")
        if th <= 0.0 or reg < 0.0:
            raise ValueError("th must be > 0 and reg >= 0")
        self.nx = nx
        self.maxiter = maxiter
        self.th = th
        self.reg = reg
        self.backend = backend or DenseBackend()

    def solve(
        self,
        H: NDArray,
        q: NDArray,
        lb: NDArray,
        ub: NDArray,
        xinit: Optional[NDArray] = None,
    ) -> BoxQPSolution:
        """
        Solve the box QP from xinit (projected onto the box).

        Raises:
            numpy.linalg.LinAlgError: the Hessian restricted to the free set
                is not positive definite
        """
        n = self.nx
        if np.shape(H) != (n, n):
            raise ValueError(f"H has shape {np.shape(H)}, expected {(n, n)}")
        check_size("q", q, n)
        check_size("lb", lb, n)
        check_size("ub", ub, n)
        if np.any(lb > ub):
            raise ValueError("box lower bound exceeds upper bound")

        x = np.zeros(n) if xinit is None else np.array(xinit, dtype=float)
        check_size("xinit", x, n)
        x = np.clip(x, lb, ub)

        for it in range(self.maxiter):
            g = q + H @ x
            free, clamped = self._split(x, g, lb, ub)
            factor = self._factor(H, free)
            g_f = g[free]
            if float(g_f @ g_f) <= self.th:
                logger.debug("box QP converged in {} iterations", it)
                break

            dx = np.zeros(n)
            dx[free] = -self.backend.cho_solve(factor, g_f)
            f_old = self._value(H, q, x)
            for alpha in self.alphas:
                x_new = np.clip(x + alpha * dx, lb, ub)
                if f_old - self._value(H, q, x_new) >= self.th_acceptstep * float(g @ (x - x_new)):
                    x = x_new
                    break
            else:
                logger.debug("box QP line search failed at iteration {}", it)
                break

        g = q + H @ x
        free, clamped = self._split(x, g, lb, ub)
        factor = self._factor(H, free)
        Hff_inv = (
            self.backend.cho_solve(factor, np.eye(len(free))) if free else np.zeros((0, 0))
        )
        return BoxQPSolution(x=x, Hff_inv=Hff_inv, free_idx=free, clamped_idx=clamped)

    def _split(self, x, g, lb, ub) -> tuple[list[int], list[int]]:
        free, clamped = [], []
        for j in range(self.nx):
            if (x[j] == lb[j] and g[j] > 0.0) or (x[j] == ub[j] and g[j] < 0.0):
                clamped.append(j)
            else:
                free.append(j)
        return free, clamped

    def _factor(self, H, free):
        if not free:
            return None
        Hff = H[np.ix_(free, free)] + self.reg * np.eye(len(free))
        return self.backend.cho_factor(Hff)

    @staticmethod
    def _value(H, q, x) -> float:
        return 0.5 * float(x @ H @ x) + float(q @ x)
