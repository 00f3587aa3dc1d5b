"""Euclidean state vector."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.state import StateAbstract, Wrt


class StateVector(StateAbstract):
    """
    Euclidean state of dimension nx.

    Points and velocities live in the same space, so diff and integrate are
    subtraction and addition and every Jacobian is the identity (negated for
    the first argument of diff).
    """

    def __init__(self, nx: int, nv: int = 0, dtype=np.float64):
        super().__init__(nx, nx, nv, dtype)

    def _zero(self) -> NDArray:
        return np.zeros(self.nx)

    def _rand(self, rng: np.random.Generator) -> NDArray:
        return rng.standard_normal(self.nx)

    def _diff(self, x0: NDArray, x1: NDArray) -> NDArray:
        return x1 - x0

    def _integrate(self, x: NDArray, dx: NDArray) -> NDArray:
        return x + dx

    def _Jdiff(
        self, x0: NDArray, x1: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        eye = np.eye(self.ndx, dtype=self.dtype)
        return -eye, eye

    def _Jintegrate(
        self, x: NDArray, dx: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        eye = np.eye(self.ndx, dtype=self.dtype)
        return eye, eye.copy()

    def _Jintegrate_transport(
        self, x: NDArray, dx: NDArray, Jin: NDArray, wrt: Wrt
    ) -> NDArray:
        return np.array(Jin, dtype=self.dtype)
