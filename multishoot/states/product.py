"""Product of state manifolds."""

from typing import Optional, Sequence
import numpy as np
import scipy.linalg
from numpy.typing import NDArray

from multishoot.core.state import StateAbstract, Wrt


class StateProduct(StateAbstract):
    """
    Cartesian product M_1 x ... x M_n of state manifolds.

    Ambient and tangent vectors are the concatenation of the component
    vectors; Jacobians are block diagonal. Velocity blocks of the components
    are expected to be trailing, so the product reports the sum of the
    component ``nv``.
    """

    def __init__(self, states: Sequence[StateAbstract], dtype=np.float64):
        if len(states) == 0:
            raise ValueError("StateProduct needs at least one component")
        self.states = list(states)
        nx = sum(s.nx for s in self.states)
        ndx = sum(s.ndx for s in self.states)
        nv = sum(s.nv for s in self.states)
        super().__init__(nx, ndx, nv, dtype)

        self._x_slices: list[slice] = []
        self._dx_slices: list[slice] = []
        ix = idx = 0
        for s in self.states:
            self._x_slices.append(slice(ix, ix + s.nx))
            self._dx_slices.append(slice(idx, idx + s.ndx))
            ix += s.nx
            idx += s.ndx

    def same_space(self, other: StateAbstract) -> bool:
        return (
            isinstance(other, StateProduct)
            and len(self.states) == len(other.states)
            and all(a.same_space(b) for a, b in zip(self.states, other.states))
        )

    def _zero(self) -> NDArray:
        return np.concatenate([s.zero() for s in self.states])

    def _rand(self, rng: np.random.Generator) -> NDArray:
        return np.concatenate([s.rand(rng) for s in self.states])

    def _diff(self, x0: NDArray, x1: NDArray) -> NDArray:
        return np.concatenate([
            s.diff(x0[sx], x1[sx]) for s, sx in zip(self.states, self._x_slices)
        ])

    def _integrate(self, x: NDArray, dx: NDArray) -> NDArray:
        return np.concatenate([
            s.integrate(x[sx], dx[sdx])
            for s, sx, sdx in zip(self.states, self._x_slices, self._dx_slices)
        ])

    def _Jdiff(
        self, x0: NDArray, x1: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        blocks = [
            s.Jdiff(x0[sx], x1[sx], Wrt.BOTH)
            for s, sx in zip(self.states, self._x_slices)
        ]
        return self._block_diag(blocks, wrt)

    def _Jintegrate(
        self, x: NDArray, dx: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        blocks = [
            s.Jintegrate(x[sx], dx[sdx], Wrt.BOTH)
            for s, sx, sdx in zip(self.states, self._x_slices, self._dx_slices)
        ]
        return self._block_diag(blocks, wrt)

    def _Jintegrate_transport(
        self, x: NDArray, dx: NDArray, Jin: NDArray, wrt: Wrt
    ) -> NDArray:
        Jout = np.empty_like(Jin, dtype=self.dtype)
        for s, sx, sdx in zip(self.states, self._x_slices, self._dx_slices):
            Jout[sdx] = s.Jintegrate_transport(x[sx], dx[sdx], Jin[sdx], wrt)
        return Jout

    @staticmethod
    def _block_diag(blocks, wrt: Wrt):
        J_first = J_second = None
        if wrt is not Wrt.SECOND:
            J_first = scipy.linalg.block_diag(*[b[0] for b in blocks])
        if wrt is not Wrt.FIRST:
            J_second = scipy.linalg.block_diag(*[b[1] for b in blocks])
        return J_first, J_second
