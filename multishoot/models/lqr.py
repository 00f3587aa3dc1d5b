"""Linear-quadratic stage model."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.stage import StageModelAbstract
from multishoot.states.euclidean import StateVector


class StageModelLQR(StageModelAbstract):
    """
    Linear dynamics with a quadratic cost on a Euclidean state.

        xnext = Fx x + Fu u + f0
        l(x, u) = 0.5 x^T Lxx x + 0.5 u^T Luu u + x^T Lxu u + lx^T x + lu^T u

    Terminal evaluation drops every term that involves u.

    Args:
        Fx: State transition (nx, nx)
        Fu: Control matrix (nx, nu)
        Lxx: State weight (nx, nx), symmetric
        Luu: Control weight (nu, nu), symmetric
        Lxu: Cross weight (nx, nu), zero by default
        f0: Drift (nx,), zero by default
        lx: Linear state cost (nx,), zero by default
        lu: Linear control cost (nu,), zero by default
    """

    def __init__(
        self,
        Fx: NDArray,
        Fu: NDArray,
        Lxx: NDArray,
        Luu: NDArray,
        Lxu: Optional[NDArray] = None,
        f0: Optional[NDArray] = None,
        lx: Optional[NDArray] = None,
        lu: Optional[NDArray] = None,
    ):
        Fx = np.atleast_2d(np.asarray(Fx, dtype=float))
        Fu = np.asarray(Fu, dtype=float)
        if Fu.ndim == 1:
            Fu = Fu.reshape(-1, 1)
        nx, nu = Fx.shape[0], Fu.shape[1]

        self.A = _checked("Fx", Fx, (nx, nx))
        self.B = _checked("Fu", Fu, (nx, nu))
        self.Q = _checked("Lxx", np.atleast_2d(Lxx), (nx, nx), symmetric=True)
        self.R = _checked("Luu", np.atleast_2d(Luu), (nu, nu), symmetric=True)
        self.N = np.zeros((nx, nu)) if Lxu is None else _checked("Lxu", Lxu, (nx, nu))
        self.f0 = np.zeros(nx) if f0 is None else _checked("f0", f0, (nx,))
        self.q = np.zeros(nx) if lx is None else _checked("lx", lx, (nx,))
        self.r = np.zeros(nu) if lu is None else _checked("lu", lu, (nu,))

        super().__init__(StateVector(nx), nu)

    def _calc(self, data, x, u):
        if u is None:
            data.xnext[:] = x
            data.cost = 0.5 * float(x @ self.Q @ x) + float(self.q @ x)
            return
        data.xnext[:] = self.A @ x + self.B @ u + self.f0
        data.cost = (
            0.5 * float(x @ self.Q @ x)
            + 0.5 * float(u @ self.R @ u)
            + float(x @ self.N @ u)
            + float(self.q @ x)
            + float(self.r @ u)
        )

    def _calc_diff(self, data, x, u):
        data.Lxx[:] = self.Q
        if u is None:
            data.Fx[:] = np.eye(self.state.nx)
            data.Fu[:] = 0.0
            data.Lx[:] = self.Q @ x + self.q
            data.Lu[:] = 0.0
            data.Luu[:] = 0.0
            data.Lxu[:] = 0.0
            return
        data.Fx[:] = self.A
        data.Fu[:] = self.B
        data.Lx[:] = self.Q @ x + self.N @ u + self.q
        data.Lu[:] = self.R @ u + self.N.T @ x + self.r
        data.Luu[:] = self.R
        data.Lxu[:] = self.N


def _checked(name: str, value, shape: tuple, symmetric: bool = False) -> NDArray:
    value = np.asarray(value, dtype=float)
    if value.shape != shape:
        raise ValueError(f"{name} has shape {value.shape}, expected {shape}")
    if symmetric and not np.allclose(value, value.T):
        raise ValueError(f"{name} must be symmetric")
    return value
