"""Rotation group SO(3) represented by unit quaternions."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

from multishoot.core.state import StateAbstract, Wrt

_SMALL_ANGLE = 1e-3


def hat(w: NDArray) -> NDArray:
    """Skew-symmetric matrix such that hat(w) @ v == cross(w, v)."""
    return np.array([
        [0.0, -w[2], w[1]],
        [w[2], 0.0, -w[0]],
        [-w[1], w[0], 0.0],
    ])


def right_jacobian(w: NDArray) -> NDArray:
    """Right Jacobian Jr(w) of the exponential map: Exp(w + d) ~ Exp(w) Exp(Jr d)."""
    theta = np.linalg.norm(w)
    W = hat(w)
    if theta < _SMALL_ANGLE:
        a = 0.5 - theta**2 / 24.0
        b = 1.0 / 6.0 - theta**2 / 120.0
    else:
        a = (1.0 - np.cos(theta)) / theta**2
        b = (theta - np.sin(theta)) / theta**3
    return np.eye(3) - a * W + b * (W @ W)


def right_jacobian_inverse(w: NDArray) -> NDArray:
    """Inverse of the right Jacobian, valid for |w| < pi."""
    theta = np.linalg.norm(w)
    W = hat(w)
    if theta < _SMALL_ANGLE:
        c = 1.0 / 12.0 + theta**2 / 720.0
    else:
        c = 1.0 / theta**2 - (1.0 + np.cos(theta)) / (2.0 * theta * np.sin(theta))
    return np.eye(3) + 0.5 * W + c * (W @ W)


def _canonical(q: NDArray) -> NDArray:
    # q and -q encode the same rotation; keep the scalar part non-negative
    return -q if q[3] < 0.0 else q


class StateSO3(StateAbstract):
    """
    Attitude state on SO(3).

    Points are unit quaternions ``[qx, qy, qz, qw]`` (scalar last, nx=4);
    tangent vectors are body-frame rotation vectors (ndx=3). Operators are
    right-trivialised:

        integrate(q, w) = q * Exp(w)
        diff(q0, q1)    = Log(q0^-1 * q1)

    diff is only a true inverse of integrate for rotation angles below pi.
    """

    def __init__(self, dtype=np.float64):
        super().__init__(4, 3, 0, dtype)

    def _zero(self) -> NDArray:
        return np.array([0.0, 0.0, 0.0, 1.0])

    def _rand(self, rng: np.random.Generator) -> NDArray:
        return _canonical(Rotation.random(None, rng).as_quat())

    def _diff(self, x0: NDArray, x1: NDArray) -> NDArray:
        return (Rotation.from_quat(x0).inv() * Rotation.from_quat(x1)).as_rotvec()

    def _integrate(self, x: NDArray, dx: NDArray) -> NDArray:
        q = (Rotation.from_quat(x) * Rotation.from_rotvec(dx)).as_quat()
        return _canonical(q)

    def _Jdiff(
        self, x0: NDArray, x1: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        d = self._diff(x0, x1)
        J_first = J_second = None
        if wrt is not Wrt.SECOND:
            # -Jr^-1(d) Exp(d)^T, which equals -Jl^-1(d) = -Jr^-1(-d)
            J_first = -right_jacobian_inverse(-d)
        if wrt is not Wrt.FIRST:
            J_second = right_jacobian_inverse(d)
        return J_first, J_second

    def _Jintegrate(
        self, x: NDArray, dx: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        J_first = J_second = None
        if wrt is not Wrt.SECOND:
            J_first = Rotation.from_rotvec(dx).as_matrix().T
        if wrt is not Wrt.FIRST:
            J_second = right_jacobian(dx)
        return J_first, J_second
