"""Dynamics protocol for integrated stage models."""

from typing import Protocol
from numpy.typing import NDArray


class DynamicsModel(Protocol):
    """
    Tangent velocity field v(x, u) on a state manifold.

    The integrated stage model advances x by integrate(x, dt * v(x, u)).
    Derivatives are taken in tangent coordinates: v_x is the derivative of
    v(integrate(x, d), u) with respect to d at d = 0.
    """

    @property
    def nu(self) -> int:
        """Control dimension."""
        ...

    def velocity(self, x: NDArray, u: NDArray) -> NDArray:
        """Velocity v(x, u), shape (ndx,)."""
        ...

    def velocity_diff(self, x: NDArray, u: NDArray) -> tuple[NDArray, NDArray]:
        """Jacobians (v_x, v_u), shapes (ndx, ndx) and (ndx, nu)."""
        ...
