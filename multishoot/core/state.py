"""State manifold interface."""

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.errors import check_rows, check_size


class Wrt(Enum):
    """Argument a state Jacobian is taken with respect to."""
    FIRST = auto()
    SECOND = auto()
    BOTH = auto()


class StateAbstract(ABC):
    """
    Geometry of a state space.

    Points live in an ambient representation of size ``nx`` and are
    displaced by tangent vectors of size ``ndx``. ``diff`` and ``integrate``
    replace vector subtraction and addition:

        integrate(x, diff(x, y)) == y
        diff(x, integrate(x, dx)) == dx

    Jacobians are expressed in tangent coordinates. ``nv`` is the size of the
    velocity block stored at the tail of ``x`` (zero when the state has none).

    Subclasses implement the underscored hooks; the public methods validate
    argument sizes and raise DimensionError before delegating.
    """

    def __init__(self, nx: int, ndx: int, nv: int = 0, dtype=np.float64):
        if nv < 0 or nv > min(nx, ndx):
            raise ValueError(f"nv must lie in [0, {min(nx, ndx)}], got {nv}")
        self.nx = nx
        self.ndx = ndx
        self.nv = nv
        self.dtype = np.dtype(dtype)

    @property
    def nq(self) -> int:
        """Size of the configuration block at the head of ``x``."""
        return self.nx - self.nv

    def same_space(self, other: "StateAbstract") -> bool:
        """True when ``other`` describes the same manifold."""
        return (
            type(self) is type(other)
            and self.nx == other.nx
            and self.ndx == other.ndx
            and self.nv == other.nv
        )

    def zero(self) -> NDArray:
        """Reference (zero) state."""
        return np.asarray(self._zero(), dtype=self.dtype)

    def rand(self, rng: Optional[np.random.Generator] = None) -> NDArray:
        """Random state."""
        if rng is None:
            rng = np.random.default_rng()
        return np.asarray(self._rand(rng), dtype=self.dtype)

    def diff(self, x0: NDArray, x1: NDArray) -> NDArray:
        """Tangent vector dx such that integrate(x0, dx) == x1."""
        check_size("x0", x0, self.nx)
        check_size("x1", x1, self.nx)
        return self._diff(x0, x1)

    def integrate(self, x: NDArray, dx: NDArray) -> NDArray:
        """Point reached from x along the tangent vector dx."""
        check_size("x", x, self.nx)
        check_size("dx", dx, self.ndx)
        return self._integrate(x, dx)

    def Jdiff(self, x0: NDArray, x1: NDArray, wrt: Wrt = Wrt.BOTH):
        """
        Jacobians of diff(x0, x1).

        Args:
            x0: First point (nx,)
            x1: Second point (nx,)
            wrt: Argument(s) to differentiate with respect to

        Returns:
            (ndx, ndx) matrix, or a (J_first, J_second) pair for Wrt.BOTH
        """
        check_size("x0", x0, self.nx)
        check_size("x1", x1, self.nx)
        return _select(*self._Jdiff(x0, x1, wrt), wrt)

    def Jintegrate(self, x: NDArray, dx: NDArray, wrt: Wrt = Wrt.BOTH):
        """
        Jacobians of integrate(x, dx).

        Args:
            x: Point (nx,)
            dx: Tangent displacement (ndx,)
            wrt: Argument(s) to differentiate with respect to

        Returns:
            (ndx, ndx) matrix, or a (J_first, J_second) pair for Wrt.BOTH
        """
        check_size("x", x, self.nx)
        check_size("dx", dx, self.ndx)
        return _select(*self._Jintegrate(x, dx, wrt), wrt)

    def Jintegrate_transport(
        self, x: NDArray, dx: NDArray, Jin: NDArray, wrt: Wrt
    ) -> NDArray:
        """
        Carry the rows of Jin through integrate(x, dx).

        Returns Jintegrate(x, dx, wrt) @ Jin, i.e. a matrix whose rows are
        expressed in the tangent space at integrate(x, dx). This is the
        chain-rule step used when a tangent displacement itself depends on
        the point it is applied at.

        Args:
            x: Point (nx,)
            dx: Tangent displacement (ndx,)
            Jin: Input matrix with ndx rows
            wrt: Wrt.FIRST or Wrt.SECOND
        """
        if wrt is Wrt.BOTH:
            raise ValueError("Jintegrate_transport needs Wrt.FIRST or Wrt.SECOND")
        check_size("x", x, self.nx)
        check_size("dx", dx, self.ndx)
        check_rows("Jin", Jin, self.ndx)
        return self._Jintegrate_transport(x, dx, Jin, wrt)

    def _Jintegrate_transport(
        self, x: NDArray, dx: NDArray, Jin: NDArray, wrt: Wrt
    ) -> NDArray:
        return self.Jintegrate(x, dx, wrt) @ Jin

    @abstractmethod
    def _zero(self) -> NDArray:
        ...

    @abstractmethod
    def _rand(self, rng: np.random.Generator) -> NDArray:
        ...

    @abstractmethod
    def _diff(self, x0: NDArray, x1: NDArray) -> NDArray:
        ...

    @abstractmethod
    def _integrate(self, x: NDArray, dx: NDArray) -> NDArray:
        ...

    @abstractmethod
    def _Jdiff(
        self, x0: NDArray, x1: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        """Return (J_first, J_second); entries not requested may be None."""
        ...

    @abstractmethod
    def _Jintegrate(
        self, x: NDArray, dx: NDArray, wrt: Wrt
    ) -> tuple[Optional[NDArray], Optional[NDArray]]:
        """Return (J_first, J_second); entries not requested may be None."""
        ...


def _select(J_first, J_second, wrt: Wrt):
    if wrt is Wrt.FIRST:
        return J_first
    if wrt is Wrt.SECOND:
        return J_second
    return J_first, J_second
