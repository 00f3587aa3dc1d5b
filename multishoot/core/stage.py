"""Stage model contract consumed by the shooting problem and the solvers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.errors import check_size
from multishoot.core.state import StateAbstract, Wrt


@dataclass
class StageData:
    """Per-stage scratch, overwritten in place by calc / calc_diff."""

    xnext: NDArray      # (nx,)        next state (running) or x (terminal)
    Fx: NDArray         # (ndx, ndx)   dynamics Jacobian w.r.t. x
    Fu: NDArray         # (ndx, nu)    dynamics Jacobian w.r.t. u
    Lx: NDArray         # (ndx,)
    Lu: NDArray         # (nu,)
    Lxx: NDArray        # (ndx, ndx)
    Luu: NDArray        # (nu, nu)
    Lxu: NDArray        # (ndx, nu)
    r: NDArray          # (nr,)        cost residual
    g: NDArray          # (ng,)        inequality constraint residual
    Gx: NDArray         # (ng, ndx)
    Gu: NDArray         # (ng, nu)
    h: NDArray          # (nh,)        equality constraint residual
    Hx: NDArray         # (nh, ndx)
    Hu: NDArray         # (nh, nu)
    cost: float = 0.0

    @classmethod
    def allocate(cls, model: "StageModelAbstract", **extra) -> "StageData":
        """Zero-filled data sized for ``model``."""
        state = model.state
        nx, ndx, nu = state.nx, state.ndx, model.nu
        ng, nh, dt = model.ng, model.nh, state.dtype
        return cls(
            xnext=np.zeros(nx, dtype=dt),
            Fx=np.zeros((ndx, ndx), dtype=dt),
            Fu=np.zeros((ndx, nu), dtype=dt),
            Lx=np.zeros(ndx, dtype=dt),
            Lu=np.zeros(nu, dtype=dt),
            Lxx=np.zeros((ndx, ndx), dtype=dt),
            Luu=np.zeros((nu, nu), dtype=dt),
            Lxu=np.zeros((ndx, nu), dtype=dt),
            r=np.zeros(model.nr, dtype=dt),
            g=np.zeros(ng, dtype=dt),
            Gx=np.zeros((ng, ndx), dtype=dt),
            Gu=np.zeros((ng, nu), dtype=dt),
            h=np.zeros(nh, dtype=dt),
            Hx=np.zeros((nh, ndx), dtype=dt),
            Hu=np.zeros((nh, nu), dtype=dt),
            **extra,
        )


class StageModelAbstract(ABC):
    """
    One node of a shooting problem: stage cost plus discrete dynamics.

    Running stages are evaluated with ``calc(data, x, u)`` and produce a
    cost and ``data.xnext``. Terminal stages are evaluated without a control,
    ``calc(data, x)``, and produce only a cost (``data.xnext`` is set to x).

    Ordering contract: ``calc_diff(data, x, u)`` may assume that
    ``calc(data, x, u)`` has just been run on the same data with the same
    arguments, and reuses whatever calc left in ``data``.

    Subclasses implement ``_calc`` and ``_calc_diff`` (``u`` is None for the
    terminal overload); argument sizes are validated here.
    """

    def __init__(
        self,
        state: StateAbstract,
        nu: int,
        nr: int = 0,
        ng: int = 0,
        nh: int = 0,
        ng_T: int = 0,
        nh_T: int = 0,
    ):
        self.state = state
        self.nu = nu
        self._nr = nr
        self.ng = ng
        self.nh = nh
        self.ng_T = ng_T
        self.nh_T = nh_T
        self.u_lb = np.full(nu, -np.inf)
        self.u_ub = np.full(nu, np.inf)
        self.g_lb = np.full(ng, -np.inf)
        self.g_ub = np.full(ng, np.inf)

    @property
    def nr(self) -> int:
        """Length of the cost residual stored in StageData.r."""
        return self._nr

    @property
    def has_control_limits(self) -> bool:
        """True when any control bound is finite."""
        return bool(np.isfinite(self.u_lb).any() or np.isfinite(self.u_ub).any())

    def set_control_bounds(self, lb: NDArray, ub: NDArray) -> None:
        """Set box bounds lb <= u <= ub."""
        lb = np.asarray(lb, dtype=float)
        ub = np.asarray(ub, dtype=float)
        check_size("u_lb", lb, self.nu)
        check_size("u_ub", ub, self.nu)
        if np.any(lb > ub):
            raise ValueError("control lower bound exceeds upper bound")
        self.u_lb = lb
        self.u_ub = ub

    def calc(self, data: StageData, x: NDArray, u: Optional[NDArray] = None) -> None:
        """Compute cost, next state and constraint residuals."""
        check_size("x", x, self.state.nx)
        if u is not None:
            check_size("u", u, self.nu)
        self._calc(data, x, u)

    def calc_diff(
        self, data: StageData, x: NDArray, u: Optional[NDArray] = None
    ) -> None:
        """Compute cost, dynamics and constraint derivatives."""
        check_size("x", x, self.state.nx)
        if u is not None:
            check_size("u", u, self.nu)
        self._calc_diff(data, x, u)

    def create_data(self) -> StageData:
        """Allocate scratch data for this model."""
        return StageData.allocate(self)

    def quasi_static(
        self,
        data: StageData,
        x: NDArray,
        u0: Optional[NDArray] = None,
        maxiter: int = 100,
        tol: float = 1e-9,
    ) -> NDArray:
        """
        Control that keeps the state at rest.

        The velocity block of x is zeroed, then Newton iterations drive
        diff(x, xnext) to zero in the least-squares sense.

        Args:
            data: Scratch data for this model
            x: State (nx,)
            u0: Initial control guess (nu,), zeros by default
            maxiter: Maximum Newton iterations
            tol: Stop when the control update norm falls below this value

        Returns:
            Quasi-static control (nu,)
        """
        check_size("x", x, self.state.nx)
        if self.nu == 0:
            return np.zeros(0)
        x = np.array(x, dtype=self.state.dtype)
        if self.state.nv > 0:
            x[self.state.nq:] = 0.0
        u = np.zeros(self.nu) if u0 is None else np.array(u0, dtype=float)
        check_size("u0", u, self.nu)

        for _ in range(maxiter):
            self.calc(data, x, u)
            self.calc_diff(data, x, u)
            dx = self.state.diff(x, data.xnext)
            J = self.state.Jdiff(x, data.xnext, Wrt.SECOND) @ data.Fu
            du = -np.linalg.pinv(J) @ dx
            u += du
            if np.linalg.norm(du) <= tol:
                break
        return u

    @abstractmethod
    def _calc(self, data: StageData, x: NDArray, u: Optional[NDArray]) -> None:
        ...

    @abstractmethod
    def _calc_diff(self, data: StageData, x: NDArray, u: Optional[NDArray]) -> None:
        ...
