"""Base solver interface and the state shared by the DDP family."""

import time
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Callable, Optional, Sequence
import numpy as np
from loguru import logger
from numpy.typing import NDArray

from multishoot.algebra import DenseBackend, LinearAlgebraBackend
from multishoot.core.errors import check_length, check_size, raise_if_not_finite
from multishoot.core.problem import ShootingProblem
from multishoot.solvers.config import SolverConfig


class SolverStatus(Enum):
    """Where the solver is in its iteration."""
    INIT = auto()
    BACKWARD_PASS = auto()
    FORWARD_PASS = auto()
    CONVERGED = auto()
    STOPPED = auto()
    DIVERGED = auto()


Callback = Callable[["SolverAbstract"], None]

_REG_SEED = 1e-9


class SolverAbstract(ABC):
    """
    Trajectory-optimisation solver over a ShootingProblem.

    Holds the candidate trajectory (xs, us), the feedback policy (K, k),
    the value function (Vx, Vxx), the gaps fs and the regularisation.
    All buffers are allocated once in the constructor and overwritten in
    place while solving.
    """

    def __init__(
        self,
        problem: ShootingProblem,
        config: Optional[SolverConfig] = None,
        backend: Optional[LinearAlgebraBackend] = None,
    ):
        """
        Initialize solver.

        Args:
            problem: Shooting problem to solve
            config: Thresholds and regularisation schedule
            backend: Linear algebra used for the Quu factorisations
        """
        self.problem = problem
        self.config = config or SolverConfig()
        self.backend = backend or DenseBackend()

        T = problem.T
        state = problem.state
        ndx = state.ndx
        dt = state.dtype
        nus = [m.nu for m in problem.running_models]
        self.nus = nus

        self.xs = [problem.x0.copy() for _ in range(T + 1)]
        self.us = [np.zeros(nu, dtype=dt) for nu in nus]
        self.xs_try = [problem.x0.copy() for _ in range(T + 1)]
        self.us_try = [np.zeros(nu, dtype=dt) for nu in nus]

        self.K = [np.zeros((nu, ndx), dtype=dt) for nu in nus]
        self.k = [np.zeros(nu, dtype=dt) for nu in nus]
        self.Vx = [np.zeros(ndx, dtype=dt) for _ in range(T + 1)]
        self.Vxx = [np.zeros((ndx, ndx), dtype=dt) for _ in range(T + 1)]
        self.Qx = [np.zeros(ndx, dtype=dt) for _ in range(T)]
        self.Qu = [np.zeros(nu, dtype=dt) for nu in nus]
        self.Qxx = [np.zeros((ndx, ndx), dtype=dt) for _ in range(T)]
        self.Quu = [np.zeros((nu, nu), dtype=dt) for nu in nus]
        self.Qxu = [np.zeros((ndx, nu), dtype=dt) for nu in nus]
        self.fs = [np.zeros(ndx, dtype=dt) for _ in range(T + 1)]

        self.is_feasible = False
        self.was_feasible = False
        self.cost = 0.0
        self.cost_try = 0.0
        self.stop = 0.0
        self.steplength = 1.0
        self.dV = 0.0
        self.dV_exp = 0.0
        self.d = np.zeros(2)
        self.xreg = self.config.reg_min
        self.ureg = self.config.reg_min
        self.ffeas = 0.0
        self.gfeas = 0.0
        self.hfeas = 0.0
        self.iter = 0
        self.status = SolverStatus.INIT

        self._callbacks: list[Callback] = []
        self._stop_requested = False

    @property
    def converged(self) -> bool:
        return self.status is SolverStatus.CONVERGED

    def set_callbacks(self, callbacks: Sequence[Callback]) -> None:
        """Replace the callbacks invoked once per outer iteration."""
        self._callbacks = list(callbacks)

    def request_stop(self) -> None:
        """Ask the solver to stop at the next iteration boundary."""
        self._stop_requested = True

    def set_candidate(
        self,
        xs: Optional[Sequence[NDArray]] = None,
        us: Optional[Sequence[NDArray]] = None,
        is_feasible: bool = False,
    ) -> None:
        """
        Set the current trajectory.

        Args:
            xs: States x_0, ..., x_T; x0 replicated by default
            us: Controls u_0, ..., u_{T-1}; zeros by default
            is_feasible: The states are a rollout of the controls from x0
        """
        nx = self.problem.state.nx
        if xs is None:
            for x in self.xs:
                x[:] = self.problem.x0
        else:
            check_length("xs", xs, self.problem.T + 1)
            for t, x in enumerate(xs):
                check_size(f"xs[{t}]", x, nx)
            for dst, src in zip(self.xs, xs):
                dst[:] = src

        if us is None:
            for u in self.us:
                u[:] = 0.0
        else:
            check_length("us", us, self.problem.T)
            for t, (u, nu) in enumerate(zip(us, self.nus)):
                check_size(f"us[{t}]", u, nu)
            for dst, src in zip(self.us, us):
                dst[:] = src

        self.is_feasible = is_feasible
        if is_feasible:
            for f in self.fs:
                f[:] = 0.0
            self.ffeas = 0.0

    @abstractmethod
    def solve(
        self,
        init_xs: Optional[Sequence[NDArray]] = None,
        init_us: Optional[Sequence[NDArray]] = None,
        maxiter: int = 100,
        is_feasible: bool = False,
        init_reg: Optional[float] = None,
    ) -> bool:
        """
        Run the solver from an initial guess.

        Args:
            init_xs: Initial states, x0 replicated by default
            init_us: Initial controls, zeros by default
            maxiter: Maximum number of outer iterations
            is_feasible: The initial guess is a rollout from x0
            init_reg: Initial xreg and ureg, reg_min by default

        Returns:
            True when the solver converged
        """
        ...

    def _start(self, init_reg: Optional[float]) -> None:
        reg = self.config.reg_min if init_reg is None else init_reg
        if not self.config.reg_min <= reg <= self.config.reg_max:
            raise ValueError(
                f"init_reg must lie in [{self.config.reg_min}, {self.config.reg_max}], got {reg}"
            )
        self.xreg = reg
        self.ureg = reg
        self.iter = 0
        self.status = SolverStatus.INIT
        self.was_feasible = False
        self._stop_requested = False
        self._t_start = time.perf_counter()

    def _should_stop(self) -> bool:
        if self._stop_requested:
            logger.debug("stop requested at iteration {}", self.iter)
            return True
        max_time = self.config.max_time
        if max_time is not None and time.perf_counter() - self._t_start > max_time:
            logger.debug("time budget of {}s exhausted at iteration {}", max_time, self.iter)
            return True
        return False

    def _notify(self) -> None:
        for callback in self._callbacks:
            callback(self)

    def _increase_reg(self) -> None:
        cfg = self.config
        # a zero reg_min would otherwise never grow
        self.xreg = min(max(self.xreg * cfg.reg_incfactor, _REG_SEED), cfg.reg_max)
        self.ureg = min(max(self.ureg * cfg.reg_incfactor, _REG_SEED), cfg.reg_max)
        logger.debug("iter {}: regularisation increased to {:.3e}", self.iter, self.xreg)

    def _decrease_reg(self) -> None:
        cfg = self.config
        self.xreg = max(self.xreg / cfg.reg_decfactor, cfg.reg_min)
        self.ureg = max(self.ureg / cfg.reg_decfactor, cfg.reg_min)

    def _at_reg_ceiling(self) -> bool:
        return self.xreg >= self.config.reg_max

    def _finish(self, status: SolverStatus) -> bool:
        self.status = status
        logger.info(
            "{} finished: {} after {} iterations, cost={:.6e}, stop={:.3e}, ffeas={:.3e}",
            type(self).__name__, status.name, self.iter, self.cost, self.stop, self.ffeas,
        )
        return status is SolverStatus.CONVERGED

    def _stages(self):
        problem = self.problem
        models = [*problem.running_models, problem.terminal_model]
        datas = [*problem.running_datas, problem.terminal_data]
        return zip(models, datas)

    def _check_finite(self, derivatives: bool) -> None:
        """Raise NumericalDivergenceError on non-finite model outputs."""
        for t, (_, d) in enumerate(self._stages()):
            raise_if_not_finite(d.cost, f"cost of stage {t}")
            raise_if_not_finite(d.xnext, f"next state of stage {t}")
            if derivatives:
                for name in ("Fx", "Fu", "Lx", "Lu", "Lxx", "Luu", "Lxu"):
                    raise_if_not_finite(getattr(d, name), f"{name} of stage {t}")

    def _compute_gaps(self) -> float:
        """Fill fs from the current stage data; returns the largest gap entry."""
        problem = self.problem
        state = problem.state
        self.fs[0][:] = state.diff(self.xs[0], problem.x0)
        for t, data in enumerate(problem.running_datas):
            self.fs[t + 1][:] = state.diff(self.xs[t + 1], data.xnext)
        return max(float(np.max(np.abs(f), initial=0.0)) for f in self.fs)

    def _compute_constraint_feasibility(self) -> None:
        gfeas = 0.0
        hfeas = 0.0
        for m, d in self._stages():
            if d.g.size:
                viol = np.maximum(d.g - m.g_ub, 0.0) + np.maximum(m.g_lb - d.g, 0.0)
                gfeas = max(gfeas, float(np.max(viol)))
            if d.h.size:
                hfeas = max(hfeas, float(np.max(np.abs(d.h))))
        self.gfeas = gfeas
        self.hfeas = hfeas
