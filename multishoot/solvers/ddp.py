"""Differential dynamic programming."""

from typing import Optional, Sequence
import numpy as np
from loguru import logger
from numpy.typing import NDArray

from multishoot.core.errors import NumericalDivergenceError, raise_if_not_finite
from multishoot.solvers.base import SolverAbstract, SolverStatus


class SolverDDP(SolverAbstract):
    """
    Classic DDP with a feasible (rolled-out) candidate.

    Each iteration runs a Riccati backward pass on the local quadratic
    model, then a line search over the feedback policy

        u' = u - alpha k - K diff(x, x')

    starting from x0. An infeasible initial guess is replaced by the rollout
    of its controls before the first iteration.
    """

    def __init__(self, problem, config=None, backend=None):
        super().__init__(problem, config, backend)
        self._dg = 0.0
        self._dq = 0.0

    def solve(
        self,
        init_xs: Optional[Sequence[NDArray]] = None,
        init_us: Optional[Sequence[NDArray]] = None,
        maxiter: int = 100,
        is_feasible: bool = False,
        init_reg: Optional[float] = None,
    ) -> bool:
        self._start(init_reg)
        try:
            self.set_candidate(init_xs, init_us, is_feasible)
            self._prepare()
            self.cost = self.problem.calc(self.xs, self.us)
            self._check_finite(derivatives=False)
            return self._iterate(maxiter)
        except NumericalDivergenceError as exc:
            self.status = SolverStatus.DIVERGED
            logger.warning(
                "{} diverged after {} iterations: {}", type(self).__name__, self.iter, exc
            )
            raise

    def _iterate(self, maxiter: int) -> bool:
        cfg = self.config
        for i in range(maxiter):
            if self._should_stop():
                return self._finish(SolverStatus.STOPPED)

            self.status = SolverStatus.BACKWARD_PASS
            recalc = True
            while True:
                try:
                    self.compute_direction(recalc)
                except np.linalg.LinAlgError as exc:
                    recalc = False
                    logger.debug("iter {}: backward pass failed: {}", i, exc)
                    self._increase_reg()
                    if self._at_reg_ceiling():
                        return self._finish(SolverStatus.DIVERGED)
                    continue
                break
            self.update_expected_improvement()

            self.status = SolverStatus.FORWARD_PASS
            accepted = False
            for alpha in cfg.alphas:
                self.steplength = alpha
                self.dV = self.try_step(alpha)
                self.d[:] = self.expected_improvement()
                self.dV_exp = alpha * (self.d[0] + 0.5 * alpha * self.d[1])
                if self._accepts():
                    self._accept_step(alpha)
                    accepted = True
                    break
            if not accepted:
                logger.debug(
                    "iter {}: line search exhausted (dV={:.3e}, dV_exp={:.3e})",
                    i, self.dV, self.dV_exp,
                )

            if accepted and self.steplength > cfg.th_stepdec:
                self._decrease_reg()
            if not accepted or self.steplength <= cfg.th_stepinc:
                self._increase_reg()
                if self._at_reg_ceiling():
                    self.iter = i + 1
                    return self._finish(SolverStatus.DIVERGED)

            self.stop = self.stopping_criteria()
            self.iter = i + 1
            self._notify()
            if self.was_feasible and self.stop < cfg.th_stop:
                return self._finish(SolverStatus.CONVERGED)

        return self._finish(SolverStatus.STOPPED)

    def _prepare(self) -> None:
        if not self.is_feasible:
            self.set_candidate(self.problem.rollout(self.us), self.us, True)

    def compute_direction(self, recalc: bool = True) -> None:
        """Optionally refresh derivatives, then run the backward pass."""
        if recalc:
            self.calc_diff()
        self.backward_pass()

    def calc_diff(self) -> None:
        """Evaluate derivatives along (xs, us) and refresh the feasibility measures."""
        self.problem.calc_diff(self.xs, self.us)
        self._check_finite(derivatives=True)
        self.ffeas = self._compute_gaps()
        self._compute_constraint_feasibility()

    def backward_pass(self) -> None:
        """
        Riccati recursion from t = T down to t = 0.

        Raises:
            numpy.linalg.LinAlgError: Quu is not positive definite or the
                value function is not finite at some node
        """
        problem = self.problem
        ndx = problem.state.ndx
        eye = np.eye(ndx)

        d_T = problem.terminal_data
        self.Vxx[-1][:] = d_T.Lxx + self.xreg * eye
        self.Vx[-1][:] = d_T.Lx
        self._correct_value(problem.T)

        for t in reversed(range(problem.T)):
            d = problem.running_datas[t]
            Vx_p = self.Vx[t + 1]
            Vxx_p = self.Vxx[t + 1]

            FxTVxx = d.Fx.T @ Vxx_p
            self.Qxx[t][:] = d.Lxx + FxTVxx @ d.Fx
            self.Qx[t][:] = d.Lx + d.Fx.T @ Vx_p
            Vx = self.Qx[t].copy()
            Vxx = self.Qxx[t].copy()

            if self.nus[t] > 0:
                FuTVxx = d.Fu.T @ Vxx_p
                self.Quu[t][:] = d.Luu + FuTVxx @ d.Fu + self.ureg * np.eye(self.nus[t])
                self.Qxu[t][:] = d.Lxu + FxTVxx @ d.Fu
                self.Qu[t][:] = d.Lu + d.Fu.T @ Vx_p
                self.compute_gains(t)
                Vx -= self.K[t].T @ self.Qu[t]
                Vxx -= self.Qxu[t] @ self.K[t]

            self.Vxx[t][:] = 0.5 * (Vxx + Vxx.T) + self.xreg * eye
            self.Vx[t][:] = Vx
            self._correct_value(t)

            if not (np.all(np.isfinite(self.Vx[t])) and np.all(np.isfinite(self.Vxx[t]))):
                raise np.linalg.LinAlgError(f"non-finite value function at node {t}")

    def _correct_value(self, t: int) -> None:
        """Hook applied to (Vx[t], Vxx[t]) once they are computed."""

    def compute_gains(self, t: int) -> None:
        """Feedback K = Quu^-1 Qxu^T and feed-forward k = Quu^-1 Qu at node t."""
        factor = self.backend.cho_factor(self.Quu[t])
        self.K[t][:] = self.backend.cho_solve(factor, self.Qxu[t].T)
        self.k[t][:] = self.backend.cho_solve(factor, self.Qu[t])

    def update_expected_improvement(self) -> None:
        """Alpha-independent part of the expected improvement."""
        self._dg = sum(float(Qu @ k) for Qu, k in zip(self.Qu, self.k))
        self._dq = -sum(float(k @ Quu @ k) for Quu, k in zip(self.Quu, self.k))

    def expected_improvement(self) -> tuple[float, float]:
        """
        Coefficients (d1, d2) of dV_exp = alpha (d1 + alpha d2 / 2).

        Returns:
            Linear and quadratic terms of the expected cost reduction
        """
        return self._dg, self._dq

    def try_step(self, alpha: float) -> float:
        """Evaluate a trial step; returns the cost reduction dV."""
        self.cost_try = self.forward_pass(alpha)
        return self.cost - self.cost_try

    def forward_pass(self, alpha: float) -> float:
        """
        Apply the policy with step length alpha and evaluate every stage.

        Fills xs_try / us_try and leaves the stage data holding the trial
        evaluation. Non-finite costs or states raise NumericalDivergenceError.

        Returns:
            Total cost of the trial trajectory
        """
        problem = self.problem
        state = problem.state
        cost_try = 0.0
        xnext = problem.x0

        for t, (m, d) in enumerate(zip(problem.running_models, problem.running_datas)):
            self.xs_try[t][:] = self._trial_state(t, xnext, alpha)
            dx = state.diff(self.xs[t], self.xs_try[t])
            self.us_try[t][:] = self.us[t] - alpha * self.k[t] - self.K[t] @ dx
            self._project_control(t)
            m.calc(d, self.xs_try[t], self.us_try[t])
            raise_if_not_finite(d.cost, f"cost of stage {t} during line search")
            raise_if_not_finite(d.xnext, f"next state of stage {t} during line search")
            xnext = d.xnext
            cost_try += d.cost

        T = problem.T
        self.xs_try[T][:] = self._trial_state(T, xnext, alpha)
        problem.terminal_model.calc(problem.terminal_data, self.xs_try[T])
        raise_if_not_finite(problem.terminal_data.cost, "terminal cost during line search")
        cost_try += problem.terminal_data.cost

        problem.mark_calc(self.xs_try, self.us_try, cost_try)
        return cost_try

    def _trial_state(self, t: int, xnext: NDArray, alpha: float) -> NDArray:
        return xnext

    def _project_control(self, t: int) -> None:
        """Hook applied to us_try[t] before the stage is evaluated."""

    def _accepts(self) -> bool:
        cfg = self.config
        if self.dV_exp >= 0.0:
            return abs(self.d[0]) < cfg.th_grad or self.dV > cfg.th_acceptstep * self.dV_exp
        return False

    def _accept_step(self, alpha: float) -> None:
        self.was_feasible = True
        self.set_candidate(self.xs_try, self.us_try, True)
        self.cost = self.cost_try

    def stopping_criteria(self) -> float:
        """Squared norm of the control gradient, summed over nodes."""
        return sum(float(Qu @ Qu) for Qu in self.Qu)
