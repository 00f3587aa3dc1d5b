"""Feasibility-driven DDP."""

from numpy.typing import NDArray

from multishoot.solvers.ddp import SolverDDP


class SolverFDDP(SolverDDP):
    """
    DDP over an infeasible multiple-shooting candidate.

    The states xs are free decision variables; the gaps

        fs[0]   = diff(xs[0], x0)
        fs[t+1] = diff(xs[t+1], f(xs[t], us[t]))

    enter the backward pass through Vx += Vxx fs and are closed
    geometrically by the forward pass: a step of length alpha starts node t
    from integrate(xnext, (alpha - 1) fs[t]), so a full step (alpha = 1)
    yields a dynamically feasible rollout.
    """

    def _prepare(self) -> None:
        pass

    def calc_diff(self) -> None:
        self.problem.calc_diff(self.xs, self.us)
        self._check_finite(derivatives=True)
        if self.is_feasible:
            for f in self.fs:
                f[:] = 0.0
            self.ffeas = 0.0
        else:
            self.ffeas = self._compute_gaps()
            if self.ffeas < self.config.th_gaptol:
                self.is_feasible = True
        self._compute_constraint_feasibility()

    def _correct_value(self, t: int) -> None:
        if not self.is_feasible:
            self.Vx[t] += self.Vxx[t] @ self.fs[t]

    def update_expected_improvement(self) -> None:
        super().update_expected_improvement()
        if not self.is_feasible:
            for Vx, Vxx, f in zip(self.Vx, self.Vxx, self.fs):
                self._dg -= float(Vx @ f)
                self._dq += float(f @ Vxx @ f)

    def expected_improvement(self) -> tuple[float, float]:
        dv = 0.0
        if not self.is_feasible:
            state = self.problem.state
            for x, x_try, Vxx, f in zip(self.xs, self.xs_try, self.Vxx, self.fs):
                dx = state.diff(x_try, x)
                dv -= float(f @ Vxx @ dx)
        return self._dg + dv, self._dq - 2.0 * dv

    def _trial_state(self, t: int, xnext: NDArray, alpha: float) -> NDArray:
        if self.is_feasible or alpha == 1.0:
            return xnext
        return self.problem.state.integrate(xnext, (alpha - 1.0) * self.fs[t])

    def _accepts(self) -> bool:
        cfg = self.config
        if self.dV_exp >= 0.0:
            return abs(self.d[0]) < cfg.th_grad or self.dV > cfg.th_acceptstep * self.dV_exp
        return self.dV > cfg.th_acceptnegstep * self.dV_exp

    def _accept_step(self, alpha: float) -> None:
        self.was_feasible = self.is_feasible
        self.set_candidate(self.xs_try, self.us_try, self.was_feasible or alpha == 1.0)
        self.cost = self.cost_try
