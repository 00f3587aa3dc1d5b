"""FDDP with box constraints on the controls."""

import numpy as np

from multishoot.solvers.box_qp import BoxQP
from multishoot.solvers.fddp import SolverFDDP


class SolverBoxFDDP(SolverFDDP):
    """
    FDDP that honours u_lb <= u <= u_ub on every running model.

    Once the candidate is feasible, the control update at each node with
    control limits is the solution of a box QP on the local quadratic
    model; the feedback gain acts only on the free controls and the
    gradient of clamped controls is removed from the stopping criterion.
    Every trial control in the forward pass is clipped into the box.
    """

    def __init__(self, problem, config=None, backend=None):
        super().__init__(problem, config, backend)
        self.Quu_inv = [np.zeros((nu, nu)) for nu in self.nus]
        self._qps = {nu: BoxQP(nu, backend=self.backend) for nu in set(self.nus) if nu > 0}

    def compute_gains(self, t: int) -> None:
        model = self.problem.running_models[t]
        if not model.has_control_limits or not self.is_feasible:
            super().compute_gains(t)
            return

        u = self.us[t]
        sol = self._qps[self.nus[t]].solve(
            self.Quu[t], self.Qu[t], model.u_lb - u, model.u_ub - u, -self.k[t]
        )
        Quu_inv = self.Quu_inv[t]
        Quu_inv[:] = 0.0
        if sol.free_idx:
            Quu_inv[np.ix_(sol.free_idx, sol.free_idx)] = sol.Hff_inv
        self.K[t][:] = Quu_inv @ self.Qxu[t].T
        self.k[t][:] = -sol.x
        self.Qu[t][sol.clamped_idx] = 0.0

    def _project_control(self, t: int) -> None:
        model = self.problem.running_models[t]
        if model.has_control_limits:
            np.clip(self.us_try[t], model.u_lb, model.u_ub, out=self.us_try[t])
