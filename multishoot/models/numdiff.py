"""Finite-difference derivatives of an arbitrary stage model."""

from dataclasses import dataclass, field
from typing import Optional
import numpy as np

from multishoot.core.stage import StageData, StageModelAbstract


@dataclass
class NumDiffData(StageData):
    """Stage data plus the wrapped model's nominal and perturbed data."""

    data0: Optional[StageData] = None
    data_x: list[StageData] = field(default_factory=list)
    data_u: list[StageData] = field(default_factory=list)
    Rx: Optional[np.ndarray] = None
    Ru: Optional[np.ndarray] = None


class StageModelNumDiff(StageModelAbstract):
    """
    Wraps a stage model and replaces its calc_diff with forward differences.

    State perturbations are applied on the tangent space with ``integrate``
    and their effect on the next state is measured with ``diff``, so the
    Jacobians are comparable with the analytic ones on any manifold.
    Second-order cost terms are not differentiated; with
    ``with_gauss_approx=True`` they are approximated from the residual
    Jacobian as Rx^T Rx, Ru^T Ru and Rx^T Ru (exact for 0.5 ||r||^2).

    Args:
        model: Stage model to differentiate
        disturbance: Perturbation size, sqrt(2 eps) by default
        with_gauss_approx: Fill the cost Hessians from the residual Jacobian
    """

    def __init__(
        self,
        model: StageModelAbstract,
        disturbance: Optional[float] = None,
        with_gauss_approx: bool = False,
    ):
        super().__init__(
            model.state, model.nu, ng=model.ng, nh=model.nh,
            ng_T=model.ng_T, nh_T=model.nh_T,
        )
        if disturbance is None:
            disturbance = np.sqrt(2.0 * np.finfo(float).eps)
        if disturbance <= 0.0:
            raise ValueError(f"disturbance must be positive, got {disturbance}")
        if with_gauss_approx and model.nr == 0:
            raise ValueError("Gauss approximation needs a model with cost residuals (nr > 0)")
        self.model = model
        self.disturbance = disturbance
        self.with_gauss_approx = with_gauss_approx
        self.u_lb = model.u_lb
        self.u_ub = model.u_ub
        self.g_lb = model.g_lb
        self.g_ub = model.g_ub

    @property
    def nr(self) -> int:
        return self.model.nr

    def create_data(self) -> NumDiffData:
        ndx, nu = self.state.ndx, self.nu
        return NumDiffData.allocate(
            self,
            data0=self.model.create_data(),
            data_x=[self.model.create_data() for _ in range(ndx)],
            data_u=[self.model.create_data() for _ in range(nu)],
            Rx=np.zeros((self.nr, ndx)),
            Ru=np.zeros((self.nr, nu)),
        )

    def _calc(self, data, x, u):
        d0 = data.data0
        self.model.calc(d0, x, u)
        data.cost = d0.cost
        data.xnext[:] = d0.xnext
        data.r[:] = d0.r
        data.g[:] = d0.g
        data.h[:] = d0.h

    def _calc_diff(self, data, x, u):
        state = self.state
        h = self.disturbance
        d0 = data.data0

        dx = np.zeros(state.ndx)
        for i, di in enumerate(data.data_x):
            dx[i] = h
            self.model.calc(di, state.integrate(x, dx), u)
            dx[i] = 0.0
            self._column(d0, di, i, data.Fx, data.Lx, data.Rx, data.Gx, data.Hx)

        if u is not None:
            du = np.zeros(self.nu)
            for j, dj in enumerate(data.data_u):
                du[j] = h
                self.model.calc(dj, x, u + du)
                du[j] = 0.0
                self._column(d0, dj, j, data.Fu, data.Lu, data.Ru, data.Gu, data.Hu)
        else:
            for arr in (data.Fu, data.Lu, data.Ru, data.Gu, data.Hu):
                arr[:] = 0.0

        if self.with_gauss_approx:
            data.Lxx[:] = data.Rx.T @ data.Rx
            data.Luu[:] = data.Ru.T @ data.Ru
            data.Lxu[:] = data.Rx.T @ data.Ru
        else:
            data.Lxx[:] = 0.0
            data.Luu[:] = 0.0
            data.Lxu[:] = 0.0

    def _column(self, d0, dp, i, F, L, R, G, H):
        h = self.disturbance
        F[:, i] = self.state.diff(d0.xnext, dp.xnext) / h
        L[i] = (dp.cost - d0.cost) / h
        R[:, i] = (dp.r - d0.r) / h
        G[:, i] = (dp.g - d0.g) / h
        H[:, i] = (dp.h - d0.h) / h
