"""Explicit Euler stage model on a state manifold."""

from dataclasses import dataclass, field
from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from multishoot.core.dynamics import DynamicsModel
from multishoot.core.stage import StageData, StageModelAbstract
from multishoot.core.state import StateAbstract, Wrt
from multishoot.models.constraints import ConstraintModelResidual
from multishoot.models.costs import CostDataSum, CostModelSum
from multishoot.models.residuals import ResidualData


@dataclass
class IntegratedData(StageData):
    """Stage data plus the cost and constraint sub-data."""

    costs: Optional[CostDataSum] = None
    constraints: list[ResidualData] = field(default_factory=list)
    dx: Optional[NDArray] = None


class StageModelIntegrated(StageModelAbstract):
    """
    Stage built from a velocity field, a cost sum and optional constraints.

        xnext = integrate(x, dt * v(x, u))

    The stage cost is the cost sum evaluated at (x, u); it is not scaled by
    dt. Terminal evaluation (u omitted) keeps x and evaluates the cost sum
    without a control.

    Args:
        state: State manifold
        dynamics: Velocity field v(x, u) and its Jacobians
        costs: Cost sum over the same state and control sizes
        dt: Integration step, zero for a terminal-only model
        constraints: Residual constraints reported in g / h
    """

    def __init__(
        self,
        state: StateAbstract,
        dynamics: DynamicsModel,
        costs: CostModelSum,
        dt: float,
        constraints: Sequence[ConstraintModelResidual] = (),
    ):
        if dt < 0.0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        if costs.nu != dynamics.nu:
            raise ValueError(f"cost sum has nu={costs.nu}, dynamics has nu={dynamics.nu}")

        self.inequalities = [c for c in constraints if not c.is_equality]
        self.equalities = [c for c in constraints if c.is_equality]
        ng = sum(c.nr for c in self.inequalities)
        nh = sum(c.nr for c in self.equalities)
        super().__init__(state, dynamics.nu, ng=ng, nh=nh, ng_T=ng, nh_T=nh)

        self.dynamics = dynamics
        self.costs = costs
        self.dt = dt
        if ng > 0:
            self.g_lb = np.concatenate([c.lb for c in self.inequalities])
            self.g_ub = np.concatenate([c.ub for c in self.inequalities])

    @property
    def nr(self) -> int:
        return self.costs.nr

    def create_data(self) -> IntegratedData:
        return IntegratedData.allocate(
            self,
            costs=self.costs.create_data(),
            constraints=[c.create_data() for c in (*self.inequalities, *self.equalities)],
            dx=np.zeros(self.state.ndx, dtype=self.state.dtype),
        )

    def _calc(self, data, x, u):
        if u is None:
            data.dx[:] = 0.0
            data.xnext[:] = x
        else:
            data.dx[:] = self.dt * self.dynamics.velocity(x, u)
            data.xnext[:] = self.state.integrate(x, data.dx)

        self.costs.calc(data.costs, x, u)
        data.cost = data.costs.cost
        data.r[:] = data.costs.r

        for constraint, cdata, rows, equality in self._constraint_rows(data):
            target = data.h if equality else data.g
            target[rows] = constraint.calc(cdata, x, u)

    def _calc_diff(self, data, x, u):
        if u is None:
            data.Fx[:] = np.eye(self.state.ndx)
            data.Fu[:] = 0.0
        else:
            v_x, v_u = self.dynamics.velocity_diff(x, u)
            data.Fx[:] = self.state.Jintegrate(x, data.dx, Wrt.FIRST)
            data.Fx += self.state.Jintegrate_transport(x, data.dx, self.dt * v_x, Wrt.SECOND)
            data.Fu[:] = self.state.Jintegrate_transport(x, data.dx, self.dt * v_u, Wrt.SECOND)

        self.costs.calc_diff(data.costs, x, u)
        data.Lx[:] = data.costs.Lx
        data.Lu[:] = data.costs.Lu
        data.Lxx[:] = data.costs.Lxx
        data.Luu[:] = data.costs.Luu
        data.Lxu[:] = data.costs.Lxu

        for constraint, cdata, rows, equality in self._constraint_rows(data):
            constraint.calc_diff(cdata, x, u)
            Jx, Ju = (data.Hx, data.Hu) if equality else (data.Gx, data.Gu)
            Jx[rows] = cdata.Rx
            Ju[rows] = cdata.Ru

    def _constraint_rows(self, data):
        """Yield (constraint, data, row slice, is_equality) for every constraint."""
        datas = iter(data.constraints)
        for equality, group in ((False, self.inequalities), (True, self.equalities)):
            start = 0
            for constraint in group:
                rows = slice(start, start + constraint.nr)
                start += constraint.nr
                yield constraint, next(datas), rows, equality
