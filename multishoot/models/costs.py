"""Residual-based costs and named weighted sums of them."""

from dataclasses import dataclass, field
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.state import StateAbstract
from multishoot.models.activations import ActivationData, ActivationModelAbstract
from multishoot.models.residuals import ResidualData, ResidualModelAbstract


@dataclass
class CostData:
    """Cost value, derivatives and the sub-data they were built from."""

    activation: ActivationData
    residual: ResidualData
    Lx: NDArray     # (ndx,)
    Lu: NDArray     # (nu,)
    Lxx: NDArray    # (ndx, ndx)
    Luu: NDArray    # (nu, nu)
    Lxu: NDArray    # (ndx, nu)
    cost: float = 0.0


class CostModelResidual:
    """
    l(x, u) = a(r(x, u)).

    Derivatives use the Gauss-Newton approximation of the residual, so the
    Hessians are Rx^T Arr Rx etc. and stay PSD for convex activations.
    """

    def __init__(
        self,
        state: StateAbstract,
        activation: ActivationModelAbstract,
        residual: ResidualModelAbstract,
    ):
        if activation.nr != residual.nr:
            raise ValueError(
                f"activation size {activation.nr} does not match residual size {residual.nr}"
            )
        self.state = state
        self.activation = activation
        self.residual = residual

    @property
    def nu(self) -> int:
        return self.residual.nu

    @property
    def nr(self) -> int:
        return self.residual.nr

    def create_data(self) -> CostData:
        ndx, nu = self.state.ndx, self.nu
        return CostData(
            activation=self.activation.create_data(),
            residual=self.residual.create_data(),
            Lx=np.zeros(ndx),
            Lu=np.zeros(nu),
            Lxx=np.zeros((ndx, ndx)),
            Luu=np.zeros((nu, nu)),
            Lxu=np.zeros((ndx, nu)),
        )

    def calc(self, data: CostData, x: NDArray, u: Optional[NDArray] = None) -> None:
        self.residual.calc(data.residual, x, u)
        self.activation.calc(data.activation, data.residual.r)
        data.cost = data.activation.a

    def calc_diff(self, data: CostData, x: NDArray, u: Optional[NDArray] = None) -> None:
        res = data.residual
        act = data.activation
        self.residual.calc_diff(res, x, u)
        self.activation.calc_diff(act, res.r)

        ArrRx = act.Arr @ res.Rx
        ArrRu = act.Arr @ res.Ru
        data.Lx[:] = res.Rx.T @ act.Ar
        data.Lu[:] = res.Ru.T @ act.Ar
        data.Lxx[:] = res.Rx.T @ ArrRx
        data.Luu[:] = res.Ru.T @ ArrRu
        data.Lxu[:] = res.Rx.T @ ArrRu


@dataclass
class CostItem:
    """Named entry of a cost sum."""

    name: str
    cost: CostModelResidual
    weight: float
    active: bool = True


@dataclass
class CostDataSum:
    """Totals of a cost sum plus the data of each term."""

    costs: dict[str, CostData]
    r: NDArray      # (nr,) stacked residuals, zero for inactive terms
    Lx: NDArray
    Lu: NDArray
    Lxx: NDArray
    Luu: NDArray
    Lxu: NDArray
    cost: float = 0.0
    offsets: dict[str, slice] = field(default_factory=dict)


class CostModelSum:
    """
    Weighted sum of named cost terms.

    Terms may be added or removed with ``add_cost`` and ``remove_cost`` at
    any time; the owning stage model reads its residual size from the sum,
    so only data created after such a change has the new layout. Switching
    terms on and off with ``change_cost_status`` keeps existing data valid.
    """

    def __init__(self, state: StateAbstract, nu: int):
        self.state = state
        self.nu = nu
        self.costs: dict[str, CostItem] = {}

    @property
    def nr(self) -> int:
        """Size of the stacked residual over all registered terms."""
        return sum(item.cost.nr for item in self.costs.values())

    @property
    def active(self) -> list[str]:
        return [name for name, item in self.costs.items() if item.active]

    def add_cost(
        self, name: str, cost: CostModelResidual, weight: float, active: bool = True
    ) -> None:
        if name in self.costs:
            raise KeyError(f"cost item '{name}' already exists")
        if cost.nu != self.nu:
            raise ValueError(f"cost '{name}' has nu={cost.nu}, expected {self.nu}")
        if not cost.state.same_space(self.state):
            raise ValueError(f"cost '{name}' is defined on a different state space")
        if weight < 0.0:
            raise ValueError(f"cost weight must be non-negative, got {weight}")
        self.costs[name] = CostItem(name, cost, float(weight), active)

    def remove_cost(self, name: str) -> None:
        if name not in self.costs:
            raise KeyError(f"cost item '{name}' does not exist")
        del self.costs[name]

    def change_cost_status(self, name: str, active: bool) -> None:
        if name not in self.costs:
            raise KeyError(f"cost item '{name}' does not exist")
        self.costs[name].active = active

    def create_data(self) -> CostDataSum:
        ndx, nu = self.state.ndx, self.nu
        offsets = {}
        start = 0
        for name, item in self.costs.items():
            offsets[name] = slice(start, start + item.cost.nr)
            start += item.cost.nr
        return CostDataSum(
            costs={name: item.cost.create_data() for name, item in self.costs.items()},
            r=np.zeros(start),
            Lx=np.zeros(ndx),
            Lu=np.zeros(nu),
            Lxx=np.zeros((ndx, ndx)),
            Luu=np.zeros((nu, nu)),
            Lxu=np.zeros((ndx, nu)),
            offsets=offsets,
        )

    def calc(self, data: CostDataSum, x: NDArray, u: Optional[NDArray] = None) -> None:
        data.cost = 0.0
        data.r[:] = 0.0
        for name, item in self.costs.items():
            if not item.active:
                continue
            d = data.costs[name]
            item.cost.calc(d, x, u)
            data.cost += item.weight * d.cost
            data.r[data.offsets[name]] = d.residual.r

    def calc_diff(self, data: CostDataSum, x: NDArray, u: Optional[NDArray] = None) -> None:
        for arr in (data.Lx, data.Lu, data.Lxx, data.Luu, data.Lxu):
            arr[:] = 0.0
        for name, item in self.costs.items():
            if not item.active:
                continue
            d = data.costs[name]
            item.cost.calc_diff(d, x, u)
            w = item.weight
            data.Lx += w * d.Lx
            data.Lu += w * d.Lu
            data.Lxx += w * d.Lxx
            data.Luu += w * d.Luu
            data.Lxu += w * d.Lxu
