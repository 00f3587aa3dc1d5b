"""Residual constraints lb <= r(x, u) <= ub reported by stage models."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.errors import check_size
from multishoot.models.residuals import ResidualData, ResidualModelAbstract


class ConstraintModelResidual:
    """
    Bounds on a residual.

    When ``lb == ub`` the constraint is an equality and is reported through
    the stage's ``h`` block as r - lb; otherwise it is an inequality reported
    through ``g`` with bounds copied into the stage's ``g_lb``/``g_ub``.
    """

    def __init__(
        self,
        residual: ResidualModelAbstract,
        lb: Optional[NDArray] = None,
        ub: Optional[NDArray] = None,
    ):
        nr = residual.nr
        self.residual = residual
        self.lb = np.zeros(nr) if lb is None else np.asarray(lb, dtype=float)
        self.ub = np.zeros(nr) if ub is None else np.asarray(ub, dtype=float)
        check_size("lb", self.lb, nr)
        check_size("ub", self.ub, nr)
        if np.any(self.lb > self.ub):
            raise ValueError("constraint lower bound exceeds upper bound")

    @property
    def nr(self) -> int:
        return self.residual.nr

    @property
    def is_equality(self) -> bool:
        return bool(np.array_equal(self.lb, self.ub))

    def create_data(self) -> ResidualData:
        return self.residual.create_data()

    def calc(self, data: ResidualData, x: NDArray, u: Optional[NDArray] = None) -> NDArray:
        """Evaluate the residual; returns the value written to g or h."""
        self.residual.calc(data, x, u)
        if self.is_equality:
            return data.r - self.lb
        return data.r

    def calc_diff(self, data: ResidualData, x: NDArray, u: Optional[NDArray] = None) -> None:
        self.residual.calc_diff(data, x, u)
