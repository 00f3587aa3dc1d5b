"""Activation functions a(r) applied to cost residuals."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.errors import check_size


@dataclass
class ActivationData:
    """Activation value and its derivatives w.r.t. the residual."""

    a: float
    Ar: NDArray     # (nr,)
    Arr: NDArray    # (nr, nr)


class ActivationModelAbstract(ABC):
    """Scalar function of a residual vector of size nr."""

    def __init__(self, nr: int):
        self.nr = nr

    def create_data(self) -> ActivationData:
        return ActivationData(a=0.0, Ar=np.zeros(self.nr), Arr=np.zeros((self.nr, self.nr)))

    def calc(self, data: ActivationData, r: NDArray) -> None:
        check_size("r", r, self.nr)
        self._calc(data, r)

    def calc_diff(self, data: ActivationData, r: NDArray) -> None:
        check_size("r", r, self.nr)
        self._calc_diff(data, r)

    @abstractmethod
    def _calc(self, data: ActivationData, r: NDArray) -> None:
        ...

    @abstractmethod
    def _calc_diff(self, data: ActivationData, r: NDArray) -> None:
        ...


class ActivationModelQuad(ActivationModelAbstract):
    """a(r) = 0.5 ||r||^2"""

    def _calc(self, data, r):
        data.a = 0.5 * float(r @ r)

    def _calc_diff(self, data, r):
        data.Ar[:] = r
        data.Arr[:] = np.eye(self.nr)


class ActivationModelWeightedQuad(ActivationModelAbstract):
    """a(r) = 0.5 r^T diag(w) r"""

    def __init__(self, weights: NDArray):
        weights = np.asarray(weights, dtype=float)
        if np.any(weights < 0.0):
            raise ValueError("activation weights must be non-negative")
        super().__init__(weights.size)
        self.weights = weights

    def _calc(self, data, r):
        data.a = 0.5 * float(r @ (self.weights * r))

    def _calc_diff(self, data, r):
        data.Ar[:] = self.weights * r
        data.Arr[:] = np.diag(self.weights)


class ActivationModelQuadraticBarrier(ActivationModelAbstract):
    """
    Quadratic penalty outside the box lb <= r <= ub.

        a(r) = 0.5 sum_i w_i (min(r_i - lb_i, 0)^2 + max(r_i - ub_i, 0)^2)

    Zero inside the bounds. Used to fold inequality residuals (torque limits,
    friction cones) into the cost.
    """

    def __init__(self, lb: NDArray, ub: NDArray, weights: Optional[NDArray] = None):
        lb = np.asarray(lb, dtype=float)
        ub = np.asarray(ub, dtype=float)
        if lb.shape != ub.shape:
            raise ValueError("barrier bounds must have the same shape")
        if np.any(lb > ub):
            raise ValueError("barrier lower bound exceeds upper bound")
        super().__init__(lb.size)
        self.lb = lb
        self.ub = ub
        self.weights = np.ones(lb.size) if weights is None else np.asarray(weights, dtype=float)
        check_size("weights", self.weights, self.nr)

    def _violation(self, r: NDArray) -> NDArray:
        return np.minimum(r - self.lb, 0.0) + np.maximum(r - self.ub, 0.0)

    def _calc(self, data, r):
        v = self._violation(r)
        data.a = 0.5 * float(v @ (self.weights * v))

    def _calc_diff(self, data, r):
        data.Ar[:] = self.weights * self._violation(r)
        active = (r < self.lb) | (r > self.ub)
        data.Arr[:] = np.diag(self.weights * active)
