"""Residual models r(x, u) used by costs and constraints."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishoot.core.errors import check_size
from multishoot.core.state import StateAbstract, Wrt


@dataclass
class ResidualData:
    """Residual value and Jacobians."""

    r: NDArray      # (nr,)
    Rx: NDArray     # (nr, ndx)
    Ru: NDArray     # (nr, nu)


class ResidualModelAbstract(ABC):
    """
    Vector residual r(x, u) of size nr.

    ``u`` is None when the residual is evaluated at a terminal stage.
    """

    def __init__(self, state: StateAbstract, nr: int, nu: int):
        self.state = state
        self.nr = nr
        self.nu = nu

    def create_data(self) -> ResidualData:
        ndx = self.state.ndx
        return ResidualData(
            r=np.zeros(self.nr),
            Rx=np.zeros((self.nr, ndx)),
            Ru=np.zeros((self.nr, self.nu)),
        )

    def calc(self, data: ResidualData, x: NDArray, u: Optional[NDArray] = None) -> None:
        self._calc(data, x, u)

    def calc_diff(self, data: ResidualData, x: NDArray, u: Optional[NDArray] = None) -> None:
        self._calc_diff(data, x, u)

    @abstractmethod
    def _calc(self, data: ResidualData, x: NDArray, u: Optional[NDArray]) -> None:
        ...

    @abstractmethod
    def _calc_diff(self, data: ResidualData, x: NDArray, u: Optional[NDArray]) -> None:
        ...


class ResidualModelState(ResidualModelAbstract):
    """r = diff(xref, x), measured on the state manifold."""

    def __init__(self, state: StateAbstract, xref: Optional[NDArray] = None, nu: int = 0):
        super().__init__(state, state.ndx, nu)
        self.xref = state.zero() if xref is None else np.asarray(xref, dtype=float)
        check_size("xref", self.xref, state.nx)

    def _calc(self, data, x, u):
        data.r[:] = self.state.diff(self.xref, x)

    def _calc_diff(self, data, x, u):
        data.Rx[:] = self.state.Jdiff(self.xref, x, Wrt.SECOND)


class ResidualModelControl(ResidualModelAbstract):
    """r = u - uref; zero at terminal stages."""

    def __init__(self, state: StateAbstract, nu: int, uref: Optional[NDArray] = None):
        super().__init__(state, nu, nu)
        self.uref = np.zeros(nu) if uref is None else np.asarray(uref, dtype=float)
        check_size("uref", self.uref, nu)

    def _calc(self, data, x, u):
        if u is None:
            data.r[:] = 0.0
        else:
            data.r[:] = u - self.uref

    def _calc_diff(self, data, x, u):
        if u is None:
            data.Ru[:] = 0.0
        else:
            data.Ru[:] = np.eye(self.nu)
