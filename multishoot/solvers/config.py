"""Solver thresholds and regularisation schedule."""

from dataclasses import dataclass
from typing import Optional


def _default_alphas() -> tuple[float, ...]:
    return tuple(2.0 ** -i for i in range(10))


@dataclass(frozen=True)
class SolverConfig:
    """
    Configuration shared by the DDP family of solvers.

    Args:
        th_stop: Convergence threshold on sum_t ||Qu[t]||^2
        th_grad: Accept any step when |d1| falls below this value
        th_acceptstep: Fraction of the expected improvement a step must reach
        th_acceptnegstep: Bound on the cost increase accepted by FDDP when
            the expected improvement is negative
        th_stepdec: Decrease regularisation when the step exceeds this value
        th_stepinc: Increase regularisation when the step is at most this value
        th_gaptol: Gap norm below which a trajectory counts as feasible
        reg_min: Lower bound of xreg and ureg
        reg_max: Upper bound of xreg and ureg; reaching it ends the solve
        reg_incfactor: Multiplicative regularisation increase
        reg_decfactor: Multiplicative regularisation decrease
        alphas: Line-search step lengths, tried in order
        max_time: Wall-clock budget in seconds, checked between iterations
    """

    th_stop: float = 1e-9
    th_grad: float = 1e-12
    th_acceptstep: float = 0.1
    th_acceptnegstep: float = 2.0
    th_stepdec: float = 0.5
    th_stepinc: float = 0.01
    th_gaptol: float = 1e-16
    reg_min: float = 1e-9
    reg_max: float = 1e9
    reg_incfactor: float = 10.0
    reg_decfactor: float = 10.0
    alphas: tuple[float, ...] = _default_alphas()
    max_time: Optional[float] = None

    def __post_init__(self) -> None:
        if self.th_stop <= 0.0:
            raise ValueError(f"th_stop must be > 0, got {self.th_stop}")
        if self.th_grad < 0.0:
            raise ValueError(f"th_grad must be >= 0, got {self.th_grad}")
        if not 0.0 < self.th_acceptstep < 1.0:
            raise ValueError(
                f"th_acceptstep must lie in (0, 1), got {self.th_acceptstep}"
            )
        if self.th_acceptnegstep < 0.0:
            raise ValueError(
                f"th_acceptnegstep must be >= 0, got {self.th_acceptnegstep}"
            )
        if not 0.0 < self.th_stepinc < self.th_stepdec <= 1.0:
            raise ValueError(
                f"need 0 < th_stepinc ({self.th_stepinc}) < "
                f"th_stepdec ({self.th_stepdec}) <= 1"
            )
        if self.th_gaptol < 0.0:
            raise ValueError(f"th_gaptol must be >= 0, got {self.th_gaptol}")
        if not 0.0 <= self.reg_min < self.reg_max:
            raise ValueError(
                f"need 0 <= reg_min ({self.reg_min}) < reg_max ({self.reg_max})"
            )
        if self.reg_incfactor <= 1.0 or self.reg_decfactor <= 1.0:
            raise ValueError("regularisation factors must be > 1")
        if len(self.alphas) == 0:
            raise ValueError("alphas must not be empty")
        if any(not 0.0 < a <= 1.0 for a in self.alphas):
            raise ValueError(f"every alpha must lie in (0, 1], got {self.alphas}")
        if self.max_time is not None and self.max_time <= 0.0:
            raise ValueError(f"max_time must be > 0, got {self.max_time}")
