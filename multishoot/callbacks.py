"""Per-iteration solver callbacks."""

import numpy as np
from loguru import logger


class CallbackVerbose:
    """
    Log one row per solver iteration.

    Args:
        precision: Significant digits of the floating point columns
        header_every: Repeat the column header every this many rows
    """

    columns = ("iter", "cost", "stop", "grad", "xreg", "ureg", "step", "dV_exp", "dV", "ffeas")

    def __init__(self, precision: int = 5, header_every: int = 10):
        if header_every < 1:
            raise ValueError(f"header_every must be >= 1, got {header_every}")
        self.precision = precision
        self.header_every = header_every
        self._rows = 0
        width = precision + 7
        self._width = width
        self.header = "{:>5} ".format(self.columns[0]) + " ".join(
            "{:>{w}}".format(name, w=width) for name in self.columns[1:]
        )

    def __call__(self, solver) -> None:
        if self._rows % self.header_every == 0:
            logger.info(self.header)
        self._rows += 1
        values = (
            solver.cost, solver.stop, solver.d[0], solver.xreg, solver.ureg,
            solver.steplength, solver.dV_exp, solver.dV, solver.ffeas,
        )
        fmt = "{:>{w}.{p}e}"
        row = "{:>5} ".format(solver.iter) + " ".join(
            fmt.format(v, w=self._width, p=self.precision - 1) for v in values
        )
        logger.info(row)


class CallbackLogger:
    """Record the solver history, one entry per iteration."""

    def __init__(self, keep_trajectories: bool = False):
        self.keep_trajectories = keep_trajectories
        self.iters: list[int] = []
        self.costs: list[float] = []
        self.stops: list[float] = []
        self.grads: list[float] = []
        self.steps: list[float] = []
        self.xregs: list[float] = []
        self.uregs: list[float] = []
        self.ffeas: list[float] = []
        self.xs: list[list[np.ndarray]] = []
        self.us: list[list[np.ndarray]] = []

    def __call__(self, solver) -> None:
        self.iters.append(solver.iter)
        self.costs.append(solver.cost)
        self.stops.append(solver.stop)
        self.grads.append(float(solver.d[0]))
        self.steps.append(solver.steplength)
        self.xregs.append(solver.xreg)
        self.uregs.append(solver.ureg)
        self.ffeas.append(solver.ffeas)
        if self.keep_trajectories:
            self.xs.append([x.copy() for x in solver.xs])
            self.us.append([u.copy() for u in solver.us])
