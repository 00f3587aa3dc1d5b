"""DDP-family solvers for shooting problems."""

from multishoot.solvers.config import SolverConfig
from multishoot.solvers.base import SolverAbstract, SolverStatus
from multishoot.solvers.ddp import SolverDDP
from multishoot.solvers.fddp import SolverFDDP
from multishoot.solvers.box_qp import BoxQP, BoxQPSolution
from multishoot.solvers.box_fddp import SolverBoxFDDP
from multishoot.solvers.factory import create_solver

__all__ = [
    "SolverConfig",
    "SolverAbstract",
    "SolverStatus",
    "SolverDDP",
    "SolverFDDP",
    "BoxQP",
    "BoxQPSolution",
    "SolverBoxFDDP",
    "create_solver",
]
