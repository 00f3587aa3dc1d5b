"""
multishoot: multiple-shooting trajectory optimisation.

This library provides a framework for solving discrete-time optimal control
problems with differential dynamic programming, with support for:
- States on manifolds (Euclidean, SO(3), products)
- Stage models built from dynamics, costs and constraints
- DDP, feasibility-driven DDP and box-constrained FDDP solvers
"""

__version__ = "0.1.0"

from multishoot.core import (
    DimensionError,
    NumericalDivergenceError,
    ShootingProblem,
    StageData,
    StageModelAbstract,
    StateAbstract,
    Wrt,
)
from multishoot.states import StateProduct, StateSO3, StateVector
from multishoot.solvers import (
    SolverBoxFDDP,
    SolverConfig,
    SolverDDP,
    SolverFDDP,
    SolverStatus,
    create_solver,
)
from multishoot.callbacks import CallbackLogger, CallbackVerbose

__all__ = [
    "DimensionError",
    "NumericalDivergenceError",
    "ShootingProblem",
    "StageData",
    "StageModelAbstract",
    "StateAbstract",
    "Wrt",
    "StateProduct",
    "StateSO3",
    "StateVector",
    "SolverBoxFDDP",
    "SolverConfig",
    "SolverDDP",
    "SolverFDDP",
    "SolverStatus",
    "create_solver",
    "CallbackLogger",
    "CallbackVerbose",
]
