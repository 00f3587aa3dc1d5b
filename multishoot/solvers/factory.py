"""Solver factory and dispatch logic."""

from typing import Optional

from multishoot.algebra import LinearAlgebraBackend
from multishoot.core.problem import ShootingProblem
from multishoot.solvers.base import SolverAbstract
from multishoot.solvers.box_fddp import SolverBoxFDDP
from multishoot.solvers.config import SolverConfig
from multishoot.solvers.fddp import SolverFDDP


def create_solver(
    problem: ShootingProblem,
    config: Optional[SolverConfig] = None,
    backend: Optional[LinearAlgebraBackend] = None,
) -> SolverAbstract:
    """
    Pick a solver from the structure of the problem.

    Args:
        problem: Shooting problem to solve
        config: Solver configuration
        backend: Linear algebra backend

    Returns:
        SolverBoxFDDP when any running model has control limits,
        SolverFDDP otherwise
    """

    if any(m.has_control_limits for m in problem.running_models):
        return SolverBoxFDDP(problem, config, backend)

    # Unconstrained controls
    return SolverFDDP(problem, config, backend)
