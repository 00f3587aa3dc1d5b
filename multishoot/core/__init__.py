"""Core abstractions for multiple-shooting optimal control."""

from multishoot.core.errors import DimensionError, NumericalDivergenceError
from multishoot.core.state import StateAbstract, Wrt
from multishoot.core.stage import StageData, StageModelAbstract
from multishoot.core.dynamics import DynamicsModel
from multishoot.core.problem import ShootingProblem

__all__ = [
    "DimensionError",
    "NumericalDivergenceError",
    "StateAbstract",
    "Wrt",
    "StageData",
    "StageModelAbstract",
    "DynamicsModel",
    "ShootingProblem",
]
