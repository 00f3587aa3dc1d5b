"""Concrete state manifolds."""

from multishoot.states.euclidean import StateVector
from multishoot.states.so3 import StateSO3
from multishoot.states.product import StateProduct

__all__ = [
    "StateVector",
    "StateSO3",
    "StateProduct",
]
