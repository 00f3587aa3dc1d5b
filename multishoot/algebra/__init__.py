"""Linear algebra backend abstractions."""

from multishoot.algebra.protocols import LinearAlgebraBackend
from multishoot.algebra.dense import DenseBackend

__all__ = [
    "LinearAlgebraBackend",
    "DenseBackend",
]
