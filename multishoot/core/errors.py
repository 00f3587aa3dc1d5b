"""Exceptions and argument checks shared by states, models and solvers."""

import numpy as np
from numpy.typing import NDArray


class DimensionError(ValueError):
    """An input vector or matrix does not have the size the operator expects."""


class NumericalDivergenceError(ArithmeticError):
    """A model produced a non-finite value (NaN or inf)."""


def check_size(name: str, value: NDArray, expected: int) -> None:
    """Raise DimensionError unless ``value`` is a vector of length ``expected``."""
    if np.ndim(value) != 1 or np.shape(value)[0] != expected:
        raise DimensionError(
            f"{name} has wrong dimension (it should be {expected}, "
            f"got shape {np.shape(value)})"
        )


def check_rows(name: str, value: NDArray, expected: int) -> None:
    """Raise DimensionError unless ``value`` is a matrix with ``expected`` rows."""
    if np.ndim(value) != 2 or np.shape(value)[0] != expected:
        raise DimensionError(
            f"{name} has wrong number of rows (it should be {expected}, "
            f"got shape {np.shape(value)})"
        )


def check_length(name: str, values, expected: int) -> None:
    """Raise DimensionError unless the sequence ``values`` has ``expected`` items."""
    if len(values) != expected:
        raise DimensionError(
            f"{name} has wrong length (it should be {expected}, got {len(values)})"
        )


def raise_if_not_finite(value, where: str) -> None:
    """Raise NumericalDivergenceError if ``value`` holds NaN or inf."""
    if not np.all(np.isfinite(value)):
        raise NumericalDivergenceError(f"non-finite value detected in {where}")
