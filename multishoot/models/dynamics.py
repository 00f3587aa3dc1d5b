"""
Stock velocity fields for integrated stage models.

Each class satisfies the DynamicsModel protocol: ``velocity(x, u)`` returns
a tangent vector of size ndx and ``velocity_diff`` its Jacobians.
"""

from typing import Optional
import numpy as np
from numpy.typing import NDArray


class LinearDynamics:
    """v = A x + B u + c on a Euclidean state."""

    def __init__(self, A: NDArray, B: NDArray, c: Optional[NDArray] = None):
        A = np.atleast_2d(np.asarray(A, dtype=float))
        B = np.asarray(B, dtype=float)
        if B.ndim == 1:
            B = B.reshape(-1, 1)
        n = A.shape[0]
        if A.shape != (n, n):
            raise ValueError(f"A must be square, got shape {A.shape}")
        if B.shape[0] != n:
            raise ValueError(f"B must have {n} rows, got shape {B.shape}")
        self.A = A
        self.B = B
        self.c = np.zeros(n) if c is None else np.asarray(c, dtype=float)

    @property
    def nu(self) -> int:
        return self.B.shape[1]

    def velocity(self, x, u):
        return self.A @ x + self.B @ u + self.c

    def velocity_diff(self, x, u):
        return self.A, self.B


class UnicycleDynamics:
    """
    Planar unicycle, state (px, py, theta), control (forward speed, turn rate).
    """

    nu = 2

    def velocity(self, x, u):
        c, s = np.cos(x[2]), np.sin(x[2])
        return np.array([u[0] * c, u[0] * s, u[1]])

    def velocity_diff(self, x, u):
        c, s = np.cos(x[2]), np.sin(x[2])
        v_x = np.zeros((3, 3))
        v_x[0, 2] = -u[0] * s
        v_x[1, 2] = u[0] * c
        v_u = np.array([[c, 0.0], [s, 0.0], [0.0, 1.0]])
        return v_x, v_u


class PendulumDynamics:
    """
    Damped pendulum, state (theta, theta_dot), control torque.

        theta_ddot = -(g / l) sin(theta) - b theta_dot + tau / (m l^2)

    theta = 0 is the hanging position.
    """

    nu = 1

    def __init__(self, m: float = 1.0, l: float = 1.0, g: float = 9.81, b: float = 0.0):
        if m <= 0.0 or l <= 0.0:
            raise ValueError("pendulum mass and length must be positive")
        self.m = m
        self.l = l
        self.g = g
        self.b = b

    @property
    def inertia(self) -> float:
        return self.m * self.l ** 2

    def velocity(self, x, u):
        acc = -(self.g / self.l) * np.sin(x[0]) - self.b * x[1] + u[0] / self.inertia
        return np.array([x[1], acc])

    def velocity_diff(self, x, u):
        v_x = np.array([
            [0.0, 1.0],
            [-(self.g / self.l) * np.cos(x[0]), -self.b],
        ])
        v_u = np.array([[0.0], [1.0 / self.inertia]])
        return v_x, v_u


class AngularVelocityDynamics:
    """Body angular velocity as control on SO(3): v = u."""

    nu = 3

    def velocity(self, x, u):
        return np.array(u, dtype=float)

    def velocity_diff(self, x, u):
        return np.zeros((3, 3)), np.eye(3)
