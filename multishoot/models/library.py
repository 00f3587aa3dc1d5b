"""
Ready-made shooting problems.

Used by the test suite and as starting points for new models. Every
builder returns a fresh ShootingProblem whose models are not shared with
any other problem.
"""

from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from multishoot.core.problem import ShootingProblem
from multishoot.core.state import StateAbstract
from multishoot.models.activations import (
    ActivationModelQuad,
    ActivationModelQuadraticBarrier,
    ActivationModelWeightedQuad,
)
from multishoot.models.constraints import ConstraintModelResidual
from multishoot.models.costs import CostModelResidual, CostModelSum
from multishoot.models.dynamics import (
    AngularVelocityDynamics,
    PendulumDynamics,
    UnicycleDynamics,
)
from multishoot.models.integrated import StageModelIntegrated
from multishoot.models.lqr import StageModelLQR
from multishoot.models.residuals import ResidualModelControl, ResidualModelState
from multishoot.states.euclidean import StateVector
from multishoot.states.so3 import StateSO3


def double_integrator(
    T: int = 20,
    dt: float = 1.0,
    x0: Sequence[float] = (1.0, 0.0),
    terminal_weight: float = 10.0,
    nthreads: int = 1,
) -> ShootingProblem:
    """
    1-D double integrator (position, velocity) driven by an acceleration.

    Running cost 0.5 (x^T x + u^2), terminal cost 0.5 terminal_weight x^T x.
    """
    Fx = np.array([[1.0, dt], [0.0, 1.0]])
    Fu = np.array([[0.0], [dt]])
    running = [StageModelLQR(Fx, Fu, np.eye(2), np.eye(1)) for _ in range(T)]
    terminal = StageModelLQR(Fx, Fu, terminal_weight * np.eye(2), np.eye(1))
    return ShootingProblem(np.asarray(x0, dtype=float), running, terminal, nthreads=nthreads)


def random_lqr(
    nx: int,
    nu: int,
    T: int,
    rng: Optional[np.random.Generator] = None,
) -> ShootingProblem:
    """Time-varying LQR with random dynamics and positive definite weights."""
    if rng is None:
        rng = np.random.default_rng()

    def spd(n):
        M = rng.standard_normal((n, n))
        return M @ M.T / n + np.eye(n)

    running = []
    for _ in range(T):
        A = np.eye(nx) + 0.1 * rng.standard_normal((nx, nx))
        B = rng.standard_normal((nx, nu))
        f0 = 0.1 * rng.standard_normal(nx)
        running.append(StageModelLQR(A, B, spd(nx), spd(nu), f0=f0))
    terminal = StageModelLQR(np.eye(nx), np.zeros((nx, nu)), spd(nx), np.eye(nu))
    return ShootingProblem(rng.standard_normal(nx), running, terminal)


def _tracking_costs(
    state: StateAbstract,
    nu: int,
    xref: NDArray,
    state_weight: float,
    control_weight: float,
    state_activation=None,
) -> CostModelSum:
    costs = CostModelSum(state, nu)
    residual = ResidualModelState(state, xref, nu)
    activation = state_activation or ActivationModelQuad(residual.nr)
    costs.add_cost("state", CostModelResidual(state, activation, residual), state_weight)
    if control_weight > 0.0:
        ures = ResidualModelControl(state, nu)
        costs.add_cost(
            "control", CostModelResidual(state, ActivationModelQuad(nu), ures), control_weight
        )
    return costs


def unicycle(
    T: int = 30,
    dt: float = 0.1,
    x0: Sequence[float] = (-1.0, -1.0, 1.0),
    weights: tuple[float, float] = (10.0, 1.0),
) -> ShootingProblem:
    """Drive a planar unicycle to the origin."""
    state = StateVector(3)
    dynamics = UnicycleDynamics()
    xref = np.zeros(3)

    def stage(dt_, control_weight):
        costs = _tracking_costs(state, dynamics.nu, xref, weights[0], control_weight)
        return StageModelIntegrated(state, dynamics, costs, dt_)

    running = [stage(dt, weights[1]) for _ in range(T)]
    terminal = stage(0.0, 0.0)
    return ShootingProblem(np.asarray(x0, dtype=float), running, terminal)


def attitude(
    T: int = 20,
    dt: float = 0.1,
    q0: Optional[NDArray] = None,
    target: Optional[NDArray] = None,
    terminal_weight: float = 100.0,
) -> ShootingProblem:
    """
    Reorient a rigid body on SO(3) using its body angular velocity.

    Args:
        q0: Initial quaternion [qx, qy, qz, qw]; a 90 degree roll by default
        target: Target quaternion; identity by default
    """
    state = StateSO3()
    dynamics = AngularVelocityDynamics()
    if q0 is None:
        q0 = np.array([np.sin(np.pi / 4), 0.0, 0.0, np.cos(np.pi / 4)])
    xref = state.zero() if target is None else np.asarray(target, dtype=float)

    running = [
        StageModelIntegrated(
            state, dynamics, _tracking_costs(state, 3, xref, 1.0, 0.1), dt
        )
        for _ in range(T)
    ]
    terminal = StageModelIntegrated(
        state, dynamics, _tracking_costs(state, 3, xref, terminal_weight, 0.0), 0.0
    )
    return ShootingProblem(np.asarray(q0, dtype=float), running, terminal)


def pendulum_swing_up(
    T: int = 60,
    dt: float = 0.05,
    torque_limit: Optional[float] = None,
    penalize_limit: bool = False,
    limit_weight: float = 1e3,
    dynamics: Optional[PendulumDynamics] = None,
) -> ShootingProblem:
    """
    Swing a pendulum from hanging (0, 0) to upright (pi, 0).

    Args:
        torque_limit: Symmetric bound on the torque. Installed as control
            bounds on every running model (used by SolverBoxFDDP).
        penalize_limit: Also fold the bound into the cost through a
            quadratic barrier and report it as an inequality constraint.
        limit_weight: Weight of the barrier term
        dynamics: Pendulum parameters, unit mass and length by default
    """
    state = StateVector(2, nv=1)
    dynamics = dynamics or PendulumDynamics()
    xref = np.array([np.pi, 0.0])
    state_activation = ActivationModelWeightedQuad(np.array([1.0, 0.1]))

    def stage(dt_, state_weight, control_weight):
        costs = _tracking_costs(
            state, 1, xref, state_weight, control_weight, state_activation
        )
        constraints = []
        if torque_limit is not None and penalize_limit and dt_ > 0.0:
            lb, ub = np.array([-torque_limit]), np.array([torque_limit])
            ures = ResidualModelControl(state, 1)
            costs.add_cost(
                "torque_limit",
                CostModelResidual(state, ActivationModelQuadraticBarrier(lb, ub), ures),
                limit_weight,
            )
            constraints.append(ConstraintModelResidual(ures, lb, ub))
        model = StageModelIntegrated(state, dynamics, costs, dt_, constraints)
        if torque_limit is not None and dt_ > 0.0:
            model.set_control_bounds([-torque_limit], [torque_limit])
        return model

    running = [stage(dt, 1e-2, 1e-3) for _ in range(T)]
    terminal = stage(0.0, 1e2, 0.0)
    return ShootingProblem(np.zeros(2), running, terminal)
