"""Tests for solver construction, configuration and the dense backend."""

import dataclasses

import numpy as np
import pytest

from multishoot.algebra import DenseBackend
from multishoot.models.library import double_integrator, pendulum_swing_up
from multishoot.solvers import SolverBoxFDDP, SolverConfig, SolverFDDP, create_solver


def test_create_solver_without_limits():
    solver = create_solver(pendulum_swing_up(T=5))
    assert type(solver) is SolverFDDP


def test_create_solver_with_limits():
    solver = create_solver(pendulum_swing_up(T=5, torque_limit=2.0))
    assert isinstance(solver, SolverBoxFDDP)


def test_create_solver_passes_config_and_backend():
    config = SolverConfig(th_stop=1e-6)
    backend = DenseBackend()
    solver = create_solver(double_integrator(T=3), config=config, backend=backend)
    assert solver.config is config
    assert solver.backend is backend


def test_pendulum_limit_penalty_adds_constraint():
    problem = pendulum_swing_up(T=4, torque_limit=1.5, penalize_limit=True)
    running = problem.running_models[0]
    assert running.ng == 1
    assert running.has_control_limits
    assert "torque_limit" in running.costs.active
    assert problem.terminal_model.ng == 0
    assert not problem.terminal_model.has_control_limits


def test_config_defaults():
    config = SolverConfig()
    assert config.alphas[0] == 1.0
    assert len(config.alphas) == 10
    assert config.reg_min < config.reg_max
    assert config.max_time is None


def test_config_is_frozen():
    config = SolverConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.th_stop = 1.0
    assert dataclasses.replace(config, th_stop=1e-3).th_stop == 1e-3


@pytest.mark.parametrize(
    "kwargs",
    [
        {"th_stop": 0.0},
        {"th_acceptstep": 1.5},
        {"th_stepinc": 0.6, "th_stepdec": 0.5},
        {"reg_min": 1.0, "reg_max": 0.5},
        {"reg_incfactor": 1.0},
        {"alphas": ()},
        {"alphas": (1.0, 0.0)},
        {"max_time": -1.0},
    ],
)
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        SolverConfig(**kwargs)


def test_dense_backend_cholesky():
    backend = DenseBackend()
    A = np.array([[4.0, 1.0], [1.0, 3.0]])
    b = np.array([1.0, 2.0])
    np.testing.assert_allclose(backend.cho_solve(backend.cho_factor(A), b), np.linalg.solve(A, b))
    B = np.array([[1.0, 0.0], [0.0, 1.0], [2.0, -1.0]]).T
    np.testing.assert_allclose(backend.cho_solve(backend.cho_factor(A), B), np.linalg.solve(A, B))


def test_dense_backend_rejects_bad_matrices():
    backend = DenseBackend()
    with pytest.raises(np.linalg.LinAlgError):
        backend.cho_factor(-np.eye(2))
    with pytest.raises(np.linalg.LinAlgError):
        backend.cho_factor(np.array([[np.nan, 0.0], [0.0, 1.0]]))
