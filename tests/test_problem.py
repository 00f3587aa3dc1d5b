"""Tests for ShootingProblem."""

import numpy as np
import pytest

from multishoot.core.errors import DimensionError
from multishoot.core.problem import ShootingProblem
from multishoot.models import StageModelLQR
from multishoot.models.library import attitude, double_integrator, random_lqr, unicycle
from multishoot.states import StateSO3


def _guess(problem, rng):
    xs = [problem.state.rand(rng) for _ in range(problem.T + 1)]
    us = [rng.standard_normal(m.nu) for m in problem.running_models]
    return xs, us


def test_mismatched_state_rejected():
    lqr3 = StageModelLQR(np.eye(3), np.ones((3, 1)), np.eye(3), np.eye(1))
    lqr2 = StageModelLQR(np.eye(2), np.ones((2, 1)), np.eye(2), np.eye(1))
    with pytest.raises(ValueError, match="running model 1"):
        ShootingProblem(np.zeros(2), [lqr2, lqr3], lqr2)
    with pytest.raises(ValueError):
        ShootingProblem(np.zeros(2), [lqr2], lqr2, nthreads=0)
    with pytest.raises(DimensionError):
        ShootingProblem(np.zeros(3), [lqr2], lqr2)


def test_total_cost_is_sum_of_stage_costs():
    problem = unicycle(T=5)
    xs, us = _guess(problem, np.random.default_rng(0))
    total = problem.calc(xs, us)

    expected = 0.0
    for model, x, u in zip(problem.running_models, xs[:-1], us):
        data = model.create_data()
        model.calc(data, x, u)
        expected += data.cost
    data = problem.terminal_model.create_data()
    problem.terminal_model.calc(data, xs[-1])
    expected += data.cost

    assert total == pytest.approx(expected)
    assert problem.cost == total


def test_wrong_trajectory_lengths():
    problem = double_integrator(T=4)
    xs = [np.zeros(2)] * 5
    us = [np.zeros(1)] * 4
    with pytest.raises(DimensionError, match="should be"):
        problem.calc(xs[:-1], us)
    with pytest.raises(DimensionError):
        problem.calc_diff(xs, us[:-1])
    with pytest.raises(DimensionError):
        problem.rollout(us + us)


def test_rollout_matches_manual_propagation():
    problem = attitude(T=6)
    rng = np.random.default_rng(1)
    us = [rng.standard_normal(3) for _ in range(problem.T)]
    xs = problem.rollout(us)

    assert len(xs) == problem.T + 1
    np.testing.assert_allclose(xs[0], problem.x0)
    state = problem.state
    for t, model in enumerate(problem.running_models):
        expected = state.integrate(xs[t], model.dt * us[t])
        np.testing.assert_allclose(state.diff(expected, xs[t + 1]), 0.0, atol=1e-12)


def test_calc_diff_skips_calc_for_same_trajectory(monkeypatch):
    problem = double_integrator(T=3)
    counts = {"calc": 0, "calc_diff": 0}
    original_calc = StageModelLQR._calc
    original_diff = StageModelLQR._calc_diff

    def counting_calc(self, data, x, u):
        counts["calc"] += 1
        original_calc(self, data, x, u)

    def counting_diff(self, data, x, u):
        counts["calc_diff"] += 1
        original_diff(self, data, x, u)

    monkeypatch.setattr(StageModelLQR, "_calc", counting_calc)
    monkeypatch.setattr(StageModelLQR, "_calc_diff", counting_diff)

    xs, us = _guess(problem, np.random.default_rng(2))
    problem.calc(xs, us)
    assert counts == {"calc": 4, "calc_diff": 0}

    problem.calc_diff(xs, us)
    assert counts == {"calc": 4, "calc_diff": 4}

    # a different trajectory is evaluated before differentiation
    xs[1] = xs[1] + 1.0
    problem.calc_diff(xs, us)
    assert counts == {"calc": 8, "calc_diff": 8}

    # mark_calc declares externally computed stage data as current
    problem.mark_calc(xs, us, problem.cost)
    problem.calc_diff(xs, us)
    assert counts["calc"] == 8


def test_calc_diff_leaves_calc_results_in_data():
    problem = double_integrator(T=3)
    xs, us = _guess(problem, np.random.default_rng(3))
    problem.calc_diff(xs, us)
    for model, data, x, u in zip(problem.running_models, problem.running_datas, xs, us):
        np.testing.assert_allclose(data.xnext, model.A @ x + model.B @ u)
        np.testing.assert_allclose(data.Fx, model.A)


def test_threaded_evaluation_matches_serial():
    rng = np.random.default_rng(4)
    serial = random_lqr(3, 2, 12, rng=np.random.default_rng(5))
    threaded = random_lqr(3, 2, 12, rng=np.random.default_rng(5))
    threaded.nthreads = 4
    xs, us = _guess(serial, rng)

    assert threaded.calc(xs, us) == pytest.approx(serial.calc(xs, us))
    serial.calc_diff(xs, us)
    threaded.calc_diff(xs, us)
    for ds, dt in zip(serial.running_datas, threaded.running_datas):
        np.testing.assert_allclose(dt.xnext, ds.xnext)
        np.testing.assert_allclose(dt.Lx, ds.Lx)
        np.testing.assert_allclose(dt.Fu, ds.Fu)


class FailingLQR(StageModelLQR):
    def _calc(self, data, x, u):
        raise RuntimeError("stage evaluation failed")


def test_worker_exceptions_propagate():
    good = StageModelLQR(np.eye(2), np.ones((2, 1)), np.eye(2), np.eye(1))
    bad = FailingLQR(np.eye(2), np.ones((2, 1)), np.eye(2), np.eye(1))
    problem = ShootingProblem(np.zeros(2), [good, bad, good], good, nthreads=3)
    with pytest.raises(RuntimeError, match="stage evaluation failed"):
        problem.calc([np.zeros(2)] * 4, [np.zeros(1)] * 3)


def test_worker_pool_is_reused_until_closed():
    rng = np.random.default_rng(6)
    with random_lqr(2, 1, 6, rng=rng) as problem:
        problem.nthreads = 2
        xs, us = _guess(problem, rng)
        problem.calc(xs, us)
        pool = problem._pool
        assert pool is not None
        problem.calc_diff(xs, us)
        problem.calc([x + 1.0 for x in xs], us)
        assert problem._pool is pool

        problem.nthreads = 3
        problem.calc(xs, us)
        assert problem._pool is not pool
        assert problem._pool_size == 3
    assert problem._pool is None

    # closing is idempotent and evaluation restarts the pool on demand
    problem.close()
    problem.calc(xs, us)
    assert problem._pool is not None
    problem.close()


def test_circular_append():
    problem = double_integrator(T=3)
    first = problem.running_models[0]
    new = StageModelLQR(np.eye(2), np.ones((2, 1)), np.eye(2), np.eye(1))
    problem.circular_append(new)

    assert problem.T == 3
    assert first not in problem.running_models
    assert problem.running_models[-1] is new
    assert len(problem.running_datas) == 3

    with pytest.raises(ValueError):
        problem.circular_append(StageModelLQR(np.eye(3), np.ones((3, 1)), np.eye(3), np.eye(1)))


def test_update_model():
    problem = double_integrator(T=3)
    new = StageModelLQR(2.0 * np.eye(2), np.ones((2, 1)), np.eye(2), np.eye(1))
    problem.update_model(1, new)
    assert problem.running_models[1] is new
    with pytest.raises(IndexError):
        problem.update_model(3, new)


def test_x0_setter_validates():
    problem = double_integrator(T=2)
    problem.x0 = [3.0, 1.0]
    np.testing.assert_allclose(problem.rollout([np.zeros(1)] * 2)[0], [3.0, 1.0])
    with pytest.raises(DimensionError):
        problem.x0 = np.zeros(3)


def test_quasi_static_controls():
    problem = unicycle(T=4)
    xs = [problem.x0] * (problem.T + 1)
    us = problem.quasi_static(xs)
    assert len(us) == problem.T
    for u in us:
        np.testing.assert_allclose(u, 0.0, atol=1e-9)


def test_problem_state_property():
    problem = attitude(T=2)
    assert isinstance(problem.state, StateSO3)
    assert problem.T == 2
