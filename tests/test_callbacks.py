"""Tests for solver callbacks."""

from types import SimpleNamespace

import numpy as np
import pytest
from loguru import logger

from multishoot.callbacks import CallbackLogger, CallbackVerbose
from multishoot.models.library import unicycle
from multishoot.solvers import SolverFDDP


@pytest.fixture
def messages():
    """Capture log lines emitted by the callbacks module."""
    captured = []
    handler_id = logger.add(
        lambda m: captured.append(str(m).strip()),
        format="{message}",
        level="INFO",
        filter="multishoot.callbacks",
    )
    yield captured
    logger.remove(handler_id)


def _fake_solver(it):
    return SimpleNamespace(
        iter=it, cost=1.5, stop=1e-3, d=np.array([2.0, -1.0]), xreg=1e-9, ureg=1e-9,
        steplength=0.5, dV_exp=0.25, dV=0.2, ffeas=0.0,
    )


def test_verbose_header_and_rows(messages):
    callback = CallbackVerbose(precision=3, header_every=2)
    for it in (1, 2, 3):
        callback(_fake_solver(it))

    assert len(messages) == 5
    header = messages[0]
    for name in CallbackVerbose.columns:
        assert name in header
    assert messages[1].split()[0] == "1"
    assert messages[3] == header
    assert "1.50e+00" in messages[1]


def test_verbose_validates_header_interval():
    with pytest.raises(ValueError):
        CallbackVerbose(header_every=0)


def test_logger_records_every_iteration():
    solver = SolverFDDP(unicycle(T=10))
    log = CallbackLogger(keep_trajectories=True)
    solver.set_callbacks([log])
    solver.solve(maxiter=20)

    assert log.iters == list(range(1, solver.iter + 1))
    assert len(log.costs) == solver.iter
    assert log.costs[-1] == solver.cost
    assert len(log.xs) == solver.iter
    assert len(log.xs[0]) == solver.problem.T + 1
    # stored trajectories are copies
    assert log.us[-1][0] is not solver.us[0]
    np.testing.assert_allclose(log.us[-1][0], solver.us[0])


def test_verbose_runs_inside_solver(messages):
    solver = SolverFDDP(unicycle(T=5))
    solver.set_callbacks([CallbackVerbose()])
    solver.solve(maxiter=3)
    rows = [m for m in messages if not m.startswith("iter")]
    assert len(rows) == solver.iter
