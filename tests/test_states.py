"""Tests for state manifolds."""

import numpy as np
import pytest

from multishoot.core.errors import DimensionError
from multishoot.core.state import Wrt
from multishoot.states import StateProduct, StateSO3, StateVector
from multishoot.states.so3 import hat, right_jacobian, right_jacobian_inverse


STATES = {
    "vector": lambda: StateVector(3),
    "vector_with_velocity": lambda: StateVector(4, nv=2),
    "so3": lambda: StateSO3(),
    "product": lambda: StateProduct([StateSO3(), StateVector(3, nv=3)]),
}

H = 1e-6


def _sample(state, rng, scale=0.3):
    return state.rand(rng), scale * rng.standard_normal(state.ndx)


def _num_jdiff(state, x0, x1):
    """Central differences of diff(x0, x1) in tangent coordinates."""
    n = state.ndx
    J0, J1 = np.zeros((n, n)), np.zeros((n, n))
    for i in range(n):
        e = np.zeros(n)
        e[i] = H
        J0[:, i] = (
            state.diff(state.integrate(x0, e), x1) - state.diff(state.integrate(x0, -e), x1)
        ) / (2 * H)
        J1[:, i] = (
            state.diff(x0, state.integrate(x1, e)) - state.diff(x0, state.integrate(x1, -e))
        ) / (2 * H)
    return J0, J1


def _num_jintegrate(state, x, dx):
    n = state.ndx
    y = state.integrate(x, dx)
    J0, J1 = np.zeros((n, n)), np.zeros((n, n))
    for i in range(n):
        e = np.zeros(n)
        e[i] = H
        J0[:, i] = (
            state.diff(y, state.integrate(state.integrate(x, e), dx))
            - state.diff(y, state.integrate(state.integrate(x, -e), dx))
        ) / (2 * H)
        J1[:, i] = (
            state.diff(y, state.integrate(x, dx + e))
            - state.diff(y, state.integrate(x, dx - e))
        ) / (2 * H)
    return J0, J1


@pytest.mark.parametrize("name", STATES)
def test_diff_inverts_integrate(name):
    """diff(x, integrate(x, dx)) == dx for random samples."""
    state = STATES[name]()
    rng = np.random.default_rng(0)
    for _ in range(10):
        x, dx = _sample(state, rng)
        np.testing.assert_allclose(state.diff(x, state.integrate(x, dx)), dx, atol=1e-10)


@pytest.mark.parametrize("name", STATES)
def test_integrate_inverts_diff(name):
    """integrate(x, diff(x, y)) lands on y."""
    state = STATES[name]()
    rng = np.random.default_rng(1)
    for _ in range(10):
        x, y = state.rand(rng), state.rand(rng)
        z = state.integrate(x, state.diff(x, y))
        np.testing.assert_allclose(state.diff(y, z), np.zeros(state.ndx), atol=1e-9)


@pytest.mark.parametrize("name", STATES)
def test_jdiff_matches_finite_differences(name):
    state = STATES[name]()
    rng = np.random.default_rng(2)
    for _ in range(5):
        x0, dx = _sample(state, rng)
        x1 = state.integrate(x0, dx)
        J0, J1 = state.Jdiff(x0, x1)
        N0, N1 = _num_jdiff(state, x0, x1)
        np.testing.assert_allclose(J0, N0, atol=1e-6)
        np.testing.assert_allclose(J1, N1, atol=1e-6)
        np.testing.assert_allclose(state.Jdiff(x0, x1, Wrt.FIRST), J0)
        np.testing.assert_allclose(state.Jdiff(x0, x1, Wrt.SECOND), J1)


@pytest.mark.parametrize("name", STATES)
def test_jintegrate_matches_finite_differences(name):
    state = STATES[name]()
    rng = np.random.default_rng(3)
    for _ in range(5):
        x, dx = _sample(state, rng)
        J0, J1 = state.Jintegrate(x, dx)
        N0, N1 = _num_jintegrate(state, x, dx)
        np.testing.assert_allclose(J0, N0, atol=1e-6)
        np.testing.assert_allclose(J1, N1, atol=1e-6)


@pytest.mark.parametrize("name", STATES)
def test_transport_is_jintegrate_product(name):
    state = STATES[name]()
    rng = np.random.default_rng(4)
    x, dx = _sample(state, rng)
    Jin = rng.standard_normal((state.ndx, 2))
    for wrt in (Wrt.FIRST, Wrt.SECOND):
        np.testing.assert_allclose(
            state.Jintegrate_transport(x, dx, Jin, wrt),
            state.Jintegrate(x, dx, wrt) @ Jin,
            atol=1e-12,
        )


def test_transport_rejects_both():
    state = StateSO3()
    with pytest.raises(ValueError):
        state.Jintegrate_transport(state.zero(), np.zeros(3), np.eye(3), Wrt.BOTH)


@pytest.mark.parametrize("name", STATES)
def test_wrong_dimensions_raise(name):
    state = STATES[name]()
    x = state.zero()
    bad = np.zeros(state.nx + 1)
    with pytest.raises(DimensionError, match="should be"):
        state.diff(x, bad)
    with pytest.raises(DimensionError):
        state.integrate(x, np.zeros(state.ndx + 1))
    with pytest.raises(DimensionError):
        state.Jdiff(bad, x)
    with pytest.raises(DimensionError):
        state.Jintegrate_transport(x, np.zeros(state.ndx), np.eye(state.ndx + 1), Wrt.SECOND)


def test_dimension_error_is_value_error():
    assert issubclass(DimensionError, ValueError)


def test_vector_jacobians_are_identities():
    state = StateVector(3)
    x0, x1 = np.ones(3), np.arange(3.0)
    J0, J1 = state.Jdiff(x0, x1)
    np.testing.assert_array_equal(J0, -np.eye(3))
    np.testing.assert_array_equal(J1, np.eye(3))
    Ji0, Ji1 = state.Jintegrate(x0, x1)
    np.testing.assert_array_equal(Ji0, np.eye(3))
    np.testing.assert_array_equal(Ji1, np.eye(3))


def test_vector_velocity_block():
    state = StateVector(4, nv=1)
    assert state.nq == 3
    assert state.nv == 1
    with pytest.raises(ValueError):
        StateVector(2, nv=3)


def test_dtype_is_carried():
    state = StateVector(2, dtype=np.float32)
    assert state.zero().dtype == np.float32
    assert state.rand(np.random.default_rng(0)).dtype == np.float32


def test_so3_integrate_quarter_roll():
    state = StateSO3()
    q = state.integrate(state.zero(), np.array([np.pi / 2, 0.0, 0.0]))
    np.testing.assert_allclose(q, [np.sin(np.pi / 4), 0.0, 0.0, np.cos(np.pi / 4)], atol=1e-12)


def test_so3_keeps_scalar_part_non_negative():
    state = StateSO3()
    rng = np.random.default_rng(5)
    for _ in range(20):
        x, dx = state.rand(rng), 2.0 * rng.standard_normal(3)
        assert state.integrate(x, dx)[3] >= 0.0
        assert np.isclose(np.linalg.norm(state.integrate(x, dx)), 1.0)


def test_so3_jacobian_series_near_zero():
    """Small-angle branches agree with the closed form just above the switch."""
    w = np.array([1.0, -2.0, 0.5])
    w *= 1e-3 / np.linalg.norm(w)
    np.testing.assert_allclose(right_jacobian(w * 0.99), right_jacobian(w * 1.01), atol=1e-4)
    np.testing.assert_allclose(right_jacobian(np.zeros(3)), np.eye(3))
    np.testing.assert_allclose(
        right_jacobian_inverse(w) @ right_jacobian(w), np.eye(3), atol=1e-12
    )


def test_hat_is_cross_product():
    rng = np.random.default_rng(6)
    w, v = rng.standard_normal(3), rng.standard_normal(3)
    np.testing.assert_allclose(hat(w) @ v, np.cross(w, v))


def test_same_space():
    assert StateVector(3).same_space(StateVector(3))
    assert not StateVector(3).same_space(StateVector(4))
    assert not StateVector(3, nv=1).same_space(StateVector(3))
    assert not StateVector(3).same_space(StateSO3())
    prod = StateProduct([StateSO3(), StateVector(2)])
    assert prod.same_space(StateProduct([StateSO3(), StateVector(2)]))
    assert not prod.same_space(StateProduct([StateVector(2), StateSO3()]))


def test_product_dimensions():
    prod = StateProduct([StateSO3(), StateVector(3, nv=3)])
    assert (prod.nx, prod.ndx, prod.nv) == (7, 6, 3)
    np.testing.assert_allclose(prod.zero(), [0, 0, 0, 1, 0, 0, 0])
    with pytest.raises(ValueError):
        StateProduct([])
