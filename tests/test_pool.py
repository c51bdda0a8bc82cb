"""Tests for parallel shot integration."""

import numpy as np
import pytest

from multishot.core.cost import QuadraticCost
from multishot.core.decision_vector import DecisionVector
from multishot.core.settings import ShootingSettings, SplineType
from multishot.dms import create_shots, integrate_shots


class VanDerPol:
    """x'' = μ(1 - x²)x' - x + u"""

    state_dim = 2
    control_dim = 1
    mu = 0.8

    def f(self, x, u, t):
        return np.array([x[1], self.mu * (1 - x[0] ** 2) * x[1] - x[0] + u[0]])

    def F(self, x, u, t):
        return np.array([
            [0.0, 1.0],
            [-2 * self.mu * x[0] * x[1] - 1.0, self.mu * (1 - x[0] ** 2)],
        ])

    def G(self, x, u, t):
        return np.array([[0.0], [1.0]])


class FailingAfter(VanDerPol):
    """Raises once integration passes t_fail."""

    def __init__(self, t_fail):
        self.t_fail = t_fail

    def f(self, x, u, t):
        if t > self.t_fail:
            raise FloatingPointError(f"diverged at t={t}")
        return super().f(x, u, t)


COST = QuadraticCost(Q=np.eye(2), R=np.array([[0.1]]), Q_final=np.eye(2))

GETTERS = (
    "get_x_history",
    "get_dxdsi_integrated",
    "get_dxdqi_integrated",
    "get_dxdqip1_integrated",
    "get_dldsi_integrated",
    "get_dldqi_integrated",
    "get_dldqip1_integrated",
)


def make_shots(system, n_shots=6):
    settings = ShootingSettings(
        n_shots=n_shots, t_final=3.0, dt_sim=0.05, spline_type=SplineType.PIECEWISE_LINEAR
    )
    rng = np.random.default_rng(42)
    w = DecisionVector(
        rng.normal(size=(n_shots + 1, 2)), rng.normal(size=(n_shots + 1, 1))
    )
    return create_shots(system, system, COST, w, settings), w


def test_parallel_matches_serial():
    serial, _ = make_shots(VanDerPol())
    parallel, _ = make_shots(VanDerPol())

    integrate_shots(serial, max_workers=1)
    integrate_shots(parallel, max_workers=4)

    for a, b in zip(serial, parallel):
        assert a.get_cost_integrated() == b.get_cost_integrated()
        for getter in GETTERS:
            np.testing.assert_array_equal(getattr(a, getter)(), getattr(b, getter)())


def test_pool_call_is_idempotent():
    shots, w = make_shots(VanDerPol())
    integrate_shots(shots)
    x_end = [shot.get_state_integrated().copy() for shot in shots]
    integrate_shots(shots)
    for shot, x in zip(shots, x_end):
        np.testing.assert_array_equal(shot.get_state_integrated(), x)
    assert w.update_count == 0


def test_state_only_integration():
    shots, _ = make_shots(VanDerPol())
    integrate_shots(shots, sensitivities=False, cost=False)
    for shot in shots:
        assert shot.get_x_history().shape[1] == 2
        assert shot.get_cost_integrated() == 0.0


def test_worker_failure_is_reraised_after_join():
    shots, _ = make_shots(FailingAfter(t_fail=2.6))
    with pytest.raises(FloatingPointError, match="diverged"):
        integrate_shots(shots, max_workers=3)
    # shots before the failure time still completed
    assert len(shots[0].get_x_history()) > 0
    np.testing.assert_allclose(shots[0].get_t_history()[-1], shots[0].t_end)


def test_serial_failure_propagates():
    shots, _ = make_shots(FailingAfter(t_fail=0.1))
    with pytest.raises(FloatingPointError):
        integrate_shots(shots, max_workers=1)
