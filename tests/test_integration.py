"""Tests for the sensitivity integrator against exact and finite-difference results."""

import numpy as np
import pytest

from multishot.control.spliner import ControlSpliner, ShotControl
from multishot.core.cost import QuadraticCost
from multishot.core.decision_vector import DecisionVector
from multishot.core.errors import ConfigurationError
from multishot.core.settings import IntegrationType, SplineType
from multishot.core.system import LinearTimeInvariantSystem
from multishot.core.time_grid import TimeGrid
from multishot.integration import (
    ButcherTableau,
    SensitivityIntegrator,
    create_sensitivity_integrator,
    explicit_euler,
    rk4,
)
from multishot.integration.factory import tableau_for


class DampedPendulum:
    """θ'' = -sin θ - 0.1 θ' + u"""

    state_dim = 2
    control_dim = 1

    def f(self, x, u, t):
        return np.array([x[1], -np.sin(x[0]) - 0.1 * x[1] + u[0]])

    def F(self, x, u, t):
        return np.array([[0.0, 1.0], [-np.cos(x[0]), -0.1]])

    def G(self, x, u, t):
        return np.array([[0.0], [1.0]])


def make_control(q, spline_type=SplineType.PIECEWISE_CONSTANT):
    w = DecisionVector(np.zeros((2, 2)), np.asarray(q, dtype=float).reshape(2, 1))
    spliner = ControlSpliner(w, TimeGrid(1, 1.0), spline_type)
    return ShotControl(spliner, 0)


def make_integrator(system, control, tableau=None):
    integrator = SensitivityIntegrator(system, tableau or rk4(), control)
    integrator.set_linear_system(system)
    integrator.set_cost_function(
        QuadraticCost(Q=np.diag([1.0, 0.5]), R=np.array([[0.2]]), x_ref=np.array([0.3, 0.0]))
    )
    return integrator


def test_tableaux_are_explicit():
    assert explicit_euler().is_explicit
    assert rk4().is_explicit
    assert rk4().s == 4
    np.testing.assert_allclose(rk4().b.sum(), 1.0)


def test_implicit_tableau_rejected():
    backward_euler = ButcherTableau(A=np.array([[1.0]]), b=np.array([1.0]), c=np.array([1.0]))
    with pytest.raises(ConfigurationError):
        SensitivityIntegrator(DampedPendulum(), backward_euler, make_control([0.0, 0.0]))


def test_adaptive_integrator_rejected():
    with pytest.raises(ConfigurationError):
        tableau_for(IntegrationType.RK5)
    with pytest.raises(ConfigurationError):
        tableau_for("rk4")
    with pytest.raises(ConfigurationError):
        create_sensitivity_integrator(
            IntegrationType.RK5, DampedPendulum(), make_control([0.0, 0.0])
        )


def test_integrate_returns_histories():
    integrator = make_integrator(DampedPendulum(), make_control([0.5, 0.0]))
    x_hist, t_hist = integrator.integrate(np.array([1.0, 0.0]), 0.0, 10, 0.1)
    assert x_hist.shape == (11, 2)
    np.testing.assert_allclose(t_hist, np.linspace(0.0, 1.0, 11))
    np.testing.assert_allclose(x_hist[0], [1.0, 0.0])


def test_euler_sensitivity_is_exact_for_linear_system():
    A = np.array([[0.0, 1.0], [-2.0, -0.3]])
    B = np.array([[0.0], [1.0]])
    system = LinearTimeInvariantSystem(A, B)
    integrator = make_integrator(system, make_control([1.0, 0.0]), explicit_euler())

    h, n_steps = 0.05, 20
    integrator.integrate(np.array([1.0, -1.0]), 0.0, n_steps, h)
    integrator.linearize()
    dx0 = integrator.integrate_sensitivity_dx0(np.eye(2))
    du0 = integrator.integrate_sensitivity_du0(np.zeros((2, 1)))

    Phi = np.eye(2) + h * A
    np.testing.assert_allclose(dx0, np.linalg.matrix_power(Phi, n_steps), atol=1e-12)
    expected_du0 = sum(np.linalg.matrix_power(Phi, k) for k in range(n_steps)) @ (h * B)
    np.testing.assert_allclose(du0, expected_du0, atol=1e-12)


def test_sensitivity_dx0_matches_finite_differences():
    system = DampedPendulum()
    control = make_control([0.3, 0.0])
    integrator = make_integrator(system, control)
    x0 = np.array([0.8, -0.2])

    integrator.integrate(x0, 0.0, 20, 0.05)
    integrator.linearize()
    dx0 = integrator.integrate_sensitivity_dx0(np.eye(2))
    dcost = integrator.integrate_cost_sensitivity_dx0()

    eps = 1e-6
    for j in range(2):
        e = np.zeros(2)
        e[j] = eps
        probe = make_integrator(system, control)
        x_plus, _ = probe.integrate(x0 + e, 0.0, 20, 0.05)
        cost_plus = probe.integrate_cost()
        x_minus, _ = probe.integrate(x0 - e, 0.0, 20, 0.05)
        cost_minus = probe.integrate_cost()
        np.testing.assert_allclose(dx0[:, j], (x_plus[-1] - x_minus[-1]) / (2 * eps), atol=1e-7)
        assert dcost[j] == pytest.approx((cost_plus - cost_minus) / (2 * eps), abs=1e-7)


def test_control_sensitivities_match_finite_differences():
    system = DampedPendulum()
    q = np.array([0.4, -0.6])
    x0 = np.array([0.5, 0.1])

    integrator = make_integrator(system, make_control(q, SplineType.PIECEWISE_LINEAR))
    integrator.integrate(x0, 0.0, 20, 0.05)
    integrator.linearize()
    sens = [
        integrator.integrate_sensitivity_du0(np.zeros((2, 1))),
        integrator.integrate_sensitivity_duf(np.zeros((2, 1))),
    ]
    cost_sens = [
        integrator.integrate_cost_sensitivity_du0(),
        integrator.integrate_cost_sensitivity_duf(),
    ]

    eps = 1e-6
    for k in range(2):
        results = []
        for sign in (1.0, -1.0):
            q_pert = q.copy()
            q_pert[k] += sign * eps
            probe = make_integrator(system, make_control(q_pert, SplineType.PIECEWISE_LINEAR))
            x_hist, _ = probe.integrate(x0, 0.0, 20, 0.05)
            results.append((x_hist[-1], probe.integrate_cost()))
        (x_p, c_p), (x_m, c_m) = results
        np.testing.assert_allclose(sens[k][:, 0], (x_p - x_m) / (2 * eps), atol=1e-7)
        assert cost_sens[k][0] == pytest.approx((c_p - c_m) / (2 * eps), abs=1e-7)


def test_missing_prerequisites_raise():
    integrator = make_integrator(DampedPendulum(), make_control([0.0, 0.0]))
    with pytest.raises(RuntimeError):
        integrator.linearize()
    integrator.integrate(np.zeros(2), 0.0, 3, 0.1)
    with pytest.raises(RuntimeError):
        integrator.integrate_sensitivity_dx0(np.eye(2))
    integrator.linearize()
    with pytest.raises(RuntimeError):
        integrator.integrate_cost_sensitivity_du0()


def test_reintegration_clears_sensitivities():
    integrator = make_integrator(DampedPendulum(), make_control([0.0, 0.0]))
    integrator.integrate(np.zeros(2), 0.0, 3, 0.1)
    integrator.linearize()
    integrator.integrate_sensitivity_dx0(np.eye(2))
    integrator.integrate(np.ones(2), 0.0, 3, 0.1)
    with pytest.raises(RuntimeError):
        integrator.integrate_cost_sensitivity_dx0()
