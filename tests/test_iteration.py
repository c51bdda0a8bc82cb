"""Tests for the sequential LQ step over a multiple-shooting discretization."""

import logging

import numpy as np
import pytest

from multishot import (
    DecisionVector,
    LQOCProblem,
    ShootingSettings,
    create_lqoc_solver,
    create_shots,
    sequential_lq_step,
)
from multishot.core.cost import QuadraticCost
from multishot.core.settings import LQOCSolverType, SplineType
from multishot.core.system import LinearTimeInvariantSystem
from multishot.dms import integrate_shots

SYSTEM = LinearTimeInvariantSystem(
    np.array([[0.0, 1.0], [-1.0, -0.2]]), np.array([[0.0], [1.0]])
)
COST = QuadraticCost(Q=np.eye(2), R=np.array([[0.2]]), Q_final=np.diag([5.0, 1.0]))


def make_iteration(
    spline_type=SplineType.PIECEWISE_CONSTANT,
    solver_type=LQOCSolverType.RICCATI,
):
    settings = ShootingSettings(
        n_shots=4,
        t_final=2.0,
        dt_sim=0.05,
        spline_type=spline_type,
        lqoc_solver=solver_type,
        max_workers=2,
    )
    rng = np.random.default_rng(7)
    w = DecisionVector(rng.normal(size=(5, 2)), rng.normal(size=(5, 1)))
    shots = create_shots(SYSTEM, SYSTEM, COST, w, settings)
    problem = LQOCProblem(settings.n_shots, 2, 1)
    solver = create_lqoc_solver(settings.lqoc_solver)
    return settings, w, shots, problem, solver


def defects(shots, w):
    integrate_shots(shots, sensitivities=False, cost=False)
    return np.array([
        shot.get_state_integrated() - w.get_optimized_state(i + 1)
        for i, shot in enumerate(shots)
    ])


@pytest.mark.parametrize(
    "spline_type", [SplineType.PIECEWISE_CONSTANT, SplineType.PIECEWISE_LINEAR]
)
def test_full_step_closes_defects_of_linear_system(spline_type):
    settings, w, shots, problem, solver = make_iteration(spline_type)
    s0 = w.get_optimized_state(0)
    assert np.abs(defects(shots, w)).max() > 1e-2

    sequential_lq_step(shots, problem, solver, w, COST, max_workers=settings.max_workers)

    assert w.update_count == 1
    np.testing.assert_allclose(w.get_optimized_state(0), s0)
    np.testing.assert_allclose(defects(shots, w), 0.0, atol=1e-9)


def test_partial_step_scales_defects():
    _, w, shots, problem, solver = make_iteration()
    before = defects(shots, w)
    sequential_lq_step(shots, problem, solver, w, COST, step_size=0.5)
    np.testing.assert_allclose(defects(shots, w), 0.5 * before, atol=1e-9)


def test_piecewise_constant_step_leaves_unused_control():
    _, w, shots, problem, solver = make_iteration()
    q_last = w.get_optimized_control(4)
    sequential_lq_step(shots, problem, solver, w, COST)
    np.testing.assert_array_equal(w.get_optimized_control(4), q_last)


def test_step_returns_solver_with_solution():
    _, w, shots, problem, solver = make_iteration(SplineType.PIECEWISE_LINEAR)
    result = sequential_lq_step(shots, problem, solver, w, COST)
    assert result is solver
    np.testing.assert_allclose(result.get_solution_control(), w.controls, atol=1e-12)
    np.testing.assert_allclose(result.get_solution_state(), w.states, atol=1e-12)
    assert result.get_feedback().shape == (5, 1, 2)


def test_interior_point_step_respects_control_bounds():
    _, w, shots, problem, solver = make_iteration(solver_type=LQOCSolverType.INTERIOR_POINT)
    problem.set_control_box_constraints(np.array([-0.5]), np.array([0.5]))
    sequential_lq_step(shots, problem, solver, w, COST)
    assert np.all(np.abs(w.controls[:4]) <= 0.5 + 1e-12)
    np.testing.assert_allclose(defects(shots, w), 0.0, atol=1e-8)


def test_step_is_logged(caplog):
    _, w, shots, problem, solver = make_iteration()
    with caplog.at_level(logging.INFO, logger="multishot"):
        sequential_lq_step(shots, problem, solver, w, COST)
    assert any("LQ step 1" in record.getMessage() for record in caplog.records)
    assert any("Riccati solve" in record.getMessage() for record in caplog.records)


def test_interior_point_step_with_per_stage_bounds_and_linear_controls():
    _, w, shots, problem, solver = make_iteration(
        SplineType.PIECEWISE_LINEAR, LQOCSolverType.INTERIOR_POINT
    )
    upper = np.array([[0.5], [0.4], [0.3], [0.4], [0.5]])
    problem.set_control_box_constraints(-upper, upper)
    sequential_lq_step(shots, problem, solver, w, COST)

    assert np.all(np.abs(w.controls) <= upper + 1e-12)
    np.testing.assert_allclose(defects(shots, w), 0.0, atol=1e-8)
