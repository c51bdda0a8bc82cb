"""Tests for control interpolation between grid points."""

import numpy as np
import pytest

from multishot.control.spliner import ControlSpliner, ShotControl
from multishot.core.decision_vector import DecisionVector
from multishot.core.settings import SplineType
from multishot.core.time_grid import TimeGrid


def make_spliner(spline_type):
    w = DecisionVector(np.zeros((3, 1)), np.array([[1.0, -1.0], [3.0, 1.0], [5.0, 0.0]]))
    return ControlSpliner(w, TimeGrid(2, 2.0), spline_type), w


def test_piecewise_constant_holds_q_i():
    spliner, _ = make_spliner(SplineType.PIECEWISE_CONSTANT)
    np.testing.assert_allclose(spliner.eval_spline(0.7, 0), [1.0, -1.0])
    np.testing.assert_allclose(spliner.eval_spline(1.9, 1), [3.0, 1.0])
    assert spliner.spline_derivative_q_i(0.7, 0) == 1.0
    assert spliner.spline_derivative_q_iplus1(0.7, 0) == 0.0


def test_piecewise_linear_interpolates():
    spliner, _ = make_spliner(SplineType.PIECEWISE_LINEAR)
    np.testing.assert_allclose(spliner.eval_spline(1.0, 0), [3.0, 1.0])
    np.testing.assert_allclose(spliner.eval_spline(1.5, 1), [4.0, 0.5])
    assert spliner.spline_derivative_q_i(1.25, 1) == pytest.approx(0.75)
    assert spliner.spline_derivative_q_iplus1(1.25, 1) == pytest.approx(0.25)


def test_spliner_follows_decision_vector_updates():
    spliner, w = make_spliner(SplineType.PIECEWISE_CONSTANT)
    w.set_optimized_control(0, np.array([7.0, 7.0]))
    np.testing.assert_allclose(spliner.eval_spline(0.1, 0), [7.0, 7.0])


def test_shot_control_binds_index():
    spliner, _ = make_spliner(SplineType.PIECEWISE_LINEAR)
    control = ShotControl(spliner, 1)
    assert control.control_dim == 2
    np.testing.assert_allclose(control.compute_control(1.0), [3.0, 1.0])
    assert control.weight_leading(2.0) == pytest.approx(0.0)
    assert control.weight_trailing(2.0) == pytest.approx(1.0)
