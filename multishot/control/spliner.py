"""Control signal reconstruction from the decision vector."""

from numpy.typing import NDArray

from multishot.core.decision_vector import DecisionVector
from multishot.core.settings import SplineType
from multishot.core.time_grid import TimeGrid


class ControlSpliner:
    """Evaluates u(t) on shot i from the control parameters q_i, q_{i+1}."""

    def __init__(self, w: DecisionVector, time_grid: TimeGrid, spline_type: SplineType):
        self.w = w
        self.time_grid = time_grid
        self.spline_type = spline_type

    def _tau(self, t: float, shot_index: int) -> float:
        t_start = self.time_grid.get_shot_start_time(shot_index)
        return (t - t_start) / self.time_grid.get_shot_duration(shot_index)

    def eval_spline(self, t: float, shot_index: int) -> NDArray:
        q_i = self.w.get_optimized_control(shot_index)
        if self.spline_type is SplineType.PIECEWISE_CONSTANT:
            return q_i
        q_ip1 = self.w.get_optimized_control(shot_index + 1)
        tau = self._tau(t, shot_index)
        return (1.0 - tau) * q_i + tau * q_ip1

    def spline_derivative_q_i(self, t: float, shot_index: int) -> float:
        """Weight of ∂u(t)/∂q_i (the Jacobian is weight · I)."""
        if self.spline_type is SplineType.PIECEWISE_CONSTANT:
            return 1.0
        return 1.0 - self._tau(t, shot_index)

    def spline_derivative_q_iplus1(self, t: float, shot_index: int) -> float:
        """Weight of ∂u(t)/∂q_{i+1} (zero for piecewise-constant controls)."""
        if self.spline_type is SplineType.PIECEWISE_CONSTANT:
            return 0.0
        return self._tau(t, shot_index)


class ShotControl:
    """A spliner bound to one shot, as consumed by the sensitivity integrator."""

    def __init__(self, spliner: ControlSpliner, shot_index: int):
        self.spliner = spliner
        self.shot_index = shot_index

    @property
    def control_dim(self) -> int:
        return self.spliner.w.control_dim

    def compute_control(self, t: float) -> NDArray:
        return self.spliner.eval_spline(t, self.shot_index)

    def weight_leading(self, t: float) -> float:
        return self.spliner.spline_derivative_q_i(t, self.shot_index)

    def weight_trailing(self, t: float) -> float:
        return self.spliner.spline_derivative_q_iplus1(t, self.shot_index)
