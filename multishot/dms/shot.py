"""State, sensitivity and cost integration on one shooting interval."""

import logging
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishot.control.spliner import ControlSpliner, ShotControl
from multishot.core.cost import CostFunction
from multishot.core.decision_vector import DecisionVector
from multishot.core.errors import ConfigurationError
from multishot.core.settings import CostEvaluationType, ShootingSettings, SplineType
from multishot.core.system import ControlledSystem, LinearSystem
from multishot.core.time_grid import TimeGrid
from multishot.integration.factory import create_sensitivity_integrator

logger = logging.getLogger(__name__)


class ShotContainer:
    """
    Lazily integrates state, sensitivities and cost for shot i.

    Each cached quantity carries a token that mirrors the decision vector's
    update counter; it is valid iff the token equals ``w.update_count``.
    Tokens start at -1 while the decision vector starts at 0, so the first
    call always computes. Dependency order:

        state → sensitivities → cost → cost sensitivities

    Accessors are plain reads: call the matching integrate_* first.
    """

    def __init__(
        self,
        system: ControlledSystem,
        linear_system: LinearSystem,
        cost_function: CostFunction,
        w: DecisionVector,
        spliner: ControlSpliner,
        time_grid: TimeGrid,
        shot_index: int,
        settings: ShootingSettings,
    ):
        """
        Args:
            system: Nonlinear dynamics
            linear_system: Linearization of ``system``
            cost_function: Running and terminal cost
            w: Shared decision vector (read only)
            spliner: Control interpolator over ``w``
            time_grid: Shot time grid
            shot_index: Index i in [0, settings.n_shots)
            settings: Shooting settings
        """
        if not 0 <= shot_index < settings.n_shots:
            raise ConfigurationError(
                f"Shot index {shot_index} out of range for {settings.n_shots} shots"
            )

        self.system = system
        self.linear_system = linear_system
        self.cost_function = cost_function
        self.w = w
        self.spliner = spliner
        self.time_grid = time_grid
        self.shot_index = shot_index
        self.settings = settings

        self._integrator = create_sensitivity_integrator(
            settings.integration_type, system, ShotControl(spliner, shot_index)
        )
        self._integrator.set_linear_system(linear_system)
        if settings.cost_evaluation_type is CostEvaluationType.FULL:
            self._integrator.set_cost_function(cost_function)

        self.t_start = time_grid.get_shot_start_time(shot_index)
        self.t_end = time_grid.get_shot_end_time(shot_index)
        self.n_steps = max(1, int(round((self.t_end - self.t_start) / settings.dt_sim)))
        self.dt = (self.t_end - self.t_start) / self.n_steps

        self._integration_count = -1
        self._cost_integration_count = -1
        self._sens_integration_count = -1
        self._cost_sens_integration_count = -1

        # integrator scratch (trajectory, linearization, stage sensitivities)
        self._scratch_states = False
        self._scratch_sensitivities = False

        n, nu = w.state_dim, w.control_dim
        self._x_history = np.zeros((0, n))
        self._t_history = np.zeros(0)
        self._dxdsi = np.eye(n)
        self._dxdqi = np.zeros((n, nu))
        self._dxdqip1: Optional[NDArray] = None
        self._cost = 0.0
        self._dldsi = np.zeros(n)
        self._dldqi = np.zeros(nu)
        self._dldqip1: Optional[NDArray] = None

    @property
    def is_piecewise_linear(self) -> bool:
        return self.settings.spline_type is SplineType.PIECEWISE_LINEAR

    @property
    def is_last_shot(self) -> bool:
        return self.shot_index == self.settings.n_shots - 1

    @property
    def evaluates_cost(self) -> bool:
        return self.settings.cost_evaluation_type is CostEvaluationType.FULL

    def integrate_state(self) -> None:
        """Integrate the trajectory from s_i if the decision vector changed."""
        count = self.w.update_count
        if count == self._integration_count and self._scratch_states:
            return

        init_state = self.w.get_optimized_state(self.shot_index)
        self._x_history, self._t_history = self._integrator.integrate(
            init_state, self.t_start, self.n_steps, self.dt
        )
        self._scratch_states = True
        self._scratch_sensitivities = False
        self._integration_count = count
        logger.debug("Shot %d: state integrated at update %d", self.shot_index, count)

    def integrate_cost(self) -> None:
        """Running cost over the shot, plus the terminal cost on the last shot."""
        count = self.w.update_count
        if count == self._cost_integration_count:
            return

        self.integrate_state()
        self._cost = 0.0
        if self.evaluates_cost:
            self._cost += self._integrator.integrate_cost()
            if self.is_last_shot:
                self._cost += self.cost_function.terminal_cost(self._x_history[-1])
        self._cost_integration_count = count

    def integrate_sensitivities(self) -> None:
        """Terminal sensitivities w.r.t. s_i, q_i and (piecewise-linear) q_{i+1}."""
        count = self.w.update_count
        if count == self._sens_integration_count:
            return

        self._compute_sensitivities()
        self._sens_integration_count = count
        logger.debug(
            "Shot %d: sensitivities integrated at update %d", self.shot_index, count
        )

    def _compute_sensitivities(self) -> None:
        self.integrate_state()
        n, nu = self.w.state_dim, self.w.control_dim
        self._integrator.linearize()
        self._dxdsi = self._integrator.integrate_sensitivity_dx0(np.eye(n))
        self._dxdqi = self._integrator.integrate_sensitivity_du0(np.zeros((n, nu)))

        if self.is_piecewise_linear:
            self._dxdqip1 = self._integrator.integrate_sensitivity_duf(np.zeros((n, nu)))
        else:
            self._dxdqip1 = None
        self._scratch_sensitivities = True

    def integrate_cost_sensitivities(self) -> None:
        """Cost gradients w.r.t. s_i, q_i and (piecewise-linear) q_{i+1}."""
        count = self.w.update_count
        if count == self._cost_sens_integration_count:
            return

        self.integrate_sensitivities()
        self.integrate_cost()
        if not self._scratch_sensitivities:
            self._compute_sensitivities()
        n, nu = self.w.state_dim, self.w.control_dim
        self._dldsi = np.zeros(n)
        self._dldqi = np.zeros(nu)
        self._dldqip1 = np.zeros(nu) if self.is_piecewise_linear else None

        if self.evaluates_cost:
            self._dldsi += self._integrator.integrate_cost_sensitivity_dx0()
            self._dldqi += self._integrator.integrate_cost_sensitivity_du0()
            if self.is_piecewise_linear:
                self._dldqip1 += self._integrator.integrate_cost_sensitivity_duf()

            if self.is_last_shot:
                # chain rule through the terminal state
                phi_x = self.cost_function.state_derivative_terminal(self._x_history[-1])
                self._dldsi += phi_x @ self._dxdsi
                self._dldqi += phi_x @ self._dxdqi
                if self.is_piecewise_linear:
                    self._dldqip1 += phi_x @ self._dxdqip1

        self._cost_sens_integration_count = count

    def reset(self) -> None:
        """
        Drop the integrator's stored trajectory, sensitivities and linearization.

        Cached results and their tokens survive; a later integrate_* call that
        needs the scratch data re-integrates from s_i.
        """
        self._scratch_states = False
        self._scratch_sensitivities = False
        self._integrator.clear_states()
        self._integrator.clear_sensitivities()
        self._integrator.clear_linearization()

    def get_state_integrated(self) -> NDArray:
        return self._x_history[-1]

    def get_integration_time_final(self) -> float:
        return float(self._t_history[-1])

    def get_x_history(self) -> NDArray:
        return self._x_history

    def get_t_history(self) -> NDArray:
        return self._t_history

    def get_u_history(self) -> NDArray:
        """Controls re-evaluated on the integration time stamps."""
        return np.array(
            [self.spliner.eval_spline(t, self.shot_index) for t in self._t_history]
        ).reshape(len(self._t_history), self.w.control_dim)

    def get_dxdsi_integrated(self) -> NDArray:
        """∂x(t_{i+1})/∂s_i, shape (n, n)."""
        return self._dxdsi

    def get_dxdqi_integrated(self) -> NDArray:
        """∂x(t_{i+1})/∂q_i, shape (n, ν)."""
        return self._dxdqi

    def get_dxdqip1_integrated(self) -> Optional[NDArray]:
        """∂x(t_{i+1})/∂q_{i+1}; None unless controls are piecewise-linear."""
        return self._dxdqip1

    def get_cost_integrated(self) -> float:
        return self._cost

    def get_dldsi_integrated(self) -> NDArray:
        return self._dldsi

    def get_dldqi_integrated(self) -> NDArray:
        return self._dldqi

    def get_dldqip1_integrated(self) -> Optional[NDArray]:
        """∂J_i/∂q_{i+1}; None unless controls are piecewise-linear."""
        return self._dldqip1
