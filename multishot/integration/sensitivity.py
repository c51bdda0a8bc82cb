"""Sensitivity-capable explicit Runge-Kutta integrator for one shot."""

import logging
from typing import Callable, Optional
import numpy as np
from numpy.typing import NDArray

from multishot.control.spliner import ShotControl
from multishot.core.cost import CostFunction
from multishot.core.errors import ConfigurationError
from multishot.core.system import ControlledSystem, LinearSystem
from multishot.integration.base import StageSensitivity, StepRecord
from multishot.integration.tableau import ButcherTableau

logger = logging.getLogger(__name__)

DX0 = "dx0"
DU0 = "du0"
DUF = "duf"


class SensitivityIntegrator:
    """
    Integrates state, first-order sensitivities and cost over one shot.

    Sensitivities are the exact derivatives of the discrete Runge-Kutta map:
    the variational equations are stepped with the same tableau, reusing the
    stage values and Jacobians stored by the forward sweep. The cost is the
    stage quadrature h Σ_i b_i L(Z_i, u_i, t_i) consistent with that map.
    """

    def __init__(
        self,
        system: ControlledSystem,
        tableau: ButcherTableau,
        control: ShotControl,
    ) -> None:
        if not tableau.is_explicit:
            raise ConfigurationError("SensitivityIntegrator requires an explicit tableau")
        self.system = system
        self.tableau = tableau
        self.control = control
        self._linear_system: Optional[LinearSystem] = None
        self._cost_function: Optional[CostFunction] = None
        self._steps: list[StepRecord] = []
        self._linearized = False
        self._sensitivities: dict[str, list[StageSensitivity]] = {}
        self._sensitivity_cols: dict[str, int] = {}

    def set_linear_system(self, linear_system: LinearSystem) -> None:
        self._linear_system = linear_system
        self.clear_linearization()

    def set_cost_function(self, cost_function: CostFunction) -> None:
        self._cost_function = cost_function

    def integrate(
        self,
        x0: NDArray,
        t_start: float,
        n_steps: int,
        dt: float,
    ) -> tuple[NDArray, NDArray]:
        """
        Forward sweep from x0 over n_steps steps of size dt.

        Args:
            x0: Initial state (n,)
            t_start: Start time
            n_steps: Number of steps
            dt: Step size

        Returns:
            x_history: (n_steps+1, n) states at the step boundaries
            t_history: (n_steps+1,) matching time stamps
        """
        self.clear_states()
        self.clear_sensitivities()
        self.clear_linearization()

        A, b, c = self.tableau.A, self.tableau.b, self.tableau.c
        s = self.tableau.s
        x = np.array(x0, dtype=float)

        x_history = [x.copy()]
        t_history = [t_start]

        for step in range(n_steps):
            t_n = t_start + step * dt
            Z = np.zeros((s, x.shape[0]))
            T = t_n + c * dt
            U = np.array([self.control.compute_control(t) for t in T])
            f_stages = []

            # Z_i = x + h Σ_{j<i} a_ij f_j
            for i in range(s):
                Z[i] = x
                for j in range(i):
                    Z[i] += dt * A[i, j] * f_stages[j]
                f_stages.append(self.system.f(Z[i], U[i], T[i]))

            x = x + dt * sum(b[i] * f_stages[i] for i in range(s))
            self._steps.append(StepRecord(t=t_n, h=dt, Z=Z, U=U, T=T))
            x_history.append(x.copy())
            t_history.append(t_start + (step + 1) * dt)

        logger.debug(
            "Integrated %d steps of size %g from t=%g", n_steps, dt, t_start
        )
        return np.array(x_history), np.array(t_history)

    def linearize(self) -> None:
        """Evaluate F, G at every stored stage."""
        self._require_states()
        if self._linear_system is None:
            raise RuntimeError("No linear system set; call set_linear_system first")

        for record in self._steps:
            record.F = [
                self._linear_system.F(z, u, t)
                for z, u, t in zip(record.Z, record.U, record.T)
            ]
            record.G = [
                self._linear_system.G(z, u, t)
                for z, u, t in zip(record.Z, record.U, record.T)
            ]
        self._linearized = True

    def integrate_sensitivity_dx0(self, initial: NDArray) -> NDArray:
        """Terminal ∂x/∂x0 starting from ``initial`` (normally I)."""
        return self._propagate(DX0, initial, None)

    def integrate_sensitivity_du0(self, initial: NDArray) -> NDArray:
        """Terminal ∂x/∂q_i starting from ``initial`` (normally 0)."""
        return self._propagate(DU0, initial, self.control.weight_leading)

    def integrate_sensitivity_duf(self, initial: NDArray) -> NDArray:
        """Terminal ∂x/∂q_{i+1} starting from ``initial`` (normally 0)."""
        return self._propagate(DUF, initial, self.control.weight_trailing)

    def integrate_cost(self) -> float:
        """Running cost integrated along the stored trajectory."""
        self._require_states()
        cost_function = self._require_cost_function()
        b = self.tableau.b

        cost = 0.0
        for record in self._steps:
            for i in range(self.tableau.s):
                cost += record.h * b[i] * cost_function.intermediate_cost(
                    record.Z[i], record.U[i], record.T[i]
                )
        return cost

    def integrate_cost_sensitivity_dx0(self) -> NDArray:
        return self._cost_sensitivity(DX0)

    def integrate_cost_sensitivity_du0(self) -> NDArray:
        return self._cost_sensitivity(DU0)

    def integrate_cost_sensitivity_duf(self) -> NDArray:
        return self._cost_sensitivity(DUF)

    def clear_states(self) -> None:
        self._steps = []
        self._linearized = False

    def clear_sensitivities(self) -> None:
        self._sensitivities = {}
        self._sensitivity_cols = {}

    def clear_linearization(self) -> None:
        for record in self._steps:
            record.F = None
            record.G = None
        self._linearized = False

    def _propagate(
        self,
        key: str,
        initial: NDArray,
        weight_fn: Optional[Callable[[float], float]],
    ) -> NDArray:
        """
        Forward sensitivity sweep for parameter p:

            δZ_i = δx + h Σ_{j<i} a_ij [F_j δZ_j + w_j G_j]
            δx⁺  = δx + h Σ_i b_i [F_i δZ_i + w_i G_i]

        where w_i = ∂u(t_i)/∂p is the scalar spline weight (zero for x0).
        """
        if not self._linearized:
            raise RuntimeError("Trajectory not linearized; call linearize first")

        A, b = self.tableau.A, self.tableau.b
        s = self.tableau.s
        dX = np.array(initial, dtype=float)
        records: list[StageSensitivity] = []

        for record in self._steps:
            if weight_fn is None:
                weights = np.zeros(s)
            else:
                weights = np.array([weight_fn(t) for t in record.T])

            dZ: list[NDArray] = []
            k_stages: list[NDArray] = []
            for i in range(s):
                dz = dX.copy()
                for j in range(i):
                    dz += record.h * A[i, j] * k_stages[j]
                dZ.append(dz)

                k_i = record.F[i] @ dz
                if weights[i] != 0.0:
                    k_i = k_i + weights[i] * record.G[i]
                k_stages.append(k_i)

            dX = dX + record.h * sum(b[i] * k_stages[i] for i in range(s))
            records.append(StageSensitivity(dZ=dZ, weights=weights))

        self._sensitivities[key] = records
        self._sensitivity_cols[key] = dX.shape[1]
        return dX

    def _cost_sensitivity(self, key: str) -> NDArray:
        """h Σ_i b_i [∂L/∂x δZ_i + w_i ∂L/∂u] along the stored stage sensitivities."""
        cost_function = self._require_cost_function()
        if key not in self._sensitivities:
            raise RuntimeError(f"Sensitivity '{key}' not integrated yet")

        b = self.tableau.b
        grad = np.zeros(self._sensitivity_cols[key])
        for record, sens in zip(self._steps, self._sensitivities[key]):
            for i in range(self.tableau.s):
                z, u, t = record.Z[i], record.U[i], record.T[i]
                g = cost_function.state_derivative_intermediate(z, u, t) @ sens.dZ[i]
                if sens.weights[i] != 0.0:
                    g = g + sens.weights[i] * cost_function.control_derivative_intermediate(
                        z, u, t
                    )
                grad += record.h * b[i] * g
        return grad

    def _require_states(self) -> None:
        if not self._steps:
            raise RuntimeError("No trajectory stored; call integrate first")

    def _require_cost_function(self) -> CostFunction:
        if self._cost_function is None:
            raise RuntimeError("No cost function set; call set_cost_function first")
        return self._cost_function
