"""Linear-quadratic optimal control problem container."""

from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from multishot.core.cost import CostFunction
from multishot.core.errors import ConstraintError


class LQOCProblem:
    """
    Time-indexed LQ subproblem in delta coordinates around a nominal (x, u):

        δx_{i+1} = A_i δx_i + B_i δu_i [+ C_i δu_{i+1}] + b_i,   δx_0 = 0

        J = Σ_i q_i + qv_iᵀδx_i + rv_iᵀδu_i
              + ½δx_iᵀQ_iδx_i + ½δu_iᵀR_iδu_i + δu_iᵀP_iδx_i

    Stage arrays have N entries for dynamics, N+1 for state cost and M for
    control terms, where M = N, or N+1 when the trailing-control influence C
    (piecewise-linear controls) is present.
    """

    def __init__(self, N: int, state_dim: int, control_dim: int):
        if N < 0:
            raise ValueError(f"Stage count must be non-negative, got {N}")
        self.N = N
        self.state_dim = state_dim
        self.control_dim = control_dim
        self.set_zero()

    @property
    def n_controls(self) -> int:
        """M, the number of control stages."""
        return self.N + 1 if self.C is not None else self.N

    def set_zero(self) -> None:
        """Clear all stage data and constraint flags; keeps the stage count."""
        self._zero_stages(coupled=False)
        self._x_lb: Optional[NDArray] = None
        self._x_ub: Optional[NDArray] = None
        self._u_lb: Optional[NDArray] = None
        self._u_ub: Optional[NDArray] = None

    def _zero_stages(self, coupled: bool) -> None:
        N, n, nu = self.N, self.state_dim, self.control_dim
        M = N + 1 if coupled else N

        self.A = np.zeros((N, n, n))
        self.B = np.zeros((N, n, nu))
        self.C: Optional[NDArray] = np.zeros((N, n, nu)) if coupled else None
        self.b = np.zeros((N, n))

        self.x = np.zeros((N + 1, n))
        self.u = np.zeros((M, nu))

        self.q = np.zeros(N + 1)
        self.qv = np.zeros((N + 1, n))
        self.Q = np.zeros((N + 1, n, n))
        self.P = np.zeros((M, nu, n))
        self.rv = np.zeros((M, nu))
        self.R = np.zeros((M, nu, nu))

    def set_from_time_invariant_lq_problem(
        self,
        x0: NDArray,
        u0: NDArray,
        A: NDArray,
        B: NDArray,
        cost_function: CostFunction,
        dt: float,
    ) -> None:
        """
        Fill every stage from one discrete LTI system and a cost model.

        The nominal trajectory is x_i = x0, u_i = u0; b_i is the resulting
        defect A x0 + B u0 - x0. Running-cost terms are scaled by dt.

        Args:
            x0: Initial (and nominal) state
            u0: Nominal control
            A: Discrete state transition matrix (n, n)
            B: Discrete control matrix (n, ν)
            cost_function: Cost model, expanded at (x0, u0)
            dt: Sampling time
        """
        self._zero_stages(coupled=False)
        x0 = np.asarray(x0, dtype=float)
        u0 = np.asarray(u0, dtype=float)
        A = np.asarray(A, dtype=float)
        B = np.asarray(B, dtype=float)
        N = self.N

        self.A[:] = A
        self.B[:] = B
        self.b[:] = A @ x0 + B @ u0 - x0
        self.x[:] = x0
        self.u[:] = u0

        t = 0.0
        self.q[:N] = cost_function.intermediate_cost(x0, u0, t) * dt
        self.qv[:N] = cost_function.state_derivative_intermediate(x0, u0, t) * dt
        self.Q[:N] = cost_function.state_second_derivative_intermediate(x0, u0, t) * dt
        self.P[:] = cost_function.state_control_derivative_intermediate(x0, u0, t) * dt
        self.rv[:] = cost_function.control_derivative_intermediate(x0, u0, t) * dt
        self.R[:] = cost_function.control_second_derivative_intermediate(x0, u0, t) * dt

        self.q[N] = cost_function.terminal_cost(x0)
        self.qv[N] = cost_function.state_derivative_terminal(x0)
        self.Q[N] = cost_function.state_second_derivative_terminal(x0)

    def set_from_shots(self, shots: Sequence, cost_function: CostFunction) -> None:
        """
        Assemble the subproblem from integrated shots.

        Dynamics come from each shot's terminal sensitivities, the defect is
        b_i = x_i(t_{i+1}) - s_{i+1}, first-order cost terms are the shots'
        integrated cost gradients. Second-order terms use the cost model's
        Hessians at the shot start scaled by the shot length (block-diagonal
        Gauss-Newton approximation; piecewise-linear controls get the spline
        weights ∫(1-τ)² = ∫τ² = T/3 and ∫(1-τ) = T/2). The terminal block is
        the terminal-cost Hessian at the last shot's end state.

        Shots whose caches are stale are brought up to date first.

        Args:
            shots: N shots sharing one decision vector, in index order
            cost_function: Cost model supplying the Hessians
        """
        N = self.N
        if len(shots) != N or N == 0:
            raise ValueError(f"Expected {N} shots, got {len(shots)}")

        coupled = shots[0].is_piecewise_linear
        w = shots[0].w
        if w.n_pairs != N + 1:
            raise ValueError(
                f"Decision vector has {w.n_pairs} pairs, expected {N + 1}"
            )
        M = N + 1 if coupled else N
        if self._u_lb is not None and self._u_lb.ndim == 2 and len(self._u_lb) < M:
            raise ConstraintError(
                f"Per-stage control bounds cover {len(self._u_lb)} stages, "
                f"piecewise-linear controls need {M}"
            )
        self._zero_stages(coupled)
        self.x[:] = w.states
        self.u[:] = w.controls[: self.n_controls]

        for i, shot in enumerate(shots):
            shot.integrate_cost_sensitivities()
            s_i, q_i, t_i = self.x[i], self.u[i], shot.t_start
            T = shot.t_end - shot.t_start

            self.A[i] = shot.get_dxdsi_integrated()
            self.B[i] = shot.get_dxdqi_integrated()
            self.b[i] = shot.get_state_integrated() - self.x[i + 1]

            self.q[i] = shot.get_cost_integrated()
            self.qv[i] = shot.get_dldsi_integrated()
            self.rv[i] += shot.get_dldqi_integrated()

            Hxx = cost_function.state_second_derivative_intermediate(s_i, q_i, t_i)
            Huu = cost_function.control_second_derivative_intermediate(s_i, q_i, t_i)
            Hux = cost_function.state_control_derivative_intermediate(s_i, q_i, t_i)
            self.Q[i] = Hxx * T

            if coupled:
                self.C[i] = shot.get_dxdqip1_integrated()
                self.rv[i + 1] += shot.get_dldqip1_integrated()
                self.P[i] = Hux * T / 2.0
                self.R[i] += Huu * T / 3.0
                self.R[i + 1] += Huu * T / 3.0
            else:
                self.P[i] = Hux * T
                self.R[i] = Huu * T

        self.Q[N] = cost_function.state_second_derivative_terminal(
            shots[-1].get_state_integrated()
        )

    def set_state_box_constraints(self, lower: NDArray, upper: NDArray) -> None:
        """
        Bounds on x for stages 1..N (stage 0 is the fixed initial state).

        Args:
            lower: (n,) for all stages or (N+1, n) per stage
            upper: Same shape as ``lower``
        """
        self._x_lb, self._x_ub = _validated_bounds(
            lower, upper, (self.N + 1,), self.state_dim, "state"
        )

    def set_control_box_constraints(self, lower: NDArray, upper: NDArray) -> None:
        """
        Bounds on u for every control stage.

        Per-stage bounds may cover N+1 stages; only the first M are used,
        so the same bounds serve piecewise-constant and piecewise-linear
        assemblies.

        Args:
            lower: (ν,) for all stages, or (M, ν) or (N+1, ν) per stage
            upper: Same shape as ``lower``
        """
        self._u_lb, self._u_ub = _validated_bounds(
            lower, upper, (self.n_controls, self.N + 1), self.control_dim, "control"
        )

    @property
    def x_lb(self) -> Optional[NDArray]:
        return self._broadcast(self._x_lb, self.N + 1, self.state_dim)

    @property
    def x_ub(self) -> Optional[NDArray]:
        return self._broadcast(self._x_ub, self.N + 1, self.state_dim)

    @property
    def u_lb(self) -> Optional[NDArray]:
        return self._broadcast(self._u_lb, self.n_controls, self.control_dim)

    @property
    def u_ub(self) -> Optional[NDArray]:
        return self._broadcast(self._u_ub, self.n_controls, self.control_dim)

    @staticmethod
    def _broadcast(bound: Optional[NDArray], stages: int, dim: int) -> Optional[NDArray]:
        if bound is None:
            return None
        if bound.ndim == 2:
            if len(bound) < stages:
                raise ConstraintError(
                    f"Bounds cover {len(bound)} stages, problem has {stages}"
                )
            bound = bound[:stages]
        return np.broadcast_to(bound, (stages, dim))

    def is_state_box_constrained(self) -> bool:
        return self._x_lb is not None

    def is_control_box_constrained(self) -> bool:
        return self._u_lb is not None

    def is_constrained(self) -> bool:
        return self.is_state_box_constrained() or self.is_control_box_constrained()

    def has_trailing_control_influence(self) -> bool:
        return self.C is not None


def _validated_bounds(
    lower: NDArray,
    upper: NDArray,
    stages: Sequence[int],
    dim: int,
    name: str,
) -> tuple[NDArray, NDArray]:
    """Check shapes and lower ≤ upper; returns read-only copies."""
    lower = np.array(lower, dtype=float)
    upper = np.array(upper, dtype=float)

    allowed = [(dim,)] + [(count, dim) for count in stages]
    for bound in (lower, upper):
        if bound.shape not in allowed:
            raise ConstraintError(
                f"{name} bounds must have one of the shapes {allowed}, "
                f"got {bound.shape}"
            )
    if lower.shape != upper.shape:
        raise ConstraintError(
            f"{name} bounds differ in shape: {lower.shape} and {upper.shape}"
        )
    for bound in (lower, upper):
        if np.any(np.isnan(bound)):
            raise ConstraintError(f"{name} bounds contain NaN")

    violated = np.argwhere(lower > upper)
    if len(violated):
        raise ConstraintError(
            f"{name} lower bound exceeds upper bound at index {tuple(violated[0])}"
        )

    lower.setflags(write=False)
    upper.setflags(write=False)
    return lower, upper
