"""Backward/forward Riccati recursion for unconstrained LQ problems."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np
import scipy.linalg
from numpy.typing import NDArray

from multishot.core.errors import CapabilityError, NumericalError
from multishot.lqoc.problem import LQOCProblem

logger = logging.getLogger(__name__)


@dataclass
class Stage:
    """Stage-wise LQ data: y⁺ = A y + B u + b, cost q, r, Q, P, R."""

    A: NDArray
    B: NDArray
    b: NDArray
    Q: NDArray
    P: NDArray
    R: NDArray
    q: NDArray
    r: NDArray


@dataclass
class RiccatiResult:
    """Increments and gains in the problem's own coordinates."""

    dx: NDArray         # (N+1, n)
    du: NDArray         # (M, ν)
    K: NDArray          # (M, ν, n) feedback
    k: NDArray          # (M, ν) feedforward


def stagewise(problem: LQOCProblem) -> tuple[list[Stage], NDArray, NDArray]:
    """
    Stage-wise form of ``problem`` plus the terminal block (S_N, s_N).

    Without trailing influence this is the problem itself. With it, the
    substitution y_i = δx_i - C_{i-1}δu_i (C_{-1} = 0) gives

        y_{i+1} = A_i y_i + (B_i + A_i C_{i-1}) u_i + b_i

    and stage costs in (y_i, u_i) with P̃ = P + CᵀQ, R̃ = R + CᵀQC + PC + (PC)ᵀ,
    r̃ = r + Cᵀq. The terminal control u_N becomes an extra stage N with
    identity dynamics and the terminal block zero.
    """
    N, n, nu = problem.N, problem.state_dim, problem.control_dim

    if not problem.has_trailing_control_influence():
        stages = [
            Stage(
                A=problem.A[i], B=problem.B[i], b=problem.b[i],
                Q=problem.Q[i], P=problem.P[i], R=problem.R[i],
                q=problem.qv[i], r=problem.rv[i],
            )
            for i in range(N)
        ]
        return stages, problem.Q[N], problem.qv[N]

    stages = []
    C_prev = np.zeros((n, nu))
    for i in range(N + 1):
        if i < N:
            A, B, b = problem.A[i], problem.B[i], problem.b[i]
        else:
            A, B, b = np.eye(n), np.zeros((n, nu)), np.zeros(n)
        Q, P, R = problem.Q[i], problem.P[i], problem.R[i]
        PC = P @ C_prev
        stages.append(
            Stage(
                A=A,
                B=B + A @ C_prev,
                b=b,
                Q=Q,
                P=P + C_prev.T @ Q,
                R=R + C_prev.T @ Q @ C_prev + PC + PC.T,
                q=problem.qv[i],
                r=problem.rv[i] + C_prev.T @ problem.qv[i],
            )
        )
        if i < N:
            C_prev = problem.C[i]
    return stages, np.zeros((n, n)), np.zeros(n)


def backward_sweep(
    stages: Sequence[Stage],
    S_terminal: NDArray,
    s_terminal: NDArray,
    control_dim: int,
    free: Optional[Sequence[NDArray]] = None,
) -> tuple[list[NDArray], list[NDArray]]:
    """
    Riccati backward sweep.

    For i = M-1, ..., 0:
        H = R + BᵀS B,  G = P + BᵀS A,  g = r + Bᵀ(s + S b)
        K = -H⁻¹G,      k = -H⁻¹g
        S ← Q + AᵀS A + GᵀK,  s ← q + Aᵀ(s + S b) + Gᵀk

    Args:
        stages: Stage-wise data
        S_terminal: Terminal value-function Hessian
        s_terminal: Terminal value-function gradient
        control_dim: ν
        free: Optional per-stage boolean masks; masked-out controls are held
            fixed (zero rows in K, k)

    Returns:
        K: Feedback gains per stage, each (ν, n)
        k: Feedforward terms per stage, each (ν,)

    Raises:
        NumericalError: H (restricted to free controls) not positive definite
    """
    S = np.array(S_terminal, dtype=float)
    s = np.array(s_terminal, dtype=float)
    n = S.shape[0]
    M = len(stages)
    K: list[NDArray] = [np.zeros((control_dim, n))] * M
    k: list[NDArray] = [np.zeros(control_dim)] * M

    for i in range(M - 1, -1, -1):
        st = stages[i]
        Sb = s + S @ st.b
        H = st.R + st.B.T @ S @ st.B
        H = 0.5 * (H + H.T)
        G = st.P + st.B.T @ S @ st.A
        g = st.r + st.B.T @ Sb

        mask = np.ones(control_dim, dtype=bool) if free is None else free[i]
        K_i = np.zeros((control_dim, n))
        k_i = np.zeros(control_dim)

        H_ff = H[np.ix_(mask, mask)]
        G_f, g_f = G[mask], g[mask]
        # controls with no influence on the cost get zero gains
        if mask.any() and (np.any(H_ff) or np.any(G_f) or np.any(g_f)):
            try:
                factor = scipy.linalg.cho_factor(H_ff)
            except (np.linalg.LinAlgError, ValueError) as exc:
                raise NumericalError(
                    f"Stage {i}: control Hessian is not positive definite"
                ) from exc
            K_i[mask] = -scipy.linalg.cho_solve(factor, G_f)
            k_i[mask] = -scipy.linalg.cho_solve(factor, g_f)

        s = st.q + st.A.T @ Sb + G.T @ k_i
        S = st.Q + st.A.T @ S @ st.A + G.T @ K_i
        S = 0.5 * (S + S.T)
        K[i] = K_i
        k[i] = k_i

    return K, k


def forward_sweep(
    stages: Sequence[Stage],
    K: Sequence[NDArray],
    k: Sequence[NDArray],
    state_dim: int,
    control_dim: int,
) -> tuple[NDArray, NDArray]:
    """Roll out u_i = K_i y_i + k_i, y_{i+1} = A_i y_i + B_i u_i + b_i from y_0 = 0."""
    y = np.zeros(state_dim)
    ys = [y]
    us = []
    for st, K_i, k_i in zip(stages, K, k):
        u = K_i @ y + k_i
        y = st.A @ y + st.B @ u + st.b
        ys.append(y)
        us.append(u)
    return np.array(ys), np.array(us).reshape(len(us), control_dim)


def riccati_solve(
    problem: LQOCProblem,
    free: Optional[Sequence[NDArray]] = None,
) -> RiccatiResult:
    """
    Solve ``problem`` ignoring any box constraints.

    Args:
        problem: Assembled LQ problem
        free: Optional per-control-stage masks of controls allowed to move

    Returns:
        Increments δx, δu and gains in δx coordinates
    """
    n, nu, N = problem.state_dim, problem.control_dim, problem.N
    stages, S_N, s_N = stagewise(problem)
    K, k = backward_sweep(stages, S_N, s_N, nu, free)
    y, du = forward_sweep(stages, K, k, n, nu)
    K_arr = np.array(K).reshape(len(K), nu, n)
    k_arr = np.array(k).reshape(len(k), nu)

    if not problem.has_trailing_control_influence():
        return RiccatiResult(dx=y, du=du, K=K_arr, k=k_arr)

    # back from y_i = δx_i - C_{i-1}δu_i; u_i = (I + K_i C_{i-1})⁻¹ (K_i δx_i + k_i)
    dx = y[: N + 1].copy()
    for i in range(1, N + 1):
        C_prev = problem.C[i - 1]
        dx[i] = y[i] + C_prev @ du[i]
        try:
            M_i = np.linalg.solve(np.eye(nu) + K_arr[i] @ C_prev, np.column_stack([K_arr[i], k_arr[i]]))
        except np.linalg.LinAlgError as exc:
            raise NumericalError(
                f"Stage {i}: feedback is singular under trailing-control coupling"
            ) from exc
        K_arr[i] = M_i[:, :n]
        k_arr[i] = M_i[:, n]
    return RiccatiResult(dx=dx, du=du, K=K_arr, k=k_arr)


class RiccatiSolver:
    """
    Gauss-Newton Riccati solver for unconstrained LQ problems.

    Constrained problems are rejected with CapabilityError rather than
    solved as if they were unconstrained.
    """

    def __init__(self) -> None:
        self._problem: Optional[LQOCProblem] = None
        self._x: Optional[NDArray] = None
        self._u: Optional[NDArray] = None
        self._K: Optional[NDArray] = None
        self._k: Optional[NDArray] = None

    def set_problem(self, problem: LQOCProblem) -> None:
        self._problem = problem

    def solve(self) -> None:
        if self._problem is None:
            raise RuntimeError("No problem set; call set_problem first")
        problem = self._problem
        if problem.is_constrained():
            raise CapabilityError(
                "RiccatiSolver cannot handle constraints; use an interior-point backend"
            )

        result = riccati_solve(problem)
        self._x = problem.x + result.dx
        self._u = problem.u + result.du
        self._K = result.K
        self._k = result.k
        logger.info(
            "Riccati solve: %d stages, |δu|∞ = %.3e",
            problem.N,
            float(np.max(np.abs(result.du))) if result.du.size else 0.0,
        )

    def get_solution_state(self) -> NDArray:
        return self._require(self._x)

    def get_solution_control(self) -> NDArray:
        return self._require(self._u)

    def get_feedback(self) -> NDArray:
        return self._require(self._K)

    def get_feedforward(self) -> NDArray:
        return self._require(self._k)

    @staticmethod
    def _require(value: Optional[NDArray]) -> NDArray:
        if value is None:
            raise RuntimeError("No solution available; call solve first")
        return value
