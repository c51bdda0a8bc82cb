"""Box-constrained LQ solver: condensed QP solved by scipy's interior-point method."""

import logging
from typing import Optional
import numpy as np
import scipy.linalg
from numpy.typing import NDArray
from scipy.optimize import Bounds, LinearConstraint, minimize

from multishot.core.errors import NumericalError
from multishot.lqoc.problem import LQOCProblem
from multishot.lqoc.riccati import riccati_solve

logger = logging.getLogger(__name__)


def condense(problem: LQOCProblem) -> tuple[NDArray, NDArray]:
    """
    Eliminate the states: δx = X δu + c with δx_0 = 0.

    Returns:
        X: ((N+1)·n, M·ν) state sensitivity to the stacked controls
        c: ((N+1)·n,) free response to the defects b
    """
    N, n, nu, M = problem.N, problem.state_dim, problem.control_dim, problem.n_controls
    X = np.zeros(((N + 1) * n, M * nu))
    c = np.zeros((N + 1) * n)

    for i in range(N):
        rows, nxt = slice(i * n, (i + 1) * n), slice((i + 1) * n, (i + 2) * n)
        X[nxt] = problem.A[i] @ X[rows]
        X[nxt, i * nu:(i + 1) * nu] += problem.B[i]
        if problem.C is not None:
            X[nxt, (i + 1) * nu:(i + 2) * nu] += problem.C[i]
        c[nxt] = problem.A[i] @ c[rows] + problem.b[i]
    return X, c


def condensed_objective(
    problem: LQOCProblem,
    X: NDArray,
    c: NDArray,
) -> tuple[NDArray, NDArray]:
    """Hessian H and gradient h of the cost as a function of the stacked δu."""
    N, n, nu, M = problem.N, problem.state_dim, problem.control_dim, problem.n_controls

    Hxx = scipy.linalg.block_diag(*problem.Q)
    Huu = scipy.linalg.block_diag(*problem.R)
    Hux = np.zeros((M * nu, (N + 1) * n))
    for j in range(M):
        Hux[j * nu:(j + 1) * nu, j * n:(j + 1) * n] = problem.P[j]
    gx = problem.qv.ravel()
    gu = problem.rv.ravel()

    cross = Hux @ X
    H = X.T @ Hxx @ X + Huu + cross + cross.T
    h = X.T @ (Hxx @ c + gx) + Hux @ c + gu
    return 0.5 * (H + H.T), h


class InteriorPointSolver:
    """
    LQ solver for problems with box constraints on states and controls.

    The dynamics are condensed into the controls and the resulting QP is
    handed to ``scipy.optimize.minimize(method="trust-constr")``, which
    switches to its barrier method when inequality constraints are present.
    Feedback is the Riccati gain of the subproblem in which controls sitting
    on a bound are held fixed.
    """

    def __init__(
        self,
        tol: float = 1e-10,
        max_iter: int = 3000,
        active_tol: float = 1e-6,
        feasibility_tol: float = 1e-6,
    ):
        """
        Args:
            tol: Gradient, step and barrier tolerance passed to trust-constr
            max_iter: Iteration limit
            active_tol: Distance to a bound below which a control counts as active
            feasibility_tol: Largest accepted constraint violation
        """
        self.tol = tol
        self.max_iter = max_iter
        self.active_tol = active_tol
        self.feasibility_tol = feasibility_tol
        self._problem: Optional[LQOCProblem] = None
        self._x: Optional[NDArray] = None
        self._u: Optional[NDArray] = None
        self._K: Optional[NDArray] = None
        self.iterations = 0

    def set_problem(self, problem: LQOCProblem) -> None:
        self._problem = problem

    def solve(self) -> None:
        if self._problem is None:
            raise RuntimeError("No problem set; call set_problem first")
        problem = self._problem
        N, n, nu, M = problem.N, problem.state_dim, problem.control_dim, problem.n_controls

        X, c = condense(problem)
        if M == 0:
            du = np.zeros((0, nu))
            dx = c.reshape(N + 1, n)
            self._store(problem, dx, du, np.zeros((0, nu, n)))
            return

        H, h = condensed_objective(problem, X, c)
        u_lb, u_ub = self._control_bounds(problem)
        z0 = np.clip(np.zeros(M * nu), u_lb, u_ub)

        constraints = []
        state_constraint = self._state_constraint(problem, X, c)
        if state_constraint is not None:
            constraints.append(state_constraint)
        bounds = (
            Bounds(u_lb, u_ub) if problem.is_control_box_constrained() else None
        )

        result = minimize(
            lambda z: 0.5 * z @ H @ z + h @ z,
            z0,
            jac=lambda z: H @ z + h,
            hess=lambda z: H,
            method="trust-constr",
            bounds=bounds,
            constraints=constraints,
            options={
                "gtol": self.tol,
                "xtol": self.tol,
                "barrier_tol": self.tol,
                "maxiter": self.max_iter,
            },
        )
        self.iterations = result.nit
        if result.status not in (1, 2):
            raise NumericalError(f"Interior-point solve failed: {result.message}")
        if result.constr_violation > self.feasibility_tol:
            raise NumericalError(
                f"Interior-point solution infeasible: violation {result.constr_violation:.3e}"
            )

        z = np.clip(result.x, u_lb, u_ub)
        du = z.reshape(M, nu)
        dx = (X @ z + c).reshape(N + 1, n)

        free = self._free_controls(problem, du)
        K = riccati_solve(problem, free).K
        self._store(problem, dx, du, K)
        logger.info(
            "Interior-point solve: %d stages, %d iterations, %d active controls",
            N,
            result.nit,
            int(sum((~mask).sum() for mask in free)),
        )

    def get_solution_state(self) -> NDArray:
        return self._require(self._x)

    def get_solution_control(self) -> NDArray:
        return self._require(self._u)

    def get_feedback(self) -> NDArray:
        return self._require(self._K)

    def _store(self, problem: LQOCProblem, dx: NDArray, du: NDArray, K: NDArray) -> None:
        self._x = problem.x + dx
        self._u = problem.u + du
        self._K = K

    @staticmethod
    def _control_bounds(problem: LQOCProblem) -> tuple[NDArray, NDArray]:
        """Bounds on the stacked δu (infinite when unconstrained)."""
        size = problem.n_controls * problem.control_dim
        if not problem.is_control_box_constrained():
            return np.full(size, -np.inf), np.full(size, np.inf)
        return (
            (problem.u_lb - problem.u).ravel(),
            (problem.u_ub - problem.u).ravel(),
        )

    @staticmethod
    def _state_constraint(
        problem: LQOCProblem,
        X: NDArray,
        c: NDArray,
    ) -> Optional[LinearConstraint]:
        """Rows of lb ≤ x + X δu + c ≤ ub for stages 1..N with a finite bound."""
        if not problem.is_state_box_constrained():
            return None
        n = problem.state_dim
        lb = (problem.x_lb - problem.x)[1:].ravel()
        ub = (problem.x_ub - problem.x)[1:].ravel()
        rows = np.isfinite(lb) | np.isfinite(ub)
        if not rows.any():
            return None
        return LinearConstraint(X[n:][rows], lb[rows] - c[n:][rows], ub[rows] - c[n:][rows])

    def _free_controls(self, problem: LQOCProblem, du: NDArray) -> list[NDArray]:
        if not problem.is_control_box_constrained():
            return [np.ones(problem.control_dim, dtype=bool)] * problem.n_controls
        u = problem.u + du
        active = (u - problem.u_lb <= self.active_tol) | (problem.u_ub - u <= self.active_tol)
        return list(~active)

    @staticmethod
    def _require(value: Optional[NDArray]) -> NDArray:
        if value is None:
            raise RuntimeError("No solution available; call solve first")
        return value
