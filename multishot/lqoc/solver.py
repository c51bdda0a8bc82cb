"""LQ solver capability and backend dispatch."""

from typing import Protocol, runtime_checkable
from numpy.typing import NDArray

from multishot.core.errors import ConfigurationError
from multishot.core.settings import LQOCSolverType
from multishot.lqoc.interior_point import InteriorPointSolver
from multishot.lqoc.problem import LQOCProblem
from multishot.lqoc.riccati import RiccatiSolver


@runtime_checkable
class LQOCSolver(Protocol):
    """
    Solves an LQOCProblem for absolute states, controls and feedback.

    After a successful ``solve()`` the getters return

        state    (N+1, n)   x_ + δx
        control  (M, ν)     u_ + δu
        feedback (M, ν, n)  δu_i ≈ K_i δx_i

    A failing ``solve()`` raises and leaves the previous solution in place.
    """

    def set_problem(self, problem: LQOCProblem) -> None:
        ...

    def solve(self) -> None:
        ...

    def get_solution_state(self) -> NDArray:
        ...

    def get_solution_control(self) -> NDArray:
        ...

    def get_feedback(self) -> NDArray:
        ...


def create_lqoc_solver(solver_type: LQOCSolverType) -> LQOCSolver:
    """
    Instantiate the backend selected in the shooting settings.

    Args:
        solver_type: RICCATI for unconstrained problems, INTERIOR_POINT for
            problems with box constraints

    Returns:
        A solver with no problem attached
    """
    if solver_type is LQOCSolverType.RICCATI:
        return RiccatiSolver()
    if solver_type is LQOCSolverType.INTERIOR_POINT:
        return InteriorPointSolver()
    raise ConfigurationError(f"Unknown LQ solver type {solver_type!r}")
