"""Linear-quadratic optimal control subproblems and their solvers."""

from multishot.lqoc.problem import LQOCProblem
from multishot.lqoc.riccati import RiccatiSolver
from multishot.lqoc.interior_point import InteriorPointSolver
from multishot.lqoc.solver import LQOCSolver, create_lqoc_solver

__all__ = [
    "LQOCProblem",
    "LQOCSolver",
    "RiccatiSolver",
    "InteriorPointSolver",
    "create_lqoc_solver",
]
