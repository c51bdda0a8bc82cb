"""
Multishot: direct multiple shooting with sequential LQ subproblems.

This library provides:
- Lazily cached shot integration (state, sensitivities, cost) keyed to a
  versioned decision vector
- Parallel integration of independent shots
- Assembly of the linear-quadratic subproblem from integrated shots
- Riccati and interior-point LQ solvers returning states, controls and feedback
"""

__version__ = "0.1.0"

from multishot.core.settings import ShootingSettings
from multishot.core.decision_vector import DecisionVector
from multishot.dms.shot import ShotContainer
from multishot.dms.iteration import create_shots, sequential_lq_step
from multishot.lqoc.problem import LQOCProblem
from multishot.lqoc.solver import LQOCSolver, create_lqoc_solver

__all__ = [
    "ShootingSettings",
    "DecisionVector",
    "ShotContainer",
    "create_shots",
    "sequential_lq_step",
    "LQOCProblem",
    "LQOCSolver",
    "create_lqoc_solver",
]
