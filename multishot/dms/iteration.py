"""One sequential-LQ iteration of direct multiple shooting."""

import logging
from typing import Optional, Sequence
import numpy as np

from multishot.control.spliner import ControlSpliner
from multishot.core.cost import CostFunction
from multishot.core.decision_vector import DecisionVector
from multishot.core.settings import ShootingSettings
from multishot.core.system import ControlledSystem, LinearSystem
from multishot.core.time_grid import TimeGrid
from multishot.dms.pool import integrate_shots
from multishot.dms.shot import ShotContainer
from multishot.lqoc.problem import LQOCProblem
from multishot.lqoc.solver import LQOCSolver

logger = logging.getLogger(__name__)


def create_shots(
    system: ControlledSystem,
    linear_system: LinearSystem,
    cost_function: CostFunction,
    w: DecisionVector,
    settings: ShootingSettings,
    time_grid: Optional[TimeGrid] = None,
) -> list[ShotContainer]:
    """
    One shot per interval of the grid, all reading the same decision vector.

    Args:
        system: Nonlinear dynamics
        linear_system: Its linearization
        cost_function: Running and terminal cost
        w: Decision vector with settings.n_shots + 1 pairs
        settings: Shooting settings
        time_grid: Grid to use; equidistant over [0, t_final] when omitted

    Returns:
        Shots in index order
    """
    if w.n_pairs != settings.n_shots + 1:
        raise ValueError(
            f"Decision vector has {w.n_pairs} pairs, expected {settings.n_shots + 1}"
        )
    if time_grid is None:
        time_grid = TimeGrid(settings.n_shots, settings.t_final)
    spliner = ControlSpliner(w, time_grid, settings.spline_type)
    return [
        ShotContainer(
            system, linear_system, cost_function, w, spliner, time_grid, i, settings
        )
        for i in range(settings.n_shots)
    ]


def sequential_lq_step(
    shots: Sequence[ShotContainer],
    problem: LQOCProblem,
    solver: LQOCSolver,
    w: DecisionVector,
    cost_function: CostFunction,
    step_size: float = 1.0,
    max_workers: Optional[int] = None,
) -> LQOCSolver:
    """
    Integrate, assemble the LQ subproblem, solve it and update ``w``.

    The increment (solution minus nominal) is applied in one write, so every
    shot's caches become stale exactly once.

    Args:
        shots: Shots sharing ``w``
        problem: Subproblem to (re)assemble; its constraints are kept
        solver: LQ backend
        w: Decision vector to update
        cost_function: Cost model supplying the Hessians
        step_size: Scaling of the increment
        max_workers: Thread count for shot integration

    Returns:
        The solver, holding the subproblem solution and feedback
    """
    integrate_shots(shots, max_workers=max_workers)
    problem.set_from_shots(shots, cost_function)
    solver.set_problem(problem)
    solver.solve()

    dx = solver.get_solution_state() - problem.x
    du = solver.get_solution_control() - problem.u
    w.apply_increment(dx, du, step_size)

    logger.info(
        "LQ step %d: |δx|∞ = %.3e, |δu|∞ = %.3e, defect |b|∞ = %.3e",
        w.update_count,
        float(np.max(np.abs(dx))),
        float(np.max(np.abs(du))) if du.size else 0.0,
        float(np.max(np.abs(problem.b))),
    )
    return solver
