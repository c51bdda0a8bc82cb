"""Parallel integration of independent shots."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from multishot.dms.shot import ShotContainer

logger = logging.getLogger(__name__)


def _integrate_one(shot: ShotContainer, sensitivities: bool, cost: bool) -> None:
    shot.integrate_state()
    if sensitivities:
        shot.integrate_sensitivities()
    if cost:
        shot.integrate_cost()
    if sensitivities and cost:
        shot.integrate_cost_sensitivities()


def integrate_shots(
    shots: Sequence[ShotContainer],
    sensitivities: bool = True,
    cost: bool = True,
    max_workers: Optional[int] = None,
) -> None:
    """
    Bring every shot's caches up to date with the decision vector.

    Shots never read each other's caches, so they are integrated on a thread
    pool, one task per shot. All tasks are joined before returning; the first
    failure is re-raised. ``max_workers=1`` integrates inline.

    Args:
        shots: Shots sharing one decision vector
        sensitivities: Also integrate state sensitivities
        cost: Also integrate cost (and cost sensitivities if ``sensitivities``)
        max_workers: Thread count (None lets the executor choose)
    """
    if max_workers == 1 or len(shots) <= 1:
        for shot in shots:
            _integrate_one(shot, sensitivities, cost)
        return

    logger.debug("Integrating %d shots on a thread pool", len(shots))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(_integrate_one, shot, sensitivities, cost) for shot in shots
        ]
        # join all before surfacing the first error
        errors = [f.exception() for f in futures]
    for error in errors:
        if error is not None:
            raise error
