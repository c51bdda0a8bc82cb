"""Direct multiple shooting: shots, parallel integration and the LQ step."""

from multishot.dms.shot import ShotContainer
from multishot.dms.pool import integrate_shots
from multishot.dms.iteration import create_shots, sequential_lq_step

__all__ = [
    "ShotContainer",
    "integrate_shots",
    "create_shots",
    "sequential_lq_step",
]
