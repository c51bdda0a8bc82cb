"""Per-step storage shared by the state, sensitivity and cost sweeps."""

from dataclasses import dataclass
from typing import Optional
from numpy.typing import NDArray


@dataclass
class StepRecord:
    """Cached data from one forward step, reused by sensitivity/cost sweeps."""

    t: float                # step start time
    h: float                # step size
    Z: NDArray              # (s, n) stage values
    U: NDArray              # (s, ν) stage controls
    T: NDArray              # (s,)   stage times
    F: Optional[list[NDArray]] = None  # s state Jacobians, each (n, n)
    G: Optional[list[NDArray]] = None  # s control Jacobians, each (n, ν)


@dataclass
class StageSensitivity:
    """Stage sensitivities dZ/dp of one step for one parameter p."""

    dZ: list[NDArray]       # s matrices, each (n, m)
    weights: NDArray        # (s,) control weight ∂u/∂p at each stage (0 for x0)
