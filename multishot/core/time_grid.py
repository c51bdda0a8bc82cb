"""Shot time grid."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from multishot.core.errors import ConfigurationError


class TimeGrid:
    """Maps a shot index i to its window [t_i, t_{i+1})."""

    def __init__(self, n_shots: int, t_final: float, times: Optional[NDArray] = None):
        if times is None:
            times = np.linspace(0.0, t_final, n_shots + 1)
        times = np.array(times, dtype=float)

        if times.shape != (n_shots + 1,):
            raise ConfigurationError(
                f"Expected {n_shots + 1} grid times, got shape {times.shape}"
            )
        if np.any(np.diff(times) <= 0):
            raise ConfigurationError("Grid times must be strictly increasing")

        self._times = times
        self._times.setflags(write=False)

    @classmethod
    def from_times(cls, times: NDArray) -> "TimeGrid":
        """Build a non-equidistant grid from N+1 increasing times."""
        times = np.asarray(times, dtype=float)
        return cls(len(times) - 1, float(times[-1]), times)

    @property
    def n_shots(self) -> int:
        return len(self._times) - 1

    @property
    def t_final(self) -> float:
        return float(self._times[-1])

    @property
    def times(self) -> NDArray:
        return self._times

    def get_shot_start_time(self, shot_index: int) -> float:
        return float(self._times[shot_index])

    def get_shot_end_time(self, shot_index: int) -> float:
        return float(self._times[shot_index + 1])

    def get_shot_duration(self, shot_index: int) -> float:
        return self.get_shot_end_time(shot_index) - self.get_shot_start_time(shot_index)
