"""Version-stamped decision vector w = (s_0, q_0, ..., s_N, q_N)."""

from typing import Optional
import numpy as np
from numpy.typing import NDArray


class DecisionVector:
    """
    Per-shot decision blocks plus a monotonically increasing update counter.

    Every public write is one logical update and bumps ``update_count`` exactly
    once. Shots compare their cache tokens against ``update_count`` on every
    call, so readers must never keep a copy of the counter across calls.
    """

    def __init__(self, states: NDArray, controls: NDArray):
        """
        Args:
            states: Shot-start states s_i, shape (N+1, n)
            controls: Control parameters q_i, shape (N+1, ν)
        """
        states = np.array(states, dtype=float)
        controls = np.array(controls, dtype=float)
        if states.ndim != 2 or controls.ndim != 2:
            raise ValueError("states and controls must be 2-D arrays")
        if states.shape[0] != controls.shape[0]:
            raise ValueError(
                f"Need one control per state pair, got {states.shape[0]} states "
                f"and {controls.shape[0]} controls"
            )
        self._states = states
        self._controls = controls
        self._update_count = 0

    @classmethod
    def zeros(cls, n_shots: int, state_dim: int, control_dim: int) -> "DecisionVector":
        return cls(
            np.zeros((n_shots + 1, state_dim)), np.zeros((n_shots + 1, control_dim))
        )

    @property
    def update_count(self) -> int:
        return self._update_count

    @property
    def n_pairs(self) -> int:
        return self._states.shape[0]

    @property
    def state_dim(self) -> int:
        return self._states.shape[1]

    @property
    def control_dim(self) -> int:
        return self._controls.shape[1]

    @property
    def states(self) -> NDArray:
        """Read-only view of all s_i, shape (N+1, n)."""
        view = self._states.view()
        view.setflags(write=False)
        return view

    @property
    def controls(self) -> NDArray:
        """Read-only view of all q_i, shape (N+1, ν)."""
        view = self._controls.view()
        view.setflags(write=False)
        return view

    def get_optimized_state(self, index: int) -> NDArray:
        return self._states[index].copy()

    def get_optimized_control(self, index: int) -> NDArray:
        return self._controls[index].copy()

    def to_flat(self) -> NDArray:
        """Interleaved (s_0, q_0, s_1, q_1, ...) as one vector."""
        return np.hstack([self._states, self._controls]).ravel()

    def set_optimized_state(self, index: int, x: NDArray) -> None:
        self._check_index(index)
        x = np.asarray(x, dtype=float)
        if x.shape != (self.state_dim,):
            raise ValueError(f"Expected state of shape ({self.state_dim},), got {x.shape}")
        self._states[index] = x
        self._bump()

    def set_optimized_control(self, index: int, u: NDArray) -> None:
        self._check_index(index)
        u = np.asarray(u, dtype=float)
        if u.shape != (self.control_dim,):
            raise ValueError(
                f"Expected control of shape ({self.control_dim},), got {u.shape}"
            )
        self._controls[index] = u
        self._bump()

    def set_optimization_vars(
        self,
        states: Optional[NDArray] = None,
        controls: Optional[NDArray] = None,
    ) -> None:
        """Replace all states and/or controls in one update."""
        new_states = self._checked(states, self._states, "states")
        new_controls = self._checked(controls, self._controls, "controls")
        self._states = new_states
        self._controls = new_controls
        self._bump()

    def set_from_flat(self, w: NDArray) -> None:
        """Inverse of ``to_flat``."""
        w = np.asarray(w, dtype=float)
        block = self.state_dim + self.control_dim
        if w.shape != (self.n_pairs * block,):
            raise ValueError(
                f"Expected flat vector of length {self.n_pairs * block}, got {w.shape}"
            )
        pairs = w.reshape(self.n_pairs, block)
        self._states = pairs[:, : self.state_dim].copy()
        self._controls = pairs[:, self.state_dim:].copy()
        self._bump()

    def apply_increment(
        self,
        dx: NDArray,
        du: NDArray,
        step_size: float = 1.0,
    ) -> None:
        """
        w ← w + step_size · (dx, du) in one update.

        Args:
            dx: State increments for the first len(dx) pairs
            du: Control increments for the first len(du) pairs
            step_size: Line-search step length
        """
        dx = np.atleast_2d(np.asarray(dx, dtype=float))
        du = np.asarray(du, dtype=float).reshape(-1, self.control_dim)
        if dx.shape[1] != self.state_dim or dx.shape[0] > self.n_pairs:
            raise ValueError(f"State increment of shape {dx.shape} does not fit")
        if du.shape[0] > self.n_pairs:
            raise ValueError(f"Control increment of shape {du.shape} does not fit")

        states = self._states.copy()
        controls = self._controls.copy()
        states[: dx.shape[0]] += step_size * dx
        controls[: du.shape[0]] += step_size * du
        self._states = states
        self._controls = controls
        self._bump()

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.n_pairs:
            raise IndexError(
                f"Pair index {index} out of range for {self.n_pairs} pairs"
            )

    def _checked(self, new: Optional[NDArray], current: NDArray, name: str) -> NDArray:
        if new is None:
            return current
        new = np.array(new, dtype=float)
        if new.shape != current.shape:
            raise ValueError(f"Expected {name} of shape {current.shape}, got {new.shape}")
        return new

    def _bump(self) -> None:
        self._update_count += 1
