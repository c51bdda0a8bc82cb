"""Explicit Runge-Kutta tableaux."""

from dataclasses import dataclass
from functools import cached_property
import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class ButcherTableau:
    """Runge-Kutta tableau (A, b, c)."""

    A: NDArray  # (s, s) - stage coefficients
    b: NDArray  # (s,)   - output weights
    c: NDArray  # (s,)   - abscissae

    @cached_property
    def s(self) -> int:
        """Number of stages."""
        return self.A.shape[0]

    @cached_property
    def is_explicit(self) -> bool:
        """A strictly lower triangular."""
        return bool(np.allclose(self.A, np.tril(self.A, -1)))


def explicit_euler() -> ButcherTableau:
    """Forward Euler method (1st order)."""
    return ButcherTableau(
        A=np.array([[0.0]]),
        b=np.array([1.0]),
        c=np.array([0.0]),
    )


def rk4() -> ButcherTableau:
    """Classic 4th-order Runge-Kutta method."""
    A = np.array([
        [0.0, 0.0, 0.0, 0.0],
        [0.5, 0.0, 0.0, 0.0],
        [0.0, 0.5, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
    ])
    b = np.array([1.0/6.0, 1.0/3.0, 1.0/3.0, 1.0/6.0])
    c = np.array([0.0, 0.5, 0.5, 1.0])
    return ButcherTableau(A=A, b=b, c=c)
