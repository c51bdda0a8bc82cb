"""Dynamics model protocols."""

from typing import Protocol
import numpy as np
from numpy.typing import NDArray


class ControlledSystem(Protocol):
    """Nonlinear dynamics ẋ = f(x, u, t) integrated inside each shot."""

    @property
    def state_dim(self) -> int:
        """State dimension n."""
        ...

    @property
    def control_dim(self) -> int:
        """Control dimension ν."""
        ...

    def f(self, x: NDArray, u: NDArray, t: float) -> NDArray:
        """RHS evaluation: ẋ = f(x, u, t)."""
        ...


class LinearSystem(Protocol):
    """Linearization of a ControlledSystem along a trajectory."""

    def F(self, x: NDArray, u: NDArray, t: float) -> NDArray:
        """State Jacobian: ∂f/∂x, shape (n, n)."""
        ...

    def G(self, x: NDArray, u: NDArray, t: float) -> NDArray:
        """Control Jacobian: ∂f/∂u, shape (n, ν)."""
        ...


class LinearTimeInvariantSystem:
    """ẋ = A x + B u; serves as its own linearization."""

    def __init__(self, A: NDArray, B: NDArray):
        A = np.atleast_2d(np.asarray(A, dtype=float))
        B = np.atleast_2d(np.asarray(B, dtype=float))
        if A.shape[0] != A.shape[1] or B.shape[0] != A.shape[0]:
            raise ValueError(
                f"Inconsistent system matrices: A {A.shape}, B {B.shape}"
            )
        self.A = A
        self.B = B

    @property
    def state_dim(self) -> int:
        return self.A.shape[0]

    @property
    def control_dim(self) -> int:
        return self.B.shape[1]

    def f(self, x: NDArray, u: NDArray, t: float) -> NDArray:
        return self.A @ x + self.B @ u

    def F(self, x: NDArray, u: NDArray, t: float) -> NDArray:
        return self.A

    def G(self, x: NDArray, u: NDArray, t: float) -> NDArray:
        return self.B
