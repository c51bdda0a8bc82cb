"""Cost function protocols."""

from typing import Optional, Protocol
import numpy as np
from numpy.typing import NDArray


class CostFunction(Protocol):
    """Running cost L(x, u, t) plus terminal cost Φ(x)."""

    def intermediate_cost(self, x: NDArray, u: NDArray, t: float) -> float:
        """Running cost L(x, u, t)."""
        ...

    def terminal_cost(self, x: NDArray) -> float:
        """Terminal cost Φ(x)."""
        ...

    def state_derivative_intermediate(
        self, x: NDArray, u: NDArray, t: float
    ) -> NDArray:
        """∂L/∂x, shape (n,)."""
        ...

    def control_derivative_intermediate(
        self, x: NDArray, u: NDArray, t: float
    ) -> NDArray:
        """∂L/∂u, shape (ν,)."""
        ...

    def state_second_derivative_intermediate(
        self, x: NDArray, u: NDArray, t: float
    ) -> NDArray:
        """∂²L/∂x², shape (n, n)."""
        ...

    def control_second_derivative_intermediate(
        self, x: NDArray, u: NDArray, t: float
    ) -> NDArray:
        """∂²L/∂u², shape (ν, ν)."""
        ...

    def state_control_derivative_intermediate(
        self, x: NDArray, u: NDArray, t: float
    ) -> NDArray:
        """∂²L/∂u∂x, shape (ν, n)."""
        ...

    def state_derivative_terminal(self, x: NDArray) -> NDArray:
        """∂Φ/∂x, shape (n,)."""
        ...

    def state_second_derivative_terminal(self, x: NDArray) -> NDArray:
        """∂²Φ/∂x², shape (n, n)."""
        ...


class QuadraticCost:
    """
    L = ½(x - x_ref)ᵀQ(x - x_ref) + ½(u - u_ref)ᵀR(u - u_ref)
    Φ = ½(x - x_final)ᵀQ_final(x - x_final)
    """

    def __init__(
        self,
        Q: NDArray,
        R: NDArray,
        x_ref: Optional[NDArray] = None,
        u_ref: Optional[NDArray] = None,
        Q_final: Optional[NDArray] = None,
        x_final: Optional[NDArray] = None,
    ):
        self.Q = np.atleast_2d(np.asarray(Q, dtype=float))
        self.R = np.atleast_2d(np.asarray(R, dtype=float))
        n, nu = self.Q.shape[0], self.R.shape[0]
        self.x_ref = np.zeros(n) if x_ref is None else np.asarray(x_ref, dtype=float)
        self.u_ref = np.zeros(nu) if u_ref is None else np.asarray(u_ref, dtype=float)
        self.Q_final = (
            np.zeros((n, n)) if Q_final is None
            else np.atleast_2d(np.asarray(Q_final, dtype=float))
        )
        self.x_final = (
            self.x_ref.copy() if x_final is None
            else np.asarray(x_final, dtype=float)
        )

    def intermediate_cost(self, x: NDArray, u: NDArray, t: float) -> float:
        dx = x - self.x_ref
        du = u - self.u_ref
        return float(0.5 * dx @ self.Q @ dx + 0.5 * du @ self.R @ du)

    def terminal_cost(self, x: NDArray) -> float:
        dx = x - self.x_final
        return float(0.5 * dx @ self.Q_final @ dx)

    def state_derivative_intermediate(self, x, u, t):
        return self.Q @ (x - self.x_ref)

    def control_derivative_intermediate(self, x, u, t):
        return self.R @ (u - self.u_ref)

    def state_second_derivative_intermediate(self, x, u, t):
        return self.Q

    def control_second_derivative_intermediate(self, x, u, t):
        return self.R

    def state_control_derivative_intermediate(self, x, u, t):
        return np.zeros((self.R.shape[0], self.Q.shape[0]))

    def state_derivative_terminal(self, x):
        return self.Q_final @ (x - self.x_final)

    def state_second_derivative_terminal(self, x):
        return self.Q_final
