"""Zero-order-hold discretization of linear time-invariant systems."""

import numpy as np
import scipy.linalg
from numpy.typing import NDArray


def discretize(A: NDArray, B: NDArray, dt: float) -> tuple[NDArray, NDArray]:
    """
    Exact discretization of ẋ = A x + B u with u held constant over dt.

    Uses the exponential of the augmented matrix

        exp([[A, B], [0, 0]] dt) = [[A_d, B_d], [0, I]]

    Args:
        A: Continuous state matrix (n, n)
        B: Continuous control matrix (n, ν)
        dt: Sampling time

    Returns:
        A_d: (n, n)
        B_d: (n, ν)
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    B = np.asarray(B, dtype=float).reshape(A.shape[0], -1)
    n, nu = B.shape

    augmented = np.zeros((n + nu, n + nu))
    augmented[:n, :n] = A
    augmented[:n, n:] = B
    phi = scipy.linalg.expm(augmented * dt)
    return phi[:n, :n], phi[:n, n:]
