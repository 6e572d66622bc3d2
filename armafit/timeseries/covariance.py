"""Stationary initial-state covariance of the ARMA state-space system.

The covariance P₀ of the state vector before any observation is the solution
of the discrete Lyapunov equation

    P₀ = T P₀ Tᵗ + R Rᵗ,

equivalently ``(I - T ⊗ T) vec(P₀) = vec(R Rᵗ)``. Because P₀ is symmetric
only its r(r + 1)/2 lower-triangle entries are unknowns; they are stored in
*packed* form, the lower triangle read column by column (which is the upper
triangle read row by row). :func:`packed_index` is the single place the
mapping between matrix positions and packed positions is defined.

References:
    - Gardner, Harvey & Phillips (1980): Algorithm AS 154
    - Durbin & Koopman (2012): Time Series Analysis by State Space Methods, §5.6
"""

from __future__ import annotations

import math
import warnings

import numpy as np
from scipy import linalg

from armafit.logging import get_logger

from .statespace import StateSpaceARMA, build_state_space

logger = get_logger(__name__)


class InvalidParameterizationError(ValueError):
    """Raised when a coefficient vector does not define a valid Gaussian model.

    Covers a singular or ill-conditioned Lyapunov system (typically a
    non-stationary AR part) and non-positive innovation variances met while
    filtering.
    """


def packed_size(r: int) -> int:
    """Number of packed entries of an r×r symmetric matrix."""
    return r * (r + 1) // 2


def packed_dimension(size: int) -> int:
    """Recover r from a packed length r(r + 1)/2.

    Raises:
        ValueError: If ``size`` is not a triangular number.
    """
    r = (math.isqrt(8 * size + 1) - 1) // 2
    if packed_size(r) != size:
        raise ValueError(f"Packed length {size} is not r(r+1)/2 for any integer r")
    return r


def packed_index(i: int, j: int, r: int) -> int:
    """Packed position of entry (i, j) of a symmetric r×r matrix.

    Entries are symmetric, so (i, j) and (j, i) share a position.

    Example:
        >>> [packed_index(i, j, 3) for j in range(3) for i in range(j, 3)]
        [0, 1, 2, 3, 4, 5]
    """
    if i < j:
        i, j = j, i
    if not (0 <= j and i < r):
        raise IndexError(f"Entry ({i}, {j}) out of range for dimension {r}")
    return j * r - j * (j - 1) // 2 + (i - j)


def pack(matrix: np.ndarray) -> np.ndarray:
    """Packed lower triangle of a symmetric matrix.

    Raises:
        ValueError: If ``matrix`` is not square.
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {matrix.shape}")
    r = matrix.shape[0]
    packed = np.empty(packed_size(r))
    for j in range(r):
        for i in range(j, r):
            packed[packed_index(i, j, r)] = matrix[i, j]
    return packed


def unpack(packed: np.ndarray) -> np.ndarray:
    """Full symmetric matrix from its packed lower triangle.

    Example:
        >>> unpack(np.array([1.09, 0.3, 0.09]))
        array([[1.09, 0.3 ],
               [0.3 , 0.09]])
    """
    packed = np.asarray(packed, dtype=float).ravel()
    r = packed_dimension(packed.size)
    full = np.empty((r, r))
    for j in range(r):
        for i in range(j, r):
            full[i, j] = full[j, i] = packed[packed_index(i, j, r)]
    return full


def _lyapunov_system(ss: StateSpaceARMA) -> tuple[np.ndarray, np.ndarray]:
    """Coefficient matrix and right-hand side over the packed unknowns.

    Row (i, j) of ``P - T P Tᵗ = R Rᵗ`` reads
    ``P[i, j] - Σ_kl T[i, k] T[j, l] P[k, l] = R[i] R[j]``; every P[k, l] is
    routed to its packed column.
    """
    T = ss.transition
    R = ss.disturbance
    r = ss.r
    m = packed_size(r)
    A = np.zeros((m, m))
    b = np.empty(m)
    for j in range(r):
        for i in range(j, r):
            row = packed_index(i, j, r)
            A[row, row] += 1.0
            b[row] = R[i] * R[j]
            coupling = np.outer(T[i], T[j])
            for k, l in zip(*np.nonzero(coupling)):
                A[row, packed_index(k, l, r)] -= coupling[k, l]
    return A, b


def solve_initial_covariance(ss: StateSpaceARMA) -> np.ndarray:
    """Packed stationary covariance of an already built state-space system.

    Raises:
        InvalidParameterizationError: If the Lyapunov system is singular or
            ill-conditioned, or the solution is not finite.
    """
    A, b = _lyapunov_system(ss)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", linalg.LinAlgWarning)
            packed = linalg.solve(A, b)
    except (linalg.LinAlgError, linalg.LinAlgWarning) as err:
        logger.debug("Rejected Lyapunov system for phi=%s theta=%s: %s", ss.ar, ss.ma, err)
        raise InvalidParameterizationError(
            f"No stationary state covariance for phi={ss.ar.tolist()}, "
            f"theta={ss.ma.tolist()}: {err}"
        ) from err
    if not np.all(np.isfinite(packed)):
        raise InvalidParameterizationError(
            f"Non-finite stationary state covariance for phi={ss.ar.tolist()}, "
            f"theta={ss.ma.tolist()}"
        )
    return packed


def initial_state_covariance(phi=(), theta=()) -> np.ndarray:
    """Packed stationary initial-state covariance P₀ of an ARMA(p, q) model.

    Args:
        phi: AR coefficients [φ_1, ..., φ_p]. May be empty.
        theta: MA coefficients [θ_1, ..., θ_q]. May be empty.

    Returns:
        Packed P₀, shape (r(r + 1)/2,) with r = max(p, q + 1).

    Raises:
        InvalidParameterizationError: If φ has a (near) unit root so that no
            stationary covariance exists.

    Example:
        >>> initial_state_covariance([], [0.3])
        array([1.09, 0.3 , 0.09])
    """
    return solve_initial_covariance(build_state_space(phi, theta))


__all__ = [
    "InvalidParameterizationError",
    "initial_state_covariance",
    "pack",
    "packed_dimension",
    "packed_index",
    "packed_size",
    "solve_initial_covariance",
    "unpack",
]
