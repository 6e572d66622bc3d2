"""State-space representation of ARMA and ARIMA models.

An ARMA(p, q) process is written in companion ("Harvey") form with state
dimension r = max(p, q + 1):

    α_{t+1} = T α_t + R ε_{t+1}     (state equation)
    y_t     = Zᵗ α_t                (observation equation)

where T has φ (zero-padded to r) in its first column and ones on the
superdiagonal, Z = (1, 0, ..., 0) and R = (1, θ_1, ..., θ_q, 0, ...).

References:
    - Harvey (1989): Forecasting, Structural Time Series Models and the Kalman Filter
    - Durbin & Koopman (2012): Time Series Analysis by State Space Methods
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .polynomial import fold_differencing


def check_coefficients(coeffs, name: str) -> np.ndarray:
    """Validate and cast a coefficient sequence to a read-only 1D float array.

    Raises:
        ValueError: If the input is not 1D or contains NaN or Inf.
    """
    arr = np.array(coeffs, dtype=float)
    if arr.ndim == 0:
        arr = arr.reshape(1)
    if arr.ndim != 1:
        raise ValueError(f"{name} must be 1D, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values")
    arr.setflags(write=False)
    return arr


def state_dimension(p: int, q: int) -> int:
    """Return r = max(p, q + 1)."""
    return max(p, q + 1)


def transition_matrix(phi: np.ndarray, r: int) -> np.ndarray:
    """Companion transition matrix: φ in column 0, ones on the superdiagonal."""
    T = np.zeros((r, r))
    T[: len(phi), 0] = phi
    if r > 1:
        T[np.arange(r - 1), np.arange(1, r)] = 1.0
    return T


def disturbance_vector(theta: np.ndarray, r: int) -> np.ndarray:
    """R = (1, θ_1, ..., θ_q) zero-padded to length r."""
    R = np.zeros(r)
    R[0] = 1.0
    R[1 : len(theta) + 1] = theta
    return R


def _read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class StateSpaceARMA:
    """Companion-form state-space system of an ARMA model.

    Attributes:
        ar: AR coefficients the system was built from (after folding any
            differencing), shape (p,).
        ma: MA coefficients, shape (q,).
        transition: Transition matrix T, shape (r, r).
        state_effects: Observation vector Z, shape (r,).
        disturbance: Disturbance loading R, shape (r,).
        d: Differencing order folded into ``ar``.
    """

    ar: np.ndarray
    ma: np.ndarray
    transition: np.ndarray
    state_effects: np.ndarray
    disturbance: np.ndarray
    d: int = 0

    @property
    def r(self) -> int:
        """State dimension."""
        return self.transition.shape[0]

    @property
    def disturbance_covariance(self) -> np.ndarray:
        """RRᵗ, the state covariance added by one unit-variance disturbance."""
        return np.outer(self.disturbance, self.disturbance)


def build_state_space(phi=(), theta=(), d: int = 0) -> StateSpaceARMA:
    """Build the companion-form system for ARIMA(p, d, q).

    Args:
        phi: AR coefficients [φ_1, ..., φ_p]. May be empty.
        theta: MA coefficients [θ_1, ..., θ_q]. May be empty.
        d: Differencing order. When positive, φ is multiplied by ``(1 - B)^d``
            before T is built, so the state dimension grows accordingly.

    Returns:
        StateSpaceARMA with read-only arrays.

    Raises:
        ValueError: If coefficients are not 1D finite sequences or d < 0.

    Example:
        >>> ss = build_state_space([0.5, 0.2], [0.7])
        >>> ss.transition
        array([[0.5, 1. ],
               [0.2, 0. ]])
        >>> ss.disturbance
        array([1. , 0.7])
    """
    if d < 0:
        raise ValueError(f"d must be >= 0, got {d}")
    phi = check_coefficients(phi, "phi")
    theta = check_coefficients(theta, "theta")
    ar = check_coefficients(fold_differencing(phi, d), "phi")

    r = state_dimension(len(ar), len(theta))
    Z = np.zeros(r)
    Z[0] = 1.0
    return StateSpaceARMA(
        ar=ar,
        ma=theta,
        transition=_read_only(transition_matrix(ar, r)),
        state_effects=_read_only(Z),
        disturbance=_read_only(disturbance_vector(theta, r)),
        d=d,
    )
