"""Kalman filter likelihood evaluation for ARMA state-space models.

The filter runs over a fixed observation vector y_0, ..., y_{n-1}. Starting
from a_0 = 0 and P_0 (the stationary covariance, or a diffuse κI for
integrated models), each step does

    ŷ_t = Zᵗ a_t                      (prediction)
    F_t = Zᵗ P_t Z + h                (innovation variance)
    e_t = y_t - ŷ_t                   (innovation)
    K_t = P_t Z / F_t                 (gain)
    a_{t+1} = T (a_t + K_t e_t)
    P_{t+1} = T (P_t - F_t K_t K_tᵗ) Tᵗ + R Rᵗ

and the Gaussian log-likelihood is assembled from Σ log F_t and
Σ e_t² / F_t. The innovation variance σ² of the driving disturbance is either
supplied or concentrated out (σ̂² = Σ e_t² / F_t / n).

References:
    - Durbin & Koopman (2012): Time Series Analysis by State Space Methods
    - Gardner, Harvey & Phillips (1980): Algorithm AS 154
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from armafit.logging import get_logger

from .covariance import InvalidParameterizationError, solve_initial_covariance, unpack
from .statespace import StateSpaceARMA

logger = get_logger(__name__)

# Diffuse prior variance for the non-stationary states of integrated models.
DIFFUSE_KAPPA = 1e6
# Innovation variances above this are treated as diffuse and left out of the likelihood.
DIFFUSE_THRESHOLD = 1e4


@dataclass(frozen=True)
class KalmanResult:
    """Output of one filtering pass.

    Attributes:
        predictions: One-step-ahead predictions ŷ_t, shape (n,).
        innovations: Innovations e_t = y_t - ŷ_t, shape (n,).
        variances: Innovation variances F_t (in units of σ²), shape (n,).
        used: Mask of observations entering the likelihood, shape (n,).
        ssq: Σ e_t² / F_t over used observations.
        sumlog: Σ log F_t over used observations.
        state: Predicted state mean a_n after the last observation, shape (r,).
        covariance: Predicted state covariance P_n, shape (r, r).
    """

    predictions: np.ndarray
    innovations: np.ndarray
    variances: np.ndarray
    used: np.ndarray
    ssq: float
    sumlog: float
    state: np.ndarray
    covariance: np.ndarray

    @property
    def nobs(self) -> int:
        """Number of observations entering the likelihood."""
        return int(np.count_nonzero(self.used))

    @property
    def sigma2(self) -> float:
        """Concentrated maximum-likelihood estimate of σ²."""
        return self.ssq / self.nobs

    @property
    def standardized_residuals(self) -> np.ndarray:
        """e_t / sqrt(F_t) for the used observations."""
        return self.innovations[self.used] / np.sqrt(self.variances[self.used])

    def loglike(self, sigma2: Optional[float] = None) -> float:
        """Gaussian log-likelihood.

        Args:
            sigma2: Innovation variance σ². If None, σ² is concentrated out
                and replaced by :attr:`sigma2`.

        Returns:
            The exact log-likelihood of the used observations.
        """
        n = self.nobs
        if sigma2 is None:
            s2 = self.sigma2
            if s2 <= 0:
                raise InvalidParameterizationError(
                    "Concentrated innovation variance is zero; the series is fitted exactly"
                )
            return -0.5 * (n * (math.log(2.0 * math.pi) + math.log(s2) + 1.0) + self.sumlog)
        if sigma2 <= 0:
            raise ValueError(f"sigma2 must be positive, got {sigma2}")
        return -0.5 * (
            n * math.log(2.0 * math.pi) + n * math.log(sigma2) + self.sumlog + self.ssq / sigma2
        )


def check_series(y) -> np.ndarray:
    """Validate and cast observations to a non-empty 1D float array.

    Raises:
        ValueError: If y is empty, not 1D, or contains NaN or Inf.
    """
    arr = np.asarray(y, dtype=float)
    if arr.ndim == 0:
        arr = arr.reshape(1)
    if arr.ndim != 1:
        raise ValueError(f"y must be 1D array, got shape {arr.shape}")
    if arr.size == 0:
        raise ValueError("y must contain at least one observation")
    if not np.all(np.isfinite(arr)):
        raise ValueError("y contains non-finite values")
    return arr


def default_initial_covariance(ss: StateSpaceARMA) -> np.ndarray:
    """Stationary P₀ for ARMA systems, diffuse κI when differencing was folded in.

    The diffuse prior covers every state, the stationary ARMA part included,
    so the first r observations (not only the first d) have innovation
    variances above ``DIFFUSE_THRESHOLD`` and are left out of the likelihood. This is an
    approximation: splitting the state into a differencing block with a
    diffuse prior and an ARMA block with its exact stationary covariance
    would drop only d observations.
    """
    if ss.d > 0:
        return DIFFUSE_KAPPA * np.eye(ss.r)
    return unpack(solve_initial_covariance(ss))


def kalman_filter(
    ss: StateSpaceARMA,
    y,
    initial_covariance: Optional[np.ndarray] = None,
    measurement_variance: float = 0.0,
) -> KalmanResult:
    """Run the Kalman recursion over ``y``.

    Args:
        ss: State-space system from :func:`build_state_space`.
        y: Observations, shape (n,), n >= 1.
        initial_covariance: Full r×r P₀. Defaults to
            :func:`default_initial_covariance`. Never modified.
        measurement_variance: Observation noise variance h (relative to σ²)
            added to every innovation variance.

    Returns:
        KalmanResult with predictions, innovations and likelihood sums.

    Raises:
        ValueError: If y is invalid, shapes disagree, or h < 0.
        InvalidParameterizationError: If an innovation variance is not
            strictly positive and finite, or P₀ cannot be computed.

    Example:
        >>> from armafit.timeseries import build_state_space
        >>> ss = build_state_space([0.5])
        >>> res = kalman_filter(ss, [1.0, 0.5, -0.2])
        >>> res.predictions
        array([0.  , 0.5 , 0.25])
    """
    y = check_series(y)
    if measurement_variance < 0:
        raise ValueError(f"measurement_variance must be >= 0, got {measurement_variance}")

    T = ss.transition
    Z = ss.state_effects
    RR = ss.disturbance_covariance
    r = ss.r

    if initial_covariance is None:
        P = default_initial_covariance(ss)
    else:
        P = np.array(initial_covariance, dtype=float)
        if P.shape != (r, r):
            raise ValueError(f"initial_covariance must be shape ({r}, {r}), got {P.shape}")

    n = len(y)
    predictions = np.zeros(n)
    innovations = np.zeros(n)
    variances = np.zeros(n)
    used = np.zeros(n, dtype=bool)
    a = np.zeros(r)
    ssq = 0.0
    sumlog = 0.0

    for t in range(n):
        PZ = P @ Z
        F = float(Z @ PZ) + measurement_variance
        if not (math.isfinite(F) and F > 0):
            logger.debug("Innovation variance %g at t=%d for phi=%s theta=%s", F, t, ss.ar, ss.ma)
            raise InvalidParameterizationError(
                f"Innovation variance F_{t} = {F} is not positive; "
                f"phi={ss.ar.tolist()}, theta={ss.ma.tolist()}"
            )
        y_hat = float(Z @ a)
        e = y[t] - y_hat
        K = PZ / F

        predictions[t] = y_hat
        innovations[t] = e
        variances[t] = F
        if F < DIFFUSE_THRESHOLD:
            used[t] = True
            ssq += e * e / F
            sumlog += math.log(F)

        a = T @ (a + K * e)
        P = T @ (P - F * np.outer(K, K)) @ T.T + RR

    if not used.any():
        raise ValueError(
            f"All {n} observations are diffuse; need more than the state dimension r={r}"
        )

    return KalmanResult(
        predictions=predictions,
        innovations=innovations,
        variances=variances,
        used=used,
        ssq=ssq,
        sumlog=sumlog,
        state=a,
        covariance=P,
    )


def kalman_forecast(
    ss: StateSpaceARMA, state: np.ndarray, covariance: np.ndarray, steps: int
) -> tuple[np.ndarray, np.ndarray]:
    """Multi-step forecasts from a predicted state.

    Args:
        ss: State-space system.
        state: Predicted state mean a_n, shape (r,).
        covariance: Predicted state covariance P_n, shape (r, r).
        steps: Number of steps ahead, >= 1.

    Returns:
        Tuple of (mean, variance), each shape (steps,). Variances are in units
        of σ².
    """
    if steps < 1:
        raise ValueError(f"steps must be >= 1, got {steps}")
    T = ss.transition
    Z = ss.state_effects
    RR = ss.disturbance_covariance

    a = np.asarray(state, dtype=float).copy()
    P = np.asarray(covariance, dtype=float).copy()
    mean = np.zeros(steps)
    var = np.zeros(steps)
    for h in range(steps):
        mean[h] = Z @ a
        var[h] = Z @ P @ Z
        a = T @ a
        P = T @ P @ T.T + RR
    return mean, var


__all__ = [
    "DIFFUSE_KAPPA",
    "DIFFUSE_THRESHOLD",
    "KalmanResult",
    "check_series",
    "default_initial_covariance",
    "kalman_filter",
    "kalman_forecast",
]
