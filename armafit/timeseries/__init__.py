"""Exact maximum-likelihood fitting of ARMA and ARIMA models.

The model is cast in companion state-space form, its stationary initial
state covariance is found from the discrete Lyapunov equation, and the
Kalman filter turns a coefficient vector into the exact Gaussian
log-likelihood, which BFGS maximizes.

Example:
    >>> from armafit.timeseries import ARIMA
    >>> import numpy as np
    >>>
    >>> rng = np.random.default_rng(0)
    >>> n = 300
    >>> eps = rng.normal(size=n)
    >>> x = np.zeros(n)
    >>> for t in range(1, n):
    ...     x[t] = 0.7 * x[t-1] + eps[t] + 0.3 * eps[t-1]
    >>>
    >>> model = ARIMA(p=1, q=1)
    >>> res = model.fit(x)
    >>> fcast, ci = model.forecast(steps=10, alpha=0.05)
    >>> print(f"Estimated phi: {res.ar[0]:.3f}, theta: {res.ma[0]:.3f}")
    >>> print(f"AIC: {res.aic:.2f}")

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Gardner, Harvey & Phillips (1980): Algorithm AS 154
    - Durbin & Koopman (2012): Time Series Analysis by State Space Methods
"""

from __future__ import annotations

from .covariance import (
    InvalidParameterizationError,
    initial_state_covariance,
    pack,
    packed_dimension,
    packed_index,
    packed_size,
    solve_initial_covariance,
    unpack,
)
from .kalman import (
    DIFFUSE_KAPPA,
    DIFFUSE_THRESHOLD,
    KalmanResult,
    kalman_filter,
    kalman_forecast,
)
from .models import ARIMA, FitResult
from .objective import ArmaLikelihood, ar_transform, ar_untransform
from .polynomial import ar_polynomial, difference_polynomial, fold_differencing
from .statespace import StateSpaceARMA, build_state_space, state_dimension

__all__ = [
    # Models
    "ARIMA",
    "FitResult",
    # Likelihood
    "ArmaLikelihood",
    "ar_transform",
    "ar_untransform",
    # State space
    "StateSpaceARMA",
    "build_state_space",
    "state_dimension",
    # Initial covariance
    "InvalidParameterizationError",
    "initial_state_covariance",
    "solve_initial_covariance",
    "pack",
    "unpack",
    "packed_size",
    "packed_dimension",
    "packed_index",
    # Kalman filtering
    "DIFFUSE_KAPPA",
    "DIFFUSE_THRESHOLD",
    "KalmanResult",
    "kalman_filter",
    "kalman_forecast",
    # Polynomials
    "ar_polynomial",
    "difference_polynomial",
    "fold_differencing",
]
