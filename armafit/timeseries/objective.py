"""Negative log-likelihood of an ARIMA model as an optimizer objective.

The parameter vector is ``[φ_1, ..., φ_p, θ_1, ..., θ_q]``. With
``transform=True`` the AR block is expressed through unconstrained values u
that map onto the stationary region: ``tanh(u)`` gives partial
autocorrelations, and the Durbin-Levinson recursion turns those into AR
coefficients. Every trial point of the optimizer then has a stationary AR
part, so the Lyapunov solve for P₀ always exists.

References:
    - Jones (1980): "Maximum likelihood fitting of ARMA models to time series
      with missing observations"
    - Monahan (1984): "A note on enforcing stationarity in autoregressive-moving
      average models"
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from armafit.optimize.utils import approx_grad

from .kalman import KalmanResult, check_series, kalman_filter
from .statespace import StateSpaceARMA, build_state_space


def ar_transform(raw: np.ndarray) -> np.ndarray:
    """Map unconstrained values onto stationary AR coefficients.

    Example:
        >>> ar_transform(np.zeros(2))
        array([0., 0.])
    """
    pacf = np.tanh(np.asarray(raw, dtype=float))
    phi = pacf.copy()
    for j in range(1, len(pacf)):
        a = pacf[j]
        prev = phi[:j].copy()
        phi[:j] = prev - a * prev[::-1]
    return phi


def ar_untransform(phi: np.ndarray) -> np.ndarray:
    """Inverse of :func:`ar_transform`.

    Raises:
        ValueError: If φ is not stationary (some partial autocorrelation has
            modulus >= 1).
    """
    phi = np.asarray(phi, dtype=float)
    pacf = phi.copy()
    for j in range(len(phi) - 1, 0, -1):
        a = pacf[j]
        if abs(a) >= 1:
            raise ValueError(f"AR coefficients {phi.tolist()} are not stationary")
        cur = pacf[:j].copy()
        pacf[:j] = (cur + a * cur[::-1]) / (1.0 - a * a)
    if np.any(np.abs(pacf) >= 1):
        raise ValueError(f"AR coefficients {phi.tolist()} are not stationary")
    return np.arctanh(pacf)


class ArmaLikelihood:
    """Negative exact log-likelihood of ARIMA(p, d, q), σ² concentrated out.

    Implements the optimizer's ``evaluate`` / ``gradient_at`` capability;
    gradients are central finite differences.

    Args:
        y: Observations, shape (n,).
        p: AR order, >= 0.
        q: MA order, >= 0.
        d: Differencing order, >= 0. Differencing is folded into the AR
            polynomial and the non-stationary states get a diffuse prior.
        include_mean: Subtract the sample mean before filtering (d = 0 only).
        transform: Optimize the AR block in the unconstrained
            partial-autocorrelation parameterization.
        eps: Relative finite-difference step.
    """

    def __init__(
        self,
        y,
        p: int,
        q: int,
        d: int = 0,
        include_mean: bool = True,
        transform: bool = True,
        eps: float = 1e-5,
    ) -> None:
        if p < 0 or q < 0 or d < 0:
            raise ValueError(f"Orders must be >= 0, got p={p}, d={d}, q={q}")
        self.y = check_series(y)
        self.p = p
        self.q = q
        self.d = d
        self.transform = transform
        self.eps = eps
        self.mean = float(np.mean(self.y)) if include_mean and d == 0 else 0.0
        self.data = self.y - self.mean

    @property
    def n_params(self) -> int:
        return self.p + self.q

    def coefficients(self, params: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Split a parameter vector into (φ, θ), undoing the AR transform."""
        params = np.asarray(params, dtype=float).ravel()
        if params.size != self.n_params:
            raise ValueError(f"Expected {self.n_params} parameters, got {params.size}")
        ar = params[: self.p]
        if self.transform:
            ar = ar_transform(ar)
        return ar, params[self.p :]

    def parameters(self, phi=(), theta=()) -> np.ndarray:
        """Parameter vector for coefficients (φ, θ); inverse of :meth:`coefficients`."""
        phi = np.asarray(phi, dtype=float).ravel()
        theta = np.asarray(theta, dtype=float).ravel()
        if phi.size != self.p or theta.size != self.q:
            raise ValueError(
                f"Expected {self.p} AR and {self.q} MA coefficients, got {phi.size} and {theta.size}"
            )
        if self.transform:
            phi = ar_untransform(phi)
        return np.concatenate([phi, theta])

    def state_space(self, params: np.ndarray) -> StateSpaceARMA:
        phi, theta = self.coefficients(params)
        return build_state_space(phi, theta, self.d)

    def filter(self, params: np.ndarray) -> KalmanResult:
        """Run the Kalman filter at ``params``."""
        return kalman_filter(self.state_space(params), self.data)

    def loglike(self, params: np.ndarray, sigma2: Optional[float] = None) -> float:
        return self.filter(params).loglike(sigma2)

    def evaluate(self, point: np.ndarray) -> float:
        return -self.loglike(point)

    def gradient_at(self, point: np.ndarray, value: float) -> np.ndarray:
        return approx_grad(self.evaluate, point, eps=self.eps)


__all__ = ["ArmaLikelihood", "ar_transform", "ar_untransform"]
