"""ARIMA model fitted by exact maximum likelihood.

The likelihood is evaluated by the Kalman filter of the companion-form
state-space system and maximized with BFGS.

References:
    - Box & Jenkins (1976): Time Series Analysis: Forecasting and Control
    - Durbin & Koopman (2012): Time Series Analysis by State Space Methods
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy import stats

from armafit.logging import get_logger
from armafit.optimize import BFGSConfig, OptimizeResult, approx_hessian, bfgs, is_pos_def

from .kalman import KalmanResult, kalman_forecast
from .objective import ArmaLikelihood
from .statespace import StateSpaceARMA, build_state_space

logger = get_logger(__name__)

# every test must pass; the change tolerance stays well above the
# resolution of a log-likelihood in the hundreds
DEFAULT_FIT_CONFIG = BFGSConfig(
    gradient_tolerance=1e-4,
    function_change_tolerance=1e-6,
    max_iterations=500,
    criterion="all",
)


@dataclass
class FitResult:
    """Result of fitting an ARIMA model.

    Attributes:
        ar: Estimated AR coefficients φ, shape (p,).
        ma: Estimated MA coefficients θ, shape (q,).
        mean: Mean subtracted before filtering (0 when not estimated).
        stderr: Standard errors of [φ, θ] from the observed information, or
            None if the numerical Hessian is not positive definite.
        sigma2: Estimated innovation variance σ².
        loglike: Maximized log-likelihood.
        aic: Akaike Information Criterion.
        bic: Bayesian Information Criterion.
        nobs: Number of observations entering the likelihood.
        success: Whether the optimizer converged.
        message: Status message from the optimizer.
        optimizer: Raw BFGS result (parameters in the optimizer's space).
    """

    ar: np.ndarray
    ma: np.ndarray
    mean: float
    stderr: Optional[np.ndarray]
    sigma2: float
    loglike: float
    aic: float
    bic: float
    nobs: int
    success: bool
    message: str
    optimizer: OptimizeResult

    @property
    def params(self) -> np.ndarray:
        """Coefficients [φ_1, ..., φ_p, θ_1, ..., θ_q]."""
        return np.concatenate([self.ar, self.ma])


class ARIMA:
    """Autoregressive integrated moving average (ARIMA) model.

    Models the series as
        (1 - φ_1 B - ... - φ_p B^p)(1 - B)^d (x_t - μ) = (1 + θ_1 B + ... + θ_q B^q) ε_t

    with ε_t ~ N(0, σ²). The mean μ is estimated by the sample mean and only
    for d = 0.

    Args:
        p: AR order, >= 0.
        d: Differencing order, >= 0.
        q: MA order, >= 0.
        include_mean: Estimate μ (ignored when d > 0).

    Example:
        >>> rng = np.random.default_rng(0)
        >>> eps = rng.normal(size=400)
        >>> x = np.zeros(400)
        >>> for t in range(1, 400):
        ...     x[t] = 0.6 * x[t-1] + eps[t]
        >>> model = ARIMA(p=1)
        >>> res = model.fit(x)
        >>> fcast, ci = model.forecast(steps=5)
    """

    def __init__(self, p: int, d: int = 0, q: int = 0, include_mean: bool = True) -> None:
        if p < 0:
            raise ValueError(f"p must be >= 0, got {p}")
        if d < 0:
            raise ValueError(f"d must be >= 0, got {d}")
        if q < 0:
            raise ValueError(f"q must be >= 0, got {q}")

        self.p = p
        self.d = d
        self.q = q
        self.include_mean = include_mean and d == 0
        self.fit_result: Optional[FitResult] = None
        self._filtered: Optional[KalmanResult] = None

    def __repr__(self) -> str:
        return f"ARIMA(p={self.p}, d={self.d}, q={self.q})"

    @property
    def n_params(self) -> int:
        """Number of estimated parameters, σ² and μ included."""
        return self.p + self.q + 1 + (1 if self.include_mean else 0)

    def fit(
        self,
        x,
        config: Optional[BFGSConfig] = None,
        start_params: Optional[np.ndarray] = None,
    ) -> FitResult:
        """Fit the model by maximum likelihood.

        Args:
            x: 1D time series array, shape (n,).
            config: BFGS settings. Defaults to ``DEFAULT_FIT_CONFIG``.
            start_params: Starting coefficients [φ, θ], shape (p + q,). The AR
                part must be stationary. Defaults to zeros.

        Returns:
            FitResult with coefficient estimates, σ², AIC/BIC.

        Raises:
            ValueError: If x is invalid or start_params has the wrong length.
            InvalidParameterizationError: If the likelihood cannot be
                evaluated at some trial point.
            OptimizationError: If BFGS stagnates (line search or curvature
                failure).
        """
        if config is None:
            config = DEFAULT_FIT_CONFIG
        objective = ArmaLikelihood(x, self.p, self.q, self.d, include_mean=self.include_mean)
        n = len(objective.y)
        if n <= self.p + self.d + self.q:
            raise ValueError(
                f"Need more than p+d+q={self.p + self.d + self.q} observations, got {n}"
            )

        if start_params is None:
            x0 = np.zeros(objective.n_params)
        else:
            start_params = np.asarray(start_params, dtype=float).ravel()
            if start_params.size != objective.n_params:
                raise ValueError(
                    f"start_params must have length {objective.n_params}, got {start_params.size}"
                )
            x0 = objective.parameters(start_params[: self.p], start_params[self.p :])

        # likelihood curvature grows linearly with n
        h0 = np.eye(objective.n_params) / n
        opt = bfgs(objective, x0, config=config, initial_inverse_hessian=h0)

        phi, theta = objective.coefficients(opt.x)
        filtered = objective.filter(opt.x)
        loglike = filtered.loglike()
        nobs = filtered.nobs
        k = self.n_params
        aic = -2.0 * loglike + 2.0 * k
        bic = -2.0 * loglike + np.log(nobs) * k

        self.fit_result = FitResult(
            ar=phi,
            ma=theta,
            mean=objective.mean,
            stderr=self._standard_errors(objective, phi, theta),
            sigma2=filtered.sigma2,
            loglike=loglike,
            aic=aic,
            bic=bic,
            nobs=nobs,
            success=opt.success,
            message=opt.message,
            optimizer=opt,
        )
        self._filtered = filtered

        if opt.success:
            logger.info(
                "%r: loglike=%.4f sigma2=%.4g after %d iterations",
                self,
                loglike,
                filtered.sigma2,
                opt.nit,
            )
        else:
            logger.warning("%r did not converge: %s", self, opt.message)
        return self.fit_result

    def _standard_errors(
        self, objective: ArmaLikelihood, phi: np.ndarray, theta: np.ndarray
    ) -> Optional[np.ndarray]:
        if objective.n_params == 0:
            return np.array([])
        raw = ArmaLikelihood(
            objective.y, self.p, self.q, self.d, include_mean=self.include_mean, transform=False
        )
        try:
            hess = approx_hessian(raw.evaluate, np.concatenate([phi, theta]))
        except ValueError as err:
            logger.debug("Numerical Hessian unavailable: %s", err)
            return None
        if not is_pos_def(hess):
            logger.debug("Numerical Hessian is not positive definite; no standard errors")
            return None
        return np.sqrt(np.diag(np.linalg.inv(hess)))

    @property
    def state_space(self) -> StateSpaceARMA:
        """State-space system of the fitted model."""
        result = self._require_fit()
        return build_state_space(result.ar, result.ma, self.d)

    @property
    def residuals(self) -> np.ndarray:
        """Standardized innovations e_t / sqrt(F_t) of the fitted model."""
        self._require_fit()
        return self._filtered.standardized_residuals

    def forecast(self, steps: int, alpha: float = 0.05) -> Tuple[np.ndarray, np.ndarray]:
        """Generate forecasts and prediction intervals.

        Args:
            steps: Number of steps ahead to forecast, >= 1.
            alpha: Significance level of the intervals (default 0.05).

        Returns:
            Tuple of (forecast, conf_int) where:
            - forecast: Point forecasts on the original scale, shape (steps,).
            - conf_int: Lower and upper bounds, shape (2, steps).

        Raises:
            RuntimeError: If the model has not been fitted.
        """
        if not 0 < alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        result = self._require_fit()
        mean, var = kalman_forecast(
            self.state_space, self._filtered.state, self._filtered.covariance, steps
        )
        forecast = mean + result.mean
        se = np.sqrt(result.sigma2 * var)
        z = stats.norm.ppf(1.0 - alpha / 2.0)
        conf_int = np.vstack([forecast - z * se, forecast + z * se])
        return forecast, conf_int

    def _require_fit(self) -> FitResult:
        if self.fit_result is None or self._filtered is None:
            raise RuntimeError("Model must be fitted before use")
        return self.fit_result


__all__ = ["ARIMA", "DEFAULT_FIT_CONFIG", "FitResult"]
