"""Tests for Kalman filter likelihood evaluation and forecasting."""

from __future__ import annotations

import math

import numpy as np
import pytest

from armafit.timeseries import build_state_space
from armafit.timeseries.covariance import InvalidParameterizationError
from armafit.timeseries.kalman import (
    DIFFUSE_KAPPA,
    default_initial_covariance,
    kalman_filter,
    kalman_forecast,
)


def ar1_loglike(y: np.ndarray, phi: float, sigma2: float) -> float:
    """Closed-form exact AR(1) log-likelihood."""
    n = len(y)
    ssq = y[0] ** 2 * (1 - phi**2) + np.sum((y[1:] - phi * y[:-1]) ** 2)
    return -0.5 * (n * math.log(2 * math.pi * sigma2) - math.log(1 - phi**2) + ssq / sigma2)


class TestKalmanFilter:
    """Tests for kalman_filter."""

    def test_docstring_example(self):
        res = kalman_filter(build_state_space([0.5]), [1.0, 0.5, -0.2])
        assert np.allclose(res.predictions, [0.0, 0.5, 0.25])
        assert np.allclose(res.innovations, [1.0, 0.0, -0.45])

    def test_ar1_matches_closed_form(self, arma_sample):
        phi = 0.6
        y = arma_sample(200, phi=[phi])
        res = kalman_filter(build_state_space([phi]), y)
        assert res.variances[0] == pytest.approx(1.0 / (1.0 - phi**2))
        assert np.allclose(res.variances[1:], 1.0)
        assert np.allclose(res.predictions[1:], phi * y[:-1])
        assert res.loglike(1.3) == pytest.approx(ar1_loglike(y, phi, 1.3))

    def test_concentrated_loglike_is_maximum_over_sigma2(self, arma_sample):
        phi = 0.4
        y = arma_sample(150, phi=[phi])
        res = kalman_filter(build_state_space([phi]), y)
        assert res.sigma2 == pytest.approx(res.ssq / res.nobs)
        concentrated = res.loglike()
        assert concentrated == pytest.approx(res.loglike(res.sigma2))
        for s2 in (0.5 * res.sigma2, 2.0 * res.sigma2):
            assert res.loglike(s2) < concentrated

    def test_ma1_first_variance(self):
        theta = 0.5
        res = kalman_filter(build_state_space([], [theta]), np.zeros(5))
        assert res.variances[0] == pytest.approx(1 + theta**2)
        # innovation variances decrease toward 1 for an invertible MA(1)
        assert np.all(np.diff(res.variances) <= 0)
        assert res.variances[-1] > 1.0

    def test_white_noise(self, rng):
        y = rng.normal(size=50)
        res = kalman_filter(build_state_space(), y)
        assert np.allclose(res.predictions, 0.0)
        assert np.allclose(res.variances, 1.0)
        assert res.ssq == pytest.approx(np.sum(y**2))
        assert res.sumlog == pytest.approx(0.0)

    def test_standardized_residuals(self, arma_sample):
        y = arma_sample(100, phi=[0.5], theta=[0.3])
        res = kalman_filter(build_state_space([0.5], [0.3]), y)
        assert np.allclose(res.standardized_residuals, res.innovations / np.sqrt(res.variances))

    def test_measurement_variance_added(self):
        ss = build_state_space([0.5])
        res = kalman_filter(ss, [1.0, 2.0], measurement_variance=0.25)
        assert res.variances[0] == pytest.approx(1.0 / 0.75 + 0.25)
        with pytest.raises(ValueError, match="measurement_variance"):
            kalman_filter(ss, [1.0], measurement_variance=-1.0)

    def test_initial_covariance_not_modified(self):
        ss = build_state_space([0.5], [0.3])
        P0 = np.eye(2)
        kalman_filter(ss, [1.0, 2.0, 3.0], initial_covariance=P0)
        assert np.array_equal(P0, np.eye(2))

    def test_initial_covariance_shape_checked(self):
        with pytest.raises(ValueError, match="initial_covariance"):
            kalman_filter(build_state_space([0.5]), [1.0], initial_covariance=np.eye(2))

    def test_zero_innovation_variance_rejected(self):
        ss = build_state_space()
        with pytest.raises(InvalidParameterizationError, match="not positive"):
            kalman_filter(ss, [1.0, 2.0], initial_covariance=np.zeros((1, 1)))

    def test_unit_root_rejected(self):
        with pytest.raises(InvalidParameterizationError):
            kalman_filter(build_state_space([1.0]), [1.0, 2.0])

    @pytest.mark.parametrize("y", [[], [[1.0, 2.0]], [1.0, np.nan], [np.inf]])
    def test_invalid_series(self, y):
        with pytest.raises(ValueError):
            kalman_filter(build_state_space([0.5]), y)


class TestDiffuseInitialization:
    """Tests for integrated models with a diffuse prior."""

    def test_default_covariance(self):
        ss = build_state_space([0.5], d=1)
        assert np.array_equal(default_initial_covariance(ss), DIFFUSE_KAPPA * np.eye(2))

    def test_random_walk(self, rng):
        y = np.cumsum(rng.normal(size=60))
        res = kalman_filter(build_state_space(d=1), y)
        assert not res.used[0]
        assert res.used[1:].all()
        assert res.nobs == 59
        assert np.allclose(res.innovations[1:], np.diff(y))
        assert np.allclose(res.variances[1:], 1.0)

    def test_arima_110_excludes_state_dimension(self, arma_sample):
        x = np.cumsum(arma_sample(80, phi=[0.5]))
        res = kalman_filter(build_state_space([0.5], d=1), x)
        assert not res.used[:2].any()
        assert res.used[2:].all()
        expected = x[2:] - 1.5 * x[1:-1] + 0.5 * x[:-2]
        assert np.allclose(res.innovations[2:], expected, atol=1e-4)
        assert np.allclose(res.variances[2:], 1.0, atol=1e-4)

    def test_arima_011_drops_state_dimension_not_d(self, arma_sample):
        # the diffuse prior covers the MA state too, so r = 2 observations go
        x = np.cumsum(arma_sample(60, theta=[0.4]))
        ss = build_state_space(theta=[0.4], d=1)
        assert ss.r == 2
        res = kalman_filter(ss, x)
        assert not res.used[: ss.r].any()
        assert res.used[ss.r :].all()
        assert res.nobs == len(x) - ss.r

    def test_all_diffuse_raises(self):
        with pytest.raises(ValueError, match="diffuse"):
            kalman_filter(build_state_space(d=1), [1.0])


class TestKalmanForecast:
    """Tests for kalman_forecast."""

    def test_ar1_forecast(self, arma_sample):
        phi = 0.7
        y = arma_sample(50, phi=[phi])
        ss = build_state_space([phi])
        res = kalman_filter(ss, y)
        mean, var = kalman_forecast(ss, res.state, res.covariance, 4)
        h = np.arange(1, 5)
        assert np.allclose(mean, phi**h * y[-1])
        assert np.allclose(var, np.cumsum(phi ** (2 * (h - 1))))

    def test_ma1_forecast_reverts_after_q_steps(self):
        ss = build_state_space([], [0.4])
        res = kalman_filter(ss, [0.3, -0.2, 0.5, 0.1])
        mean, var = kalman_forecast(ss, res.state, res.covariance, 3)
        assert mean[0] != 0.0
        assert np.allclose(mean[1:], 0.0)
        assert np.allclose(var[1:], 1 + 0.4**2)

    def test_invalid_steps(self):
        ss = build_state_space([0.5])
        with pytest.raises(ValueError, match="steps"):
            kalman_forecast(ss, np.zeros(1), np.eye(1), 0)
