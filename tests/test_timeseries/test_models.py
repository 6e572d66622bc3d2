"""Tests for the ARIMA model."""

from __future__ import annotations

import numpy as np
import pytest

from armafit.optimize import BFGSConfig
from armafit.timeseries import ARIMA, FitResult


class TestARIMAFit:
    """Tests for maximum-likelihood fitting."""

    def test_ar1_recovers_coefficient(self, arma_sample):
        y = arma_sample(500, phi=[0.7])
        model = ARIMA(p=1)
        res = model.fit(y)

        assert isinstance(res, FitResult)
        assert res.success
        assert res.ar.shape == (1,)
        assert res.ma.shape == (0,)
        assert abs(res.ar[0] - 0.7) < 0.1
        assert abs(res.sigma2 - 1.0) < 0.2
        assert res.nobs == 500

    def test_ar1_standard_error(self, arma_sample):
        y = arma_sample(500, phi=[0.7])
        res = ARIMA(p=1).fit(y)
        expected = np.sqrt((1 - res.ar[0] ** 2) / 500)
        assert res.stderr is not None
        assert res.stderr[0] == pytest.approx(expected, rel=0.3)

    def test_arma11_recovers_coefficients(self, arma_sample):
        y = arma_sample(800, phi=[0.6], theta=[0.3])
        res = ARIMA(p=1, q=1).fit(y)
        assert res.success
        assert abs(res.ar[0] - 0.6) < 0.15
        assert abs(res.ma[0] - 0.3) < 0.15
        assert np.array_equal(res.params, np.concatenate([res.ar, res.ma]))

    def test_ma1_recovers_coefficient(self, arma_sample):
        y = arma_sample(600, theta=[0.5])
        res = ARIMA(p=0, q=1).fit(y)
        assert abs(res.ma[0] - 0.5) < 0.15

    def test_white_noise_variance(self, rng):
        y = rng.normal(loc=3.0, scale=2.0, size=200)
        res = ARIMA(p=0).fit(y)
        assert res.success
        assert res.mean == pytest.approx(np.mean(y))
        assert res.sigma2 == pytest.approx(np.var(y))
        assert res.params.shape == (0,)

    def test_information_criteria(self, arma_sample):
        y = arma_sample(300, phi=[0.5])
        model = ARIMA(p=1)
        res = model.fit(y)
        k = 3  # phi, sigma2, mean
        assert model.n_params == k
        assert res.aic == pytest.approx(-2 * res.loglike + 2 * k)
        assert res.bic == pytest.approx(-2 * res.loglike + np.log(res.nobs) * k)

    def test_aic_prefers_true_order(self, arma_sample):
        y = arma_sample(400, phi=[0.6, -0.3])
        aic1 = ARIMA(p=1).fit(y).aic
        aic2 = ARIMA(p=2).fit(y).aic
        assert aic2 < aic1

    def test_arima_110(self, arma_sample):
        x = np.cumsum(arma_sample(400, phi=[0.5]))
        model = ARIMA(p=1, d=1)
        res = model.fit(x)
        assert res.success
        assert abs(res.ar[0] - 0.5) < 0.15
        assert res.mean == 0.0
        # the two diffuse states leave the first two observations out
        assert res.nobs == 398
        assert model.n_params == 2

    def test_start_params(self, arma_sample):
        y = arma_sample(300, phi=[0.5], theta=[0.2])
        res = ARIMA(p=1, q=1).fit(y, start_params=[0.4, 0.1])
        assert res.success
        assert abs(res.ar[0] - 0.5) < 0.2

    def test_custom_config(self, arma_sample):
        y = arma_sample(300, phi=[0.5])
        res = ARIMA(p=1).fit(y, config=BFGSConfig(max_iterations=1))
        assert not res.success
        assert res.optimizer.nit == 1
        assert res.message == "Maximum iterations reached."

    def test_invalid_orders(self):
        with pytest.raises(ValueError, match="p must be"):
            ARIMA(p=-1)
        with pytest.raises(ValueError, match="d must be"):
            ARIMA(p=1, d=-1)
        with pytest.raises(ValueError, match="q must be"):
            ARIMA(p=1, q=-2)

    def test_invalid_start_params(self, arma_sample):
        y = arma_sample(100, phi=[0.5])
        with pytest.raises(ValueError, match="start_params"):
            ARIMA(p=1, q=1).fit(y, start_params=[0.1])
        with pytest.raises(ValueError, match="not stationary"):
            ARIMA(p=1).fit(y, start_params=[1.5])

    def test_too_few_observations(self):
        with pytest.raises(ValueError, match="observations"):
            ARIMA(p=2, q=1).fit([1.0, 2.0, 3.0])

    def test_repr(self):
        assert repr(ARIMA(p=2, d=1, q=1)) == "ARIMA(p=2, d=1, q=1)"


class TestARIMAForecast:
    """Tests for forecasting from a fitted model."""

    def test_forecast_shapes(self, arma_sample):
        y = arma_sample(300, phi=[0.7])
        model = ARIMA(p=1)
        model.fit(y)
        forecast, ci = model.forecast(steps=10)

        assert forecast.shape == (10,)
        assert ci.shape == (2, 10)
        assert np.all(ci[0] < forecast)
        assert np.all(forecast < ci[1])
        # intervals widen with the horizon
        assert np.all(np.diff(ci[1] - ci[0]) > 0)

    def test_forecast_reverts_to_mean(self, arma_sample):
        y = arma_sample(300, phi=[0.5]) + 10.0
        model = ARIMA(p=1)
        res = model.fit(y)
        forecast, _ = model.forecast(steps=60)
        assert forecast[-1] == pytest.approx(res.mean, abs=1e-6)

    def test_first_forecast_interval(self, arma_sample):
        y = arma_sample(300, phi=[0.6])
        model = ARIMA(p=1)
        res = model.fit(y)
        forecast, ci = model.forecast(steps=1, alpha=0.1)
        expected = res.mean + res.ar[0] * (y[-1] - res.mean)
        assert forecast[0] == pytest.approx(expected)
        assert ci[1, 0] - forecast[0] == pytest.approx(1.6448536269514722 * np.sqrt(res.sigma2))

    def test_integrated_forecast_follows_level(self, rng):
        x = np.cumsum(rng.normal(size=200)) + 50.0
        model = ARIMA(p=0, d=1)
        model.fit(x)
        forecast, ci = model.forecast(steps=5)
        assert np.allclose(forecast, x[-1])
        assert np.all(np.diff(ci[1] - ci[0]) > 0)

    def test_residuals(self, arma_sample):
        y = arma_sample(200, phi=[0.5])
        model = ARIMA(p=1)
        res = model.fit(y)
        assert model.residuals.shape == (res.nobs,)
        assert abs(np.mean(model.residuals)) < 0.2

    def test_use_before_fit_raises(self):
        model = ARIMA(p=1)
        with pytest.raises(RuntimeError, match="fitted"):
            model.forecast(steps=3)
        with pytest.raises(RuntimeError, match="fitted"):
            model.residuals

    def test_invalid_alpha(self, arma_sample):
        model = ARIMA(p=1)
        model.fit(arma_sample(100, phi=[0.5]))
        with pytest.raises(ValueError, match="alpha"):
            model.forecast(steps=2, alpha=1.5)
