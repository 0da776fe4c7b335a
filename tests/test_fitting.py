"""Tests for nonlinear least-squares fitting."""

import numpy as np
import pytest

from growthcast.config import GrowthcastConfig
from growthcast.core.curves import exponential, gompertz, logistic, richards
from growthcast.core.fitting import FittingConfig, ModelFitSettings, NonlinearFitter
from growthcast.core.models import (
    EXPONENTIAL,
    GOMPERTZ,
    LOGISTIC,
    RICHARDS,
    FailureReason,
    ModelKind,
)
from growthcast.data.series import TimeSeries


class TestParameterRecovery:
    """Noise-free series recover the generating parameters."""

    def test_exponential(self):
        x = np.arange(1, 31, dtype=float)
        series = TimeSeries.from_counts(exponential(x, 2.0, 0.1))
        result = NonlinearFitter().fit_model(EXPONENTIAL, series)
        assert result.converged
        assert result.theta == pytest.approx([2.0, 0.1], rel=1e-4)

    def test_logistic(self):
        x = np.arange(1, 41, dtype=float)
        series = TimeSeries.from_counts(logistic(x, 1000.0, 15.0, 4.0))
        result = NonlinearFitter().fit_model(LOGISTIC, series)
        assert result.converged
        assert result.theta == pytest.approx([1000.0, 15.0, 4.0], rel=1e-4)

    def test_gompertz(self):
        """Seeded with an asymptote above the plateau."""
        x = np.arange(1, 61, dtype=float)
        series = TimeSeries.from_counts(gompertz(x, 1000.0, 5.0, 0.1))
        result = NonlinearFitter().fit_model(GOMPERTZ, series, asymptote=1050.0)
        assert result.converged
        assert result.theta == pytest.approx([1000.0, 5.0, 0.1], rel=1e-4)

    def test_richards(self):
        x = np.arange(1, 61, dtype=float)
        series = TimeSeries.from_counts(richards(x, 1000.0, 0.1, 2.0))
        fitter = NonlinearFitter()
        theta0 = RICHARDS.start_values(series.x, series.y, asymptote=1050.0)
        result = fitter.fit(RICHARDS, series, theta0, max_iter=2000, tolerance=1e-10)
        assert result.converged
        assert result.theta == pytest.approx([1000.0, 0.1, 2.0], rel=1e-3)

    def test_gompertz_plateau_has_no_default_start(self):
        """A flat tail above the logistic asymptote leaves Gompertz without a start."""
        x = np.arange(1, 61, dtype=float)
        series = TimeSeries.from_counts(gompertz(x, 1000.0, 5.0, 0.1))
        outcomes = NonlinearFitter().fit_models(series)

        assert not outcomes[ModelKind.GOMPERTZ].converged
        assert outcomes[ModelKind.GOMPERTZ].reason == FailureReason.START_VALUE_UNDEFINED
        assert outcomes[ModelKind.RICHARDS].converged


class TestDoublingScenario:
    """y = 1, 2, 4, 8, 16, 32 on days 1..6."""

    def test_exponential_rate_is_log2(self, doubling_series):
        result = NonlinearFitter().fit_model(EXPONENTIAL, doubling_series)
        assert result.converged
        assert result.theta[1] == pytest.approx(np.log(2.0), rel=1e-4)

    def test_forecast_day_7(self, doubling_series):
        result = NonlinearFitter().fit_model(EXPONENTIAL, doubling_series)
        assert result.predict(7)[0] == pytest.approx(64.0, rel=1e-3)


class TestFitFailures:
    """Failures come back as FitFailure, never as exceptions."""

    def test_insufficient_data(self):
        series = TimeSeries.from_counts([1.0, 5.0, 9.0])
        result = NonlinearFitter().fit(LOGISTIC, series, [10.0, 2.0, 1.0])
        assert not result.converged
        assert result.reason is FailureReason.INSUFFICIENT_DATA

    def test_invalid_start_values(self):
        series = TimeSeries.from_counts([1.0, 2.0, 4.0, 8.0, 16.0])
        result = NonlinearFitter().fit(EXPONENTIAL, series, [np.nan, 0.5])
        assert not result.converged
        assert result.reason is FailureReason.START_VALUE_UNDEFINED

    def test_non_convergent_carries_best_theta(self, noisy_logistic_series):
        result = NonlinearFitter().fit(
            LOGISTIC, noisy_logistic_series, [500.0, 5.0, 1.0], max_iter=1,
        )
        assert not result.converged
        assert result.reason is FailureReason.NON_CONVERGENT
        assert result.theta is not None
        assert len(result.theta) == 3

    def test_gompertz_start_failure_surfaced(self):
        """An asymptote below the data gives START_VALUE_UNDEFINED, not NaN."""
        x = np.arange(1, 15, dtype=float)
        series = TimeSeries.from_counts(exponential(x, 1.0, 0.3))
        result = NonlinearFitter().fit_model(GOMPERTZ, series, asymptote=float(series.y.max()) * 0.5)
        assert not result.converged
        assert result.reason is FailureReason.START_VALUE_UNDEFINED
        assert "asymptote" in result.message

    def test_failure_logged(self, caplog):
        x = np.arange(1, 15, dtype=float)
        series = TimeSeries.from_counts(exponential(x, 1.0, 0.3))
        with caplog.at_level("WARNING", logger="growthcast.core.fitting"):
            NonlinearFitter().fit_model(GOMPERTZ, series, asymptote=1.0)
        assert "gompertz" in caplog.text


class TestFitModels:
    """Tests for fitting the whole catalog."""

    def test_fits_all_models_in_order(self, logistic_series_30):
        outcomes = NonlinearFitter().fit_models(logistic_series_30)
        assert list(outcomes) == [
            ModelKind.LOGISTIC,
            ModelKind.EXPONENTIAL,
            ModelKind.GOMPERTZ,
            ModelKind.RICHARDS,
        ]

    def test_subset(self, logistic_series_30):
        outcomes = NonlinearFitter().fit_models(logistic_series_30, models=["exponential"])
        assert list(outcomes) == [ModelKind.EXPONENTIAL]

    def test_gompertz_uses_logistic_asymptote(self, logistic_series_30):
        """Gompertz start is seeded from the fitted logistic asymptote."""
        outcomes = NonlinearFitter().fit_models(logistic_series_30, models=["logistic", "gompertz"])
        logistic_asym = outcomes[ModelKind.LOGISTIC].theta[0]
        gompertz = outcomes[ModelKind.GOMPERTZ]
        if not gompertz.converged:
            assert gompertz.reason in (
                FailureReason.START_VALUE_UNDEFINED,
                FailureReason.NON_CONVERGENT,
            )
        else:
            assert gompertz.theta[0] == pytest.approx(logistic_asym, rel=0.2)


class TestFittingConfig:
    """Tests for FittingConfig."""

    def test_richards_defaults_looser(self):
        config = FittingConfig()
        assert config.settings_for(RICHARDS) == ModelFitSettings(max_iter=200, tolerance=1e-5)
        assert config.settings_for(LOGISTIC) == ModelFitSettings(max_iter=1000, tolerance=1e-8)

    def test_from_growthcast_config(self):
        gc = GrowthcastConfig()
        gc.gompertz.enabled = False
        gc.logistic.max_iter = 50
        gc.richards_start.method = "Powell"

        config = FittingConfig.from_growthcast_config(gc)
        assert ModelKind.GOMPERTZ not in config.models
        assert config.settings_for(ModelKind.LOGISTIC).max_iter == 50
        assert config.richards_start.method == "Powell"
