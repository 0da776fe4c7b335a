"""Tests for growth curve forms, start values and fit result types."""

import dataclasses

import numpy as np
import pytest

from growthcast.core.curves import exponential, gompertz, logistic, richards
from growthcast.core.models import (
    EXPONENTIAL,
    GOMPERTZ,
    LOGISTIC,
    RICHARDS,
    FailureReason,
    FitFailure,
    FittedModel,
    ModelKind,
    get_model,
)
from growthcast.core.start_values import (
    StartValueUndefined,
    exponential_start,
    gompertz_start,
    logistic_start,
    richards_start,
)


class TestCurves:
    """Tests for the functional forms."""

    def test_exponential(self):
        x = np.array([0.0, 1.0, 2.0])
        assert exponential(x, 2.0, np.log(3.0)) == pytest.approx([2.0, 6.0, 18.0])

    def test_logistic_midpoint_is_half_asymptote(self):
        assert logistic(10.0, 1000.0, 10.0, 3.0) == pytest.approx(500.0)

    def test_logistic_monotone_non_decreasing(self):
        """Logistic curves never decrease for a positive asymptote."""
        x = np.linspace(0, 200, 2001)
        for scal in (0.5, 3.0, 50.0):
            y = logistic(x, 1000.0, 40.0, scal)
            assert np.all(np.diff(y) >= 0)

    def test_gompertz_limits(self):
        assert gompertz(0.0, 1000.0, 5.0, 0.1) == pytest.approx(1000.0 * np.exp(-5.0))
        assert gompertz(500.0, 1000.0, 5.0, 0.1) == pytest.approx(1000.0, rel=1e-6)

    def test_richards_reduces_to_monomolecular(self):
        """shape = 1 gives asym * (1 - exp(-k x))."""
        x = np.array([1.0, 5.0, 20.0])
        expected = 800.0 * (1.0 - np.exp(-0.2 * x))
        assert richards(x, 800.0, 0.2, 1.0) == pytest.approx(expected)

    def test_richards_negative_rate_clipped(self):
        """A negative rate clips the base instead of producing NaN."""
        y = richards(np.array([1.0, 2.0]), 100.0, -0.1, 1.5)
        assert np.all(np.isfinite(y))
        assert np.all(y == 0.0)


class TestGrowthModel:
    """Tests for the GrowthModel catalog."""

    def test_param_counts(self):
        assert EXPONENTIAL.n_params == 2
        assert LOGISTIC.n_params == 3
        assert GOMPERTZ.n_params == 3
        assert RICHARDS.n_params == 3

    def test_get_model_by_string_and_kind(self):
        assert get_model("logistic") is LOGISTIC
        assert get_model(ModelKind.RICHARDS) is RICHARDS

    def test_get_model_unknown(self):
        with pytest.raises(ValueError, match="Unknown model"):
            get_model("weibull")

    def test_evaluate_checks_parameter_count(self):
        with pytest.raises(ValueError, match="expects 3 parameters"):
            LOGISTIC.evaluate([1000.0, 10.0], [1, 2, 3])

    def test_evaluate_scalar_returns_array(self):
        y = EXPONENTIAL.evaluate([1.0, 0.0], 5)
        assert y.shape == (1,)
        assert y[0] == pytest.approx(1.0)


class TestStartValues:
    """Tests for the deterministic start-value estimators."""

    def test_exponential_start_on_doubling(self):
        x = np.arange(1, 11, dtype=float)
        y = 3.0 * 2.0 ** x
        a, r = exponential_start(x, y)
        assert r == pytest.approx(np.log(2.0), rel=0.05)
        assert a > 0

    def test_exponential_start_negative_intercept_falls_back(self):
        """A negative intercept gives a = 1."""
        x = np.arange(1, 8, dtype=float)
        y = np.exp(0.5 * x - 3.0) - 1.0
        a, _ = exponential_start(x, np.clip(y, 0, None))
        assert a == 1.0

    def test_logistic_start_recovers_exact_curve(self):
        x = np.arange(1, 41, dtype=float)
        y = logistic(x, 1000.0, 15.0, 4.0)
        asym, xmid, scal = logistic_start(x, y)
        assert asym == pytest.approx(1000.0, rel=1e-3)
        assert xmid == pytest.approx(15.0, rel=1e-3)
        assert scal == pytest.approx(4.0, rel=1e-3)

    def test_logistic_start_too_few_points(self):
        with pytest.raises(StartValueUndefined):
            logistic_start([1, 2], [1, 2])

    def test_logistic_start_all_zero(self):
        with pytest.raises(StartValueUndefined, match="no positive counts"):
            logistic_start([1, 2, 3, 4], [0, 0, 0, 0])

    def test_gompertz_start_recovers_rate(self):
        x = np.arange(1, 61, dtype=float)
        y = gompertz(x, 1000.0, 5.0, 0.1)
        asym, b2, b3 = gompertz_start(x, y, asymptote=1000.0)
        assert asym == 1000.0
        assert b2 == pytest.approx(5.0, rel=1e-6)
        assert b3 == pytest.approx(0.1, rel=1e-6)

    def test_gompertz_start_fails_at_asymptote(self):
        """Observations at or above the asymptote make the linearization undefined."""
        x = np.arange(1, 11, dtype=float)
        y = np.linspace(10, 100, 10)
        with pytest.raises(StartValueUndefined, match="at or above"):
            gompertz_start(x, y, asymptote=90.0)

    def test_start_value_undefined_is_value_error(self):
        assert issubclass(StartValueUndefined, ValueError)

    def test_richards_start_improves_on_seed(self):
        x = np.arange(1, 61, dtype=float)
        y = richards(x, 1000.0, 0.1, 2.0)
        theta = richards_start(x, y, asymptote=1050.0)
        seed_sse = np.sum((y - richards(x, 1050.0, 0.05, 1.0)) ** 2)
        start_sse = np.sum((y - richards(x, *theta)) ** 2)
        assert start_sse < seed_sse
        assert np.all(np.isfinite(theta))


class TestFitResults:
    """Tests for FittedModel and FitFailure."""

    def _fitted(self):
        x = np.arange(1, 7, dtype=float)
        y = np.array([1.0, 2.0, 4.0, 8.0, 16.0, 33.0])
        return FittedModel(model=EXPONENTIAL, theta=[0.5, np.log(2.0)], x=x, y=y)

    def test_residuals_and_rss(self):
        fm = self._fitted()
        assert fm.residuals == pytest.approx([0, 0, 0, 0, 0, 1.0], abs=1e-9)
        assert fm.rss == pytest.approx(1.0)
        assert fm.residual_variance == pytest.approx(1.0 / 6)

    def test_log_likelihood(self):
        fm = self._fitted()
        expected = -3 * (np.log(2 * np.pi) + np.log(1.0 / 6) + 1)
        assert fm.log_likelihood == pytest.approx(expected)

    def test_immutable(self):
        fm = self._fitted()
        with pytest.raises(dataclasses.FrozenInstanceError):
            fm.theta = np.array([1.0, 1.0])
        with pytest.raises(ValueError):
            fm.theta[0] = 2.0
        with pytest.raises(ValueError):
            fm.residuals[0] = 2.0

    def test_converged_flags(self):
        failure = FitFailure(model=GOMPERTZ, reason=FailureReason.NON_CONVERGENT, message="x")
        assert self._fitted().converged is True
        assert failure.converged is False

    def test_failure_summary(self):
        failure = FitFailure(
            model=GOMPERTZ,
            reason=FailureReason.START_VALUE_UNDEFINED,
            message="no start",
        )
        summary = failure.summary()
        assert summary["reason"] == "start_value_undefined"
        assert summary["converged"] is False

    def test_params(self):
        assert self._fitted().params == {"a": 0.5, "r": pytest.approx(np.log(2.0))}
