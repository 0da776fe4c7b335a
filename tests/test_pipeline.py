"""Tests for the single-series forecast pipeline."""

import numpy as np
import pandas as pd
import pytest

from growthcast.core.curves import gompertz
from growthcast.core.pipeline import GrowthForecaster
from growthcast.data.series import TimeSeries


class TestGrowthForecaster:
    """Tests for GrowthForecaster.run."""

    def test_full_run(self, logistic_series_30, fast_config):
        report = GrowthForecaster(fast_config).run(logistic_series_30)

        assert not report.skipped
        assert list(report.outcomes) == ["logistic", "exponential", "gompertz", "richards"]
        assert "logistic" in report.fits
        assert set(report.scores) == set(report.fits)
        assert sum(report.comparison.wins.values()) == 3
        assert set(report.intervals) == set(report.fits)

        assert report.point_forecast.index.tolist() == list(range(1, 38))
        assert report.interval_table.index.tolist() == list(range(31, 38))
        assert set(report.next_day.index) == set(report.fits)
        assert (report.next_day["x"] == 31).all()
        assert len(report.predictions) == 7 * len(report.fits)

    def test_next_day_dates(self, logistic_series_30, fast_config):
        report = GrowthForecaster(fast_config).run(logistic_series_30, horizon=3)
        expected = pd.Timestamp("2020-01-31")
        assert (report.next_day["date"] == expected).all()
        assert report.interval_table.index.tolist() == [31, 32, 33]

    def test_missing_day_keeps_calendar_index(self, fast_config):
        dates = pd.date_range("2020-01-01", periods=9).delete(4)
        x = np.array([1, 2, 3, 4, 6, 7, 8, 9], dtype=float)
        series = TimeSeries(dates=dates.values, y=2.0 ** x, name="gap")
        fast_config.bootstrap.enabled = False
        report = GrowthForecaster(fast_config).run(series, horizon=1)

        assert not report.skipped
        assert report.validation.by_code("IV004")
        assert "exponential" in report.fits
        assert (report.next_day["x"] == 10).all()
        assert (report.next_day["date"] == pd.Timestamp("2020-01-10")).all()
        assert report.next_day.loc["exponential", "fit"] == pytest.approx(2.0 ** 10, rel=1e-3)

    def test_duplicate_dates_skip_series(self, fast_config):
        dates = pd.to_datetime(["2020-01-01", "2020-01-02", "2020-01-02", "2020-01-03", "2020-01-04", "2020-01-05"])
        series = TimeSeries(dates=dates.values, y=[1, 2, 2, 4, 8, 16], name="dup")
        report = GrowthForecaster(fast_config).run(series)

        assert report.skipped
        assert report.validation.by_code("IV004")[0].details["duplicate_count"] == 1

    def test_seeded_runs_identical(self, logistic_series_30, fast_config):
        forecaster = GrowthForecaster(fast_config)
        first = forecaster.run(logistic_series_30)
        second = forecaster.run(logistic_series_30)
        pd.testing.assert_frame_equal(first.interval_table, second.interval_table)

    def test_explicit_rng_overrides_seed(self, logistic_series_30, fast_config):
        forecaster = GrowthForecaster(fast_config)
        a = forecaster.run(logistic_series_30, rng=5)
        b = forecaster.run(logistic_series_30, rng=np.random.default_rng(5))
        pd.testing.assert_frame_equal(a.next_day, b.next_day)

    def test_bootstrap_disabled(self, logistic_series_30, fast_config):
        fast_config.bootstrap.enabled = False
        report = GrowthForecaster(fast_config).run(logistic_series_30)
        assert report.intervals == {}
        assert report.next_day["lwr"].isna().all()
        assert not report.next_day["fit"].isna().any()

    def test_disabled_models_not_fitted(self, logistic_series_30, fast_config):
        fast_config.richards.enabled = False
        fast_config.gompertz.enabled = False
        report = GrowthForecaster(fast_config).run(logistic_series_30)
        assert list(report.outcomes) == ["logistic", "exponential"]

    def test_negative_counts_skip_series(self, fast_config):
        series = TimeSeries.from_counts([0, 1, -3, 5, 8, 13], name="bad")
        report = GrowthForecaster(fast_config).run(series)

        assert report.skipped
        assert report.outcomes == {}
        assert report.next_day.empty
        assert report.validation.by_code("IV002")

    def test_too_short_series_skipped(self, fast_config):
        report = GrowthForecaster(fast_config).run(TimeSeries.from_counts([1, 2, 4]))
        assert report.skipped
        assert report.validation.by_code("IV001")

    def test_empty_series_raises(self, fast_config):
        with pytest.raises(ValueError, match="empty"):
            GrowthForecaster(fast_config).run(TimeSeries.from_counts([]))

    def test_failures_become_issues(self, doubling_series, fast_config):
        """Every failed model on a short series is reported as an issue."""
        report = GrowthForecaster(fast_config).run(doubling_series)

        assert "exponential" in report.fits
        failed = set(report.failures)
        flagged = {i.details["model"] for i in report.validation.issues if i.code in ("GM001", "GM002")}
        assert flagged == failed

    def test_gompertz_start_failure_reported(self, fast_config):
        x = np.arange(1, 61, dtype=float)
        series = TimeSeries.from_counts(gompertz(x, 1000.0, 5.0, 0.1), name="plateau")
        fast_config.bootstrap.enabled = False
        report = GrowthForecaster(fast_config).run(series)

        assert "gompertz" in report.failures
        issues = report.validation.by_code("GM001")
        assert [i.details["model"] for i in issues] == ["gompertz"]

    def test_summary(self, logistic_series_30, fast_config):
        fast_config.bootstrap.enabled = False
        summary = GrowthForecaster(fast_config).run(logistic_series_30).summary()
        assert summary["series"] == "logistic_30"
        assert summary["n"] == 30
        assert summary["last_date"] == "2020-01-30"
        assert set(summary["winners"]) == {"aic", "aicc", "bic"}
        assert summary["intervals"] == {}

    def test_tables(self, logistic_series_30, fast_config):
        fast_config.bootstrap.enabled = False
        report = GrowthForecaster(fast_config).run(logistic_series_30)
        assert list(report.tables) == [
            "comparison", "point_forecast", "intervals", "next_day", "predictions",
        ]
        assert "wins" in report.tables["comparison"].columns
