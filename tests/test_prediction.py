"""Tests for prediction aggregation tables."""

from datetime import date

import numpy as np
import pytest

from growthcast.core.bootstrap import BootstrapInterval
from growthcast.core.models import (
    EXPONENTIAL,
    GOMPERTZ,
    FailureReason,
    FitFailure,
    FittedModel,
)
from growthcast.core.prediction import Prediction, PredictionAggregator


@pytest.fixture
def exp_fit(doubling_series):
    return FittedModel(
        model=EXPONENTIAL, theta=[0.5, np.log(2.0)],
        x=doubling_series.x, y=doubling_series.y,
    )


@pytest.fixture
def exp_interval():
    return BootstrapInterval(
        model="exponential",
        future_x=np.array([7.0, 8.0]),
        lwr=np.array([60.0, 120.0]),
        upr=np.array([70.0, 140.0]),
        confidence=0.95,
        block_length=2,
        requested=100,
        achieved=100,
    )


class TestPredictions:
    """Tests for the long prediction table."""

    def test_horizon_starts_after_last_observation(self, doubling_series, exp_fit):
        agg = PredictionAggregator(doubling_series, [exp_fit], horizon=3)
        assert agg.future_x.tolist() == [7.0, 8.0, 9.0]
        assert agg.next_x == 7

    def test_dates_extend_series(self, doubling_series, exp_fit):
        agg = PredictionAggregator(doubling_series, [exp_fit], horizon=2)
        preds = agg.predictions()
        assert [p.date for p in preds] == [date(2020, 1, 7), date(2020, 1, 8)]
        assert preds[0].fit == pytest.approx(64.0)

    def test_interval_joined_by_x(self, doubling_series, exp_fit, exp_interval):
        agg = PredictionAggregator(doubling_series, [exp_fit], [exp_interval], horizon=3)
        frame = agg.to_frame()
        assert list(frame.columns) == ["model", "x", "date", "fit", "lwr", "upr"]
        assert frame["lwr"].tolist()[:2] == [60.0, 120.0]
        assert np.isnan(frame["lwr"].iloc[2])

    def test_no_interval_gives_nan_bounds(self, doubling_series, exp_fit):
        preds = PredictionAggregator(doubling_series, [exp_fit]).predictions()
        assert all(np.isnan(p.lwr) and np.isnan(p.upr) for p in preds)

    def test_failed_fits_excluded(self, doubling_series, exp_fit):
        failure = FitFailure(model=GOMPERTZ, reason=FailureReason.NON_CONVERGENT, message="x")
        agg = PredictionAggregator(
            doubling_series, {"exponential": exp_fit, "gompertz": failure},
        )
        assert list(agg.fits) == ["exponential"]
        assert set(agg.to_frame()["model"]) == {"exponential"}

    def test_prediction_to_dict(self):
        p = Prediction(model="logistic", x=31, date=date(2020, 4, 1), fit=10.0)
        d = p.to_dict()
        assert d["date"] == "2020-04-01"
        assert np.isnan(d["lwr"])


class TestTables:
    """Tests for the wide tables."""

    def test_point_forecast_table(self, doubling_series, exp_fit):
        table = PredictionAggregator(doubling_series, [exp_fit], horizon=2).point_forecast_table()
        assert table.index.tolist() == list(range(1, 9))
        assert table.loc[6, "observed"] == 32.0
        assert np.isnan(table.loc[7, "observed"])
        assert table.loc[7, "exponential"] == pytest.approx(64.0)

    def test_point_forecast_future_only(self, doubling_series, exp_fit):
        table = PredictionAggregator(doubling_series, [exp_fit], horizon=2).point_forecast_table(
            include_observed=False,
        )
        assert table.index.tolist() == [7, 8]
        assert "observed" not in table.columns

    def test_interval_table(self, doubling_series, exp_fit, exp_interval):
        table = PredictionAggregator(
            doubling_series, [exp_fit], [exp_interval], horizon=2,
        ).interval_table()
        assert list(table.columns) == ["date", "exponential_fit", "exponential_lwr", "exponential_upr"]
        assert table.loc[8, "exponential_upr"] == 140.0

    def test_next_day_table(self, doubling_series, exp_fit, exp_interval):
        table = PredictionAggregator(doubling_series, [exp_fit], [exp_interval]).next_day_table()
        assert table.index.tolist() == ["exponential"]
        row = table.loc["exponential"]
        assert row["x"] == 7
        assert row["fit"] == pytest.approx(64.0)
        assert row["lwr"] == 60.0
        assert row["upr"] == 70.0
