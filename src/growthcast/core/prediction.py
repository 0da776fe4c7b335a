"""Aggregation of point forecasts and bootstrap intervals across models.

Produces the output tables of a forecast run:
- long table: one row per (model, x) with date, fit, lwr, upr
- point-forecast table: one row per x, one column per model
- interval table: one row per future x, fit/lwr/upr per model
- next-day table: one row per model at the first unobserved day
"""

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Iterable

import numpy as np
import pandas as pd

from .bootstrap import BootstrapInterval
from .models import FittedModel

if TYPE_CHECKING:
    from ..data.series import TimeSeries


@dataclass(frozen=True)
class Prediction:
    """Point forecast and interval for one model at one x.

    Attributes:
        model: Model name
        x: Day index
        date: Calendar date of x
        fit: Point forecast f(x; theta_hat)
        lwr: Lower interval bound (NaN without an interval)
        upr: Upper interval bound (NaN without an interval)
    """
    model: str
    x: int
    date: date
    fit: float
    lwr: float = float("nan")
    upr: float = float("nan")

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "x": self.x,
            "date": self.date.isoformat(),
            "fit": self.fit,
            "lwr": self.lwr,
            "upr": self.upr,
        }


class PredictionAggregator:
    """Merges point forecasts and intervals of several fitted models."""

    def __init__(
        self,
        series: "TimeSeries",
        fits: dict[str, FittedModel] | Iterable[FittedModel],
        intervals: dict[str, BootstrapInterval] | Iterable[BootstrapInterval] | None = None,
        horizon: int = 7,
    ):
        """Initialize aggregator.

        Args:
            series: Observed series (supplies dates and the last observed x)
            fits: Converged fits, keyed by model name or as a list
            intervals: Bootstrap intervals, keyed by model name or as a list
            horizon: Number of days past the last observation to forecast
        """
        if not isinstance(fits, dict):
            fits = {f.name: f for f in fits}
        if intervals is None:
            intervals = {}
        elif not isinstance(intervals, dict):
            intervals = {i.model: i for i in intervals}

        self.series = series
        self.fits = {name: f for name, f in fits.items() if f.converged}
        self.intervals = intervals
        self.horizon = horizon

    @property
    def future_x(self) -> np.ndarray:
        """Day indices beyond the observed range."""
        return self.series.forecast_x(self.horizon)

    @property
    def next_x(self) -> int:
        """First unobserved day index."""
        return self.series.last_x + 1

    def _bounds(self, model: str, x: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Interval bounds of a model at x, NaN where no interval exists."""
        lwr = np.full(len(x), np.nan)
        upr = np.full(len(x), np.nan)
        interval = self.intervals.get(model)
        if interval is None or len(interval.future_x) == 0:
            return lwr, upr

        lookup = {int(fx): i for i, fx in enumerate(interval.future_x)}
        for j, xj in enumerate(x):
            i = lookup.get(int(xj))
            if i is not None:
                lwr[j] = interval.lwr[i]
                upr[j] = interval.upr[i]
        return lwr, upr

    def predictions(self, x=None) -> list[Prediction]:
        """Predictions for every converged model at x.

        Args:
            x: Day indices (default: the forecast horizon)

        Returns:
            List of Prediction, ordered by model then x
        """
        x = self.future_x if x is None else np.atleast_1d(np.asarray(x, dtype=float))
        dates = self.series.date_for(x)

        rows = []
        for name, fitted in self.fits.items():
            fit = fitted.predict(x)
            lwr, upr = self._bounds(name, x)
            for j in range(len(x)):
                rows.append(Prediction(
                    model=name,
                    x=int(x[j]),
                    date=pd.Timestamp(dates[j]).date(),
                    fit=float(fit[j]),
                    lwr=float(lwr[j]),
                    upr=float(upr[j]),
                ))
        return rows

    def to_frame(self, x=None) -> pd.DataFrame:
        """Long table: one row per (model, x) with date, fit, lwr, upr."""
        columns = ["model", "x", "date", "fit", "lwr", "upr"]
        rows = [
            {
                "model": p.model,
                "x": p.x,
                "date": pd.Timestamp(p.date),
                "fit": p.fit,
                "lwr": p.lwr,
                "upr": p.upr,
            }
            for p in self.predictions(x)
        ]
        return pd.DataFrame(rows, columns=columns)

    def point_forecast_table(self, include_observed: bool = True) -> pd.DataFrame:
        """Point forecasts, one row per x and one column per model.

        Args:
            include_observed: Also include the observed range, with the
                observed counts in an "observed" column

        Returns:
            DataFrame indexed by x with a date column
        """
        if include_observed:
            x = np.concatenate([self.series.x, self.future_x])
        else:
            x = self.future_x

        table = pd.DataFrame({"x": x.astype(int), "date": pd.to_datetime(self.series.date_for(x))})
        if include_observed:
            observed = np.full(len(x), np.nan)
            observed[:self.series.n] = self.series.y
            table["observed"] = observed
        for name, fitted in self.fits.items():
            table[name] = fitted.predict(x)
        return table.set_index("x")

    def interval_table(self) -> pd.DataFrame:
        """Intervals for x beyond the observed range.

        Returns:
            DataFrame indexed by x with a date column and {model}_fit,
            {model}_lwr, {model}_upr columns per converged model
        """
        x = self.future_x
        table = pd.DataFrame({"x": x.astype(int), "date": pd.to_datetime(self.series.date_for(x))})
        for name, fitted in self.fits.items():
            lwr, upr = self._bounds(name, x)
            table[f"{name}_fit"] = fitted.predict(x)
            table[f"{name}_lwr"] = lwr
            table[f"{name}_upr"] = upr
        return table.set_index("x")

    def next_day_table(self) -> pd.DataFrame:
        """Compact summary at the first unobserved day, one row per model."""
        frame = self.to_frame([self.next_x])
        return frame.set_index("model")
