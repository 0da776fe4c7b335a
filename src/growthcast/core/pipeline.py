"""Single-series forecast pipeline.

Wires the core together for one region:

    TimeSeries -> input validation -> fit every enabled model (logistic
    first) -> score and compare converged fits -> bootstrap intervals per
    converged fit -> aggregate prediction tables

Modeling failures never raise; they are collected as validation issues
on the report.
"""

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from ..config import GrowthcastConfig
from ..validation import FittingValidator, InputValidator, ValidationResult
from .bootstrap import BootstrapConfig, BootstrapInterval, MovingBlockBootstrap
from .fitting import FittingConfig, NonlinearFitter
from .models import FitFailure, FitOutcome, FittedModel
from .prediction import PredictionAggregator
from .selection import ModelComparison, SelectionScore, compare_models, score

if TYPE_CHECKING:
    import threading

    from ..data.series import TimeSeries

logger = logging.getLogger(__name__)


@dataclass
class ForecastReport:
    """Everything produced for one series.

    Attributes:
        series: Input series
        outcomes: Model name -> FittedModel or FitFailure, in fit order
        scores: Model name -> SelectionScore for converged fits
        comparison: Per-criterion winners and win counts (None if no fit
            converged)
        intervals: Model name -> BootstrapInterval
        horizon: Forecast horizon in days
        validation: Input and modeling issues
        skipped: True if input validation errors prevented fitting
        comparison_table: Model comparison DataFrame
        point_forecast: Point forecasts, one row per x
        interval_table: fit/lwr/upr per model for future x
        next_day: One row per model at the first unobserved day
        predictions: Long table, one row per (model, x)
    """
    series: "TimeSeries"
    outcomes: dict[str, FitOutcome] = field(default_factory=dict)
    scores: dict[str, SelectionScore] = field(default_factory=dict)
    comparison: ModelComparison | None = None
    intervals: dict[str, BootstrapInterval] = field(default_factory=dict)
    horizon: int = 7
    validation: ValidationResult = field(default_factory=ValidationResult)
    skipped: bool = False
    comparison_table: pd.DataFrame = field(default_factory=pd.DataFrame)
    point_forecast: pd.DataFrame = field(default_factory=pd.DataFrame)
    interval_table: pd.DataFrame = field(default_factory=pd.DataFrame)
    next_day: pd.DataFrame = field(default_factory=pd.DataFrame)
    predictions: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def name(self) -> str:
        return self.series.name

    @property
    def fits(self) -> dict[str, FittedModel]:
        """Converged fits."""
        return {k: v for k, v in self.outcomes.items() if v.converged}

    @property
    def failures(self) -> dict[str, FitFailure]:
        """Failed fits."""
        return {k: v for k, v in self.outcomes.items() if not v.converged}

    @property
    def tables(self) -> dict[str, pd.DataFrame]:
        """Output tables keyed by name."""
        return {
            "comparison": self.comparison_table,
            "point_forecast": self.point_forecast,
            "intervals": self.interval_table,
            "next_day": self.next_day,
            "predictions": self.predictions,
        }

    def summary(self) -> dict:
        """Return summary dictionary of the run."""
        return {
            "series": self.name,
            "n": self.series.n,
            "first_date": self.series.first_date.isoformat() if self.series.first_date else None,
            "last_date": self.series.last_date.isoformat() if self.series.last_date else None,
            "horizon": self.horizon,
            "skipped": self.skipped,
            "models": {name: outcome.summary() for name, outcome in self.outcomes.items()},
            "scores": {name: s.to_dict() for name, s in self.scores.items()},
            "winners": dict(self.comparison.winners) if self.comparison else {},
            "wins": dict(self.comparison.wins) if self.comparison else {},
            "intervals": {name: i.summary() for name, i in self.intervals.items()},
            "issues": [issue.to_dict() for issue in self.validation.issues],
        }


class GrowthForecaster:
    """Runs the full fit, select, bootstrap, aggregate sequence for a series."""

    def __init__(self, config: GrowthcastConfig | None = None):
        """Initialize forecaster.

        Args:
            config: Configuration, uses defaults if None
        """
        self.config = config or GrowthcastConfig()
        self.fitter = NonlinearFitter(FittingConfig.from_growthcast_config(self.config))
        self.input_validator = InputValidator(min_points=self.config.forecast.min_points)
        self.fitting_validator = FittingValidator(min_r_squared=self.config.selection.min_r_squared)

    def run(
        self,
        series: "TimeSeries",
        horizon: int | None = None,
        rng: np.random.Generator | int | None = None,
        cancel_event: "threading.Event | None" = None,
    ) -> ForecastReport:
        """Forecast one series.

        Args:
            series: Cumulative count series
            horizon: Days past the last observation (config default if None)
            rng: Generator or seed for the bootstrap (config seed if None)
            cancel_event: Optional event that stops bootstrap loops early

        Returns:
            ForecastReport

        Raises:
            ValueError: If the series is empty
        """
        if series.n == 0:
            raise ValueError(f"Series '{series.name}' is empty")

        horizon = horizon if horizon is not None else self.config.forecast.horizon
        report = ForecastReport(series=series, horizon=horizon)
        report.validation = self.input_validator.validate(series)

        if report.validation.has_errors:
            logger.warning(
                f"{series.name}: skipped, "
                f"{report.validation.error_count} input validation error(s)"
            )
            report.skipped = True
            return report

        outcomes = self.fitter.fit_models(series)
        report.outcomes = {kind.value: outcome for kind, outcome in outcomes.items()}
        report.validation = report.validation.merge(
            self.fitting_validator.validate_outcomes(report.outcomes.values(), series.name)
        )

        fits = report.fits
        if not fits:
            logger.warning(f"{series.name}: no model converged")
            return report

        report.scores = {name: score(f) for name, f in fits.items()}
        report.comparison = compare_models(report.scores)
        report.comparison_table = report.comparison.to_frame(self.config.selection.grade_thresholds)
        report.validation = report.validation.merge(
            self.fitting_validator.validate_scores(report.scores.values(), series.name)
        )

        if self.config.bootstrap.enabled:
            report.intervals = self._bootstrap(series, fits, horizon, rng, cancel_event)
            report.validation = report.validation.merge(
                self.fitting_validator.validate_intervals(report.intervals.values(), series.name)
            )

        aggregator = PredictionAggregator(series, fits, report.intervals, horizon=horizon)
        report.point_forecast = aggregator.point_forecast_table()
        report.interval_table = aggregator.interval_table()
        report.next_day = aggregator.next_day_table()
        report.predictions = aggregator.to_frame()

        winners = ", ".join(f"{c}={w}" for c, w in report.comparison.winners.items())
        logger.info(f"{series.name}: {len(fits)}/{len(report.outcomes)} models converged ({winners})")
        return report

    def _bootstrap(
        self,
        series: "TimeSeries",
        fits: dict[str, FittedModel],
        horizon: int,
        rng,
        cancel_event,
    ) -> dict[str, BootstrapInterval]:
        """Bootstrap intervals for each converged fit, sharing one generator."""
        mbb = MovingBlockBootstrap(BootstrapConfig.from_growthcast_config(self.config), self.fitter)
        rng = np.random.default_rng(rng if rng is not None else self.config.bootstrap.seed)
        future_x = series.forecast_x(horizon)

        intervals = {}
        for name, fitted in fits.items():
            logger.debug(f"{series.name}: bootstrapping {name}")
            intervals[name] = mbb.predict_interval(
                fitted, series, future_x, rng=rng, cancel_event=cancel_event,
            )
        return intervals
