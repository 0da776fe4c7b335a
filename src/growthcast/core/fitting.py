"""Nonlinear least-squares fitting of growth curves.

Features:
- Self-starting initial values from the growth model library
- scipy least_squares (trust region reflective) with per-model iteration
  and relative tolerance limits
- Tagged results: FittedModel on convergence, FitFailure otherwise, never
  an exception for numerical trouble
"""

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Iterable

import numpy as np
from scipy import optimize

from .models import (
    FailureReason,
    FitFailure,
    FitOutcome,
    FittedModel,
    GrowthModel,
    ModelKind,
    get_model,
)
from .start_values import RichardsStartStrategy, StartValueUndefined

if TYPE_CHECKING:
    from ..data.series import TimeSeries

logger = logging.getLogger(__name__)

# Residual substituted for non-finite predictions, relative to the data scale
_NONFINITE_PENALTY = 1e6

# Fit order: logistic first so its asymptote can seed Gompertz and Richards
FIT_ORDER = (
    ModelKind.LOGISTIC,
    ModelKind.EXPONENTIAL,
    ModelKind.GOMPERTZ,
    ModelKind.RICHARDS,
)


@dataclass
class ModelFitSettings:
    """Iteration and tolerance limits for one model.

    Attributes:
        max_iter: Maximum function evaluations for the optimizer
        tolerance: Relative tolerance for cost, step and gradient
    """
    max_iter: int = 1000
    tolerance: float = 1e-8


def _default_settings() -> dict[ModelKind, ModelFitSettings]:
    # Richards is the most prone to wandering; give up sooner with a looser tolerance
    return {
        ModelKind.EXPONENTIAL: ModelFitSettings(),
        ModelKind.LOGISTIC: ModelFitSettings(),
        ModelKind.GOMPERTZ: ModelFitSettings(),
        ModelKind.RICHARDS: ModelFitSettings(max_iter=200, tolerance=1e-5),
    }


@dataclass
class FittingConfig:
    """Configuration for growth curve fitting.

    Attributes:
        settings: Per-model iteration and tolerance limits
        richards_start: Strategy for the Richards start-value search
        method: scipy.optimize.least_squares method (default 'trf')
        models: Models to fit, in any order (fitting always follows FIT_ORDER)
    """
    settings: dict[ModelKind, ModelFitSettings] = field(default_factory=_default_settings)
    richards_start: RichardsStartStrategy = field(default_factory=RichardsStartStrategy)
    method: str = "trf"
    models: tuple[ModelKind, ...] = FIT_ORDER

    def settings_for(self, model: GrowthModel | ModelKind) -> ModelFitSettings:
        """Get fit settings for a model, falling back to defaults."""
        kind = model.kind if isinstance(model, GrowthModel) else ModelKind(model)
        return self.settings.get(kind) or _default_settings()[kind]

    @classmethod
    def from_growthcast_config(
        cls,
        config: "GrowthcastConfig",  # noqa: F821
    ) -> "FittingConfig":
        """Create FittingConfig from GrowthcastConfig.

        Args:
            config: GrowthcastConfig instance

        Returns:
            FittingConfig with per-model settings and enabled models
        """
        settings = {}
        enabled = []
        for kind in ModelKind:
            model_config = config.get_model_config(kind.value)
            settings[kind] = ModelFitSettings(
                max_iter=model_config.max_iter,
                tolerance=model_config.tolerance,
            )
            if model_config.enabled:
                enabled.append(kind)

        rs = config.richards_start
        return cls(
            settings=settings,
            richards_start=RichardsStartStrategy(
                method=rs.method,
                rate_seed=rs.rate_seed,
                shape_seed=rs.shape_seed,
                max_iter=rs.max_iter,
            ),
            models=tuple(enabled),
        )


class NonlinearFitter:
    """Fits growth curves to cumulative count series."""

    def __init__(self, config: FittingConfig | None = None):
        """Initialize fitter with configuration.

        Args:
            config: Fitting configuration, uses defaults if None
        """
        self.config = config or FittingConfig()

    def fit(
        self,
        model: GrowthModel,
        series: "TimeSeries",
        theta0,
        max_iter: int | None = None,
        tolerance: float | None = None,
    ) -> FitOutcome:
        """Fit a model to a series from a given starting point.

        Args:
            model: Growth model to fit
            series: TimeSeries with x and y
            theta0: Starting parameter vector
            max_iter: Maximum function evaluations (model default if None)
            tolerance: Relative tolerance (model default if None)

        Returns:
            FittedModel on convergence, FitFailure otherwise
        """
        return self.fit_arrays(model, series.x, series.y, theta0, max_iter, tolerance)

    def fit_arrays(
        self,
        model: GrowthModel,
        x: np.ndarray,
        y: np.ndarray,
        theta0,
        max_iter: int | None = None,
        tolerance: float | None = None,
    ) -> FitOutcome:
        """Fit a model to raw arrays. See fit()."""
        settings = self.config.settings_for(model)
        max_iter = max_iter if max_iter is not None else settings.max_iter
        tolerance = tolerance if tolerance is not None else settings.tolerance

        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        theta0 = np.asarray(theta0, dtype=float)

        if len(y) <= model.n_params:
            return FitFailure(
                model=model,
                reason=FailureReason.INSUFFICIENT_DATA,
                message=f"{len(y)} points for {model.n_params} parameters",
            )

        if theta0.shape != (model.n_params,) or not np.all(np.isfinite(theta0)):
            return FitFailure(
                model=model,
                reason=FailureReason.START_VALUE_UNDEFINED,
                message=f"Invalid start values: {theta0}",
            )

        penalty = _NONFINITE_PENALTY * max(float(np.max(np.abs(y))), 1.0)

        def residuals(theta):
            with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
                r = y - model.func(x, *theta)
            return np.where(np.isfinite(r), r, penalty)

        try:
            with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
                result = optimize.least_squares(
                    residuals,
                    theta0,
                    method=self.config.method,
                    max_nfev=max_iter,
                    ftol=tolerance,
                    xtol=tolerance,
                    gtol=tolerance,
                    x_scale="jac",
                )
        except (ValueError, np.linalg.LinAlgError) as e:
            return FitFailure(
                model=model,
                reason=FailureReason.NUMERICAL_ERROR,
                message=f"Optimizer error: {e}",
                theta=theta0,
            )

        theta = np.asarray(result.x, dtype=float)
        if not np.all(np.isfinite(theta)):
            return FitFailure(
                model=model,
                reason=FailureReason.NUMERICAL_ERROR,
                message="Optimizer returned non-finite parameters",
                theta=theta0,
            )

        if result.status <= 0:
            return FitFailure(
                model=model,
                reason=FailureReason.NON_CONVERGENT,
                message=(
                    f"No convergence after {result.nfev} evaluations "
                    f"(max_iter={max_iter}, tolerance={tolerance:g})"
                ),
                theta=theta,
            )

        if not np.all(np.isfinite(model.evaluate(theta, x))):
            return FitFailure(
                model=model,
                reason=FailureReason.NUMERICAL_ERROR,
                message="Converged parameters give non-finite fitted values",
                theta=theta,
            )

        return FittedModel(model=model, theta=theta, x=x, y=y, n_iter=int(result.nfev))

    def fit_model(
        self,
        model: GrowthModel | ModelKind | str,
        series: "TimeSeries",
        asymptote: float | None = None,
    ) -> FitOutcome:
        """Estimate start values and fit a single model.

        Args:
            model: Growth model or its kind
            series: TimeSeries to fit
            asymptote: Asymptote hint for Gompertz and Richards start values

        Returns:
            FittedModel on convergence, FitFailure otherwise
        """
        if not isinstance(model, GrowthModel):
            model = get_model(model)

        try:
            theta0 = model.start_values(
                series.x, series.y,
                asymptote=asymptote,
                richards_strategy=self.config.richards_start,
            )
        except StartValueUndefined as e:
            logger.warning(f"{model.name}: {e}")
            return FitFailure(
                model=model,
                reason=FailureReason.START_VALUE_UNDEFINED,
                message=str(e),
            )

        outcome = self.fit(model, series, theta0)
        if not outcome.converged:
            logger.warning(f"{model.name} fit failed ({outcome.reason.value}): {outcome.message}")
        else:
            logger.debug(f"{model.name} converged in {outcome.n_iter} evaluations: {outcome.params}")
        return outcome

    def fit_models(
        self,
        series: "TimeSeries",
        models: Iterable[ModelKind | str] | None = None,
    ) -> dict[ModelKind, FitOutcome]:
        """Fit several models, seeding sigmoid starts from the logistic fit.

        The logistic asymptote (fitted when the logistic model converged,
        otherwise from its start values) is used as the asymptote hint for
        Gompertz and Richards.

        Args:
            series: TimeSeries to fit
            models: Models to fit (config models if None)

        Returns:
            Dict of ModelKind -> FittedModel or FitFailure, in fit order
        """
        wanted = {ModelKind(m) for m in (models if models is not None else self.config.models)}
        outcomes: dict[ModelKind, FitOutcome] = {}
        asymptote = None

        needs_asymptote = bool(wanted & {ModelKind.GOMPERTZ, ModelKind.RICHARDS})
        logistic_outcome = None
        if ModelKind.LOGISTIC in wanted or needs_asymptote:
            logistic_outcome = self.fit_model(ModelKind.LOGISTIC, series)

        if logistic_outcome is not None and logistic_outcome.converged:
            asymptote = float(logistic_outcome.theta[0])
        elif needs_asymptote:
            try:
                asymptote = float(get_model(ModelKind.LOGISTIC).start_values(series.x, series.y)[0])
            except StartValueUndefined:
                asymptote = None

        for kind in FIT_ORDER:
            if kind not in wanted:
                continue
            if kind is ModelKind.LOGISTIC:
                outcomes[kind] = logistic_outcome
            else:
                outcomes[kind] = self.fit_model(kind, series, asymptote=asymptote)

        return outcomes
