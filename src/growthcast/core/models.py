"""Growth model variants and fit result types.

The model catalog is a closed set: exponential, logistic, Gompertz and
Richards. Each GrowthModel carries its curve function, parameter names and
start-value estimator, so callers dispatch on ModelKind instead of looking
functions up by name.

Fitting produces either a FittedModel or a FitFailure. Both expose a
``converged`` flag so callers must handle the failure branch explicitly.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import numpy as np

from .curves import exponential, gompertz, logistic, richards
from .start_values import (
    RichardsStartStrategy,
    exponential_start,
    gompertz_start,
    logistic_start,
    richards_start,
)


class ModelKind(str, Enum):
    """Growth curve family."""
    EXPONENTIAL = "exponential"
    LOGISTIC = "logistic"
    GOMPERTZ = "gompertz"
    RICHARDS = "richards"


@dataclass(frozen=True)
class GrowthModel:
    """A growth curve form with its parameterization.

    Attributes:
        kind: Model family
        func: Curve function f(x, *theta)
        param_names: Names of the parameters in theta order
    """
    kind: ModelKind
    func: Callable
    param_names: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def n_params(self) -> int:
        return len(self.param_names)

    def evaluate(self, theta, x) -> np.ndarray:
        """Evaluate the curve at x.

        Args:
            theta: Parameter vector
            x: Index (scalar or array)

        Returns:
            Predicted cumulative counts as a float array
        """
        x = np.atleast_1d(np.asarray(x, dtype=float))
        theta = np.asarray(theta, dtype=float)
        if theta.shape != (self.n_params,):
            raise ValueError(
                f"{self.name} expects {self.n_params} parameters, got {theta.shape}"
            )
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            return np.asarray(self.func(x, *theta), dtype=float)

    def start_values(
        self,
        x,
        y,
        asymptote: float | None = None,
        richards_strategy: RichardsStartStrategy | None = None,
    ) -> np.ndarray:
        """Estimate a starting parameter vector from data.

        Args:
            x: Index array
            y: Cumulative counts
            asymptote: Asymptote hint for Gompertz and Richards (typically
                the fitted logistic asymptote); ignored by the other forms
            richards_strategy: Optimizer strategy for the Richards search

        Returns:
            Starting parameter vector

        Raises:
            StartValueUndefined: If the heuristic is undefined for the data
        """
        if self.kind is ModelKind.EXPONENTIAL:
            return exponential_start(x, y)
        elif self.kind is ModelKind.LOGISTIC:
            return logistic_start(x, y)
        elif self.kind is ModelKind.GOMPERTZ:
            return gompertz_start(x, y, asymptote=asymptote)
        elif self.kind is ModelKind.RICHARDS:
            return richards_start(x, y, asymptote=asymptote, strategy=richards_strategy)
        raise ValueError(f"Unknown model kind: {self.kind}")


EXPONENTIAL = GrowthModel(ModelKind.EXPONENTIAL, exponential, ("a", "r"))
LOGISTIC = GrowthModel(ModelKind.LOGISTIC, logistic, ("asym", "xmid", "scal"))
GOMPERTZ = GrowthModel(ModelKind.GOMPERTZ, gompertz, ("asym", "b2", "b3"))
RICHARDS = GrowthModel(ModelKind.RICHARDS, richards, ("asym", "k", "shape"))

GROWTH_MODELS: dict[ModelKind, GrowthModel] = {
    ModelKind.EXPONENTIAL: EXPONENTIAL,
    ModelKind.LOGISTIC: LOGISTIC,
    ModelKind.GOMPERTZ: GOMPERTZ,
    ModelKind.RICHARDS: RICHARDS,
}


def get_model(kind: ModelKind | str) -> GrowthModel:
    """Get the GrowthModel for a kind or its string value."""
    try:
        return GROWTH_MODELS[ModelKind(kind)]
    except ValueError:
        raise ValueError(
            f"Unknown model: {kind}. Valid models: "
            f"{', '.join(k.value for k in ModelKind)}"
        ) from None


class FailureReason(str, Enum):
    """Why a model fit did not produce a FittedModel."""
    START_VALUE_UNDEFINED = "start_value_undefined"
    NON_CONVERGENT = "non_convergent"
    NUMERICAL_ERROR = "numerical_error"
    INSUFFICIENT_DATA = "insufficient_data"


def gaussian_log_likelihood(rss: float, n: int) -> float:
    """Gaussian log-likelihood of n residuals at the ML variance RSS / n."""
    rss = max(float(rss), np.finfo(float).tiny)
    return float(-n / 2 * (np.log(2 * np.pi) + np.log(rss / n) + 1))


def _frozen_copy(arr) -> np.ndarray:
    out = np.array(arr, dtype=float, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True, eq=False)
class FittedModel:
    """A converged nonlinear least-squares fit.

    Attributes:
        model: The fitted GrowthModel
        theta: Converged parameter vector
        x: Index values the model was fitted on
        y: Observed counts the model was fitted on
        n_iter: Function evaluations used by the optimizer
    """
    model: GrowthModel
    theta: np.ndarray
    x: np.ndarray
    y: np.ndarray
    n_iter: int = 0
    fitted: np.ndarray = field(init=False, repr=False)
    residuals: np.ndarray = field(init=False, repr=False)

    converged = True

    def __post_init__(self) -> None:
        """Freeze arrays and compute fitted values and residuals."""
        object.__setattr__(self, "theta", _frozen_copy(self.theta))
        object.__setattr__(self, "x", _frozen_copy(self.x))
        object.__setattr__(self, "y", _frozen_copy(self.y))
        fitted = self.model.evaluate(self.theta, self.x)
        object.__setattr__(self, "fitted", _frozen_copy(fitted))
        object.__setattr__(self, "residuals", _frozen_copy(self.y - fitted))

    @property
    def name(self) -> str:
        return self.model.name

    @property
    def n(self) -> int:
        return len(self.y)

    @property
    def n_params(self) -> int:
        return self.model.n_params

    @property
    def rss(self) -> float:
        """Residual sum of squares."""
        return float(np.sum(self.residuals ** 2))

    @property
    def residual_variance(self) -> float:
        """Maximum likelihood residual variance RSS / n."""
        return self.rss / self.n

    @property
    def log_likelihood(self) -> float:
        """Gaussian log-likelihood at the ML variance estimate."""
        return gaussian_log_likelihood(self.rss, self.n)

    def predict(self, x) -> np.ndarray:
        """Point forecast f(x; theta_hat)."""
        return self.model.evaluate(self.theta, x)

    @property
    def params(self) -> dict[str, float]:
        return dict(zip(self.model.param_names, (float(v) for v in self.theta)))

    def summary(self) -> dict:
        """Return summary dictionary of the fit."""
        return {
            "model": self.name,
            "converged": True,
            **self.params,
            "n": self.n,
            "rss": self.rss,
            "residual_variance": self.residual_variance,
            "log_likelihood": self.log_likelihood,
            "n_iter": self.n_iter,
        }


@dataclass(frozen=True, eq=False)
class FitFailure:
    """A model fit that did not converge or could not start.

    Attributes:
        model: The GrowthModel that failed
        reason: Failure category
        message: Human-readable description
        theta: Best parameter vector found, if any
    """
    model: GrowthModel
    reason: FailureReason
    message: str
    theta: np.ndarray | None = None

    converged = False

    @property
    def name(self) -> str:
        return self.model.name

    def summary(self) -> dict:
        """Return summary dictionary of the failure."""
        params = {}
        if self.theta is not None:
            params = dict(zip(self.model.param_names, (float(v) for v in self.theta)))
        return {
            "model": self.name,
            "converged": False,
            "reason": self.reason.value,
            "message": self.message,
            **params,
        }


FitOutcome = FittedModel | FitFailure
