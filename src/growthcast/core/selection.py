"""Model selection and fit quality evaluation.

Scores each converged fit with Gaussian log-likelihood based information
criteria and counts, per model, how many criteria it wins. There is no
single forced winner: AIC, AICc and BIC can disagree on short series.
"""

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from .models import FittedModel, gaussian_log_likelihood

if TYPE_CHECKING:
    from ..data.series import TimeSeries

logger = logging.getLogger(__name__)

CRITERIA = ("aic", "aicc", "bic")

# Default grading thresholds on R² (can be overridden by config)
DEFAULT_GRADE_THRESHOLDS = {
    "A": 0.99,
    "B": 0.95,
    "C": 0.90,
    "D": 0.80,
}


@dataclass(frozen=True)
class SelectionScore:
    """Goodness-of-fit and information criteria for one fitted model.

    Attributes:
        model: Model name
        n: Number of observations
        log_likelihood: Gaussian log-likelihood
        df: Degrees of freedom (parameters + residual variance)
        r_squared: Squared correlation of observed and fitted values
        aic: Akaike Information Criterion
        aicc: Small-sample corrected AIC, None when n <= df + 1
        bic: Bayesian Information Criterion
    """
    model: str
    n: int
    log_likelihood: float
    df: int
    r_squared: float
    aic: float
    aicc: float | None
    bic: float

    @property
    def aicc_valid(self) -> bool:
        return self.aicc is not None

    def criterion(self, name: str) -> float | None:
        """Get a criterion value by name (aic, aicc, bic)."""
        if name not in CRITERIA:
            raise ValueError(f"Unknown criterion: {name}")
        return getattr(self, name)

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "n": self.n,
            "log_likelihood": self.log_likelihood,
            "df": self.df,
            "r_squared": self.r_squared,
            "aic": self.aic,
            "aicc": self.aicc,
            "bic": self.bic,
        }


def _r_squared(observed: np.ndarray, predicted: np.ndarray) -> float:
    """Squared Pearson correlation, 0 when either side is constant."""
    if len(observed) < 2 or np.ptp(observed) == 0 or np.ptp(predicted) == 0:
        return 0.0
    r = np.corrcoef(observed, predicted)[0, 1]
    return float(r ** 2) if np.isfinite(r) else 0.0


def information_criteria(log_likelihood: float, n: int, df: int) -> tuple[float, float | None, float]:
    """Compute (AIC, AICc, BIC) from a log-likelihood.

    Args:
        log_likelihood: Maximized log-likelihood
        n: Number of observations
        df: Degrees of freedom

    Returns:
        Tuple of (aic, aicc, bic); aicc is None when n <= df + 1
    """
    aic = -2 * log_likelihood + 2 * df
    aicc = None
    if n > df + 1:
        aicc = aic + 2 * df * (df + 1) / (n - df - 1)
    bic = -2 * log_likelihood + np.log(n) * df
    return float(aic), (float(aicc) if aicc is not None else None), float(bic)


def score(fitted_model: FittedModel, series: "TimeSeries | None" = None) -> SelectionScore:
    """Score a fitted model.

    Args:
        fitted_model: Converged FittedModel
        series: Series to score against (defaults to the data the model was
            fitted on)

    Returns:
        SelectionScore with log-likelihood, df, R², AIC, AICc, BIC
    """
    if series is None:
        observed = np.asarray(fitted_model.y, dtype=float)
        predicted = np.asarray(fitted_model.fitted, dtype=float)
        log_likelihood = fitted_model.log_likelihood
    else:
        observed = np.asarray(series.y, dtype=float)
        predicted = fitted_model.predict(series.x)
        log_likelihood = gaussian_log_likelihood(np.sum((observed - predicted) ** 2), len(observed))

    n = len(observed)
    df = fitted_model.n_params + 1

    aic, aicc, bic = information_criteria(log_likelihood, n, df)
    if aicc is None:
        logger.info(f"{fitted_model.name}: AICc undefined for n={n}, df={df}")

    return SelectionScore(
        model=fitted_model.name,
        n=n,
        log_likelihood=log_likelihood,
        df=df,
        r_squared=_r_squared(observed, predicted),
        aic=aic,
        aicc=aicc,
        bic=bic,
    )


def grade_fit(r_squared: float, thresholds: dict | None = None) -> str:
    """Assign letter grade based on R² value.

    Args:
        r_squared: Coefficient of determination
        thresholds: Optional dict with grade thresholds

    Returns:
        Letter grade (A, B, C, D, F)
    """
    thresholds = thresholds or DEFAULT_GRADE_THRESHOLDS
    if r_squared >= thresholds.get("A", 0.99):
        return "A"
    elif r_squared >= thresholds.get("B", 0.95):
        return "B"
    elif r_squared >= thresholds.get("C", 0.90):
        return "C"
    elif r_squared >= thresholds.get("D", 0.80):
        return "D"
    else:
        return "F"


@dataclass
class ModelComparison:
    """Per-criterion winners and per-model win counts.

    Attributes:
        scores: Dict of model name -> SelectionScore
        winners: Dict of criterion -> winning model name (None if no model
            has a valid value)
        wins: Dict of model name -> number of criteria won (0-3)
    """
    scores: dict[str, SelectionScore]
    winners: dict[str, str | None] = field(default_factory=dict)
    wins: dict[str, int] = field(default_factory=dict)

    def to_frame(self, grade_thresholds: dict | None = None) -> pd.DataFrame:
        """Model comparison table, one row per model.

        Columns: loglik, df, r_squared, grade, aic, aicc, bic, a win marker
        column per criterion ("*" for the winner) and the win count.
        """
        rows = []
        for name, s in self.scores.items():
            row = {
                "model": name,
                "loglik": s.log_likelihood,
                "df": s.df,
                "r_squared": s.r_squared,
                "grade": grade_fit(s.r_squared, grade_thresholds),
                "aic": s.aic,
                "aicc": s.aicc if s.aicc is not None else np.nan,
                "bic": s.bic,
            }
            for crit in CRITERIA:
                row[f"{crit}_win"] = "*" if self.winners.get(crit) == name else ""
            row["wins"] = self.wins.get(name, 0)
            rows.append(row)

        columns = [
            "model", "loglik", "df", "r_squared", "grade", "aic", "aicc", "bic",
            "aic_win", "aicc_win", "bic_win", "wins",
        ]
        return pd.DataFrame(rows, columns=columns).set_index("model")


def compare_models(scores: dict[str, SelectionScore] | list[SelectionScore]) -> ModelComparison:
    """Pick the argmin of each criterion independently.

    Models whose AICc is undefined do not compete on AICc. Ties go to the
    first model in input order.

    Args:
        scores: SelectionScores keyed by model name, or a list of them

    Returns:
        ModelComparison with winners and per-model win counts
    """
    if isinstance(scores, list):
        scores = {s.model: s for s in scores}

    winners: dict[str, str | None] = {}
    wins = {name: 0 for name in scores}

    for crit in CRITERIA:
        candidates = [
            (s.criterion(crit), name)
            for name, s in scores.items()
            if s.criterion(crit) is not None and np.isfinite(s.criterion(crit))
        ]
        if not candidates:
            winners[crit] = None
            continue
        best_value = min(value for value, _ in candidates)
        best = next(name for value, name in candidates if value == best_value)
        winners[crit] = best
        wins[best] += 1

    return ModelComparison(scores=dict(scores), winners=winners, wins=wins)
