"""Deterministic starting-value estimators for the growth curve library.

Nonlinear least squares on sigmoid curves is sensitive to the starting
point. Each estimator here derives an initial parameter vector from the
shape of the observed series so no manual tuning is needed per region.

Estimators raise StartValueUndefined instead of returning NaN so that
callers can report the failing model explicitly.
"""

from dataclasses import dataclass
import logging

import numpy as np
from scipy import optimize
from scipy.stats import linregress

from .curves import richards

logger = logging.getLogger(__name__)

# Headroom over the observed maximum for the initial logistic asymptote
ASYMPTOTE_HEADROOM = 1.05


class StartValueUndefined(ValueError):
    """Raised when a start-value heuristic has no valid result for a series."""


@dataclass
class RichardsStartStrategy:
    """Strategy for the Richards start-value search.

    The Richards curve has no closed-form linearization, so the start point
    comes from a direct minimization of the sum of squared errors.

    Attributes:
        method: scipy.optimize.minimize method (default Nelder-Mead,
            derivative-free)
        rate_seed: Initial rate parameter k (small positive)
        shape_seed: Initial shape exponent
        max_iter: Maximum optimizer iterations
    """
    method: str = "Nelder-Mead"
    rate_seed: float = 0.05
    shape_seed: float = 1.0
    max_iter: int = 2000


def _as_arrays(x, y) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y):
        raise ValueError(f"x and y length mismatch: {len(x)} != {len(y)}")
    return x, y


def exponential_start(x, y) -> np.ndarray:
    """Start values for a * exp(r * x) from OLS of log(y + 1) on x.

    Args:
        x: Index array
        y: Cumulative counts

    Returns:
        Array [a, r]

    Raises:
        StartValueUndefined: If fewer than two distinct x values
    """
    x, y = _as_arrays(x, y)
    if len(x) < 2 or np.ptp(x) == 0:
        raise StartValueUndefined("Exponential start needs at least two distinct x values")

    slope, intercept, _, _, _ = linregress(x, np.log(np.clip(y, 0.0, None) + 1.0))

    # Guard against a non-positive scale when the intercept is negative
    a = float(np.exp(intercept)) if intercept > 0 else 1.0
    return np.array([a, float(slope)])


def _logistic_profile_asym(x: np.ndarray, y: np.ndarray, xmid: float, scal: float) -> tuple[float, np.ndarray]:
    """Closed-form asymptote for fixed midpoint and scale."""
    with np.errstate(over="ignore"):
        g = 1.0 / (1.0 + np.exp((xmid - x) / scal))
    denom = float(np.dot(g, g))
    if denom <= 0 or not np.isfinite(denom):
        return float("nan"), g
    return float(np.dot(g, y)) / denom, g


def logistic_start(x, y) -> np.ndarray:
    """Self-starting estimate of logistic (asym, xmid, scal).

    Steps:
        1. asym from the empirical ceiling: 1.05 * max(y)
        2. xmid, scal from a linear fit of logit(y / asym) on x, since
           logit(f / asym) = (x - xmid) / scal
        3. If that fit is degenerate, xmid is the x of the largest daily
           increase and scal follows from the peak growth rate asym / (4 scal)
        4. Refine (xmid, scal) by least squares with asym profiled out

    Args:
        x: Index array
        y: Cumulative counts

    Returns:
        Array [asym, xmid, scal]

    Raises:
        StartValueUndefined: If the series has no positive counts or too
            few points
    """
    x, y = _as_arrays(x, y)
    if len(x) < 3:
        raise StartValueUndefined(f"Logistic start needs at least 3 points, got {len(x)}")

    y_max = float(np.max(y))
    if y_max <= 0:
        raise StartValueUndefined("Logistic start undefined: no positive counts")

    asym = ASYMPTOTE_HEADROOM * y_max
    xmid = scal = None

    mask = y > 0
    if np.sum(mask) >= 2 and np.ptp(x[mask]) > 0:
        z = y[mask] / asym
        slope, intercept, _, _, _ = linregress(x[mask], np.log(z / (1.0 - z)))
        if np.isfinite(slope) and slope > 0:
            scal = 1.0 / slope
            xmid = -intercept / slope

    if xmid is None:
        growth = np.diff(y)
        idx = int(np.argmax(growth))
        peak = float(growth[idx])
        xmid = float(x[idx + 1])
        scal = asym / (4.0 * peak) if peak > 0 else max(np.ptp(x) / 4.0, 1.0)

    def residuals(params):
        a, g = _logistic_profile_asym(x, y, params[0], params[1])
        r = y - a * g
        return np.where(np.isfinite(r), r, 1e10)

    try:
        with np.errstate(over="ignore", invalid="ignore"):
            refined = optimize.least_squares(
                residuals, [xmid, scal], method="trf", max_nfev=200,
            )
        xmid_r, scal_r = refined.x
        asym_r, _ = _logistic_profile_asym(x, y, xmid_r, scal_r)
        if np.isfinite(asym_r) and asym_r > 0 and scal_r > 0:
            asym, xmid, scal = asym_r, xmid_r, scal_r
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug(f"Logistic start refinement skipped: {e}")

    return np.array([float(asym), float(xmid), float(scal)])


def gompertz_start(x, y, asymptote: float | None = None) -> np.ndarray:
    """Start values for Gompertz asym * exp(-b2 * exp(-b3 * x)).

    Linearizes the curve with a known asymptote:

        log(log(asym) - log(y)) = log(b2) - b3 * x

    The asymptote is taken from the fitted logistic curve when available,
    otherwise from the logistic start values.

    Args:
        x: Index array
        y: Cumulative counts
        asymptote: Upper asymptote (typically the fitted logistic asym)

    Returns:
        Array [asym, b2, b3]

    Raises:
        StartValueUndefined: If any observation is at or above the
            asymptote, or the linearization is otherwise undefined
    """
    x, y = _as_arrays(x, y)
    asym = float(asymptote) if asymptote is not None else float(logistic_start(x, y)[0])
    if not np.isfinite(asym) or asym <= 0:
        raise StartValueUndefined(f"Gompertz start undefined: invalid asymptote {asym}")

    above = int(np.sum(y >= asym))
    if above:
        raise StartValueUndefined(
            f"Gompertz start undefined: {above} observation(s) at or above "
            f"asymptote {asym:.6g}"
        )

    mask = y > 0
    if np.sum(mask) < 2 or np.ptp(x[mask]) == 0:
        raise StartValueUndefined("Gompertz start needs at least two positive counts")

    w = np.log(np.log(asym) - np.log(y[mask]))
    slope, intercept, _, _, _ = linregress(x[mask], w)
    b2 = float(np.exp(intercept))
    b3 = float(-slope)

    if not (np.isfinite(b2) and np.isfinite(b3)):
        raise StartValueUndefined("Gompertz start undefined: non-finite linearization")

    return np.array([asym, b2, b3])


def richards_start(
    x,
    y,
    asymptote: float | None = None,
    strategy: RichardsStartStrategy | None = None,
) -> np.ndarray:
    """Start values for Richards asym * (1 - exp(-k * x)) ** shape.

    Minimizes the non-convex loss ||y - richards(x, theta)||^2 from seeds
    (asymptote, rate_seed, shape_seed) with the strategy's optimizer.

    Args:
        x: Index array
        y: Cumulative counts
        asymptote: Seed asymptote (typically the fitted logistic asym)
        strategy: Optimizer strategy, uses defaults if None

    Returns:
        Array [asym, k, shape]

    Raises:
        StartValueUndefined: If the search ends at a non-finite point
    """
    x, y = _as_arrays(x, y)
    strategy = strategy or RichardsStartStrategy()
    asym0 = float(asymptote) if asymptote is not None else float(logistic_start(x, y)[0])
    theta0 = np.array([asym0, strategy.rate_seed, strategy.shape_seed])

    def loss(params):
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            sse = float(np.sum((y - richards(x, *params)) ** 2))
        return sse if np.isfinite(sse) else np.inf

    result = optimize.minimize(
        loss,
        theta0,
        method=strategy.method,
        options={"maxiter": strategy.max_iter},
    )

    if not (np.all(np.isfinite(result.x)) and np.isfinite(result.fun)):
        raise StartValueUndefined(
            f"Richards start search ended at a non-finite point ({strategy.method})"
        )

    if not result.success:
        logger.debug(f"Richards start search did not converge: {result.message}")

    return np.asarray(result.x, dtype=float)
