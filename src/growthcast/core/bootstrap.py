"""Moving block bootstrap prediction intervals for fitted growth curves.

Residuals of a cumulative-count fit are strongly autocorrelated: a curve
that runs below the data tends to stay below it for days. Resampling single
residuals independently destroys that structure and gives intervals that
are too narrow. The moving block bootstrap resamples contiguous blocks of
residuals instead:

    1. Pick block length l (default ceil(n ** (1/3)), clipped to [1, n])
    2. Concatenate ceil(n / l) blocks starting at uniformly drawn positions,
       wrapping circularly at the end of the series, truncated to n
    3. y* = f(x; theta_hat) + resampled residuals
    4. Refit the model on y* starting from theta_hat
    5. Evaluate the refitted curve at the future x values

The empirical alpha/2 and 1 - alpha/2 quantiles of the draws give the
interval bounds, with alpha = 1 - confidence.

All block start positions are drawn from the supplied generator before any
refit runs, so a fixed seed gives identical bounds whether replicates run
serially or in worker processes.
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
import logging
import math
import time
from typing import TYPE_CHECKING, Callable

import numpy as np

from .fitting import FittingConfig, NonlinearFitter
from .models import FittedModel, GrowthModel

if TYPE_CHECKING:
    import threading

    from ..data.series import TimeSeries

logger = logging.getLogger(__name__)

NON_FINITE_FORECAST = "non_finite_forecast"


@dataclass
class BootstrapConfig:
    """Configuration for moving block bootstrap intervals.

    Attributes:
        replicates: Number of bootstrap replicates (default 500)
        block_length: Block length, or "auto" for ceil(n ** (1/3))
        confidence: Interval confidence level (default 0.95)
        seed: Seed for the random generator (None = non-deterministic)
        workers: Worker processes for replicates (1 = serial)
        timeout: Seconds before the replicate loop stops early (None = no limit)
        min_success_fraction: Achieved/requested replicate ratio below which
            the interval is flagged as underreplicated (default 0.9)
    """
    replicates: int = 500
    block_length: int | str = "auto"
    confidence: float = 0.95
    seed: int | None = None
    workers: int = 1
    timeout: float | None = None
    min_success_fraction: float = 0.9

    @classmethod
    def from_growthcast_config(
        cls,
        config: "GrowthcastConfig",  # noqa: F821
    ) -> "BootstrapConfig":
        """Create BootstrapConfig from the bootstrap section of GrowthcastConfig."""
        bs = config.bootstrap
        return cls(
            replicates=bs.replicates,
            block_length=bs.block_length,
            confidence=bs.confidence,
            seed=bs.seed,
            workers=bs.workers,
            timeout=bs.timeout,
            min_success_fraction=bs.min_success_fraction,
        )


def cube_root_block_length(n: int) -> int:
    """Default block length rule: ceil(n ** (1/3))."""
    return int(math.ceil(n ** (1.0 / 3.0) - 1e-12))


def resolve_block_length(
    block_length: int | str | Callable[[int], int] | None,
    n: int,
) -> int:
    """Resolve a block length strategy to an int in [1, n].

    Args:
        block_length: Fixed length, "auto"/None for the cube-root rule, or a
            callable mapping series length to block length
        n: Residual series length

    Returns:
        Block length clipped to [1, n]
    """
    if block_length is None or block_length == "auto":
        length = cube_root_block_length(n)
    elif callable(block_length):
        length = int(block_length(n))
    else:
        length = int(block_length)
    return int(min(max(length, 1), max(n, 1)))


def moving_block_indices(starts: np.ndarray, block_length: int, n: int) -> np.ndarray:
    """Expand block start positions into n circular residual indices."""
    offsets = np.arange(block_length)
    idx = (np.asarray(starts)[:, None] + offsets[None, :]) % n
    return idx.ravel()[:n]


def draw_block_starts(
    rng: np.random.Generator,
    n: int,
    block_length: int,
    replicates: int,
) -> np.ndarray:
    """Draw block start positions for all replicates.

    Returns:
        Integer array of shape (replicates, ceil(n / block_length))
    """
    n_blocks = int(math.ceil(n / block_length))
    return rng.integers(0, n, size=(replicates, n_blocks))


def block_resample(
    residuals: np.ndarray,
    block_length: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Resample a residual series with circular moving blocks.

    Args:
        residuals: Residual series of length n
        block_length: Block length in [1, n]
        rng: Random generator

    Returns:
        Resampled residual series of length n
    """
    residuals = np.asarray(residuals, dtype=float)
    n = len(residuals)
    block_length = resolve_block_length(block_length, n)
    starts = draw_block_starts(rng, n, block_length, 1)[0]
    return residuals[moving_block_indices(starts, block_length, n)]


@dataclass
class BootstrapReplicate:
    """One resample-refit-forecast draw.

    Attributes:
        index: Replicate number
        residuals: Resampled residual series
        forecast: Forecast at the future x values, None if the refit failed
        failure: Failure reason when forecast is None
    """
    index: int
    residuals: np.ndarray
    forecast: np.ndarray | None = None
    failure: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.forecast is not None


@dataclass
class BootstrapInterval:
    """Bootstrap prediction interval for one fitted model.

    Attributes:
        model: Model name
        future_x: Forecast x values (beyond the observed range)
        lwr: Lower bounds per future x (NaN if no replicate succeeded)
        upr: Upper bounds per future x (NaN if no replicate succeeded)
        confidence: Confidence level
        block_length: Block length used
        requested: Replicates requested
        achieved: Replicates whose refit succeeded
        failures: Count of failed replicates by reason
        underreplicated: True if achieved fell below the configured fraction
            of requested
        truncated: True if the loop stopped early on timeout or cancellation
    """
    model: str
    future_x: np.ndarray
    lwr: np.ndarray
    upr: np.ndarray
    confidence: float
    block_length: int
    requested: int
    achieved: int
    failures: dict[str, int] = field(default_factory=dict)
    underreplicated: bool = False
    truncated: bool = False

    @property
    def success_fraction(self) -> float:
        return self.achieved / self.requested if self.requested else 1.0

    @property
    def width(self) -> np.ndarray:
        return self.upr - self.lwr

    def summary(self) -> dict:
        """Return summary dictionary of the bootstrap run."""
        return {
            "model": self.model,
            "confidence": self.confidence,
            "block_length": self.block_length,
            "requested": self.requested,
            "achieved": self.achieved,
            "failures": dict(self.failures),
            "underreplicated": self.underreplicated,
            "truncated": self.truncated,
        }


def _run_replicate(
    fitter: NonlinearFitter,
    model: GrowthModel,
    x: np.ndarray,
    fitted: np.ndarray,
    residuals: np.ndarray,
    theta_hat: np.ndarray,
    future_x: np.ndarray,
    block_length: int,
    index: int,
    starts: np.ndarray,
) -> BootstrapReplicate:
    resampled = residuals[moving_block_indices(starts, block_length, len(residuals))]
    outcome = fitter.fit_arrays(model, x, fitted + resampled, theta_hat)
    if not outcome.converged:
        return BootstrapReplicate(index, resampled, failure=outcome.reason.value)

    draw = model.evaluate(outcome.theta, future_x)
    if not np.all(np.isfinite(draw)):
        return BootstrapReplicate(index, resampled, failure=NON_FINITE_FORECAST)
    return BootstrapReplicate(index, resampled, forecast=draw)


def _run_replicate_chunk(
    fit_config: FittingConfig,
    model: GrowthModel,
    x: np.ndarray,
    fitted: np.ndarray,
    residuals: np.ndarray,
    theta_hat: np.ndarray,
    future_x: np.ndarray,
    block_length: int,
    first_index: int,
    starts_chunk: np.ndarray,
) -> list[BootstrapReplicate]:
    """Worker function: run a contiguous chunk of replicates."""
    fitter = NonlinearFitter(fit_config)
    return [
        _run_replicate(
            fitter, model, x, fitted, residuals, theta_hat, future_x,
            block_length, first_index + offset, starts,
        )
        for offset, starts in enumerate(starts_chunk)
    ]


class MovingBlockBootstrap:
    """Prediction intervals from moving block bootstrap refits."""

    def __init__(
        self,
        config: BootstrapConfig | None = None,
        fitter: NonlinearFitter | None = None,
    ):
        """Initialize bootstrap.

        Args:
            config: Bootstrap configuration, uses defaults if None
            fitter: Fitter used for replicate refits (carries per-model
                iteration and tolerance limits)
        """
        self.config = config or BootstrapConfig()
        self.fitter = fitter or NonlinearFitter()

    def predict_interval(
        self,
        fitted_model: FittedModel,
        series: "TimeSeries | None",
        future_x,
        block_length: int | str | Callable[[int], int] | None = None,
        replicates: int | None = None,
        confidence: float | None = None,
        rng: np.random.Generator | int | None = None,
        cancel_event: "threading.Event | None" = None,
    ) -> BootstrapInterval:
        """Compute prediction intervals for x beyond the observed range.

        Args:
            fitted_model: Converged fit to bootstrap
            series: Observed series (defaults to the fit's own data if None)
            future_x: Forecast x values; values inside the observed range
                are dropped
            block_length: Block length strategy (config default if None)
            replicates: Number of replicates (config default if None)
            confidence: Confidence level (config default if None)
            rng: Generator or seed (config seed if None)
            cancel_event: Optional event; when set, the loop stops and the
                completed replicates are used

        Returns:
            BootstrapInterval with lwr/upr per future x and replicate counts
        """
        replicates = int(replicates if replicates is not None else self.config.replicates)
        confidence = float(confidence if confidence is not None else self.config.confidence)
        if not 0 < confidence < 1:
            raise ValueError(f"confidence must be in (0, 1), got {confidence}")
        if replicates < 1:
            raise ValueError(f"replicates must be at least 1, got {replicates}")

        rng = np.random.default_rng(rng if rng is not None else self.config.seed)

        x_obs = np.asarray(series.x if series is not None else fitted_model.x, dtype=float)
        future_x = np.atleast_1d(np.asarray(future_x, dtype=float))
        future_x = future_x[future_x > np.max(x_obs)]

        residuals = np.asarray(fitted_model.residuals, dtype=float)
        n = len(residuals)
        block_length = resolve_block_length(
            block_length if block_length is not None else self.config.block_length, n,
        )

        if len(future_x) == 0:
            return BootstrapInterval(
                model=fitted_model.name,
                future_x=future_x,
                lwr=np.array([]),
                upr=np.array([]),
                confidence=confidence,
                block_length=block_length,
                requested=0,
                achieved=0,
            )

        starts = draw_block_starts(rng, n, block_length, replicates)
        args = (
            fitted_model.model,
            np.asarray(fitted_model.x, dtype=float),
            np.asarray(fitted_model.fitted, dtype=float),
            residuals,
            np.asarray(fitted_model.theta, dtype=float),
            future_x,
            block_length,
        )

        deadline = time.monotonic() + self.config.timeout if self.config.timeout else None
        if self.config.workers > 1:
            draws, truncated = self._run_parallel(args, starts, deadline, cancel_event)
        else:
            draws, truncated = self._run_serial(args, starts, deadline, cancel_event)

        return self._summarize(fitted_model.name, future_x, draws, replicates,
                               confidence, block_length, truncated)

    def _run_serial(self, args, starts, deadline, cancel_event) -> tuple[list[BootstrapReplicate], bool]:
        results = []
        for i, replicate_starts in enumerate(starts):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Bootstrap cancelled after {i} replicates")
                return results, True
            if deadline is not None and time.monotonic() > deadline:
                logger.info(f"Bootstrap timed out after {i} replicates")
                return results, True
            results.append(_run_replicate(self.fitter, *args, i, replicate_starts))
        return results, False

    def _run_parallel(self, args, starts, deadline, cancel_event) -> tuple[list[BootstrapReplicate], bool]:
        workers = self.config.workers
        chunk_size = max(1, math.ceil(len(starts) / (workers * 4)))
        results: list[BootstrapReplicate] = []
        truncated = False

        executor = ProcessPoolExecutor(max_workers=workers)
        try:
            futures = [
                executor.submit(
                    _run_replicate_chunk, self.fitter.config, *args,
                    first, starts[first:first + chunk_size],
                )
                for first in range(0, len(starts), chunk_size)
            ]
            timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                for future in as_completed(futures, timeout=timeout):
                    results.extend(future.result())
                    if cancel_event is not None and cancel_event.is_set():
                        logger.info(f"Bootstrap cancelled after {len(results)} replicates")
                        truncated = True
                        break
            except FuturesTimeoutError:
                logger.info(f"Bootstrap timed out after {len(results)} replicates")
                truncated = True
        finally:
            executor.shutdown(wait=not truncated, cancel_futures=True)

        results.sort(key=lambda r: r.index)
        return results, truncated

    def _summarize(
        self,
        model_name: str,
        future_x: np.ndarray,
        results: list[BootstrapReplicate],
        requested: int,
        confidence: float,
        block_length: int,
        truncated: bool,
    ) -> BootstrapInterval:
        failures: dict[str, int] = {}
        for r in results:
            if not r.succeeded:
                failures[r.failure] = failures.get(r.failure, 0) + 1

        draws = [r.forecast for r in results if r.succeeded]
        achieved = len(draws)

        if draws:
            alpha = 1.0 - confidence
            lwr, upr = np.quantile(np.vstack(draws), [alpha / 2, 1 - alpha / 2], axis=0)
        else:
            lwr = np.full(len(future_x), np.nan)
            upr = np.full(len(future_x), np.nan)

        underreplicated = achieved < self.config.min_success_fraction * requested
        if underreplicated:
            logger.warning(
                f"{model_name}: only {achieved}/{requested} bootstrap replicates "
                f"succeeded; intervals may be unreliable"
            )

        return BootstrapInterval(
            model=model_name,
            future_x=future_x,
            lwr=np.asarray(lwr, dtype=float),
            upr=np.asarray(upr, dtype=float),
            confidence=confidence,
            block_length=block_length,
            requested=requested,
            achieved=achieved,
            failures=failures,
            underreplicated=underreplicated,
            truncated=truncated,
        )
