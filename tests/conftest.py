"""Shared fixtures for growthcast tests."""

import numpy as np
import pandas as pd
import pytest

from growthcast.config import GrowthcastConfig
from growthcast.core.curves import logistic
from growthcast.data.series import TimeSeries


@pytest.fixture
def doubling_series():
    """Six days of exact doubling: 1, 2, 4, 8, 16, 32."""
    return TimeSeries.from_counts([1, 2, 4, 8, 16, 32], name="doubling")


@pytest.fixture
def noisy_logistic_series():
    """20 days from a logistic curve (1000, 10, 3) with small Gaussian noise."""
    rng = np.random.default_rng(42)
    x = np.arange(1, 21, dtype=float)
    y = logistic(x, 1000.0, 10.0, 3.0) + rng.normal(0.0, 5.0, size=len(x))
    return TimeSeries.from_counts(y, name="noisy_logistic")


@pytest.fixture
def logistic_series_30():
    """30 days from a logistic curve (1000, 15, 4) with small Gaussian noise."""
    rng = np.random.default_rng(7)
    x = np.arange(1, 31, dtype=float)
    y = logistic(x, 1000.0, 15.0, 4.0) + rng.normal(0.0, 4.0, size=len(x))
    return TimeSeries.from_counts(y, name="logistic_30")


@pytest.fixture
def regions_csv(tmp_path):
    """Long-format CSV with two regions, rows deliberately unsorted."""
    x = np.arange(1, 26, dtype=float)
    dates = pd.date_range("2020-03-01", periods=len(x), freq="D")
    north = np.round(logistic(x, 5000.0, 12.0, 3.0))
    south = np.round(logistic(x, 2000.0, 14.0, 4.0))
    df = pd.concat([
        pd.DataFrame({"Region": "South", "Date": dates, "Confirmed": south}),
        pd.DataFrame({"Region": "North", "Date": dates, "Confirmed": north}),
    ]).sample(frac=1.0, random_state=3)

    path = tmp_path / "regions.csv"
    df.to_csv(path, index=False)
    return path


@pytest.fixture
def fast_config():
    """Default config with few, seeded bootstrap replicates."""
    config = GrowthcastConfig()
    config.bootstrap.replicates = 30
    config.bootstrap.seed = 123
    return config


@pytest.fixture
def fast_config_file(tmp_path, fast_config):
    path = tmp_path / "growthcast.yaml"
    fast_config.to_yaml(path)
    return path
