"""Data loading and the cumulative count series type."""

from .series import TimeSeries
from .loader import load_file, load_series, series_from_frame

__all__ = [
    "TimeSeries",
    "load_file",
    "load_series",
    "series_from_frame",
]
