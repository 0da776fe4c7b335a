"""Cumulative count time series for a single region."""

from dataclasses import dataclass, field
from datetime import date
import numpy as np
import pandas as pd


@dataclass
class TimeSeries:
    """Daily cumulative counts for one region.

    Attributes:
        dates: Array of observation dates (one per calendar day)
        y: Cumulative counts (non-negative, non-decreasing)
        name: Region or series name
        x: Calendar day index, 1 on the first date (computed)
    """
    dates: np.ndarray  # datetime64
    y: np.ndarray
    name: str = "series"
    x: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        """Normalize arrays and compute the day index."""
        self.dates = np.asarray(self.dates, dtype="datetime64[D]")
        self.y = np.asarray(self.y, dtype=float)
        if len(self.dates) != len(self.y):
            raise ValueError(
                f"dates and values length mismatch: {len(self.dates)} != {len(self.y)}"
            )
        if len(self.dates):
            self.x = (self.dates - self.dates[0]).astype(int).astype(float) + 1
        else:
            self.x = np.empty(0, dtype=float)

    @classmethod
    def from_counts(
        cls,
        counts,
        start: date | str = "2020-01-01",
        name: str = "series",
    ) -> "TimeSeries":
        """Build a series of consecutive days from a list of counts.

        Args:
            counts: Cumulative counts, one per day
            start: Date of the first count
            name: Series name

        Returns:
            TimeSeries
        """
        counts = np.asarray(counts, dtype=float)
        dates = np.datetime64(start, "D") + np.arange(len(counts))
        return cls(dates=dates, y=counts, name=name)

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        date_column: str = "date",
        value_column: str = "value",
        name: str = "series",
    ) -> "TimeSeries":
        """Build a series from a DataFrame, sorted by date.

        Args:
            df: DataFrame with a date and a count column
            date_column: Name of the date column
            value_column: Name of the cumulative count column
            name: Series name

        Returns:
            TimeSeries
        """
        frame = df[[date_column, value_column]].copy()
        frame[date_column] = pd.to_datetime(frame[date_column])
        frame = frame.sort_values(date_column)
        return cls(
            dates=frame[date_column].values,
            y=frame[value_column].astype(float).values,
            name=name,
        )

    def __len__(self) -> int:
        return len(self.y)

    @property
    def n(self) -> int:
        """Number of observations."""
        return len(self.y)

    @property
    def first_date(self) -> date | None:
        """First observation date."""
        if len(self.dates) > 0:
            return pd.Timestamp(self.dates[0]).date()
        return None

    @property
    def last_date(self) -> date | None:
        """Last observation date."""
        if len(self.dates) > 0:
            return pd.Timestamp(self.dates[-1]).date()
        return None

    @property
    def last_x(self) -> int:
        """Index of the last observation."""
        return int(self.x[-1]) if len(self.x) else 0

    def date_for(self, x) -> np.ndarray:
        """Calendar dates for day indices, extrapolating past the last date."""
        x = np.atleast_1d(np.asarray(x, dtype=int))
        return self.dates[0] + (x - 1).astype("timedelta64[D]")

    def forecast_x(self, horizon: int) -> np.ndarray:
        """Day indices of the next `horizon` days after the last observation."""
        return np.arange(self.last_x + 1, self.last_x + horizon + 1, dtype=float)

    def with_values(self, y) -> "TimeSeries":
        """Copy of this series with replaced counts."""
        return TimeSeries(dates=self.dates.copy(), y=np.asarray(y, dtype=float), name=self.name)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to pandas DataFrame."""
        return pd.DataFrame({
            "date": pd.to_datetime(self.dates),
            "x": self.x.astype(int),
            "y": self.y,
        })
