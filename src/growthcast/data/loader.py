"""Loading regional cumulative count tables into TimeSeries objects."""

import logging
from pathlib import Path

import pandas as pd

from .series import TimeSeries

logger = logging.getLogger(__name__)

# Column names recognized as the date column when none is given
DATE_COLUMN_CANDIDATES = ("date", "day", "data", "report_date")

# Column names recognized as the region column when none is given
REGION_COLUMN_CANDIDATES = ("region", "state", "province", "country", "location")


def load_file(filepath: Path | str) -> pd.DataFrame:
    """Load CSV or Excel file into DataFrame.

    Args:
        filepath: Path to input file

    Returns:
        pandas DataFrame

    Raises:
        ValueError: If file format not supported
    """
    filepath = Path(filepath)

    if filepath.suffix.lower() == '.csv':
        return pd.read_csv(filepath)
    elif filepath.suffix.lower() in ('.xlsx', '.xls'):
        return pd.read_excel(filepath)
    else:
        raise ValueError(f"Unsupported file format: {filepath.suffix}")


def _resolve_column(
    df: pd.DataFrame,
    requested: str | None,
    candidates: tuple[str, ...],
    role: str,
    required: bool = True,
) -> str | None:
    """Match a column name case-insensitively.

    Args:
        df: DataFrame to search
        requested: Requested column name (None = try candidates)
        candidates: Fallback names tried in order when requested is None
        role: Column role for error messages
        required: Raise if no column matches

    Returns:
        Actual column name, or None if not found and not required
    """
    cols_lower = {c.lower().strip(): c for c in df.columns}
    names = (requested,) if requested else candidates
    for name in names:
        if name.lower().strip() in cols_lower:
            return cols_lower[name.lower().strip()]

    if required:
        raise ValueError(
            f"No {role} column found (looked for {', '.join(names)}). "
            f"Columns found: {list(df.columns[:10])}"
        )
    return None


def series_from_frame(
    df: pd.DataFrame,
    value_column: str,
    date_column: str | None = None,
    region_column: str | None = None,
) -> dict[str, TimeSeries]:
    """Split a long-format DataFrame into one TimeSeries per region.

    Args:
        df: DataFrame with date, count and optional region columns
        value_column: Cumulative count column (e.g. total cases)
        date_column: Date column (auto-detected if None)
        region_column: Region column (auto-detected if None; a frame without
            one is treated as a single region)

    Returns:
        Dict of region name -> TimeSeries, in sorted region order
    """
    date_col = _resolve_column(df, date_column, DATE_COLUMN_CANDIDATES, "date")
    value_col = _resolve_column(df, value_column, (value_column,), "value")
    region_col = _resolve_column(
        df, region_column, REGION_COLUMN_CANDIDATES, "region",
        required=region_column is not None,
    )

    df = df.copy()
    df[date_col] = pd.to_datetime(df[date_col])
    df[value_col] = pd.to_numeric(df[value_col], errors="coerce")

    missing = int(df[value_col].isna().sum())
    if missing:
        logger.warning(f"Dropping {missing} row(s) with missing '{value_col}' values")
        df = df.dropna(subset=[value_col])

    if region_col is None:
        return {value_col: TimeSeries.from_frame(df, date_col, value_col, name=value_col)}

    series = {}
    for region, group in df.groupby(region_col, sort=True):
        series[str(region)] = TimeSeries.from_frame(group, date_col, value_col, name=str(region))
    return series


def load_series(
    filepath: Path | str,
    value_column: str,
    date_column: str | None = None,
    region_column: str | None = None,
) -> dict[str, TimeSeries]:
    """Load regional cumulative counts from a CSV or Excel file.

    Args:
        filepath: Path to input file
        value_column: Cumulative count column
        date_column: Date column (auto-detected if None)
        region_column: Region column (auto-detected if None)

    Returns:
        Dict of region name -> TimeSeries
    """
    df = load_file(filepath)
    series = series_from_frame(df, value_column, date_column, region_column)
    logger.info(f"Loaded {len(series)} series from {filepath}")
    return series
