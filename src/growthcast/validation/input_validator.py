"""Input validation for cumulative count series.

Validates series length, sign, monotonicity, and date regularity.
"""

from typing import TYPE_CHECKING

import numpy as np

from .result import ValidationResult, ValidationIssue

if TYPE_CHECKING:
    from ..data.series import TimeSeries


class InputValidator:
    """Validates cumulative count series before fitting.

    Error codes:
        IV001: Too few observations (ERROR)
        IV002: Negative counts (ERROR)
        IV003: Decreasing cumulative counts (WARNING)
        IV004: Date gaps (WARNING) or duplicate dates (ERROR)
        IV005: Dates not in ascending order (ERROR)
    """

    def __init__(self, min_points: int = 5):
        """Initialize input validator.

        Args:
            min_points: Minimum number of observations required
        """
        self.min_points = min_points

    def validate(self, series: "TimeSeries") -> ValidationResult:
        """Validate all aspects of a series.

        Args:
            series: TimeSeries to validate

        Returns:
            ValidationResult with any issues found
        """
        result = ValidationResult(series_name=series.name)

        if series.n < self.min_points:
            result.add_issue(ValidationIssue.too_few_points(series.n, self.min_points))

        result = result.merge(self._validate_values(series))
        result = result.merge(self._validate_dates(series))
        return result

    def _validate_values(self, series: "TimeSeries") -> ValidationResult:
        """Check for negative and decreasing counts."""
        result = ValidationResult(series_name=series.name)
        y = np.asarray(series.y, dtype=float)
        if len(y) == 0:
            return result

        negative_mask = y < 0
        if np.any(negative_mask):
            negative_indices = np.where(negative_mask)[0].tolist()
            result.add_issue(ValidationIssue.negative_counts(
                count=len(negative_indices),
                indices=negative_indices,
                values=y[negative_mask].tolist(),
            ))

        diffs = np.diff(y)
        decreasing = np.where(diffs < 0)[0]
        if len(decreasing):
            result.add_issue(ValidationIssue.decreasing_counts(
                count=len(decreasing),
                indices=(decreasing + 1).tolist(),
                drops=diffs[decreasing].tolist(),
            ))

        return result

    def _validate_dates(self, series: "TimeSeries") -> ValidationResult:
        """Check date ordering, gaps, and duplicates."""
        result = ValidationResult(series_name=series.name)
        dates = np.asarray(series.dates, dtype="datetime64[D]")
        if len(dates) < 2:
            return result

        steps = np.diff(dates).astype(int)

        inversions = np.where(steps < 0)[0]
        if len(inversions):
            result.add_issue(ValidationIssue.unsorted_dates(
                count=len(inversions),
                indices=(inversions + 1).tolist(),
            ))
            # Gap counts are meaningless until the dates are sorted
            return result

        duplicates = int(np.sum(steps == 0))
        gap_positions = np.where(steps > 1)[0]
        if duplicates or len(gap_positions):
            gaps = [
                {
                    "after": str(dates[i]),
                    "before": str(dates[i + 1]),
                    "missing_days": int(steps[i] - 1),
                }
                for i in gap_positions
            ]
            result.add_issue(ValidationIssue.date_gaps(
                gap_count=len(gap_positions),
                duplicate_count=duplicates,
                gaps=gaps,
            ))

        return result
