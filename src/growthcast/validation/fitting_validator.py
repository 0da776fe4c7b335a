"""Fitting validation for growth curve models.

Turns fit failures, undefined criteria and underreplicated bootstrap runs
into structured issues so they travel with the report instead of being
lost in the log.
"""

from typing import TYPE_CHECKING, Iterable

from .result import (
    ValidationResult,
    ValidationIssue,
    IssueSeverity,
    IssueCategory,
)
from ..core.models import FailureReason

if TYPE_CHECKING:
    from ..core.bootstrap import BootstrapInterval
    from ..core.models import FitOutcome
    from ..core.selection import SelectionScore


class FittingValidator:
    """Validates fit outcomes, selection scores, and bootstrap intervals.

    Error codes:
        GM001: Start values undefined
        GM002: Fit non-convergent (or numerical error, insufficient data)
        GM003: AICc undefined
        GM004: Bootstrap underreplicated
        FR001: Poor fit (R² < threshold)
    """

    def __init__(self, min_r_squared: float = 0.9):
        """Initialize fitting validator.

        Args:
            min_r_squared: Minimum acceptable R² value
        """
        self.min_r_squared = min_r_squared

    def validate_outcomes(
        self,
        outcomes: Iterable["FitOutcome"],
        series_name: str | None = None,
    ) -> ValidationResult:
        """Report every failed fit.

        Args:
            outcomes: FittedModel or FitFailure per model
            series_name: Series name for the result

        Returns:
            ValidationResult with GM001/GM002 issues
        """
        result = ValidationResult(series_name=series_name)
        for outcome in outcomes:
            if outcome.converged:
                continue
            if outcome.reason is FailureReason.START_VALUE_UNDEFINED:
                result.add_issue(ValidationIssue.start_value_undefined(
                    outcome.name, outcome.message,
                ))
            else:
                result.add_issue(ValidationIssue.fit_non_convergent(
                    outcome.name, outcome.reason.value, outcome.message,
                ))
        return result

    def validate_scores(
        self,
        scores: Iterable["SelectionScore"],
        series_name: str | None = None,
    ) -> ValidationResult:
        """Report undefined AICc and poor fits.

        Args:
            scores: SelectionScore per converged model
            series_name: Series name for the result

        Returns:
            ValidationResult with GM003/FR001 issues
        """
        result = ValidationResult(series_name=series_name)
        for s in scores:
            if not s.aicc_valid:
                result.add_issue(ValidationIssue.aicc_undefined(s.model, s.n, s.df))
            if s.r_squared < self.min_r_squared:
                result.add_issue(ValidationIssue(
                    code="FR001",
                    category=IssueCategory.FITTING_RESULT,
                    severity=IssueSeverity.WARNING,
                    message=f"Poor {s.model} fit quality: R²={s.r_squared:.3f}",
                    guidance="Low R² suggests this growth form does not describe the series",
                    details={"model": s.model, "r_squared": s.r_squared, "threshold": self.min_r_squared},
                ))
        return result

    def validate_intervals(
        self,
        intervals: Iterable["BootstrapInterval"],
        series_name: str | None = None,
    ) -> ValidationResult:
        """Report underreplicated bootstrap intervals.

        Args:
            intervals: BootstrapInterval per model
            series_name: Series name for the result

        Returns:
            ValidationResult with GM004 issues
        """
        result = ValidationResult(series_name=series_name)
        for interval in intervals:
            if interval.underreplicated:
                result.add_issue(ValidationIssue.bootstrap_underreplicated(
                    interval.model, interval.achieved, interval.requested, interval.failures,
                ))
        return result
