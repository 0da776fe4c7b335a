"""Validation result types for input and modeling checks.

Provides structured validation results with categorized issues,
severity levels, and actionable guidance.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class IssueSeverity(Enum):
    """Severity level of a validation issue."""
    ERROR = auto()    # Cannot proceed - series or fit is unusable
    WARNING = auto()  # Can proceed with caution - review recommended
    INFO = auto()     # Informational - no action required


class IssueCategory(Enum):
    """Category of validation issue for grouping and filtering."""
    DATA_QUALITY = auto()    # Gaps, duplicates, decreasing counts
    DATA_FORMAT = auto()     # Length, sign, ordering issues
    FITTING_PREREQ = auto()  # Start values could not be estimated
    FITTING_RESULT = auto()  # Non-convergence, undefined criteria
    INTERVAL = auto()        # Bootstrap interval quality


@dataclass
class ValidationIssue:
    """A single validation issue with context and guidance.

    Attributes:
        code: Unique identifier (e.g., "IV002", "GM001")
        category: Issue category for grouping
        severity: Issue severity level
        message: User-friendly description of the issue
        guidance: Actionable next step for resolution
        details: Context data (indices, values, thresholds, etc.)
    """
    code: str
    category: IssueCategory
    severity: IssueSeverity
    message: str
    guidance: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format issue as string for display."""
        severity_str = self.severity.name
        return f"[{self.code}] {severity_str}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "category": self.category.name,
            "severity": self.severity.name,
            "message": self.message,
            "guidance": self.guidance,
            "details": self.details,
        }

    # --- Factory methods for input issues ---

    @staticmethod
    def too_few_points(count: int, min_required: int) -> "ValidationIssue":
        """Create IV001: Too few observations issue."""
        return ValidationIssue(
            code="IV001",
            category=IssueCategory.DATA_FORMAT,
            severity=IssueSeverity.ERROR,
            message=f"Insufficient data points: {count} < {min_required}",
            guidance=f"Need at least {min_required} daily observations to fit growth curves",
            details={"point_count": count, "min_required": min_required},
        )

    @staticmethod
    def negative_counts(count: int, indices: list, values: list) -> "ValidationIssue":
        """Create IV002: Negative cumulative counts issue."""
        return ValidationIssue(
            code="IV002",
            category=IssueCategory.DATA_FORMAT,
            severity=IssueSeverity.ERROR,
            message=f"Found {count} negative counts",
            guidance="Cumulative counts must be non-negative; check data source for errors",
            details={"negative_count": count, "indices": indices[:10], "values": values[:10]},
        )

    @staticmethod
    def decreasing_counts(count: int, indices: list, drops: list) -> "ValidationIssue":
        """Create IV003: Decreasing cumulative counts issue."""
        return ValidationIssue(
            code="IV003",
            category=IssueCategory.DATA_QUALITY,
            severity=IssueSeverity.WARNING,
            message=f"Cumulative counts decrease on {count} day(s)",
            guidance="Decreases usually mean retroactive corrections; fits proceed but residuals will absorb them",
            details={"decrease_count": count, "indices": indices[:10], "drops": drops[:10]},
        )

    @staticmethod
    def date_gaps(gap_count: int, duplicate_count: int, gaps: list) -> "ValidationIssue":
        """Create IV004: Missing or duplicate dates issue.

        Gaps alone are a warning since the day index follows the calendar.
        Duplicate dates are an error.
        """
        return ValidationIssue(
            code="IV004",
            category=IssueCategory.DATA_QUALITY,
            severity=IssueSeverity.ERROR if duplicate_count else IssueSeverity.WARNING,
            message=f"Found {gap_count} date gaps and {duplicate_count} duplicate dates",
            guidance="Expected one record per calendar day; combine duplicate dates before fitting",
            details={"gap_count": gap_count, "duplicate_count": duplicate_count, "gaps": gaps[:5]},
        )

    @staticmethod
    def unsorted_dates(count: int, indices: list) -> "ValidationIssue":
        """Create IV005: Dates out of order issue."""
        return ValidationIssue(
            code="IV005",
            category=IssueCategory.DATA_FORMAT,
            severity=IssueSeverity.ERROR,
            message=f"Dates are not in ascending order ({count} inversions)",
            guidance="Sort records by date before fitting",
            details={"inversion_count": count, "indices": indices[:10]},
        )

    # --- Factory methods for modeling issues ---

    @staticmethod
    def start_value_undefined(model: str, reason: str) -> "ValidationIssue":
        """Create GM001: Start values could not be estimated."""
        return ValidationIssue(
            code="GM001",
            category=IssueCategory.FITTING_PREREQ,
            severity=IssueSeverity.WARNING,
            message=f"{model}: start values undefined ({reason})",
            guidance="Series may be too early in the outbreak for this model; it is excluded from the comparison",
            details={"model": model, "reason": reason},
        )

    @staticmethod
    def fit_non_convergent(model: str, reason: str, message: str) -> "ValidationIssue":
        """Create GM002: Nonlinear fit did not converge."""
        return ValidationIssue(
            code="GM002",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.WARNING,
            message=f"{model}: fit failed ({reason}): {message}",
            guidance="Try a larger max_iter or looser tolerance for this model in the config",
            details={"model": model, "reason": reason},
        )

    @staticmethod
    def aicc_undefined(model: str, n: int, df: int) -> "ValidationIssue":
        """Create GM003: AICc undefined for small samples."""
        return ValidationIssue(
            code="GM003",
            category=IssueCategory.FITTING_RESULT,
            severity=IssueSeverity.INFO,
            message=f"{model}: AICc undefined (n={n} <= df+1={df + 1})",
            guidance="Model does not compete on AICc; AIC and BIC are still compared",
            details={"model": model, "n": n, "df": df},
        )

    @staticmethod
    def bootstrap_underreplicated(
        model: str, achieved: int, requested: int, failures: dict,
    ) -> "ValidationIssue":
        """Create GM004: Too few successful bootstrap replicates."""
        return ValidationIssue(
            code="GM004",
            category=IssueCategory.INTERVAL,
            severity=IssueSeverity.WARNING,
            message=f"{model}: only {achieved}/{requested} bootstrap replicates succeeded",
            guidance="Prediction intervals may be unreliable; consider more replicates or a longer timeout",
            details={"model": model, "achieved": achieved, "requested": requested, "failures": dict(failures)},
        )


@dataclass
class ValidationResult:
    """Collection of validation issues for a series.

    Attributes:
        series_name: Series (region) name (None for file-level validation)
        issues: List of validation issues found
    """
    series_name: str | None = None
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if any ERROR-severity issues exist."""
        return any(i.severity == IssueSeverity.ERROR for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        """Check if any WARNING-severity issues exist."""
        return any(i.severity == IssueSeverity.WARNING for i in self.issues)

    @property
    def is_valid(self) -> bool:
        """Check if no ERROR-severity issues exist."""
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count of ERROR-severity issues."""
        return sum(1 for i in self.issues if i.severity == IssueSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        """Count of WARNING-severity issues."""
        return sum(1 for i in self.issues if i.severity == IssueSeverity.WARNING)

    @property
    def info_count(self) -> int:
        """Count of INFO-severity issues."""
        return sum(1 for i in self.issues if i.severity == IssueSeverity.INFO)

    def add_issue(self, issue: ValidationIssue) -> None:
        """Add an issue to the result."""
        self.issues.append(issue)

    def by_category(self, category: IssueCategory) -> list[ValidationIssue]:
        """Filter issues by category."""
        return [i for i in self.issues if i.category == category]

    def by_severity(self, severity: IssueSeverity) -> list[ValidationIssue]:
        """Filter issues by severity."""
        return [i for i in self.issues if i.severity == severity]

    def by_code(self, code: str) -> list[ValidationIssue]:
        """Filter issues by code."""
        return [i for i in self.issues if i.code == code]

    def errors(self) -> list[ValidationIssue]:
        """Get all ERROR-severity issues."""
        return self.by_severity(IssueSeverity.ERROR)

    def warnings(self) -> list[ValidationIssue]:
        """Get all WARNING-severity issues."""
        return self.by_severity(IssueSeverity.WARNING)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Merge another validation result into this one.

        Args:
            other: Another ValidationResult to merge

        Returns:
            New ValidationResult with combined issues
        """
        return ValidationResult(
            series_name=self.series_name or other.series_name,
            issues=self.issues + other.issues,
        )

    def __str__(self) -> str:
        """Format result as summary string."""
        if not self.issues:
            return f"Validation OK for {self.series_name or 'data'}"

        lines = [f"Validation for {self.series_name or 'data'}: "
                 f"{self.error_count} errors, {self.warning_count} warnings"]
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)


def merge_results(results: list[ValidationResult]) -> ValidationResult:
    """Merge multiple validation results into one.

    Args:
        results: List of ValidationResults to merge

    Returns:
        Combined ValidationResult with all issues
    """
    if not results:
        return ValidationResult()

    combined = results[0]
    for result in results[1:]:
        combined = combined.merge(result)
    return combined


def summarize_validation(
    results: dict[str, ValidationResult] | list[ValidationResult],
) -> dict:
    """Calculate validation summary statistics from results.

    Args:
        results: Dict of series name -> ValidationResult, or list of results

    Returns:
        Dictionary with summary statistics:
            - series_with_errors: count of series with at least one error
            - series_with_warnings: count of series with at least one warning
            - total_errors: total error count
            - total_warnings: total warning count
            - by_category: dict of category name -> issue count
            - by_code: dict of issue code -> issue count
    """
    if isinstance(results, dict):
        result_iter = results.values()
    else:
        result_iter = results

    summary: dict[str, Any] = {
        "series_with_errors": 0,
        "series_with_warnings": 0,
        "total_errors": 0,
        "total_warnings": 0,
        "by_category": {},
        "by_code": {},
    }

    for result in result_iter:
        if result.has_errors:
            summary["series_with_errors"] += 1
        if result.has_warnings:
            summary["series_with_warnings"] += 1
        summary["total_errors"] += result.error_count
        summary["total_warnings"] += result.warning_count

        for issue in result.issues:
            cat_name = issue.category.name
            summary["by_category"][cat_name] = summary["by_category"].get(cat_name, 0) + 1
            summary["by_code"][issue.code] = summary["by_code"].get(issue.code, 0) + 1

    return summary
