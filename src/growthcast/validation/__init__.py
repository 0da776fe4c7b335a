"""Data validation and error handling for growthcast.

Provides validation for cumulative count series and structured reporting
of modeling failures.

Usage:
    from growthcast.validation import (
        ValidationResult,
        ValidationIssue,
        IssueSeverity,
        IssueCategory,
        InputValidator,
        FittingValidator,
    )

    # Validate input data
    result = InputValidator(min_points=5).validate(series)

    # Report failed fits
    result = FittingValidator().validate_outcomes(outcomes.values())
"""

from .result import (
    IssueSeverity,
    IssueCategory,
    ValidationIssue,
    ValidationResult,
    merge_results,
    summarize_validation,
)
from .input_validator import InputValidator
from .fitting_validator import FittingValidator

__all__ = [
    # Result types
    "IssueSeverity",
    "IssueCategory",
    "ValidationIssue",
    "ValidationResult",
    "merge_results",
    "summarize_validation",
    # Validators
    "InputValidator",
    "FittingValidator",
]
