"""Export forecast reports in JSON format."""

import json
import math
from datetime import datetime
from pathlib import Path
from typing import Any, TYPE_CHECKING

import numpy as np

from ..config import GrowthcastConfig
from ..validation import ValidationResult

if TYPE_CHECKING:
    from ..core.pipeline import ForecastReport


def _clean(value: Any) -> Any:
    """Convert numpy scalars and arrays to JSON types, NaN/inf to None."""
    if isinstance(value, dict):
        return {str(k): _clean(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clean(v) for v in value]
    if isinstance(value, np.ndarray):
        return [_clean(v) for v in value.tolist()]
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class JsonExporter:
    """Export forecast reports in JSON format.

    Produces a structured JSON file containing configuration, per-series
    fits, selection scores, win counts, forecasts with intervals, and
    validation results.
    """

    def __init__(
        self,
        config: GrowthcastConfig | None = None,
        decimals: int = 4,
    ):
        """Initialize exporter.

        Args:
            config: growthcast configuration (included in export)
            decimals: Rounding applied to forecast values
        """
        self.config = config or GrowthcastConfig()
        self.decimals = decimals

    def _export_forecasts(self, report: "ForecastReport") -> dict[str, list[dict]]:
        """Forecast rows per model: x, date, fit, lwr, upr."""
        forecasts: dict[str, list[dict]] = {}
        for _, row in report.predictions.iterrows():
            forecasts.setdefault(row["model"], []).append({
                "x": int(row["x"]),
                "date": row["date"].date().isoformat(),
                "fit": round(float(row["fit"]), self.decimals),
                "lwr": round(float(row["lwr"]), self.decimals),
                "upr": round(float(row["upr"]), self.decimals),
            })
        return forecasts

    def _export_validation(
        self,
        validation_result: ValidationResult | None,
    ) -> dict[str, Any]:
        """Export validation results.

        Args:
            validation_result: Validation result for the series

        Returns:
            Validation data dict
        """
        if validation_result is None:
            return {
                "errors": 0,
                "warnings": 0,
                "issues": [],
            }

        issues = []
        for issue in validation_result.issues:
            issues.append({
                "code": issue.code,
                "severity": issue.severity.name.lower(),
                "message": issue.message,
                "guidance": issue.guidance,
            })

        return {
            "errors": validation_result.error_count,
            "warnings": validation_result.warning_count,
            "issues": issues,
        }

    def export_report(self, report: "ForecastReport") -> dict[str, Any]:
        """Export single report to JSON-compatible dict.

        Args:
            report: Forecast report for one series

        Returns:
            Series data dict
        """
        series = report.series
        return _clean({
            "series": report.name,
            "first_date": series.first_date.isoformat() if series.first_date else None,
            "last_date": series.last_date.isoformat() if series.last_date else None,
            "days_of_data": series.n,
            "horizon": report.horizon,
            "skipped": report.skipped,
            "models": {name: outcome.summary() for name, outcome in report.outcomes.items()},
            "scores": {name: s.to_dict() for name, s in report.scores.items()},
            "winners": dict(report.comparison.winners) if report.comparison else {},
            "wins": dict(report.comparison.wins) if report.comparison else {},
            "intervals": {name: i.summary() for name, i in report.intervals.items()},
            "forecasts": self._export_forecasts(report),
            "validation": self._export_validation(report.validation),
        })

    def export_reports(self, reports: list["ForecastReport"]) -> dict[str, Any]:
        """Export multiple reports to JSON-compatible dict.

        Args:
            reports: Forecast reports

        Returns:
            Complete export data dict
        """
        return {
            "generated": datetime.now().isoformat(timespec="seconds"),
            "config": _clean(self.config.to_dict()),
            "series_count": len(reports),
            "series": [self.export_report(r) for r in reports],
        }

    def save(
        self,
        reports: list["ForecastReport"],
        output_path: Path | str,
    ) -> Path:
        """Export reports and save to JSON file.

        Args:
            reports: Forecast reports
            output_path: Output file path

        Returns:
            Path to saved file
        """
        output_path = Path(output_path)
        data = self.export_reports(reports)

        with open(output_path, "w") as f:
            json.dump(data, f, indent=2)

        return output_path
