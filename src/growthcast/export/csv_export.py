"""Export forecast report tables as CSV files."""

from pathlib import Path
from typing import TYPE_CHECKING

import pandas as pd

from ..config import OUTPUT_TABLES

if TYPE_CHECKING:
    from ..core.pipeline import ForecastReport


def _safe_name(name: str) -> str:
    return name.replace("/", "_").replace(" ", "_")


class CsvExporter:
    """Export report tables to CSV.

    Tables:
    - comparison: one row per model with loglik, df, R², AIC, AICc, BIC,
      win markers and win counts
    - point_forecast: one row per x with the fitted value of each model
    - intervals: one row per future x with fit/lwr/upr per model
    - next_day: one row per model at the first unobserved day
    - predictions: long table, one row per (model, x)
    """

    def __init__(self, tables: list[str] | None = None, float_format: str = "%.4f"):
        """Initialize exporter.

        Args:
            tables: Tables to write (default: all)
            float_format: Format string for floats
        """
        tables = list(tables) if tables is not None else list(OUTPUT_TABLES)
        unknown = set(tables) - set(OUTPUT_TABLES)
        if unknown:
            raise ValueError(f"Unknown table(s): {', '.join(sorted(unknown))}")
        self.tables = tables
        self.float_format = float_format

    def save(self, report: "ForecastReport", output_dir: Path | str) -> list[Path]:
        """Write the selected tables of one report.

        Files are named {series}_{table}.csv. Empty tables are skipped.

        Args:
            report: Forecast report
            output_dir: Output directory

        Returns:
            Paths of written files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        report_tables = report.tables
        for table in self.tables:
            frame = report_tables[table]
            if frame.empty:
                continue
            path = output_dir / f"{_safe_name(report.name)}_{table}.csv"
            frame.to_csv(path, float_format=self.float_format, index=table != "predictions")
            written.append(path)
        return written

    def save_next_day(self, reports: list["ForecastReport"], output_path: Path | str) -> Path:
        """Write one next-day table covering several series.

        Args:
            reports: Forecast reports
            output_path: Output file path

        Returns:
            Path to saved file
        """
        frames = [
            r.next_day.reset_index().assign(series=r.name)
            for r in reports
            if not r.next_day.empty
        ]
        columns = ["series", "model", "x", "date", "fit", "lwr", "upr"]
        combined = pd.concat(frames, ignore_index=True)[columns] if frames else pd.DataFrame(columns=columns)

        output_path = Path(output_path)
        combined.to_csv(output_path, index=False, float_format=self.float_format)
        return output_path

    def save_all(self, reports: list["ForecastReport"], output_dir: Path | str) -> Path:
        """Write per-series tables under tables/ and a combined next_day.csv.

        Args:
            reports: Forecast reports
            output_dir: Output directory

        Returns:
            Path to the combined next-day file
        """
        output_dir = Path(output_dir)
        for report in reports:
            self.save(report, output_dir / "tables")
        output_dir.mkdir(parents=True, exist_ok=True)
        return self.save_next_day(reports, output_dir / "next_day.csv")
