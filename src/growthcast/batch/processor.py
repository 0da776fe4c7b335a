"""Batch processing for multiple regions with parallel execution."""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal
import logging
import os

from tqdm import tqdm

from ..config import GrowthcastConfig
from ..core.pipeline import ForecastReport, GrowthForecaster
from ..data.loader import load_series
from ..data.series import TimeSeries
from ..export.csv_export import CsvExporter
from ..export.json_export import JsonExporter
from ..validation import ValidationResult, summarize_validation

logger = logging.getLogger(__name__)


@dataclass
class BatchConfig:
    """Configuration for batch processing.

    Attributes:
        growthcast_config: Full config with per-model settings
        value_column: Cumulative count column in input files
        date_column: Date column (auto-detected if None)
        region_column: Region column (auto-detected if None)
        horizon: Forecast horizon override (config default if None)
        workers: Number of parallel workers (None = auto)
        output_dir: Output directory for results
        export_format: Export format (json or csv; config default if None)
    """
    growthcast_config: GrowthcastConfig = field(default_factory=GrowthcastConfig)
    value_column: str = "confirmed"
    date_column: str | None = None
    region_column: str | None = None
    horizon: int | None = None
    workers: int | None = None
    output_dir: Path | None = None
    export_format: Literal["json", "csv"] | None = None

    @property
    def format(self) -> str:
        return self.export_format or self.growthcast_config.output.format


@dataclass
class BatchResult:
    """Results from batch processing.

    Attributes:
        reports: Forecast reports, sorted by series name
        successful: Count of series with at least one converged model
        failed: Count of series where no model converged or processing raised
        skipped: Count of series skipped on input validation errors
        errors: List of (series name, error message) tuples
        validation_results: Dict of series name -> ValidationResult
    """
    reports: list[ForecastReport]
    successful: int
    failed: int
    skipped: int
    errors: list[tuple[str, str]]
    validation_results: dict[str, ValidationResult] = field(default_factory=dict)

    def get_validation_summary(self) -> dict:
        """Get summary of validation results.

        Returns:
            Dict with counts by severity, category and code
        """
        return summarize_validation(self.validation_results)


def _forecast_single_region(
    series: TimeSeries,
    config: GrowthcastConfig,
    horizon: int | None = None,
) -> tuple[ForecastReport, list[str]]:
    """Forecast a single region (worker function).

    Args:
        series: Cumulative count series for the region
        config: growthcast configuration
        horizon: Forecast horizon override

    Returns:
        Tuple of (forecast report, list of error messages)
    """
    errors = []
    report = GrowthForecaster(config).run(series, horizon=horizon)
    for name, failure in report.failures.items():
        errors.append(f"{name}: {failure.reason.value} - {failure.message}")
    return report, errors


class RegionProcessor:
    """Forecast many regions with parallel curve fitting."""

    def __init__(self, config: BatchConfig | None = None):
        """Initialize batch processor.

        Args:
            config: Batch processing configuration
        """
        self.config = config or BatchConfig()

    def load_files(self, filepaths: list[Path | str]) -> dict[str, TimeSeries]:
        """Load regional series from multiple files.

        Args:
            filepaths: List of input file paths

        Returns:
            Combined dict of region name -> TimeSeries (later files win on
            duplicate names)
        """
        all_series = {}

        for filepath in filepaths:
            try:
                series = load_series(
                    filepath,
                    value_column=self.config.value_column,
                    date_column=self.config.date_column,
                    region_column=self.config.region_column,
                )
            except (OSError, ValueError, KeyError) as e:
                logger.error(f"Failed to load {filepath}: {e}")
                continue
            duplicates = set(series) & set(all_series)
            if duplicates:
                logger.warning(f"Regions in {filepath} replace earlier ones: {', '.join(sorted(duplicates))}")
            all_series.update(series)

        return all_series

    def process(
        self,
        series_by_region: dict[str, TimeSeries],
        show_progress: bool = True,
    ) -> BatchResult:
        """Forecast regions in parallel.

        Args:
            series_by_region: Dict of region name -> TimeSeries
            show_progress: Whether to show progress bar

        Returns:
            BatchResult with reports and statistics
        """
        if not series_by_region:
            return BatchResult(reports=[], successful=0, failed=0, skipped=0, errors=[])

        workers = self.config.workers
        if workers is None:
            workers = min(os.cpu_count() or 4, len(series_by_region))

        config = self.config.growthcast_config
        if workers > 1 and config.bootstrap.workers > 1:
            # Regions already run in parallel; avoid nested process pools
            config = replace(config, bootstrap=replace(config.bootstrap, workers=1))

        successful = 0
        failed = 0
        skipped = 0
        all_errors = []
        reports = []
        all_validation_results = {}

        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(
                    _forecast_single_region,
                    series,
                    config,
                    self.config.horizon,
                ): name
                for name, series in series_by_region.items()
            }

            iterator = as_completed(futures)
            if show_progress:
                iterator = tqdm(
                    iterator,
                    total=len(futures),
                    desc="Fitting regions"
                )

            for future in iterator:
                name = futures[future]
                try:
                    report, errors = future.result()
                except Exception as e:
                    failed += 1
                    all_errors.append((name, str(e)))
                    logger.error(f"Failed to process {name}: {e}")
                    continue

                reports.append(report)
                all_validation_results[name] = report.validation
                all_errors.extend((name, e) for e in errors)

                if report.skipped:
                    skipped += 1
                elif report.fits:
                    successful += 1
                else:
                    failed += 1

        reports.sort(key=lambda r: r.name)
        return BatchResult(
            reports=reports,
            successful=successful,
            failed=failed,
            skipped=skipped,
            errors=all_errors,
            validation_results=all_validation_results,
        )

    def run(
        self,
        input_files: list[Path | str],
        output_dir: Path | str | None = None,
        show_progress: bool = True
    ) -> BatchResult:
        """Run complete batch processing pipeline.

        Args:
            input_files: Input file paths
            output_dir: Output directory (overrides config)
            show_progress: Whether to show progress bars

        Returns:
            BatchResult with reports
        """
        output_dir = Path(output_dir) if output_dir else self.config.output_dir
        if output_dir:
            output_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Loading series from {len(input_files)} file(s)")
        series = self.load_files(input_files)
        logger.info(f"Loaded {len(series)} total series")

        result = self.process(series, show_progress=show_progress)
        logger.info(
            f"Processing complete: {result.successful} successful, "
            f"{result.failed} failed, {result.skipped} skipped"
        )

        if output_dir:
            self._save_outputs(result, output_dir)

        return result

    def _save_outputs(self, result: BatchResult, output_dir: Path) -> None:
        """Save all outputs to directory.

        Args:
            result: Batch processing result
            output_dir: Output directory
        """
        config = self.config.growthcast_config
        if self.config.format == "json":
            exporter = JsonExporter(config=config)
            forecast_path = output_dir / "forecasts.json"
            exporter.save(result.reports, forecast_path)
        else:
            exporter = CsvExporter(tables=config.output.tables)
            forecast_path = exporter.save_all(result.reports, output_dir)

        logger.info(f"Saved forecast to {forecast_path}")

        # Save error log
        if result.errors:
            error_path = output_dir / "errors.txt"
            with open(error_path, "w") as f:
                for name, error in result.errors:
                    f.write(f"{name}: {error}\n")
            logger.info(f"Saved error log to {error_path}")

        # Save validation report
        if result.validation_results:
            self._save_validation_report(result, output_dir)

    def _save_validation_report(
        self,
        result: BatchResult,
        output_dir: Path,
    ) -> None:
        """Save validation report to file.

        Args:
            result: Batch processing result
            output_dir: Output directory
        """
        report_path = output_dir / "validation_report.txt"
        summary = result.get_validation_summary()

        with open(report_path, "w") as f:
            f.write("growthcast Validation Report\n")
            f.write("=" * 40 + "\n\n")

            f.write("Summary:\n")
            f.write(f"  Series with errors: {summary['series_with_errors']}\n")
            f.write(f"  Series with warnings: {summary['series_with_warnings']}\n")
            f.write(f"  Total errors: {summary['total_errors']}\n")
            f.write(f"  Total warnings: {summary['total_warnings']}\n\n")

            if summary["by_category"]:
                f.write("Issues by category:\n")
                for cat, count in sorted(summary["by_category"].items()):
                    f.write(f"  {cat}: {count}\n")
                f.write("\n")

            f.write("Detailed Issues:\n")
            f.write("-" * 40 + "\n")

            for name, val_result in sorted(result.validation_results.items()):
                if val_result.issues:
                    f.write(f"\n{name}:\n")
                    for issue in val_result.issues:
                        f.write(f"  [{issue.code}] {issue.severity.name}: {issue.message}\n")
                        f.write(f"    Guidance: {issue.guidance}\n")

        logger.info(f"Saved validation report to {report_path}")
