"""CLI commands for growthcast."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import pandas as pd
import typer

from ..config import GrowthcastConfig, generate_default_config

app = typer.Typer(
    name="growthcast",
    help="Growth curve fitting and forecasting for cumulative case counts",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option(
            "-v", "--verbose",
            help="Log progress and fit diagnostics to stderr",
        )
    ] = False,
) -> None:
    """Growth curve fitting and forecasting for cumulative case counts."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def _load_config(config: Path | None) -> GrowthcastConfig:
    """Load config file or use defaults, exiting on invalid values."""
    if not config:
        return GrowthcastConfig()
    typer.echo(f"Loading config from {config}")
    try:
        return GrowthcastConfig.from_yaml(config)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _check_format(export_format: str | None) -> None:
    if export_format and export_format not in ("json", "csv"):
        typer.echo(f"Error: Invalid format '{export_format}'. Must be json or csv.", err=True)
        raise typer.Exit(1)


@app.command()
def forecast(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Input CSV/Excel file with daily cumulative counts",
            exists=True,
        )
    ],
    value_column: Annotated[
        str,
        typer.Option(
            "--value-column",
            help="Cumulative count column to model",
        )
    ] = "confirmed",
    date_column: Annotated[
        Optional[str],
        typer.Option(
            "--date-column",
            help="Date column (default: auto-detect)",
        )
    ] = None,
    region: Annotated[
        Optional[str],
        typer.Option(
            "-r", "--region",
            help="Only forecast this region",
        )
    ] = None,
    horizon: Annotated[
        Optional[int],
        typer.Option(
            "-h", "--horizon",
            help="Days to forecast past the last observation (overrides config)",
        )
    ] = None,
    replicates: Annotated[
        Optional[int],
        typer.Option(
            "--replicates",
            help="Bootstrap replicates (overrides config)",
        )
    ] = None,
    block_length: Annotated[
        Optional[int],
        typer.Option(
            "--block-length",
            help="Bootstrap block length (default: ceil(n^(1/3)))",
        )
    ] = None,
    confidence: Annotated[
        Optional[float],
        typer.Option(
            "--confidence",
            help="Prediction interval confidence level (overrides config)",
        )
    ] = None,
    seed: Annotated[
        Optional[int],
        typer.Option(
            "--seed",
            help="Random seed for reproducible intervals",
        )
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option(
            "-w", "--workers",
            help="Worker processes for bootstrap replicates",
        )
    ] = None,
    no_bootstrap: Annotated[
        bool,
        typer.Option(
            "--no-bootstrap",
            help="Skip prediction intervals",
        )
    ] = False,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "-c", "--config",
            help="YAML config file (use 'growthcast init' to generate template)",
            exists=True,
        )
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "-o", "--output",
            help="Output directory for report and tables",
        )
    ] = None,
    export_format: Annotated[
        Optional[str],
        typer.Option(
            "--format",
            help="Export format: json or csv (overrides config)",
        )
    ] = None,
) -> None:
    """Fit growth curves to one file and print forecasts.

    Fits the exponential, logistic, Gompertz and Richards models, prints
    the model comparison and next-day tables for each region, and
    optionally writes the full report.

    Example:
        growthcast forecast cases.csv --region Lombardia --horizon 14 --seed 1
    """
    from ..core.pipeline import GrowthForecaster
    from ..data.loader import load_series
    from ..export.csv_export import CsvExporter
    from ..export.json_export import JsonExporter

    gc_config = _load_config(config)
    _check_format(export_format)

    # CLI overrides
    if replicates is not None:
        gc_config.bootstrap.replicates = replicates
    if block_length is not None:
        gc_config.bootstrap.block_length = block_length
    if confidence is not None:
        gc_config.bootstrap.confidence = confidence
    if seed is not None:
        gc_config.bootstrap.seed = seed
    if workers is not None:
        gc_config.bootstrap.workers = workers
    if no_bootstrap:
        gc_config.bootstrap.enabled = False
    if export_format:
        gc_config.output.format = export_format  # type: ignore
    if horizon is not None:
        gc_config.forecast.horizon = horizon

    try:
        gc_config.validate()
        series_by_region = load_series(input_file, value_column, date_column=date_column)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if region is not None:
        if region not in series_by_region:
            typer.echo(
                f"Error: Region '{region}' not found. "
                f"Available: {', '.join(sorted(series_by_region))}",
                err=True,
            )
            raise typer.Exit(1)
        series_by_region = {region: series_by_region[region]}

    forecaster = GrowthForecaster(gc_config)
    reports = []
    for name, series in series_by_region.items():
        report = forecaster.run(series)
        reports.append(report)
        _print_report(report)

    if output:
        output.mkdir(parents=True, exist_ok=True)
        if gc_config.output.format == "json":
            path = JsonExporter(config=gc_config).save(reports, output / "forecasts.json")
        else:
            path = CsvExporter(tables=gc_config.output.tables).save_all(reports, output)
        typer.echo(f"\nOutput saved to: {path}")


def _print_report(report) -> None:
    """Print comparison and next-day tables for one report."""
    typer.echo("")
    typer.echo(f"== {report.name} ({report.series.n} days, "
               f"{report.series.first_date} to {report.series.last_date}) ==")

    if report.skipped:
        typer.echo("  Skipped: input validation errors")
    for issue in report.validation.issues:
        typer.echo(f"  {issue}")
    if not report.fits:
        return

    with pd.option_context("display.width", 120, "display.max_columns", 20):
        typer.echo("")
        typer.echo("Model comparison:")
        typer.echo(report.comparison_table.to_string(float_format=lambda v: f"{v:.3f}"))
        typer.echo("")
        typer.echo("Next-day prediction:")
        typer.echo(report.next_day.to_string(float_format=lambda v: f"{v:,.1f}"))


@app.command()
def batch(
    input_files: Annotated[
        list[Path],
        typer.Argument(
            help="Input CSV/Excel file(s) with daily cumulative counts",
            exists=True,
        )
    ],
    output: Annotated[
        Path,
        typer.Option(
            "-o", "--output",
            help="Output directory for forecasts and reports",
        )
    ] = Path("output"),
    config: Annotated[
        Optional[Path],
        typer.Option(
            "-c", "--config",
            help="YAML config file (use 'growthcast init' to generate template)",
            exists=True,
        )
    ] = None,
    value_column: Annotated[
        str,
        typer.Option(
            "--value-column",
            help="Cumulative count column to model",
        )
    ] = "confirmed",
    date_column: Annotated[
        Optional[str],
        typer.Option(
            "--date-column",
            help="Date column (default: auto-detect)",
        )
    ] = None,
    region_column: Annotated[
        Optional[str],
        typer.Option(
            "--region-column",
            help="Region column (default: auto-detect)",
        )
    ] = None,
    horizon: Annotated[
        Optional[int],
        typer.Option(
            "-h", "--horizon",
            help="Days to forecast past the last observation (overrides config)",
        )
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option(
            "-w", "--workers",
            help="Number of parallel workers (default: auto)",
        )
    ] = None,
    export_format: Annotated[
        Optional[str],
        typer.Option(
            "--format",
            help="Export format: json or csv (overrides config)",
        )
    ] = None,
) -> None:
    """Forecast every region of one or more files in parallel.

    Example:
        growthcast batch regions.csv -o forecasts/ --value-column deaths
    """
    from ..batch.processor import BatchConfig, RegionProcessor

    gc_config = _load_config(config)
    _check_format(export_format)

    batch_config = BatchConfig(
        growthcast_config=gc_config,
        value_column=value_column,
        date_column=date_column,
        region_column=region_column,
        horizon=horizon,
        workers=workers,
        output_dir=output,
        export_format=export_format,  # type: ignore
    )

    typer.echo(f"Processing {len(input_files)} file(s)...")
    typer.echo(f"Models: {', '.join(gc_config.enabled_models)}")
    result = RegionProcessor(batch_config).run(input_files, output)

    typer.echo("")
    typer.echo("Results:")
    typer.echo(f"  Successful: {result.successful}")
    typer.echo(f"  Failed: {result.failed}")
    typer.echo(f"  Skipped (invalid input): {result.skipped}")

    if result.errors:
        typer.echo(f"\n{len(result.errors)} error(s) occurred. See {output}/errors.txt")

    if result.validation_results:
        summary = result.get_validation_summary()
        typer.echo("")
        typer.echo("Validation Summary:")
        typer.echo(f"  Series with errors: {summary['series_with_errors']}")
        typer.echo(f"  Series with warnings: {summary['series_with_warnings']}")

        if summary["by_code"]:
            typer.echo("")
            typer.echo("  Issues by code:")
            for code, count in sorted(summary["by_code"].items()):
                typer.echo(f"    {code}: {count}")

        if summary['series_with_errors'] > 0 or summary['series_with_warnings'] > 0:
            typer.echo(f"\n  See {output}/validation_report.txt for details")

    typer.echo(f"\nOutput saved to: {output}/")


@app.command()
def init(
    output: Annotated[
        Path,
        typer.Option(
            "-o", "--output",
            help="Output file path",
        )
    ] = Path("growthcast.yaml"),
) -> None:
    """Generate a default configuration file.

    Creates a YAML config file with all available settings and their defaults.
    Edit this file to customize per-model fitting and bootstrap settings.

    Example:
        growthcast init -o my_config.yaml
    """
    if output.exists():
        overwrite = typer.confirm(f"{output} already exists. Overwrite?")
        if not overwrite:
            raise typer.Exit(0)

    path = generate_default_config(output)
    typer.echo(f"Created config file: {path}")


@app.command()
def validate(
    input_files: Annotated[
        list[Path],
        typer.Argument(
            help="Input CSV/Excel file(s) with daily cumulative counts",
            exists=True,
        )
    ],
    value_column: Annotated[
        str,
        typer.Option(
            "--value-column",
            help="Cumulative count column to check",
        )
    ] = "confirmed",
    config: Annotated[
        Optional[Path],
        typer.Option(
            "-c", "--config",
            help="YAML config file with forecast.min_points",
            exists=True,
        )
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "-o", "--output",
            help="Output file for detailed validation report",
        )
    ] = None,
) -> None:
    """Validate count data without fitting.

    Loads every region and runs the input checks (length, negative and
    decreasing counts, date gaps and ordering). Prints a summary and
    optionally writes a detailed report.

    Exit codes:
        0: No errors found (warnings may be present)
        1: Validation errors found

    Example:
        growthcast validate cases.csv --output report.txt
    """
    from ..data.loader import load_series
    from ..validation import InputValidator, ValidationResult, summarize_validation

    gc_config = _load_config(config)
    input_validator = InputValidator(min_points=gc_config.forecast.min_points)

    all_results: list[ValidationResult] = []
    total_series = 0

    for input_file in input_files:
        typer.echo(f"Loading {input_file}...")
        try:
            series_by_region = load_series(input_file, value_column)
        except (OSError, ValueError, KeyError) as e:
            typer.echo(f"  Error loading file: {e}", err=True)
            continue

        typer.echo(f"  Found {len(series_by_region)} series")
        total_series += len(series_by_region)
        all_results.extend(input_validator.validate(s) for s in series_by_region.values())

    summary = summarize_validation(all_results)

    typer.echo("")
    typer.echo("Validation Summary:")
    typer.echo(f"  Total series: {total_series}")
    typer.echo(f"  Series with errors: {summary['series_with_errors']}")
    typer.echo(f"  Series with warnings: {summary['series_with_warnings']}")
    typer.echo(f"  Total errors: {summary['total_errors']}")
    typer.echo(f"  Total warnings: {summary['total_warnings']}")

    if summary["by_code"]:
        typer.echo("")
        typer.echo("Issues by code:")
        for code, count in sorted(summary["by_code"].items()):
            typer.echo(f"  {code}: {count}")

    if output:
        with open(output, "w") as f:
            f.write("growthcast Validation Report\n")
            f.write("=" * 40 + "\n\n")
            f.write(f"Files: {[str(p) for p in input_files]}\n")
            f.write(f"Total series: {total_series}\n")
            f.write(f"Total errors: {summary['total_errors']}\n")
            f.write(f"Total warnings: {summary['total_warnings']}\n\n")

            for result in all_results:
                if result.issues:
                    f.write(f"\n{result.series_name}\n")
                    f.write("-" * 30 + "\n")
                    for issue in result.issues:
                        f.write(f"  [{issue.code}] {issue.severity.name}: {issue.message}\n")
                        f.write(f"    Guidance: {issue.guidance}\n")

        typer.echo(f"\nDetailed report written to: {output}")

    if summary["total_errors"] > 0:
        raise typer.Exit(1)


@app.command()
def info(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Input CSV/Excel file to inspect",
            exists=True,
        )
    ],
    value_column: Annotated[
        str,
        typer.Option(
            "--value-column",
            help="Cumulative count column",
        )
    ] = "confirmed",
) -> None:
    """Display information about a count data file.

    Shows row count, column names, regions, and date ranges.
    """
    from ..data.loader import load_file, series_from_frame

    typer.echo(f"Inspecting: {input_file}")
    typer.echo("")

    df = load_file(input_file)
    typer.echo(f"Rows: {len(df)}")
    typer.echo(f"Columns: {list(df.columns)}")

    try:
        series_by_region = series_from_frame(df, value_column)
    except ValueError as e:
        typer.echo(f"Could not read series: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Series found: {len(series_by_region)}")
    typer.echo("\nSample series:")
    for name, series in list(series_by_region.items())[:5]:
        typer.echo(
            f"  {name}: {series.n} days, "
            f"{series.first_date} to {series.last_date}, "
            f"last count {series.y[-1]:,.0f}"
        )
    if len(series_by_region) > 5:
        typer.echo(f"  ... and {len(series_by_region) - 5} more")
