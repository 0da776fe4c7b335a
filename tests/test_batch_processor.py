"""Tests for batch processing of many regions."""

import json

import pandas as pd
import pytest

from growthcast.batch.processor import BatchConfig, BatchResult, RegionProcessor


@pytest.fixture
def bad_region_csv(tmp_path):
    """One region with negative counts and one too short to fit."""
    df = pd.DataFrame({
        "region": ["Island"] * 6 + ["Tiny"] * 3,
        "date": list(pd.date_range("2020-03-01", periods=6)) + list(pd.date_range("2020-03-01", periods=3)),
        "confirmed": [0, 2, -1, 5, 9, 12, 1, 2, 3],
    })
    path = tmp_path / "bad.csv"
    df.to_csv(path, index=False)
    return path


def _processor(fast_config, **kwargs):
    return RegionProcessor(BatchConfig(growthcast_config=fast_config, workers=1, **kwargs))


class TestBatchConfig:
    """Tests for BatchConfig."""

    def test_defaults(self):
        config = BatchConfig()
        assert config.value_column == "confirmed"
        assert config.workers is None
        assert config.format == "json"

    def test_format_override(self, fast_config):
        fast_config.output.format = "csv"
        assert BatchConfig(growthcast_config=fast_config).format == "csv"
        assert BatchConfig(growthcast_config=fast_config, export_format="json").format == "json"


class TestRegionProcessor:
    """Tests for RegionProcessor."""

    def test_load_files(self, fast_config, regions_csv, bad_region_csv):
        series = _processor(fast_config).load_files([regions_csv, bad_region_csv])
        assert set(series) == {"North", "South", "Island", "Tiny"}

    def test_load_files_skips_unreadable(self, fast_config, regions_csv, tmp_path, caplog):
        bogus = tmp_path / "notes.txt"
        bogus.write_text("nothing")
        with caplog.at_level("ERROR"):
            series = _processor(fast_config).load_files([bogus, regions_csv])
        assert set(series) == {"North", "South"}
        assert "Failed to load" in caplog.text

    def test_process_empty(self, fast_config):
        result = _processor(fast_config).process({}, show_progress=False)
        assert isinstance(result, BatchResult)
        assert result.reports == []

    def test_process_counts(self, fast_config, regions_csv, bad_region_csv):
        processor = _processor(fast_config)
        series = processor.load_files([regions_csv, bad_region_csv])
        result = processor.process(series, show_progress=False)

        assert [r.name for r in result.reports] == ["Island", "North", "South", "Tiny"]
        assert result.successful == 2
        assert result.skipped == 2
        assert set(result.validation_results) == {"Island", "North", "South", "Tiny"}

        summary = result.get_validation_summary()
        assert summary["series_with_errors"] == 2
        assert summary["by_code"]["IV001"] == 1
        assert summary["by_code"]["IV002"] == 1

    def test_horizon_override(self, fast_config, regions_csv):
        processor = _processor(fast_config, horizon=3)
        result = processor.process(processor.load_files([regions_csv]), show_progress=False)
        north = next(r for r in result.reports if r.name == "North")
        assert north.horizon == 3
        assert north.interval_table.index.tolist() == [26, 27, 28]


class TestRegionProcessorRun:
    """Tests for the full run with outputs."""

    def test_json_outputs(self, fast_config, regions_csv, bad_region_csv, tmp_path):
        out = tmp_path / "out"
        result = _processor(fast_config).run([regions_csv, bad_region_csv], out, show_progress=False)

        assert result.successful == 2
        data = json.loads((out / "forecasts.json").read_text())
        assert data["series_count"] == 4
        north = next(s for s in data["series"] if s["series"] == "North")
        assert north["days_of_data"] == 25
        assert len(north["forecasts"]["logistic"]) == 7

        report = (out / "validation_report.txt").read_text()
        assert "Island:" in report
        assert "[IV002]" in report

    def test_csv_outputs(self, fast_config, regions_csv, tmp_path):
        out = tmp_path / "out"
        processor = _processor(fast_config, export_format="csv")
        processor.run([regions_csv], out, show_progress=False)

        next_day = pd.read_csv(out / "next_day.csv")
        assert list(next_day.columns) == ["series", "model", "x", "date", "fit", "lwr", "upr"]
        assert set(next_day["series"]) == {"North", "South"}
        assert (next_day["x"] == 26).all()
        assert (out / "tables" / "North_comparison.csv").exists()
        assert (out / "tables" / "South_intervals.csv").exists()
