"""Smoke tests for the file-backed API over a DataPaths tree.

These tests write raw documents into a temporary bronze layer, run the
aggregation stages and read the gold collections back as DataFrames.
"""

import json
from datetime import date
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from daily_ops import AggregationConfig, DataPaths, ExtractionError, InputValidationError
from daily_ops.api import (
    aggregate_labor,
    aggregate_sales,
    fetch_labor_daily,
    fetch_sales_breakdown,
    fetch_sales_daily,
)
from daily_ops.metadata import read_metadata
from tests.test_utils import CATEGORY_ROWS, LOCATION, make_shift, scenario_a_records


def _seed(root: Path) -> DataPaths:
    paths = DataPaths.from_root(root)
    paths.ensure_dirs()
    (paths.raw_transactions / "2024-03-01.json").write_text(json.dumps(scenario_a_records()), encoding="utf-8")
    shifts = [make_shift("w1", hours_worked=5, wage_cost=20), make_shift("w2", hours_worked=3, wage_cost=12)]
    (paths.raw_labor / "shifts.jsonl").write_text(
        "\n".join(json.dumps(s) for s in shifts) + "\n", encoding="utf-8"
    )
    (paths.reference / "categories.json").write_text(json.dumps(CATEGORY_ROWS), encoding="utf-8")
    return paths


def test_config_creation() -> None:
    """Test that DataPaths derives the layer directories from data_root."""
    paths = DataPaths.from_root("data")
    assert paths.data_root == Path("data")
    assert paths.raw_transactions == Path("data/a_raw/transactions")
    assert paths.raw_labor == Path("data/a_raw/labor")
    assert paths.reference == Path("data/reference")
    assert paths.processed == Path("data/c_processed")


def test_aggregate_sales_invalid_mode() -> None:
    """Test that aggregate_sales raises on invalid mode."""
    with TemporaryDirectory() as tmpdir:
        paths = DataPaths.from_root(tmpdir)
        with pytest.raises(ValueError, match="Invalid mode"):
            aggregate_sales(paths, "2024-03-01", "2024-03-01", mode="invalid")


def test_aggregate_sales_invalid_range() -> None:
    with TemporaryDirectory() as tmpdir:
        paths = DataPaths.from_root(tmpdir)
        with pytest.raises(InputValidationError):
            aggregate_sales(paths, "2024-03-05", "2024-03-01")
        assert not paths.processed.exists()


def test_sales_and_labor_end_to_end() -> None:
    """Aggregate sales then labor, and read both back as DataFrames."""
    with TemporaryDirectory() as tmpdir:
        paths = _seed(Path(tmpdir))
        config = AggregationConfig()

        sales = aggregate_sales(paths, "2024-03-01", "2024-03-01", config=config)
        assert sales.status == "ok"
        assert sales.records_written == 1
        assert (paths.processed / "sales_aggregated.json").exists()

        labor = aggregate_labor(paths, "2024-03-01", "2024-03-01", config=config)
        assert labor.records_written == 1

        daily = fetch_sales_daily(paths, "2024-03-01", "2024-03-31")
        assert len(daily) == 1
        assert daily.loc[0, "locationId"] == LOCATION
        assert daily.loc[0, "workingDay"] == date(2024, 3, 1)
        assert daily.loc[0, "totalRevenue"] == 40.0
        assert "paymentMethodBreakdown" not in daily.columns

        payments = fetch_sales_breakdown(paths, "2024-03-01", "2024-03-01")
        assert list(payments["paymentMethod"]) == ["cash", "card"]
        assert list(payments["totalRevenue"]) == [25.0, 15.0]

        divisions = fetch_sales_breakdown(paths, "2024-03-01", "2024-03-01", "divisionHourlyBreakdown")
        assert list(zip(divisions["division"], divisions["hour"])) == [("Food", 19), ("Beverage", 20)]

        labor_df = fetch_labor_daily(paths, "2024-03-01", "2024-03-01")
        assert labor_df.loc[0, "totalHoursWorked"] == 8.0
        assert labor_df.loc[0, "laborCostPercentage"] == 80.0
        assert labor_df.loc[0, "revenuePerHour"] == 5.0
        assert "teamBreakdown" not in labor_df.columns


def test_mode_missing_skips_completed_ranges() -> None:
    with TemporaryDirectory() as tmpdir:
        paths = _seed(Path(tmpdir))
        config = AggregationConfig()
        aggregate_sales(paths, "2024-03-01", "2024-03-01", config=config)
        meta = read_metadata(paths.processed, "sales", "2024-03-01", "2024-03-01")
        assert meta is not None
        assert meta.status == "ok"
        assert meta.version == "sales_aggregation_v1"
        assert meta.records_written == 1

        skipped = aggregate_sales(paths, "2024-03-01", "2024-03-01", config=config, mode="missing")
        assert skipped.records_written == 0
        assert skipped.message.startswith("Skipped")

        forced = aggregate_sales(paths, "2024-03-01", "2024-03-01", config=config, mode="force")
        assert forced.records_written == 1


def test_failed_run_records_metadata() -> None:
    with TemporaryDirectory() as tmpdir:
        paths = _seed(Path(tmpdir))
        (paths.raw_transactions / "broken.json").write_text("[{", encoding="utf-8")
        with pytest.raises(ExtractionError):
            aggregate_sales(paths, "2024-03-01", "2024-03-01", config=AggregationConfig())
        meta = read_metadata(paths.processed, "sales", "2024-03-01", "2024-03-01")
        assert meta is not None
        assert meta.status == "failed"


def test_fetch_unknown_breakdown() -> None:
    with TemporaryDirectory() as tmpdir:
        paths = DataPaths.from_root(tmpdir)
        with pytest.raises(ValueError, match="Unknown breakdown"):
            fetch_sales_breakdown(paths, "2024-03-01", "2024-03-01", "nope")


def test_fetch_empty_collection() -> None:
    with TemporaryDirectory() as tmpdir:
        paths = DataPaths.from_root(tmpdir)
        assert fetch_sales_daily(paths, "2024-03-01", "2024-03-01").empty
        assert fetch_labor_daily(paths, "2024-03-01", "2024-03-01").empty
