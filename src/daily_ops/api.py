"""Public API over a DataPaths tree.

Runs the aggregation stages against the bronze layer (``a_raw/``) and writes
the gold collections into ``c_processed/``, recording stage metadata for every
run. Read helpers return the stored aggregates as DataFrames.

Examples:
    >>> from daily_ops import DataPaths
    >>> from daily_ops.api import aggregate_sales, fetch_sales_daily
    >>> paths = DataPaths.from_root("data")
    >>> result = aggregate_sales(paths, "2024-03-01", "2024-03-31")
    >>> result.to_dict()["recordsAggregated"]
    >>> df = fetch_sales_daily(paths, "2024-03-01", "2024-03-31")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import pandas as pd

from daily_ops.aggregate.models import LABOR_COLLECTION, SALES_COLLECTION
from daily_ops.config import AggregationConfig
from daily_ops.exceptions import PersistenceError
from daily_ops.metadata import StageMetadata, read_metadata, should_run_stage, write_metadata
from daily_ops.pipeline import BatchResult, run_labor_aggregation, run_sales_aggregation
from daily_ops.sources import JsonDirectorySource
from daily_ops.store.files import JsonFileStore
from daily_ops.utils import format_duration, validate_scope

if TYPE_CHECKING:
    from daily_ops.config import DataPaths

logger = logging.getLogger(__name__)

SALES_STAGE = "sales"
LABOR_STAGE = "labor"
SALES_VERSION = "sales_aggregation_v1"
LABOR_VERSION = "labor_aggregation_v1"

BREAKDOWNS = (
    "paymentMethodBreakdown",
    "waiterBreakdown",
    "tableBreakdown",
    "hourlyBreakdown",
    "workerBreakdownHourly",
    "divisionHourlyBreakdown",
    "categoryBreakdown",
)


def _run_stage(
    paths: DataPaths,
    stage: str,
    version: str,
    start_date: str,
    end_date: str,
    location_id: Optional[str],
    mode: str,
    run: Callable[[], BatchResult],
) -> BatchResult:
    if mode not in ("missing", "force"):
        raise ValueError(f"Invalid mode '{mode}'. Must be 'missing' or 'force'.")

    paths.ensure_dirs()
    if mode == "missing" and not should_run_stage(
        paths.processed, stage, start_date, end_date, version, location_id
    ):
        meta = read_metadata(paths.processed, stage, start_date, end_date, location_id)
        logger.info("%s aggregation already done for %s to %s; skipping", stage, start_date, end_date)
        return BatchResult(
            success=True,
            status=meta.status if meta else "ok",
            records_aggregated=meta.records_aggregated if meta else 0,
            records_written=0,
            message=f"Skipped: {stage} aggregation for {start_date} to {end_date} is up to date",
        )

    def _meta(status: str, result: Optional[BatchResult], message: str) -> StageMetadata:
        return StageMetadata(
            stage=stage,
            start_date=start_date,
            end_date=end_date,
            version=version,
            last_run=datetime.now().isoformat(),
            status=status,
            locations=[location_id] if location_id else [],
            records_aggregated=result.records_aggregated if result else 0,
            records_written=result.records_written if result else 0,
            message=message,
        )

    t0 = time.perf_counter()
    try:
        result = run()
    except PersistenceError as e:
        partial = e.result
        status = partial.status if partial else "failed"
        logger.error("%s aggregation failed for %s to %s: %s", stage, start_date, end_date, e)
        write_metadata(paths.processed, _meta(status, partial, str(e)))
        raise
    except Exception as e:
        logger.error("%s aggregation failed for %s to %s: %s", stage, start_date, end_date, e)
        write_metadata(paths.processed, _meta("failed", None, str(e)))
        raise

    write_metadata(paths.processed, _meta(result.status, result, result.message))
    logger.info(
        "%s aggregation finished in %s: %s",
        stage,
        format_duration(time.perf_counter() - t0),
        result.message,
    )
    return result


def aggregate_sales(
    paths: DataPaths,
    start_date: str,
    end_date: str,
    location_id: Optional[str] = None,
    *,
    config: Optional[AggregationConfig] = None,
    mode: str = "force",
) -> BatchResult:
    """Aggregate sales from the bronze layer into ``c_processed/sales_aggregated.json``.

    Args:
        paths: DataPaths configuration.
        start_date: Start date in YYYY-MM-DD format (inclusive).
        end_date: End date in YYYY-MM-DD format (inclusive).
        location_id: Optional location filter.
        config: Aggregation config. Defaults to AggregationConfig.from_env().
        mode: "force" (default) always re-aggregates; "missing" skips ranges
            whose metadata says they are complete.

    Returns:
        BatchResult.

    Raises:
        InputValidationError: If the range or location is invalid.
        ValueError: If mode is not "missing" or "force".
        ExtractionError: If raw files cannot be read.
        PersistenceError: If writing the collection fails.

    """
    start, end = validate_scope(start_date, end_date, location_id)
    config = config or AggregationConfig.from_env()
    source = JsonDirectorySource(paths)
    store = JsonFileStore(paths.processed)
    return _run_stage(
        paths,
        SALES_STAGE,
        SALES_VERSION,
        start.isoformat(),
        end.isoformat(),
        location_id,
        mode,
        lambda: run_sales_aggregation(source, store, start, end, location_id, config),
    )


def aggregate_labor(
    paths: DataPaths,
    start_date: str,
    end_date: str,
    location_id: Optional[str] = None,
    *,
    config: Optional[AggregationConfig] = None,
    mode: str = "force",
) -> BatchResult:
    """Aggregate labor from the bronze layer into ``c_processed/labor_aggregated.json``.

    Sales aggregates already stored for the same range are joined in for
    labor cost percentage and revenue per hour, so run aggregate_sales first.

    Args:
        paths: DataPaths configuration.
        start_date: Start date in YYYY-MM-DD format (inclusive).
        end_date: End date in YYYY-MM-DD format (inclusive).
        location_id: Optional location filter.
        config: Aggregation config. Defaults to AggregationConfig.from_env().
        mode: "force" (default) or "missing".

    Returns:
        BatchResult.

    """
    start, end = validate_scope(start_date, end_date, location_id)
    config = config or AggregationConfig.from_env()
    source = JsonDirectorySource(paths)
    store = JsonFileStore(paths.processed)
    return _run_stage(
        paths,
        LABOR_STAGE,
        LABOR_VERSION,
        start.isoformat(),
        end.isoformat(),
        location_id,
        mode,
        lambda: run_labor_aggregation(source, store, start, end, location_id, config),
    )


def _load_collection(
    paths: DataPaths,
    collection: str,
    start_date: str,
    end_date: str,
    location_id: Optional[str],
) -> pd.DataFrame:
    start, end = validate_scope(start_date, end_date, location_id)
    query = {"locationId": location_id} if location_id else None
    docs = JsonFileStore(paths.processed).find(collection, query)
    df = pd.DataFrame(docs)
    if df.empty:
        return df
    df["workingDay"] = pd.to_datetime(df["workingDay"]).dt.date
    df = df[(df["workingDay"] >= start) & (df["workingDay"] <= end)]
    return df.sort_values(["locationId", "workingDay"]).reset_index(drop=True)


def fetch_sales_daily(
    paths: DataPaths,
    start_date: str,
    end_date: str,
    location_id: Optional[str] = None,
) -> pd.DataFrame:
    """Return stored sales aggregates as one row per (locationId, workingDay).

    Breakdown lists are left out; use fetch_sales_breakdown for those.

    Returns:
        DataFrame with the scalar totals (totalRevenue, totalTransactions, ...).
        Empty if nothing is stored for the range.

    """
    df = _load_collection(paths, SALES_COLLECTION, start_date, end_date, location_id)
    return df.drop(columns=[c for c in BREAKDOWNS if c in df.columns])


def fetch_sales_breakdown(
    paths: DataPaths,
    start_date: str,
    end_date: str,
    breakdown: str = "paymentMethodBreakdown",
    location_id: Optional[str] = None,
) -> pd.DataFrame:
    """Return one breakdown of the stored sales aggregates in long form.

    Each row is one breakdown entry, prefixed with locationId and workingDay.

    Raises:
        ValueError: If breakdown is not a known breakdown name.

    """
    if breakdown not in BREAKDOWNS:
        raise ValueError(f"Unknown breakdown '{breakdown}'. Must be one of {', '.join(BREAKDOWNS)}.")
    df = _load_collection(paths, SALES_COLLECTION, start_date, end_date, location_id)
    if df.empty or breakdown not in df.columns:
        return pd.DataFrame()
    rows = [
        {"locationId": doc.locationId, "workingDay": doc.workingDay, **entry}
        for doc in df[["locationId", "workingDay", breakdown]].itertuples(index=False)
        for entry in getattr(doc, breakdown) or []
    ]
    return pd.DataFrame(rows)


def fetch_labor_daily(
    paths: DataPaths,
    start_date: str,
    end_date: str,
    location_id: Optional[str] = None,
) -> pd.DataFrame:
    """Return stored labor aggregates as one row per (locationId, workingDay)."""
    df = _load_collection(paths, LABOR_COLLECTION, start_date, end_date, location_id)
    return df.drop(columns=[c for c in ("teamBreakdown",) if c in df.columns])
