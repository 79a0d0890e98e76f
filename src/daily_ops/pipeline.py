"""Batch aggregation pipeline.

One call runs one stateless batch over an explicit ``[start, end]`` range and
optional location:

    Validate -> Fetch -> Normalize -> Aggregate -> Metrics -> Dedupe -> Upsert

Fetching covers one extra calendar day so that after-midnight sales of the
last working day are included; groups outside the range are dropped before
anything is written.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional, TypeVar

from daily_ops.aggregate.engine import aggregate_transactions, record_location
from daily_ops.aggregate.labor import aggregate_labor
from daily_ops.aggregate.metrics import finalize_group
from daily_ops.aggregate.models import LABOR_COLLECTION, SALES_COLLECTION
from daily_ops.categories import CategorySnapshot
from daily_ops.config import AggregationConfig
from daily_ops.exceptions import DailyOpsError, ExtractionError, PersistenceError
from daily_ops.sources import TransactionSource
from daily_ops.store.base import DocumentStore
from daily_ops.utils import validate_scope
from daily_ops.writer import upsert_records

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchResult:
    """Structured outcome of one batch.

    Attributes:
        success: False only when the write failed.
        status: "ok", "partial" (records skipped or write interrupted),
            "empty" (nothing to aggregate) or "failed".
        records_aggregated: Aggregates computed.
        records_written: Documents upserted.
        message: Human-readable summary.
        warnings: One message per skipped record.
    """

    success: bool
    status: str
    records_aggregated: int = 0
    records_written: int = 0
    message: str = ""
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "recordsAggregated": self.records_aggregated,
            "recordsWritten": self.records_written,
            "message": self.message,
            "warnings": list(self.warnings),
        }


def _fetch(what: str, fn: Callable[[], T]) -> T:
    """Run a fetch, turning backend failures into ExtractionError."""
    try:
        return fn()
    except DailyOpsError:
        logger.error("Fetching %s failed", what)
        raise
    except Exception as e:
        logger.error("Fetching %s failed: %s", what, e)
        raise ExtractionError(f"Fetching {what} failed: {e}") from e


def _status(aggregated: int, skipped: int) -> str:
    if skipped:
        return "partial"
    return "ok" if aggregated else "empty"


def _write(
    store: DocumentStore,
    collection: str,
    records: list[Any],
    config: AggregationConfig,
    result: BatchResult,
) -> BatchResult:
    try:
        result.records_written = upsert_records(store, collection, records, config.upsert_batch_size)
    except PersistenceError as e:
        result.records_written = e.written
        result.success = False
        result.status = "partial" if e.written else "failed"
        result.message = f"{result.message}; write failed after {e.written} documents: {e}"
        e.result = result
        raise
    return result


def build_snapshots(
    source: TransactionSource,
    locations: list[str],
    config: AggregationConfig,
) -> dict[str, CategorySnapshot]:
    """Fetch category rows and build one snapshot per location."""
    snapshots = {}
    for location in locations:
        rows = _fetch(f"categories for {location}", lambda: source.fetch_categories(location))
        snapshots[location] = CategorySnapshot.from_rows(
            rows, location_id=location, max_depth=config.max_category_depth
        )
        logger.debug("Category snapshot for %s: %r", location, snapshots[location])
    return snapshots


def run_sales_aggregation(
    source: TransactionSource,
    store: DocumentStore,
    start_date: Any,
    end_date: Any,
    location_id: Optional[str] = None,
    config: Optional[AggregationConfig] = None,
) -> BatchResult:
    """Aggregate sales for a range and upsert one document per (location, working day).

    Args:
        source: Raw document source.
        store: Target document store.
        start_date: First working day (YYYY-MM-DD or date), inclusive.
        end_date: Last working day (YYYY-MM-DD or date), inclusive.
        location_id: Optional location filter.
        config: Aggregation config. Defaults to AggregationConfig().

    Returns:
        BatchResult.

    Raises:
        InputValidationError: If the scope is invalid (nothing is fetched).
        ExtractionError: If fetching raw documents fails.
        PersistenceError: If the upsert fails; ``result`` holds the partial
            BatchResult and ``written`` the documents already written.

    """
    config = config or AggregationConfig()
    start, end = validate_scope(start_date, end_date, location_id)
    logger.info("Sales aggregation for %s to %s (location=%s)", start, end, location_id or "all")

    records = _fetch(
        "transactions",
        lambda: source.fetch_transactions(start, end + timedelta(days=1), location_id),
    )
    locations = sorted({loc for loc in map(record_location, records) if loc})
    snapshots = build_snapshots(source, locations, config)

    outcome = aggregate_transactions(records, snapshots, config, start=start, end=end)
    aggregates = [finalize_group(outcome.groups[key]) for key in sorted(outcome.groups)]

    result = BatchResult(
        success=True,
        status=_status(len(aggregates), outcome.records_skipped),
        records_aggregated=len(aggregates),
        message=(
            f"Aggregated {len(aggregates)} sales records from {outcome.records_seen} "
            f"raw records for {start} to {end}"
        ),
        warnings=[str(w) for w in outcome.warnings],
    )
    if outcome.records_skipped:
        result.message += f" ({outcome.records_skipped} skipped)"
    return _write(store, SALES_COLLECTION, aggregates, config, result)


def _sales_in_range(
    store: DocumentStore,
    start: date,
    end: date,
    location_id: Optional[str],
) -> dict[tuple[str, str], dict[str, Any]]:
    query = {"locationId": location_id} if location_id else None
    docs = _fetch("sales aggregates", lambda: store.find(SALES_COLLECTION, query))
    lo, hi = start.isoformat(), end.isoformat()
    return {
        (d["locationId"], d["workingDay"]): d
        for d in docs
        if "locationId" in d and lo <= str(d.get("workingDay", "")) <= hi
    }


def run_labor_aggregation(
    source: TransactionSource,
    store: DocumentStore,
    start_date: Any,
    end_date: Any,
    location_id: Optional[str] = None,
    config: Optional[AggregationConfig] = None,
    *,
    join_sales: bool = True,
) -> BatchResult:
    """Aggregate labor for a range and upsert one document per (location, working day).

    When join_sales is set, sales aggregates already stored for the same keys
    add labor cost percentage and revenue per hour.

    Raises:
        InputValidationError: If the scope is invalid (nothing is fetched).
        ExtractionError: If fetching raw documents fails.
        PersistenceError: If the upsert fails.

    """
    config = config or AggregationConfig()
    start, end = validate_scope(start_date, end_date, location_id)
    logger.info("Labor aggregation for %s to %s (location=%s)", start, end, location_id or "all")

    records = _fetch(
        "labor",
        lambda: source.fetch_labor(start, end + timedelta(days=1), location_id),
    )
    sales = _sales_in_range(store, start, end, location_id) if join_sales else None
    outcome = aggregate_labor(records, config, start=start, end=end, sales_by_key=sales)

    result = BatchResult(
        success=True,
        status=_status(len(outcome.records), outcome.records_skipped),
        records_aggregated=len(outcome.records),
        message=(
            f"Aggregated {len(outcome.records)} labor records from {outcome.records_seen} "
            f"shifts for {start} to {end}"
        ),
        warnings=[str(w) for w in outcome.warnings],
    )
    return _write(store, LABOR_COLLECTION, outcome.records, config, result)
