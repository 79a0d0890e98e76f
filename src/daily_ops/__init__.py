"""daily-ops core - batch aggregation of POS tickets and shifts.

This package turns raw point-of-sale documents (ticket -> order -> line) and
workforce shift documents into daily summaries keyed by
``(locationId, workingDay)``:

- **Bronze (raw)**: documents written by the external sync process
- **Gold (aggregated)**: ``sales_aggregated`` and ``labor_aggregated``

Module Structure:
    daily_ops.normalize: field normalizer, ticket and shift expansion
    daily_ops.working_day: working-day (business day) resolution
    daily_ops.categories: category hierarchy and division classification
    daily_ops.aggregate: grouping engine, metrics and labor aggregation
    daily_ops.writer: deduplicating upsert writer
    daily_ops.pipeline: one stateless batch over a date range
    daily_ops.api: stages over a DataPaths tree, DataFrame read helpers

Quick Start:
    >>> from daily_ops import AggregationConfig, MemorySource, MemoryStore
    >>> from daily_ops.pipeline import run_sales_aggregation
    >>>
    >>> source = MemorySource(transactions=raw_records, categories=category_rows)
    >>> store = MemoryStore()
    >>> result = run_sales_aggregation(source, store, "2024-03-01", "2024-03-31")
    >>> result.to_dict()
"""

__version__ = "0.1.0"

from daily_ops.config import AggregationConfig, DataPaths
from daily_ops.exceptions import (
    ConfigError,
    DailyOpsError,
    ETLError,
    ExtractionError,
    InputValidationError,
    MalformedRecordWarning,
    PersistenceError,
)
from daily_ops.pipeline import BatchResult, run_labor_aggregation, run_sales_aggregation
from daily_ops.sources import JsonDirectorySource, MemorySource
from daily_ops.store import JsonFileStore, MemoryStore

__all__ = [
    "AggregationConfig",
    "BatchResult",
    "ConfigError",
    "DailyOpsError",
    "DataPaths",
    "ETLError",
    "ExtractionError",
    "InputValidationError",
    "JsonDirectorySource",
    "JsonFileStore",
    "MalformedRecordWarning",
    "MemorySource",
    "MemoryStore",
    "PersistenceError",
    "__version__",
    "run_labor_aggregation",
    "run_sales_aggregation",
]
