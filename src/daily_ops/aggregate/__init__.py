"""Aggregation of normalized lines and shifts into daily summaries.

Submodules:
    engine: grouping and accumulation of sale lines (sales_aggregated)
    metrics: averages, percentages and ordering of finished groups
    labor: shift aggregation with pandas (labor_aggregated)
    models: record types and their stored document shape
"""

from daily_ops.aggregate.engine import AggregationOutcome, GroupAccumulator, aggregate_transactions
from daily_ops.aggregate.labor import LaborOutcome, aggregate_labor
from daily_ops.aggregate.metrics import finalize_group
from daily_ops.aggregate.models import AggregateRecord, BreakdownEntry, LaborAggregateRecord

__all__ = [
    "AggregateRecord",
    "AggregationOutcome",
    "BreakdownEntry",
    "GroupAccumulator",
    "LaborAggregateRecord",
    "LaborOutcome",
    "aggregate_labor",
    "aggregate_transactions",
    "finalize_group",
]
