"""Labor aggregation from shift documents.

Shifts are normalized one by one, collected into a DataFrame and summarized
per (location, working day) with a pandas groupby. When sales aggregates for
the same key exist, labor cost percentage and revenue per hour are added.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Optional

import numpy as np
import pandas as pd

from daily_ops.aggregate.models import LaborAggregateRecord
from daily_ops.config import AggregationConfig
from daily_ops.exceptions import MalformedRecordWarning
from daily_ops.normalize.cleaning import clean_text
from daily_ops.normalize.fields import extract_field
from daily_ops.normalize.shifts import normalize_shift
from daily_ops.utils import round_money, safe_ratio

logger = logging.getLogger(__name__)

UNASSIGNED_TEAM = "Unassigned"

SHIFT_COLUMNS = [
    "location_id",
    "working_day",
    "shift_id",
    "worker_key",
    "team_name",
    "hours_worked",
    "break_minutes",
    "wage_cost",
]


@dataclass
class LaborOutcome:
    """Result of aggregating a batch of shift records."""

    records: list[LaborAggregateRecord] = field(default_factory=list)
    warnings: list[MalformedRecordWarning] = field(default_factory=list)
    records_seen: int = 0
    records_skipped: int = 0


def shifts_frame(
    records: Iterable[Any],
    config: AggregationConfig,
) -> tuple[pd.DataFrame, list[MalformedRecordWarning], int]:
    """Normalize shift records into a DataFrame with SHIFT_COLUMNS.

    Returns:
        Tuple of (frame, warnings, records_seen). Unparseable records are
        left out of the frame and reported as warnings.

    """
    rows = []
    warnings: list[MalformedRecordWarning] = []
    seen = 0
    for record in records:
        seen += 1
        try:
            shift = normalize_shift(record, config)
        except (ValueError, TypeError, ArithmeticError) as e:
            warning = MalformedRecordWarning(str(e), clean_text(extract_field(record, ("_id", "id"))))
            logger.warning("Skipping malformed shift: %s", warning)
            warnings.append(warning)
            continue
        rows.append(
            {
                "location_id": shift.location_id,
                "working_day": shift.working_day,
                "shift_id": shift.shift_id,
                "worker_key": shift.worker_id or shift.worker_name,
                "team_name": shift.team_name or UNASSIGNED_TEAM,
                "hours_worked": shift.hours_worked,
                "break_minutes": shift.break_minutes,
                "wage_cost": shift.wage_cost,
            }
        )
    df = pd.DataFrame(rows, columns=SHIFT_COLUMNS)
    return df, warnings, seen


def _team_breakdown(df: pd.DataFrame) -> dict[tuple[str, date], list[dict[str, Any]]]:
    teams = (
        df.groupby(["location_id", "working_day", "team_name"], sort=True)
        .agg(
            hours_worked=("hours_worked", "sum"),
            wage_cost=("wage_cost", "sum"),
            shift_count=("hours_worked", "size"),
        )
        .reset_index()
        .sort_values(["location_id", "working_day", "hours_worked", "team_name"], ascending=[True, True, False, True])
    )
    out: dict[tuple[str, date], list[dict[str, Any]]] = {}
    for row in teams.itertuples(index=False):
        out.setdefault((row.location_id, row.working_day), []).append(
            {
                "teamName": row.team_name,
                "hoursWorked": round_money(row.hours_worked),
                "wageCost": round_money(row.wage_cost),
                "shiftCount": int(row.shift_count),
            }
        )
    return out


def summarize_shifts(df: pd.DataFrame) -> list[LaborAggregateRecord]:
    """Summarize a shifts frame into one record per (location, working day).

    Args:
        df: Frame with SHIFT_COLUMNS.

    Returns:
        Records sorted by location and working day.

    """
    if df.empty:
        return []

    df = df.sort_values(["location_id", "working_day", "shift_id", "worker_key"], na_position="last")
    summary = (
        df.groupby(["location_id", "working_day"], sort=True)
        .agg(
            total_hours_worked=("hours_worked", "sum"),
            total_break_minutes=("break_minutes", "sum"),
            total_wage_cost=("wage_cost", "sum"),
            shift_count=("hours_worked", "size"),
            worker_count=("worker_key", "nunique"),
        )
        .reset_index()
    )
    summary["average_hours_per_worker"] = (
        summary["total_hours_worked"] / summary["worker_count"].replace(0, np.nan)
    ).fillna(0.0)
    summary["average_wage_per_hour"] = (
        summary["total_wage_cost"] / summary["total_hours_worked"].replace(0, np.nan)
    ).fillna(0.0)

    teams = _team_breakdown(df)
    records = []
    for row in summary.itertuples(index=False):
        key = (row.location_id, row.working_day)
        records.append(
            LaborAggregateRecord(
                location_id=row.location_id,
                working_day=row.working_day,
                total_hours_worked=round_money(row.total_hours_worked),
                total_break_minutes=round_money(row.total_break_minutes),
                total_wage_cost=round_money(row.total_wage_cost),
                shift_count=int(row.shift_count),
                worker_count=int(row.worker_count),
                average_hours_per_worker=round_money(row.average_hours_per_worker),
                average_wage_per_hour=round_money(row.average_wage_per_hour),
                team_breakdown=teams.get(key, []),
            )
        )
    return records


def join_sales(
    records: Iterable[LaborAggregateRecord],
    sales_by_key: Mapping[tuple[str, str], Mapping[str, Any]],
) -> list[LaborAggregateRecord]:
    """Attach revenue ratios from sales documents keyed by (locationId, workingDay).

    Records without a matching sales document are returned unchanged.
    """
    out = []
    for record in records:
        sales = sales_by_key.get(record.key)
        if sales is None:
            out.append(record)
            continue
        revenue = sales.get("totalRevenue") or 0.0
        out.append(
            replace(
                record,
                total_revenue=round_money(revenue),
                labor_cost_percentage=round_money(safe_ratio(record.total_wage_cost, revenue, 100)),
                revenue_per_hour=round_money(safe_ratio(revenue, record.total_hours_worked)),
            )
        )
    return out


def aggregate_labor(
    records: Iterable[Any],
    config: Optional[AggregationConfig] = None,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    sales_by_key: Optional[Mapping[tuple[str, str], Mapping[str, Any]]] = None,
) -> LaborOutcome:
    """Aggregate raw shift records per (location, working day).

    Args:
        records: Raw labor records.
        config: Aggregation config. Defaults to AggregationConfig().
        start: If given, shifts on earlier working days are dropped.
        end: If given, shifts on later working days are dropped.
        sales_by_key: Optional sales documents for revenue ratios.

    Returns:
        LaborOutcome.

    """
    config = config or AggregationConfig()
    df, warnings, seen = shifts_frame(records, config)
    if start is not None:
        df = df[df["working_day"] >= start]
    if end is not None:
        df = df[df["working_day"] <= end]

    summaries = summarize_shifts(df)
    if sales_by_key:
        summaries = join_sales(summaries, sales_by_key)

    logger.info(
        "Aggregated %d shifts into %d labor records (%d skipped)",
        seen,
        len(summaries),
        len(warnings),
    )
    return LaborOutcome(
        records=summaries,
        warnings=warnings,
        records_seen=seen,
        records_skipped=len(warnings),
    )
