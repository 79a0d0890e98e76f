"""Aggregated record types and their stored document shape.

Documents use camelCase keys and are keyed by ``(locationId, workingDay)``.
They carry no wall-clock timestamps, so aggregating the same input twice
produces identical documents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

KEY_FIELDS = ("locationId", "workingDay")

SALES_COLLECTION = "sales_aggregated"
LABOR_COLLECTION = "labor_aggregated"


@dataclass(frozen=True)
class BreakdownEntry:
    """One row of a breakdown dimension.

    Attributes:
        key: Dimension key fields, e.g. ``{"paymentMethod": "cash"}`` or
            ``{"division": "Food", "hour": 19}``.
        total_revenue: Revenue including VAT.
        revenue_ex_vat: Revenue excluding VAT.
        quantity: Items sold.
        transaction_count: Distinct tickets contributing to the entry.
        average_transaction_value: total_revenue / transaction_count.
        percentage_of_total: Share of the group's total revenue (0-100).
    """

    key: dict[str, Any]
    total_revenue: float
    revenue_ex_vat: float
    quantity: float
    transaction_count: int
    average_transaction_value: float
    percentage_of_total: float

    def to_document(self) -> dict[str, Any]:
        doc = dict(self.key)
        doc.update(
            {
                "totalRevenue": self.total_revenue,
                "revenueExVat": self.revenue_ex_vat,
                "quantity": self.quantity,
                "transactionCount": self.transaction_count,
                "averageTransactionValue": self.average_transaction_value,
                "percentageOfTotal": self.percentage_of_total,
            }
        )
        return doc


def _entries(entries: list[BreakdownEntry]) -> list[dict[str, Any]]:
    return [e.to_document() for e in entries]


@dataclass(frozen=True)
class AggregateRecord:
    """Sales summary for one location and working day."""

    location_id: str
    working_day: date
    quantity: float
    revenue_ex_vat: float
    revenue_inc_vat: float
    transaction_count: int
    line_count: int
    unique_products: int
    average_transaction_value: float
    by_payment_method: list[BreakdownEntry] = field(default_factory=list)
    by_waiter: list[BreakdownEntry] = field(default_factory=list)
    by_table: list[BreakdownEntry] = field(default_factory=list)
    by_hour: list[BreakdownEntry] = field(default_factory=list)
    by_worker_hour: list[BreakdownEntry] = field(default_factory=list)
    by_division_hour: list[BreakdownEntry] = field(default_factory=list)
    by_category: list[BreakdownEntry] = field(default_factory=list)
    category_snapshot_version: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        """Natural key (location_id, working day as YYYY-MM-DD)."""
        return (self.location_id, self.working_day.isoformat())

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored document shape."""
        return {
            "locationId": self.location_id,
            "workingDay": self.working_day.isoformat(),
            "totalQuantity": self.quantity,
            "totalRevenueExVat": self.revenue_ex_vat,
            "totalRevenue": self.revenue_inc_vat,
            "totalTransactions": self.transaction_count,
            "averageTransactionValue": self.average_transaction_value,
            "lineCount": self.line_count,
            "uniqueProducts": self.unique_products,
            "paymentMethodBreakdown": _entries(self.by_payment_method),
            "waiterBreakdown": _entries(self.by_waiter),
            "tableBreakdown": _entries(self.by_table),
            "hourlyBreakdown": _entries(self.by_hour),
            "workerBreakdownHourly": _entries(self.by_worker_hour),
            "divisionHourlyBreakdown": _entries(self.by_division_hour),
            "categoryBreakdown": _entries(self.by_category),
            "categorySnapshotVersion": self.category_snapshot_version,
        }


@dataclass(frozen=True)
class LaborAggregateRecord:
    """Labor summary for one location and working day.

    The revenue fields are only filled when a sales aggregate exists for the
    same key.
    """

    location_id: str
    working_day: date
    total_hours_worked: float
    total_break_minutes: float
    total_wage_cost: float
    shift_count: int
    worker_count: int
    average_hours_per_worker: float
    average_wage_per_hour: float
    team_breakdown: list[dict[str, Any]] = field(default_factory=list)
    total_revenue: Optional[float] = None
    labor_cost_percentage: Optional[float] = None
    revenue_per_hour: Optional[float] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.location_id, self.working_day.isoformat())

    def to_document(self) -> dict[str, Any]:
        return {
            "locationId": self.location_id,
            "workingDay": self.working_day.isoformat(),
            "totalHoursWorked": self.total_hours_worked,
            "totalBreakMinutes": self.total_break_minutes,
            "totalWageCost": self.total_wage_cost,
            "shiftCount": self.shift_count,
            "workerCount": self.worker_count,
            "averageHoursPerWorker": self.average_hours_per_worker,
            "averageWagePerHour": self.average_wage_per_hour,
            "teamBreakdown": [dict(t) for t in self.team_breakdown],
            "totalRevenue": self.total_revenue,
            "laborCostPercentage": self.labor_cost_percentage,
            "revenuePerHour": self.revenue_per_hour,
        }
