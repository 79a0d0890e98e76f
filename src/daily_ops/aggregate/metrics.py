"""Derived metrics over finished group accumulators.

finalize_group is a pure function: it turns the Decimal sums of a
GroupAccumulator into an AggregateRecord with rounded money values, averages,
percentages and a deterministic order for every breakdown.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import Any

from daily_ops.aggregate.engine import (
    CATEGORY,
    DIVISION_HOUR,
    HOUR,
    PAYMENT_METHOD,
    TABLE,
    WAITER,
    WORKER_HOUR,
    EntryAccumulator,
    GroupAccumulator,
)
from daily_ops.aggregate.models import AggregateRecord, BreakdownEntry
from daily_ops.utils import round_money, safe_ratio

# Document key names for each position of a dimension's key tuple.
KEY_NAMES: dict[str, tuple[str, ...]] = {
    PAYMENT_METHOD: ("paymentMethod",),
    WAITER: ("waiterName",),
    TABLE: ("tableNumber",),
    HOUR: ("hour",),
    WORKER_HOUR: ("waiterName", "hour"),
    DIVISION_HOUR: ("division", "hour"),
    CATEGORY: ("mainCategory", "category"),
}


def _key_order(key: tuple) -> tuple:
    """Sortable form of a key tuple; None sorts last."""
    return tuple((v is None, v if v is not None else 0) for v in key)


def by_revenue_desc(item: tuple[tuple, EntryAccumulator]) -> tuple:
    key, entry = item
    return (-entry.revenue_inc_vat, _key_order(key))


def by_hour_then_key(item: tuple[tuple, EntryAccumulator]) -> tuple:
    key, _ = item
    hour = key[-1]
    return (hour, _key_order(key[:-1]))


def by_key(item: tuple[tuple, EntryAccumulator]) -> tuple:
    return _key_order(item[0])


SORT_ORDER: dict[str, Callable[[tuple[tuple, EntryAccumulator]], Any]] = {
    PAYMENT_METHOD: by_revenue_desc,
    WAITER: by_revenue_desc,
    TABLE: by_revenue_desc,
    CATEGORY: by_revenue_desc,
    HOUR: by_key,
    WORKER_HOUR: by_hour_then_key,
    DIVISION_HOUR: by_hour_then_key,
}


def build_entry(key: dict[str, Any], entry: EntryAccumulator, group_revenue: Decimal) -> BreakdownEntry:
    """Compute averages and the share of group revenue for one entry.

    Examples:
        >>> acc = EntryAccumulator(Decimal("25"), Decimal("22.94"), Decimal("2"), {"t1"})
        >>> build_entry({"paymentMethod": "cash"}, acc, Decimal("40")).percentage_of_total
        62.5

    """
    count = len(entry.tickets)
    return BreakdownEntry(
        key=key,
        total_revenue=round_money(entry.revenue_inc_vat),
        revenue_ex_vat=round_money(entry.revenue_ex_vat),
        quantity=float(entry.quantity),
        transaction_count=count,
        average_transaction_value=round_money(safe_ratio(entry.revenue_inc_vat, count)),
        percentage_of_total=round_money(safe_ratio(entry.revenue_inc_vat, group_revenue, 100)),
    )


def build_breakdown(acc: GroupAccumulator, dimension: str) -> list[BreakdownEntry]:
    """Sorted, finalized entries of one breakdown dimension."""
    names = KEY_NAMES[dimension]
    items = sorted(acc.breakdowns[dimension].items(), key=SORT_ORDER[dimension])
    return [build_entry(dict(zip(names, key)), entry, acc.revenue_inc_vat) for key, entry in items]


def finalize_group(acc: GroupAccumulator) -> AggregateRecord:
    """Turn a finished accumulator into an AggregateRecord.

    Args:
        acc: Accumulator for one (location, working day).

    Returns:
        AggregateRecord with rounded totals and sorted breakdowns.

    """
    transactions = len(acc.tickets)
    return AggregateRecord(
        location_id=acc.location_id,
        working_day=acc.working_day,
        quantity=float(acc.quantity),
        revenue_ex_vat=round_money(acc.revenue_ex_vat),
        revenue_inc_vat=round_money(acc.revenue_inc_vat),
        transaction_count=transactions,
        line_count=acc.line_count,
        unique_products=len(acc.products),
        average_transaction_value=round_money(safe_ratio(acc.revenue_inc_vat, transactions)),
        by_payment_method=build_breakdown(acc, PAYMENT_METHOD),
        by_waiter=build_breakdown(acc, WAITER),
        by_table=build_breakdown(acc, TABLE),
        by_hour=build_breakdown(acc, HOUR),
        by_worker_hour=build_breakdown(acc, WORKER_HOUR),
        by_division_hour=build_breakdown(acc, DIVISION_HOUR),
        by_category=build_breakdown(acc, CATEGORY),
        category_snapshot_version=acc.category_version,
    )
