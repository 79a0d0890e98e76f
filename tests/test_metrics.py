"""Tests for derived metrics and breakdown ordering."""

from datetime import date
from decimal import Decimal

from daily_ops.aggregate.engine import (
    CATEGORY,
    DIVISION_HOUR,
    PAYMENT_METHOD,
    EntryAccumulator,
    GroupAccumulator,
)
from daily_ops.aggregate.metrics import build_breakdown, build_entry, finalize_group
from daily_ops.utils import round_money, safe_ratio


def _entry(revenue: str, *tickets: str) -> EntryAccumulator:
    return EntryAccumulator(Decimal(revenue), Decimal(0), Decimal(1), set(tickets))


def test_build_entry_metrics() -> None:
    entry = build_entry({"paymentMethod": "cash"}, _entry("25.00", "t1", "t2"), Decimal("40"))
    assert entry.total_revenue == 25.0
    assert entry.transaction_count == 2
    assert entry.average_transaction_value == 12.5
    assert entry.percentage_of_total == 62.5
    assert entry.to_document()["paymentMethod"] == "cash"


def test_zero_revenue_group_has_zero_percentages() -> None:
    entry = build_entry({"hour": 3}, _entry("0"), Decimal(0))
    assert entry.percentage_of_total == 0.0
    assert entry.average_transaction_value == 0.0


def test_money_rounds_half_up() -> None:
    assert round_money(Decimal("2.345")) == 2.35
    assert round_money(Decimal("2.344")) == 2.34
    assert round_money(Decimal("-1.005")) == -1.01
    assert safe_ratio(1, 0) == 0


def test_revenue_sorted_breakdowns_break_ties_by_key() -> None:
    acc = GroupAccumulator("L", date(2024, 3, 1), revenue_inc_vat=Decimal(30))
    acc.breakdowns[PAYMENT_METHOD] = {
        ("pin",): _entry("10", "a"),
        ("cash",): _entry("10", "b"),
        ("card",): _entry("10", "c"),
    }
    names = [e.key["paymentMethod"] for e in build_breakdown(acc, PAYMENT_METHOD)]
    assert names == ["card", "cash", "pin"]


def test_hour_breakdowns_sorted_by_hour_then_key() -> None:
    acc = GroupAccumulator("L", date(2024, 3, 1), revenue_inc_vat=Decimal(6))
    acc.breakdowns[DIVISION_HOUR] = {
        ("Food", 20): _entry("1", "a"),
        ("Beverage", 20): _entry("2", "b"),
        ("Food", 9): _entry("3", "c"),
    }
    keys = [(e.key["division"], e.key["hour"]) for e in build_breakdown(acc, DIVISION_HOUR)]
    assert keys == [("Food", 9), ("Beverage", 20), ("Food", 20)]


def test_missing_main_category_sorts_last_on_ties() -> None:
    acc = GroupAccumulator("L", date(2024, 3, 1), revenue_inc_vat=Decimal(10))
    acc.breakdowns[CATEGORY] = {
        (None, "Losse"): _entry("5", "a"),
        ("Bar", "Bier"): _entry("5", "b"),
    }
    keys = [(e.key["mainCategory"], e.key["category"]) for e in build_breakdown(acc, CATEGORY)]
    assert keys == [("Bar", "Bier"), (None, "Losse")]


def test_finalize_empty_accumulator() -> None:
    record = finalize_group(GroupAccumulator("L", date(2024, 3, 1)))
    doc = record.to_document()
    assert record.key == ("L", "2024-03-01")
    assert doc["totalRevenue"] == 0.0
    assert doc["averageTransactionValue"] == 0.0
    assert doc["paymentMethodBreakdown"] == []
