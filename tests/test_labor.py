"""Tests for shift normalization and labor aggregation."""

from datetime import date

import pytest

from daily_ops.aggregate.labor import aggregate_labor, join_sales
from daily_ops.config import AggregationConfig
from daily_ops.normalize.shifts import normalize_shift
from tests.test_utils import LOCATION, make_shift

CONFIG = AggregationConfig()


class TestNormalizeShift:
    """Shift documents with differing field names and placement."""

    def test_hours_from_start_end_across_midnight(self) -> None:
        shift = normalize_shift(make_shift("w1", start="17:00", end="01:00", break_minutes=30), CONFIG)
        assert shift.hours_worked == 7.5
        assert shift.break_minutes == 30.0
        assert shift.working_day == date(2024, 3, 1)

    def test_fields_inside_payload(self) -> None:
        record = {
            "_id": "s9",
            "payload": {
                "environmentId": LOCATION,
                "date": "2024-03-01",
                "extracted": {"hoursWorked": 5},
                "costs": {"wage": "75,00"},
                "team": {"name": "Bar"},
            },
        }
        shift = normalize_shift(record, CONFIG)
        assert shift.location_id == LOCATION
        assert shift.hours_worked == 5.0
        assert shift.wage_cost == 75.0
        assert shift.team_name == "Bar"

    def test_wage_from_hourly_rate(self) -> None:
        shift = normalize_shift(make_shift("w1", hours=4, hourly_wage=15), CONFIG)
        assert shift.wage_cost == 60.0

    def test_wage_from_default_rate(self) -> None:
        config = AggregationConfig(default_hourly_wage=12.5)
        assert normalize_shift(make_shift("w1", hours=4), config).wage_cost == 50.0
        assert normalize_shift(make_shift("w1", hours=4), CONFIG).wage_cost == 0.0

    def test_date_from_start_time(self) -> None:
        record = {"environmentId": LOCATION, "userId": "w1", "start": "2024-03-02T02:00:00", "hours": 3}
        assert normalize_shift(record, CONFIG).working_day == date(2024, 3, 1)

    @pytest.mark.parametrize(
        "record",
        [
            {"date": "2024-03-01", "hours": 3},
            {"environmentId": LOCATION, "hours": 3},
            "not a shift",
        ],
    )
    def test_unusable_shift_raises(self, record) -> None:
        with pytest.raises(ValueError):
            normalize_shift(record, CONFIG)


def test_labor_totals_per_day() -> None:
    records = [
        make_shift("w1", hours_worked=8, wage_cost=120, team_name="Keuken"),
        make_shift("w2", hours_worked=3, wage_cost=36, team_name="Bar"),
        make_shift("w2", hours_worked=2, wage_cost=24, team_name="Bar"),
        make_shift("w3", day="2024-03-02", hours_worked=4, wage_cost=48),
    ]
    outcome = aggregate_labor(records, CONFIG)
    assert [r.key for r in outcome.records] == [(LOCATION, "2024-03-01"), (LOCATION, "2024-03-02")]

    first = outcome.records[0]
    assert first.total_hours_worked == 13.0
    assert first.total_wage_cost == 180.0
    assert first.shift_count == 3
    assert first.worker_count == 2
    assert first.average_hours_per_worker == 6.5
    assert first.average_wage_per_hour == 13.85
    assert [(t["teamName"], t["hoursWorked"], t["shiftCount"]) for t in first.team_breakdown] == [
        ("Keuken", 8.0, 1),
        ("Bar", 5.0, 2),
    ]
    assert outcome.records[1].team_breakdown[0]["teamName"] == "Unassigned"


def test_range_filter_and_malformed_shifts() -> None:
    records = [
        make_shift("w1", hours_worked=8),
        make_shift("w2", day="2024-03-05", hours_worked=8),
        {"_id": "bad", "hours": 3},
    ]
    outcome = aggregate_labor(records, CONFIG, start=date(2024, 3, 1), end=date(2024, 3, 1))
    assert len(outcome.records) == 1
    assert outcome.records_seen == 3
    assert outcome.records_skipped == 1
    assert outcome.warnings[0].record_id == "bad"


def test_zero_hours_gives_zero_ratios() -> None:
    outcome = aggregate_labor([make_shift("w1", wage_cost=10)], CONFIG)
    record = outcome.records[0]
    assert record.total_hours_worked == 0.0
    assert record.average_wage_per_hour == 0.0
    joined = join_sales([record], {record.key: {"totalRevenue": 100.0}})[0]
    assert joined.labor_cost_percentage == 10.0
    assert joined.revenue_per_hour == 0.0


def test_no_shifts() -> None:
    outcome = aggregate_labor([], CONFIG, start=date(2024, 3, 1), end=date(2024, 3, 1))
    assert outcome.records == []
    assert outcome.records_seen == 0
