"""Grouping and accumulation of sale lines per (location, working day).

Each raw record is expanded into NormalizedLines, and every line is added to
the accumulator of its ``(location_id, working_day)`` group. One pass fills
the totals and all breakdown dimensions together. Amounts are kept as Decimal,
so totals do not depend on the order records arrive in.

With ``config.workers > 1`` records are sharded by location, each shard is
reduced on its own thread, and the shard accumulators are merged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from daily_ops.categories import CategoryResolution, CategorySnapshot, classify_division
from daily_ops.config import AggregationConfig
from daily_ops.exceptions import MalformedRecordWarning
from daily_ops.normalize.cleaning import clean_text
from daily_ops.normalize.fields import RECORD_FIELDS, extract_field
from daily_ops.normalize.tickets import NormalizedLine, expand_lines

logger = logging.getLogger(__name__)

PAYMENT_METHOD = "payment_method"
WAITER = "waiter"
TABLE = "table"
HOUR = "hour"
WORKER_HOUR = "worker_hour"
DIVISION_HOUR = "division_hour"
CATEGORY = "category"

DIMENSIONS = (PAYMENT_METHOD, WAITER, TABLE, HOUR, WORKER_HOUR, DIVISION_HOUR, CATEGORY)

GroupKey = tuple[str, date]

_RECORD = {spec.name: spec.candidates for spec in RECORD_FIELDS}


@dataclass
class EntryAccumulator:
    """Running sums for one breakdown entry."""

    revenue_inc_vat: Decimal = Decimal(0)
    revenue_ex_vat: Decimal = Decimal(0)
    quantity: Decimal = Decimal(0)
    tickets: set[str] = field(default_factory=set)

    def add(self, line: NormalizedLine) -> None:
        self.revenue_inc_vat += line.revenue_inc_vat
        self.revenue_ex_vat += line.revenue_ex_vat
        self.quantity += line.quantity
        self.tickets.add(line.ticket_key)

    def merge(self, other: EntryAccumulator) -> None:
        self.revenue_inc_vat += other.revenue_inc_vat
        self.revenue_ex_vat += other.revenue_ex_vat
        self.quantity += other.quantity
        self.tickets |= other.tickets


@dataclass
class GroupAccumulator:
    """Totals and breakdown maps for one (location, working day) group."""

    location_id: str
    working_day: date
    category_version: Optional[str] = None
    revenue_inc_vat: Decimal = Decimal(0)
    revenue_ex_vat: Decimal = Decimal(0)
    quantity: Decimal = Decimal(0)
    line_count: int = 0
    tickets: set[str] = field(default_factory=set)
    products: set[str] = field(default_factory=set)
    breakdowns: dict[str, dict[tuple, EntryAccumulator]] = field(
        default_factory=lambda: {name: {} for name in DIMENSIONS}
    )

    @property
    def key(self) -> GroupKey:
        return (self.location_id, self.working_day)

    def _bump(self, dimension: str, key: tuple, line: NormalizedLine) -> None:
        entries = self.breakdowns[dimension]
        entry = entries.get(key)
        if entry is None:
            entry = entries[key] = EntryAccumulator()
        entry.add(line)

    def add(self, line: NormalizedLine, resolution: CategoryResolution) -> None:
        """Add one line to the totals and every applicable breakdown.

        Lines without a waiter or table are left out of those breakdowns
        only. Lines whose category has no division are left out of the
        division-hour breakdown only.
        """
        self.revenue_inc_vat += line.revenue_inc_vat
        self.revenue_ex_vat += line.revenue_ex_vat
        self.quantity += line.quantity
        self.line_count += 1
        self.tickets.add(line.ticket_key)
        self.products.add(line.product_name)

        self._bump(PAYMENT_METHOD, (line.payment_method,), line)
        self._bump(HOUR, (line.hour,), line)
        self._bump(CATEGORY, (resolution.main_category, resolution.category), line)
        if line.waiter:
            self._bump(WAITER, (line.waiter,), line)
            self._bump(WORKER_HOUR, (line.waiter, line.hour), line)
        if line.table:
            self._bump(TABLE, (line.table,), line)
        division = classify_division(resolution.main_category, resolution.category)
        if division:
            self._bump(DIVISION_HOUR, (division, line.hour), line)

    def merge(self, other: GroupAccumulator) -> None:
        """Fold another accumulator for the same key into this one."""
        if other.key != self.key:
            raise ValueError(f"Cannot merge group {other.key} into {self.key}")
        self.revenue_inc_vat += other.revenue_inc_vat
        self.revenue_ex_vat += other.revenue_ex_vat
        self.quantity += other.quantity
        self.line_count += other.line_count
        self.tickets |= other.tickets
        self.products |= other.products
        self.category_version = self.category_version or other.category_version
        for dimension, entries in other.breakdowns.items():
            mine = self.breakdowns[dimension]
            for key, entry in entries.items():
                if key in mine:
                    mine[key].merge(entry)
                else:
                    copy = EntryAccumulator()
                    copy.merge(entry)
                    mine[key] = copy


@dataclass
class AggregationOutcome:
    """Result of reducing a batch of raw records.

    Attributes:
        groups: Accumulators keyed by (location_id, working_day).
        warnings: One MalformedRecordWarning per skipped record.
        records_seen: Number of raw records read.
        records_skipped: Number of raw records that could not be parsed.
    """

    groups: dict[GroupKey, GroupAccumulator] = field(default_factory=dict)
    warnings: list[MalformedRecordWarning] = field(default_factory=list)
    records_seen: int = 0
    records_skipped: int = 0

    def merge(self, other: AggregationOutcome) -> None:
        for key, acc in other.groups.items():
            if key in self.groups:
                self.groups[key].merge(acc)
            else:
                self.groups[key] = acc
        self.warnings.extend(other.warnings)
        self.records_seen += other.records_seen
        self.records_skipped += other.records_skipped


def record_location(record: Any) -> Optional[str]:
    """Location id of a raw record, or None when it has none."""
    return clean_text(extract_field(record, _RECORD["location_id"]))


def _record_id(record: Any) -> Optional[str]:
    return clean_text(extract_field(record, _RECORD["record_id"]))


def _reduce(
    records: Iterable[Any],
    snapshots: Mapping[str, CategorySnapshot],
    config: AggregationConfig,
) -> AggregationOutcome:
    outcome = AggregationOutcome()
    empty = CategorySnapshot(max_depth=config.max_category_depth)
    for record in records:
        outcome.records_seen += 1
        try:
            lines = expand_lines(record, config)
        except (ValueError, TypeError, ArithmeticError) as e:
            warning = MalformedRecordWarning(str(e), _record_id(record))
            logger.warning("Skipping malformed record: %s", warning)
            outcome.warnings.append(warning)
            outcome.records_skipped += 1
            continue

        for line in lines:
            snapshot = snapshots.get(line.location_id)
            if snapshot is None:
                snapshot = empty
            key = (line.location_id, line.working_day)
            acc = outcome.groups.get(key)
            if acc is None:
                acc = outcome.groups[key] = GroupAccumulator(
                    location_id=line.location_id,
                    working_day=line.working_day,
                    category_version=snapshot.version,
                )
            acc.add(line, snapshot.resolve(line.category))
    return outcome


def shard_by_location(records: Sequence[Any], shards: int) -> list[list[Any]]:
    """Partition records into at most `shards` lists, one location per list.

    Locations are assigned round-robin in sorted order; records without a
    location share one bucket.
    """
    by_location: dict[str, list[Any]] = {}
    for record in records:
        by_location.setdefault(record_location(record) or "", []).append(record)
    buckets: list[list[Any]] = [[] for _ in range(min(shards, len(by_location)) or 1)]
    for i, location in enumerate(sorted(by_location)):
        buckets[i % len(buckets)].extend(by_location[location])
    return buckets


def aggregate_transactions(
    records: Iterable[Any],
    snapshots: Optional[Mapping[str, CategorySnapshot]] = None,
    config: Optional[AggregationConfig] = None,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> AggregationOutcome:
    """Group raw transaction records into per-(location, working day) accumulators.

    A record that cannot be parsed is skipped and a MalformedRecordWarning is
    recorded; the batch never aborts for one bad record.

    Args:
        records: Raw transaction records.
        snapshots: Category snapshot per location id. Locations without a
            snapshot resolve every category as unmapped.
        config: Aggregation config. Defaults to AggregationConfig().
        start: If given, groups with an earlier working day are dropped.
        end: If given, groups with a later working day are dropped.

    Returns:
        AggregationOutcome.

    """
    config = config or AggregationConfig()
    snapshots = snapshots or {}
    records = list(records)

    if config.workers > 1 and len(records) > 1:
        shards = shard_by_location(records, config.workers)
        logger.debug("Reducing %d records in %d shards", len(records), len(shards))
        outcome = AggregationOutcome()
        with ThreadPoolExecutor(max_workers=len(shards)) as executor:
            for partial in executor.map(lambda shard: _reduce(shard, snapshots, config), shards):
                outcome.merge(partial)
    else:
        outcome = _reduce(records, snapshots, config)

    if start is not None or end is not None:
        outside = [
            key
            for key in outcome.groups
            if (start is not None and key[1] < start) or (end is not None and key[1] > end)
        ]
        for key in outside:
            del outcome.groups[key]
        if outside:
            logger.debug("Dropped %d groups outside %s..%s", len(outside), start, end)

    logger.info(
        "Aggregated %d records into %d groups (%d skipped)",
        outcome.records_seen,
        len(outcome.groups),
        outcome.records_skipped,
    )
    return outcome
