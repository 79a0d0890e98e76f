"""Normalize raw workforce shift documents.

Shift exporters disagree on names (``hours_worked`` / ``hours`` /
``total_hours``, ``wage_cost`` / ``costs.wage`` / ``labor_cost``) and on
placement: a field may sit on the record, under ``extracted`` or inside the
payload. Lookups try the record first and then its payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from daily_ops.normalize.cleaning import clean_text, to_float
from daily_ops.normalize.fields import (
    RECORD_FIELDS,
    SHIFT_FIELDS,
    FieldSpec,
    extract_field,
    get_path,
)
from daily_ops.normalize.tickets import coerce_day
from daily_ops.working_day import parse_timestamp, working_day

if TYPE_CHECKING:
    from daily_ops.config import AggregationConfig

logger = logging.getLogger(__name__)

_PAYLOAD_KEYS = next(spec.candidates for spec in RECORD_FIELDS if spec.name == "payload")


@dataclass(frozen=True)
class NormalizedShift:
    """One worked shift after normalization."""

    location_id: str
    working_day: date
    shift_id: Optional[str]
    worker_id: Optional[str]
    worker_name: Optional[str]
    team_name: Optional[str]
    hours_worked: float
    break_minutes: float
    wage_cost: float


def _lookup(sources: list[Any], spec: FieldSpec) -> Any:
    for source in sources:
        if spec.numeric:
            for path in spec.candidates:
                value = to_float(get_path(source, path))
                if value is not None:
                    return value
        else:
            value = extract_field(source, spec.candidates)
            if value is not None:
                return value
    return None


def shift_hours(
    start: Optional[datetime],
    end: Optional[datetime],
    break_minutes: float = 0.0,
) -> Optional[float]:
    """Hours between start and end minus breaks; an end before start rolls over midnight.

    Examples:
        >>> shift_hours(datetime(2024, 3, 1, 17), datetime(2024, 3, 1, 1), 30)
        7.5

    """
    if start is None or end is None:
        return None
    if end <= start:
        end = end + timedelta(days=1)
    worked = (end - start).total_seconds() / 3600.0 - (break_minutes or 0.0) / 60.0
    return max(worked, 0.0)


def normalize_shift(record: Any, config: AggregationConfig) -> NormalizedShift:
    """Normalize one raw labor record.

    Hours come from an explicit hours field, else from start/end minus
    breaks. Wage cost comes from an explicit cost field, else from an hourly
    wage on the shift, else from config.default_hourly_wage, else 0.

    Args:
        record: Raw labor record.
        config: Aggregation config (timezone, default hourly wage).

    Returns:
        NormalizedShift.

    Raises:
        ValueError: If the record has no location or no date to attribute it to.

    """
    if not isinstance(record, dict):
        raise ValueError(f"record is a {type(record).__name__}, expected an object")

    sources: list[Any] = [record]
    payload = extract_field(record, _PAYLOAD_KEYS)
    if isinstance(payload, dict):
        sources.append(payload)

    values = {spec.name: _lookup(sources, spec) for spec in SHIFT_FIELDS}

    location_id = clean_text(values["location_id"])
    if location_id is None:
        raise ValueError("shift has no location id")

    shift_date = coerce_day(values["date"])
    tz = config.tzinfo
    start = parse_timestamp(values["start"], fallback_date=shift_date, tz=tz)
    end = parse_timestamp(values["end"], fallback_date=shift_date, tz=tz)

    if shift_date is not None:
        day = shift_date
    elif start is not None:
        day = working_day(start, config.boundary_hour, tz)
    else:
        raise ValueError("shift has neither a date nor a start time")

    break_minutes = max(values["break_minutes"] or 0.0, 0.0)
    hours = values["hours_worked"]
    if hours is None:
        hours = shift_hours(start, end, break_minutes)
    if hours is None:
        logger.debug("Shift %s on %s has no hours; counted as 0", values["shift_id"], day)
        hours = 0.0

    wage = values["wage_cost"]
    if wage is None:
        rate = values["hourly_wage"]
        if rate is None:
            rate = config.default_hourly_wage
        wage = hours * rate if rate is not None else 0.0

    return NormalizedShift(
        location_id=location_id,
        working_day=day,
        shift_id=clean_text(values["shift_id"]),
        worker_id=clean_text(values["worker_id"]),
        worker_name=clean_text(values["worker_name"]),
        team_name=clean_text(values["team_name"]) or clean_text(values["team_id"]),
        hours_worked=float(hours),
        break_minutes=float(break_minutes),
        wage_cost=float(wage),
    )
