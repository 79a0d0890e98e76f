"""Shared utilities for the aggregation pipeline.

This module provides date helpers and decimal rounding used across modules:

- Date parsing and validation of batch scopes
- Monetary rounding (2 decimals, half-up)

Examples:
    >>> from daily_ops.utils import parse_date
    >>> parse_date("2024-03-01")
    datetime.date(2024, 3, 1)

"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from daily_ops.exceptions import InputValidationError

CENT = Decimal("0.01")


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date string is not in YYYY-MM-DD format.

    Examples:
        >>> parse_date("2024-03-01")
        datetime.date(2024, 3, 1)

    """
    return datetime.strptime(s, "%Y-%m-%d").date()


def validate_scope(
    start_date: Any,
    end_date: Any,
    location_id: Optional[str] = None,
) -> tuple[date, date]:
    """Validate the scope of a batch before anything is fetched.

    Args:
        start_date: Start of the range (YYYY-MM-DD string or date), inclusive.
        end_date: End of the range (YYYY-MM-DD string or date), inclusive.
        location_id: Optional location filter. Must be non-empty when given.

    Returns:
        Tuple of (start, end) as date objects.

    Raises:
        InputValidationError: If any part of the scope is missing or invalid.

    """
    start = _coerce_date(start_date, "start_date")
    end = _coerce_date(end_date, "end_date")
    if start > end:
        raise InputValidationError(f"start_date {start} is after end_date {end}")
    if location_id is not None and (not isinstance(location_id, str) or not location_id.strip()):
        raise InputValidationError(f"Invalid location_id: {location_id!r}")
    return start, end


def _coerce_date(value: Any, name: str) -> date:
    if value is None or value == "":
        raise InputValidationError(f"{name} is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date(str(value))
    except ValueError as e:
        raise InputValidationError(f"Invalid {name} '{value}': expected YYYY-MM-DD") from e


def to_decimal(value: Any) -> Decimal:
    """Convert a number to Decimal via its string form; invalid values become 0."""
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not d.is_finite():
        return Decimal(0)
    return d


def round_money(value: Any) -> float:
    """Round to 2 decimals (half-up) and return a float.

    Examples:
        >>> round_money(Decimal("2.345"))
        2.35
        >>> round_money(None)
        0.0

    """
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def safe_ratio(numerator: Any, denominator: Any, scale: int = 1) -> Decimal:
    """Return numerator / denominator * scale, or 0 when the denominator is 0."""
    num = to_decimal(numerator)
    den = to_decimal(denominator)
    if den == 0:
        return Decimal(0)
    return num / den * scale


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as a human-readable string.

    Examples:
        >>> format_duration(90.5)
        '1m 30.5s'
        >>> format_duration(45.2)
        '45.2s'

    """
    mins, secs = divmod(seconds, 60.0)
    if mins >= 1:
        return f"{int(mins)}m {secs:04.1f}s"
    else:
        return f"{secs:.1f}s"


def chunked(items: list[Any], size: int) -> Iterable[list[Any]]:
    """Yield consecutive slices of at most size items."""
    for i in range(0, len(items), size):
        yield items[i : i + size]
