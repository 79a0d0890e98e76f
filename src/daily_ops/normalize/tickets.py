"""Expand raw POS documents into normalized sale lines.

A raw transaction record wraps a payload that may be a list of tickets, an
object holding a ``Tickets`` list, or a single ticket. Each ticket holds
``Orders[].Lines[]`` (some exporters put ``Lines`` directly on the ticket).
Every line becomes one NormalizedLine carrying its ticket key, working day and
hour, with missing line values inherited from the order and then the ticket.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from daily_ops.normalize.cleaning import clean_text
from daily_ops.normalize.fields import (
    LINE_COLLECTIONS,
    LINE_FIELDS,
    ORDER_COLLECTIONS,
    RECORD_FIELDS,
    TICKET_COLLECTIONS,
    TICKET_FIELDS,
    extract_field,
    extract_first,
    normalize_record,
)
from daily_ops.utils import to_decimal
from daily_ops.working_day import hour_of_day, parse_timestamp, resolve_moment, working_day

if TYPE_CHECKING:
    from daily_ops.config import AggregationConfig

UNKNOWN_PAYMENT = "Unknown"
UNKNOWN_PRODUCT = "Unknown"
UNCATEGORIZED = "Uncategorized"
TICKET_TOTAL = "Ticket total"

_LINE = {spec.name: spec.candidates for spec in LINE_FIELDS}
_TICKET = {spec.name: spec.candidates for spec in TICKET_FIELDS}
_COMPACT_DATE_RE = re.compile(r"^\d{8}$")


@dataclass(frozen=True)
class NormalizedLine:
    """One sale line after normalization (never persisted)."""

    location_id: str
    ticket_key: str
    working_day: date
    hour: int
    timestamp: datetime
    product_name: str
    category: str
    quantity: Decimal
    revenue_ex_vat: Decimal
    revenue_inc_vat: Decimal
    payment_method: str
    waiter: Optional[str] = None
    table: Optional[str] = None


def expand_tickets(payload: Any) -> list[dict]:
    """Resolve the payload shape to a list of ticket mappings.

    Args:
        payload: List of tickets, ``{"Tickets": [...]}`` or a single ticket.

    Returns:
        List of tickets (possibly empty).

    Raises:
        ValueError: If the payload is missing or has an unsupported shape.

    Examples:
        >>> expand_tickets({"Tickets": [{"Key": "1"}]})
        [{'Key': '1'}]
        >>> expand_tickets({"Key": "1"})
        [{'Key': '1'}]

    """
    if payload is None:
        raise ValueError("missing payload")
    if isinstance(payload, dict):
        wrapped = extract_field(payload, TICKET_COLLECTIONS)
        if wrapped is None and any(k in payload for k in TICKET_COLLECTIONS):
            return []
        items = wrapped if wrapped is not None else [payload]
    elif isinstance(payload, list):
        items = payload
    else:
        raise ValueError(f"unsupported payload type {type(payload).__name__}")

    if not isinstance(items, list):
        raise ValueError("tickets collection is not a list")
    tickets = [t for t in items if isinstance(t, dict)]
    if items and not tickets:
        raise ValueError("payload holds no ticket objects")
    return tickets


def ticket_key(ticket: dict, record_id: Any = None, position: int = 0) -> str:
    """Return the ticket's own key, or a content hash when it has none.

    The hash covers the ticket with sorted keys plus the id of the record it
    came from and its position in that record, so re-reading a record gives
    the same keys while two identical keyless tickets stay distinct.
    """
    key = extract_field(ticket, _TICKET["ticket_key"])
    if key is not None:
        return str(key)
    salted = {"record": record_id, "position": position, "ticket": ticket}
    body = json.dumps(salted, sort_keys=True, default=str, ensure_ascii=False)
    return "sha1:" + hashlib.sha1(body.encode("utf-8")).hexdigest()


def coerce_day(value: Any) -> Optional[date]:
    """Parse a date field, including the compact YYYYMMDD form."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if _COMPACT_DATE_RE.match(s):
        try:
            return datetime.strptime(s, "%Y%m%d").date()
        except ValueError:
            return None
    parsed = parse_timestamp(s[:10] if len(s) >= 10 else s)
    return parsed.date() if parsed is not None else None


def _iter_lines(ticket: dict) -> list[tuple[dict, Optional[dict]]]:
    pairs: list[tuple[dict, Optional[dict]]] = []
    orders = extract_field(ticket, ORDER_COLLECTIONS)
    if isinstance(orders, list):
        for order in orders:
            if not isinstance(order, dict):
                continue
            lines = extract_field(order, LINE_COLLECTIONS)
            if isinstance(lines, list):
                pairs.extend((line, order) for line in lines if isinstance(line, dict))
    direct = extract_field(ticket, LINE_COLLECTIONS)
    if isinstance(direct, list):
        pairs.extend((line, None) for line in direct if isinstance(line, dict))
    return pairs


def _ticket_payment(ticket: dict) -> Optional[str]:
    method = extract_field(ticket, _TICKET["payment_method"])
    if method is None:
        payments = extract_field(ticket, ("Payments", "payments"))
        if isinstance(payments, list):
            for payment in payments:
                method = extract_field(payment, _TICKET["payment_method"])
                if method is not None:
                    break
    return clean_text(method)


def _as_label(value: Any) -> Optional[str]:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return clean_text(value)


def _revenues(
    inc: Optional[float], ex: Optional[float], vat_rate: Optional[float]
) -> tuple[Decimal, Decimal]:
    """Return (inc, ex) VAT amounts, deriving one from the other via the rate."""
    divisor = Decimal(1) + to_decimal(vat_rate) / 100 if vat_rate is not None else None
    inc_d = to_decimal(inc) if inc is not None else None
    ex_d = to_decimal(ex) if ex is not None else None
    if inc_d is None and ex_d is not None and divisor is not None:
        inc_d = ex_d * divisor
    if ex_d is None and inc_d is not None and divisor is not None and divisor != 0:
        ex_d = inc_d / divisor
    return inc_d or Decimal(0), ex_d or Decimal(0)


def expand_lines(record: Any, config: AggregationConfig) -> list[NormalizedLine]:
    """Normalize one raw transaction record into sale lines.

    Line-level payment method, waiter, table and time fall back to the order
    and then to the ticket. A ticket without lines contributes one synthetic
    "Ticket total" line built from the ticket totals, so its revenue is kept.

    Args:
        record: Raw record ``{locationId, date|timestamp, payload}``.
        config: Aggregation config (boundary hour and timezone).

    Returns:
        Normalized lines for every ticket in the record.

    Raises:
        ValueError: If the record cannot be parsed (no location, no payload,
            unsupported payload shape, or a ticket without any usable time).

    """
    if not isinstance(record, dict):
        raise ValueError(f"record is a {type(record).__name__}, expected an object")
    head = normalize_record(record, RECORD_FIELDS, include_extra=False)
    location_id = clean_text(head["location_id"])
    if location_id is None:
        raise ValueError("record has no location id")

    tz = config.tzinfo
    boundary = config.boundary_hour
    record_ts = resolve_moment(head["timestamp"], boundary_hour=boundary, tz=tz)
    record_day = working_day(record_ts, boundary, tz) if record_ts is not None else None

    lines: list[NormalizedLine] = []
    for position, ticket in enumerate(expand_tickets(head["payload"])):
        key = ticket_key(ticket, head["record_id"], position)
        t = normalize_record(ticket, TICKET_FIELDS, include_extra=False)
        ticket_day = coerce_day(t["date"])
        # own time, then the start of its own date, then the record time
        ticket_ts = resolve_moment(t["timestamp"], ticket_day or record_day, boundary, tz)
        if ticket_ts is None and ticket_day is not None:
            ticket_ts = resolve_moment(ticket_day, boundary_hour=boundary, tz=tz)
        if ticket_ts is None:
            ticket_ts = record_ts
        line_day = working_day(ticket_ts, boundary, tz) if ticket_ts is not None else record_day
        ticket_payment = _ticket_payment(ticket)

        pairs = _iter_lines(ticket)
        if not pairs:
            if ticket_ts is None:
                raise ValueError(f"ticket {key} has no usable timestamp")
            inc, ex = _revenues(t["total_inc_vat"], t["total_ex_vat"], None)
            lines.append(
                NormalizedLine(
                    location_id=location_id,
                    ticket_key=key,
                    working_day=working_day(ticket_ts, boundary, tz),
                    hour=hour_of_day(ticket_ts, tz),
                    timestamp=ticket_ts,
                    product_name=TICKET_TOTAL,
                    category=UNCATEGORIZED,
                    quantity=Decimal(0),
                    revenue_ex_vat=ex,
                    revenue_inc_vat=inc,
                    payment_method=ticket_payment or UNKNOWN_PAYMENT,
                    waiter=_as_label(t["waiter"]),
                    table=_as_label(t["table"]),
                )
            )
            continue

        for line, order in pairs:
            f = normalize_record(line, LINE_FIELDS, include_extra=False)
            sources = [line] if order is None else [line, order]

            ts = ticket_ts
            raw_time = extract_first(sources, _LINE["timestamp"])
            if raw_time is not None:
                ts = resolve_moment(raw_time, line_day, boundary, tz) or ticket_ts
            if ts is None:
                raise ValueError(f"ticket {key} has no usable timestamp")

            payment = clean_text(extract_first(sources, _LINE["payment_method"]))
            waiter = extract_first(sources, _LINE["waiter"], default=t["waiter"])
            table = extract_first(sources, _LINE["table"], default=t["table"])
            inc, ex = _revenues(f["revenue_inc_vat"], f["revenue_ex_vat"], f["vat_rate"])

            lines.append(
                NormalizedLine(
                    location_id=location_id,
                    ticket_key=key,
                    working_day=working_day(ts, boundary, tz),
                    hour=hour_of_day(ts, tz),
                    timestamp=ts,
                    product_name=clean_text(f["product_name"]) or UNKNOWN_PRODUCT,
                    category=clean_text(f["category"]) or UNCATEGORIZED,
                    quantity=to_decimal(f["quantity"]),
                    revenue_ex_vat=ex,
                    revenue_inc_vat=inc,
                    payment_method=payment or ticket_payment or UNKNOWN_PAYMENT,
                    waiter=_as_label(waiter),
                    table=_as_label(table),
                )
            )
    return lines
