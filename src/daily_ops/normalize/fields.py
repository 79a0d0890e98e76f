"""Field normalizer for heterogeneous raw documents.

Source documents name the same logical field in several ways
(``TotalInc`` / ``totalInc`` / ``TotalIncVat``, ``hours_worked`` / ``hours`` /
``total_hours``) and sometimes nest it (``costs.wage``). Each logical field is
declared once as a FieldSpec with a priority-ordered list of candidate paths;
the first candidate carrying a value wins.

Examples:
    >>> spec = FieldSpec("wage_cost", ("wage_cost", "costs.wage"), numeric=True)
    >>> normalize_record({"costs": {"wage": "12,50"}, "id": 7}, [spec])
    {'wage_cost': 12.5, 'costs_wage': '12,50', 'id': 7}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from daily_ops.normalize.cleaning import to_float

_MISSING = object()


@dataclass(frozen=True)
class FieldSpec:
    """One logical field and where to find it.

    Attributes:
        name: Logical field name in the normalized output.
        candidates: Candidate keys or dotted paths, highest priority first.
        numeric: If True, the value is coerced with to_float (None when it
            cannot be parsed).
    """

    name: str
    candidates: tuple[str, ...]
    numeric: bool = False


def get_path(obj: Any, path: str) -> Any:
    """Return the value at a dotted path, or None when any hop is missing.

    Only mappings are traversed; lists are never indexed into.
    """
    current = obj
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return None
    return current


def _has_value(value: Any) -> bool:
    return value is not None and value != ""


def extract_field(obj: Any, candidates: Iterable[str], default: Any = None) -> Any:
    """Return the first candidate path with a non-null, non-empty value.

    Args:
        obj: Raw (possibly nested) mapping. Anything else yields the default.
        candidates: Keys or dotted paths in priority order.
        default: Value returned when no candidate carries data.

    Examples:
        >>> extract_field({"totalInc": 0, "TotalIncVat": 5}, ["TotalInc", "totalInc"])
        0

    """
    if not isinstance(obj, Mapping):
        return default
    for path in candidates:
        value = get_path(obj, path)
        if _has_value(value):
            return value
    return default


def extract_first(sources: Sequence[Any], candidates: Iterable[str], default: Any = None) -> Any:
    """Like extract_field, but tries each source mapping in order.

    Used to let a line inherit values from its order and ticket.
    """
    paths = tuple(candidates)
    for source in sources:
        value = extract_field(source, paths, _MISSING)
        if value is not _MISSING:
            return value
    return default


def extract_number(obj: Any, candidates: Iterable[str]) -> Optional[float]:
    """Return the first candidate that parses as a number."""
    if not isinstance(obj, Mapping):
        return None
    for path in candidates:
        value = to_float(get_path(obj, path))
        if value is not None:
            return value
    return None


def flatten(obj: Mapping[str, Any], prefix: str = "", sep: str = "_") -> dict[str, Any]:
    """Recursively flatten nested mappings into prefixed keys.

    Lists are kept as values and never expanded.

    Examples:
        >>> flatten({"a": {"b": 1, "c": {"d": 2}}, "e": [1, 2]})
        {'a_b': 1, 'a_c_d': 2, 'e': [1, 2]}

    """
    out: dict[str, Any] = {}
    for key, value in obj.items():
        name = f"{prefix}{sep}{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            out.update(flatten(value, name, sep))
        else:
            out[name] = value
    return out


def normalize_record(
    raw: Any,
    specs: Sequence[FieldSpec],
    *,
    include_extra: bool = True,
) -> dict[str, Any]:
    """Normalize one raw document into a flat record.

    Logical fields come first, each taking the first candidate with a value.
    With include_extra, every other field is added under its flattened
    ``parent_child`` key; logical names win on collision.

    A missing or non-mapping payload yields every logical field as None.

    Args:
        raw: Raw document.
        specs: Accessor table for the logical fields.
        include_extra: Whether to append the flattened remainder.

    Returns:
        Flat dictionary.

    """
    result: dict[str, Any] = {}
    for spec in specs:
        if spec.numeric:
            result[spec.name] = extract_number(raw, spec.candidates)
        else:
            result[spec.name] = extract_field(raw, spec.candidates)

    if include_extra and isinstance(raw, Mapping):
        for key, value in flatten(raw).items():
            if key not in result:
                result[key] = value
    return result


# ---------------------------------------------------------------------------
# Accessor tables
# ---------------------------------------------------------------------------

RECORD_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("record_id", ("_id", "id", "recordId", "record_id")),
    FieldSpec("location_id", ("locationId", "location_id", "environmentId", "environment_id")),
    FieldSpec("timestamp", ("timestamp", "date", "Date", "businessDate", "business_date")),
    FieldSpec("payload", ("payload", "rawApiResponse", "raw_api_response", "raw_data", "rawData")),
)

TICKET_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec(
        "ticket_key",
        ("Key", "key", "TicketKey", "ticketKey", "TicketNumber", "ticketNumber", "TicketNr", "ticketNr", "Id", "id"),
    ),
    FieldSpec(
        "timestamp",
        ("ActualDateTime", "CloseTime", "closeTime", "DateTime", "dateTime", "Time", "time", "OpenTime", "openTime"),
    ),
    FieldSpec("date", ("ActualDate", "Date", "date")),
    FieldSpec("payment_method", ("PaymentMethod", "paymentMethod", "PaymentName", "paymentName", "payment_method")),
    FieldSpec("waiter", ("WaiterName", "waiterName", "UserName", "userName", "Waiter", "waiter")),
    FieldSpec("table", ("TableNumber", "tableNumber", "TableNr", "tableNr", "TableName", "tableName", "Table", "table")),
    FieldSpec("total_inc_vat", ("TotalInc", "totalInc", "TotalIncVat", "totalIncVat", "RevenueIncVat", "revenueIncVat", "TotalPrice", "totalPrice", "Total", "total"), numeric=True),
    FieldSpec("total_ex_vat", ("TotalEx", "totalEx", "TotalExVat", "totalExVat", "RevenueExVat", "revenueExVat"), numeric=True),
)

TICKET_COLLECTIONS = ("Tickets", "tickets")
ORDER_COLLECTIONS = ("Orders", "orders")
LINE_COLLECTIONS = ("Lines", "lines")

LINE_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("product_name", ("ProductName", "productName", "Name", "name", "product_name")),
    FieldSpec("category", ("GroupName", "groupName", "Category", "category", "ProductGroup", "productGroup")),
    FieldSpec("quantity", ("Qty", "qty", "Quantity", "quantity"), numeric=True),
    FieldSpec("revenue_ex_vat", ("TotalEx", "totalEx", "TotalExVat", "totalExVat", "RevenueExVat", "revenueExVat"), numeric=True),
    FieldSpec("revenue_inc_vat", ("TotalInc", "totalInc", "TotalIncVat", "totalIncVat", "RevenueIncVat", "revenueIncVat"), numeric=True),
    FieldSpec("vat_rate", ("VatRate", "vatRate", "VatPerc", "vatPerc", "vat_rate"), numeric=True),
    FieldSpec("payment_method", ("PaymentMethod", "paymentMethod", "payment_method")),
    FieldSpec("waiter", ("WaiterName", "waiterName", "UserName", "userName", "Waiter", "waiter")),
    FieldSpec("table", ("TableNumber", "tableNumber", "TableNr", "tableNr", "TableName", "tableName", "Table", "table")),
    FieldSpec("timestamp", ("Time", "time", "DateTime", "dateTime", "Timestamp", "timestamp")),
)

SHIFT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("shift_id", ("id", "shift_id", "shiftId", "extracted.id")),
    FieldSpec("location_id", ("locationId", "location_id", "environmentId", "environment_id", "extracted.environmentId", "extracted.environment_id", "environment.id")),
    FieldSpec("date", ("date", "extracted.date", "payload.date")),
    FieldSpec("worker_id", ("workerId", "worker_id", "userId", "user_id", "user.id", "employee_id", "employeeId", "extracted.userId", "extracted.user_id")),
    FieldSpec("worker_name", ("workerName", "worker_name", "userName", "user_name", "user.name", "extracted.userName", "extracted.user_name")),
    FieldSpec("team_id", ("teamId", "team_id", "team.id", "extracted.teamId", "extracted.team_id")),
    FieldSpec("team_name", ("teamName", "team_name", "team.name", "extracted.teamName", "extracted.team_name")),
    FieldSpec("start", ("start_time", "start", "startDateTime", "startTime", "clock_in", "clockIn", "extracted.start", "extracted.startTime", "shift.start")),
    FieldSpec("end", ("end_time", "end", "endDateTime", "endTime", "clock_out", "clockOut", "extracted.end", "extracted.endTime", "shift.end")),
    FieldSpec("break_minutes", ("break_minutes", "breaks", "breakMinutes", "break_minutes_actual", "break_time", "extracted.breakMinutes", "extracted.break_minutes"), numeric=True),
    FieldSpec("hours_worked", ("hours_worked", "hours", "totalHours", "total_hours", "hoursWorked", "worked_hours", "workedHours", "extracted.hoursWorked", "extracted.hours", "shift.hours"), numeric=True),
    FieldSpec("wage_cost", ("wage_cost", "wageCost", "costs.wage", "costs.wage_cost", "costs.wageCost", "labor_cost", "laborCost", "labor_costs", "extracted.wageCost", "extracted.wage_cost", "shift.wage"), numeric=True),
    FieldSpec("hourly_wage", ("hourly_wage", "hourlyWage", "wage_per_hour", "extracted.hourlyWage"), numeric=True),
)

CATEGORY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("id", ("groupId", "group_id", "GroupId", "id")),
    FieldSpec("name", ("groupName", "group_name", "GroupName", "name")),
    FieldSpec("parent_id", ("parentGroupId", "parent_group_id", "ParentGroupId", "parentId", "parent_id")),
    FieldSpec("parent_name", ("parentGroupName", "parent_group_name", "ParentGroupName", "parentName", "parent_name")),
    FieldSpec("level", ("groupLevel", "group_level", "GroupLevel", "level"), numeric=True),
    FieldSpec("location_id", ("locationId", "location_id", "environmentId", "environment_id")),
)
