"""Shared test utilities.

Factories for raw POS records, shift records and category rows used across
the test modules.
"""

from __future__ import annotations

from typing import Any, Optional

LOCATION = "L"

CATEGORY_ROWS: list[dict[str, Any]] = [
    {"groupId": 1, "groupName": "Keuken", "groupLevel": 1},
    {"groupId": 2, "groupName": "Bar", "groupLevel": 1},
    {"groupId": 10, "groupName": "Keuken Hoofdgerecht", "parentGroupName": "Keuken", "groupLevel": 2},
    {"groupId": 20, "groupName": "Bar Bier", "parentGroupId": 2, "groupLevel": 2},
    {"groupId": 30, "groupName": "Merchandise", "groupLevel": 1},
]


def make_line(
    category: str,
    qty: Any,
    total_inc: Any,
    payment: Optional[str] = None,
    product: str = "Item",
    **extra: Any,
) -> dict[str, Any]:
    line: dict[str, Any] = {"ProductName": product, "GroupName": category, "Qty": qty, "TotalInc": total_inc}
    if payment is not None:
        line["PaymentMethod"] = payment
    line.update(extra)
    return line


def make_ticket(
    key: Optional[str],
    when: str,
    lines: list[dict[str, Any]],
    **extra: Any,
) -> dict[str, Any]:
    ticket: dict[str, Any] = {"ActualDateTime": when, "Orders": [{"Lines": lines}]}
    if key is not None:
        ticket["Key"] = key
    ticket.update(extra)
    return ticket


def make_record(
    payload: Any,
    day: str = "2024-03-01",
    location: str = LOCATION,
    record_id: Optional[str] = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {"locationId": location, "date": day, "payload": payload}
    if record_id is not None:
        record["_id"] = record_id
    return record


def scenario_a_records() -> list[dict[str, Any]]:
    """Two tickets on 2024-03-01: food paid cash at 19:00, beer paid card at 20:00."""
    return [
        make_record(
            [
                make_ticket(
                    "T1",
                    "2024-03-01T19:00:00",
                    [make_line("Keuken Hoofdgerecht", 2, 25.00, "cash", product="Biefstuk")],
                    WaiterName="Anna",
                    TableNumber=4,
                )
            ],
            record_id="r1",
        ),
        make_record(
            {
                "Tickets": [
                    make_ticket(
                        "T2",
                        "2024-03-01T20:00:00",
                        [make_line("Bar Bier", 3, 15.00, "card", product="Pils")],
                        WaiterName="Bram",
                    )
                ]
            },
            record_id="r2",
        ),
    ]


def make_shift(
    worker: str,
    day: str = "2024-03-01",
    location: str = LOCATION,
    **fields: Any,
) -> dict[str, Any]:
    shift: dict[str, Any] = {"environmentId": location, "date": day, "userId": worker}
    shift.update(fields)
    return shift
