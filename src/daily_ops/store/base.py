"""Document store contract used by the upsert writer.

A store holds named collections of JSON-like documents and exposes one
bulk primitive: a batch of UpsertOne operations, each matching one document
by its key filter and fully replacing it (or inserting it when absent).
Like the production document store, a batch may not target the same key
twice; such a batch is rejected before anything is written.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from daily_ops.exceptions import DuplicateKeyError


@dataclass(frozen=True)
class UpsertOne:
    """Replace the document matching `filter`, inserting it when missing."""

    filter: dict[str, Any]
    document: dict[str, Any]

    @property
    def key(self) -> tuple:
        return tuple(sorted(self.filter.items()))


@dataclass(frozen=True)
class BulkWriteResult:
    """Counts reported by one bulk write."""

    matched_count: int = 0
    upserted_count: int = 0

    @property
    def written(self) -> int:
        return self.matched_count + self.upserted_count


class DocumentStore(Protocol):
    """Minimal document store interface."""

    def bulk_upsert(self, collection: str, operations: Sequence[UpsertOne]) -> BulkWriteResult:
        ...

    def find(self, collection: str, filter: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        ...


def check_unique_keys(operations: Sequence[UpsertOne]) -> None:
    """Raise DuplicateKeyError if two operations share a key filter."""
    seen: set[tuple] = set()
    for op in operations:
        if op.key in seen:
            raise DuplicateKeyError(dict(op.filter))
        seen.add(op.key)


def matches(document: dict[str, Any], filter: Optional[dict[str, Any]]) -> bool:
    """True when every filter field equals the document's value."""
    if not filter:
        return True
    return all(document.get(k) == v for k, v in filter.items())


def replacement(op: UpsertOne) -> dict[str, Any]:
    """The full document stored for an upsert (key fields always present)."""
    doc = dict(op.document)
    doc.update(op.filter)
    return doc
