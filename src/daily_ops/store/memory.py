"""In-process document store."""

from __future__ import annotations

import copy
import logging
from collections.abc import Sequence
from typing import Any, Optional

from daily_ops.store.base import BulkWriteResult, UpsertOne, check_unique_keys, matches, replacement

logger = logging.getLogger(__name__)


class MemoryStore:
    """Dictionary-backed store, used by tests and as a scratch target.

    Documents are deep-copied in and out, so callers cannot mutate stored
    state.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[tuple, dict[str, Any]]] = {}
        self.bulk_calls = 0

    def bulk_upsert(self, collection: str, operations: Sequence[UpsertOne]) -> BulkWriteResult:
        check_unique_keys(operations)
        self.bulk_calls += 1
        docs = self._collections.setdefault(collection, {})
        matched = upserted = 0
        for op in operations:
            if op.key in docs:
                matched += 1
            else:
                upserted += 1
            docs[op.key] = copy.deepcopy(replacement(op))
        logger.debug("%s: %d replaced, %d inserted", collection, matched, upserted)
        return BulkWriteResult(matched_count=matched, upserted_count=upserted)

    def find(self, collection: str, filter: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        docs = self._collections.get(collection, {})
        return [copy.deepcopy(d) for d in docs.values() if matches(d, filter)]

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))
