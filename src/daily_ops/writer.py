"""Deduplicating upsert writer.

Aggregated records are written with one UpsertOne per natural key, matching
on the key and replacing the whole document. A bulk batch may not touch the
same key twice, so records are deduplicated first (last one wins).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from daily_ops.aggregate.models import KEY_FIELDS
from daily_ops.exceptions import PersistenceError
from daily_ops.store.base import DocumentStore, UpsertOne
from daily_ops.utils import chunked

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


class Keyed(Protocol):
    """Anything with a natural key and a document form."""

    @property
    def key(self) -> tuple: ...

    def to_document(self) -> dict[str, Any]: ...


def dedupe_by_key(records: Iterable[Keyed]) -> list[Keyed]:
    """Keep the last record per key, in the order keys were first seen.

    Examples:
        >>> from types import SimpleNamespace as R
        >>> out = dedupe_by_key([R(key=1, v="a"), R(key=2, v="b"), R(key=1, v="c")])
        >>> [(r.key, r.v) for r in out]
        [(1, 'c'), (2, 'b')]

    """
    latest: dict[tuple, Keyed] = {}
    for record in records:
        latest[record.key] = record
    return list(latest.values())


def build_upserts(records: Sequence[Keyed]) -> list[UpsertOne]:
    """One full-replace upsert per record, filtered on (locationId, workingDay)."""
    ops = []
    for record in records:
        doc = record.to_document()
        ops.append(UpsertOne(filter={k: doc[k] for k in KEY_FIELDS}, document=doc))
    return ops


def upsert_records(
    store: DocumentStore,
    collection: str,
    records: Iterable[Keyed],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Deduplicate and upsert records into a collection.

    Writes happen in chunks of batch_size. If a chunk fails, chunks already
    written stay written; re-running the same range is safe.

    Args:
        store: Target document store.
        collection: Collection name.
        records: Records with ``key`` and ``to_document()``.
        batch_size: Maximum upserts per bulk call.

    Returns:
        Number of documents written.

    Raises:
        PersistenceError: If a bulk write fails. ``written`` holds the number
            of documents written before the failure.

    """
    unique = dedupe_by_key(records)
    ops = build_upserts(unique)
    written = 0
    for chunk in chunked(ops, batch_size):
        try:
            result = store.bulk_upsert(collection, chunk)
        except PersistenceError as e:
            e.written = written
            logger.error("Bulk upsert into %s failed after %d documents: %s", collection, written, e)
            raise
        except Exception as e:
            logger.error("Bulk upsert into %s failed after %d documents: %s", collection, written, e)
            raise PersistenceError(
                f"Upsert into {collection} failed after {written} documents: {e}",
                written=written,
            ) from e
        written += result.written

    logger.info("Upserted %d documents into %s", written, collection)
    return written
