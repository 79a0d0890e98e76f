"""JSON-file document store for the gold layer.

Each collection is one JSON file (a list of documents) under the store root,
e.g. ``c_processed/sales_aggregated.json``. Every bulk write rewrites the
file through a temporary file and os.replace, so readers never observe a
half-written collection.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional

from daily_ops.exceptions import PersistenceError
from daily_ops.store.base import BulkWriteResult, UpsertOne, check_unique_keys, matches, replacement

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Store with one JSON file per collection.

    Args:
        root: Directory holding the collection files.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, collection: str) -> Path:
        return self.root / f"{collection}.json"

    def _load(self, collection: str) -> list[dict[str, Any]]:
        path = self.path_for(collection)
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Collection file {path} is not valid JSON") from e
        if not isinstance(data, list):
            raise PersistenceError(f"Collection file {path} does not hold a list of documents")
        return data

    def _save(self, collection: str, docs: list[dict[str, Any]]) -> None:
        path = self.path_for(collection)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{collection}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(docs, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def bulk_upsert(self, collection: str, operations: Sequence[UpsertOne]) -> BulkWriteResult:
        check_unique_keys(operations)
        if not operations:
            return BulkWriteResult()

        docs = self._load(collection)
        matched = upserted = 0
        for op in operations:
            for i, existing in enumerate(docs):
                if matches(existing, op.filter):
                    docs[i] = replacement(op)
                    matched += 1
                    break
            else:
                docs.append(replacement(op))
                upserted += 1

        self._save(collection, docs)
        logger.debug("Wrote %s: %d replaced, %d inserted", self.path_for(collection), matched, upserted)
        return BulkWriteResult(matched_count=matched, upserted_count=upserted)

    def find(self, collection: str, filter: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        return [d for d in self._load(collection) if matches(d, filter)]
