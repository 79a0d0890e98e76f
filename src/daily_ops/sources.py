"""Raw document sources.

A source answers three queries: transaction records and labor records for a
calendar date range (optionally one location), and category reference rows
for a location. MemorySource serves in-process lists; JsonDirectorySource
reads the bronze layer written by the external sync process.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import Any, Optional, Protocol

from daily_ops.config import DataPaths
from daily_ops.exceptions import ExtractionError
from daily_ops.normalize.cleaning import clean_text
from daily_ops.normalize.fields import CATEGORY_FIELDS, RECORD_FIELDS, SHIFT_FIELDS, extract_field
from daily_ops.normalize.tickets import coerce_day

logger = logging.getLogger(__name__)

_LOCATION = next(s.candidates for s in RECORD_FIELDS if s.name == "location_id")
_RECORD_DATE = next(s.candidates for s in RECORD_FIELDS if s.name == "timestamp")
_SHIFT_LOCATION = next(s.candidates for s in SHIFT_FIELDS if s.name == "location_id")
_SHIFT_DATE = next(s.candidates for s in SHIFT_FIELDS if s.name == "date")
_CATEGORY_LOCATION = next(s.candidates for s in CATEGORY_FIELDS if s.name == "location_id")


class TransactionSource(Protocol):
    """Where raw documents come from."""

    def fetch_transactions(
        self, start: date, end: date, location_id: Optional[str] = None
    ) -> list[dict[str, Any]]: ...

    def fetch_labor(
        self, start: date, end: date, location_id: Optional[str] = None
    ) -> list[dict[str, Any]]: ...

    def fetch_categories(self, location_id: Optional[str] = None) -> list[dict[str, Any]]: ...


def _in_scope(
    record: Any,
    start: date,
    end: date,
    location_id: Optional[str],
    location_keys: tuple[str, ...],
    date_keys: tuple[str, ...],
) -> bool:
    """Calendar-date and location filter. Records without a date are kept."""
    if location_id is not None:
        if clean_text(extract_field(record, location_keys)) != location_id:
            return False
    day = coerce_day(extract_field(record, date_keys))
    return day is None or start <= day <= end


def _for_location(rows: Iterable[Any], location_id: Optional[str]) -> list[dict[str, Any]]:
    out = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        row_location = clean_text(extract_field(row, _CATEGORY_LOCATION))
        if location_id is None or row_location is None or row_location == location_id:
            out.append(row)
    return out


class MemorySource:
    """Source over in-memory lists of raw documents."""

    def __init__(
        self,
        transactions: Iterable[dict[str, Any]] = (),
        labor: Iterable[dict[str, Any]] = (),
        categories: Iterable[dict[str, Any]] = (),
    ) -> None:
        self.transactions = list(transactions)
        self.labor = list(labor)
        self.categories = list(categories)

    def fetch_transactions(self, start, end, location_id=None):
        return [
            r
            for r in self.transactions
            if _in_scope(r, start, end, location_id, _LOCATION, _RECORD_DATE)
        ]

    def fetch_labor(self, start, end, location_id=None):
        return [
            r
            for r in self.labor
            if _in_scope(r, start, end, location_id, _SHIFT_LOCATION, _SHIFT_DATE)
        ]

    def fetch_categories(self, location_id=None):
        return _for_location(self.categories, location_id)


def read_documents(path: Path) -> list[Any]:
    """Read a .json file (one document or a list) or a .jsonl file.

    Raises:
        ExtractionError: If the file cannot be read or decoded.

    """
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".jsonl":
            return [json.loads(line) for line in text.splitlines() if line.strip()]
        data = json.loads(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ExtractionError(f"Cannot read raw documents from {path}: {e}") from e
    return data if isinstance(data, list) else [data]


class JsonDirectorySource:
    """Source reading the bronze layer of a DataPaths tree.

    Layout:
        a_raw/transactions/*.json|*.jsonl   transaction records
        a_raw/labor/*.json|*.jsonl          shift records
        reference/categories*.json          category rows
    """

    def __init__(self, paths: DataPaths) -> None:
        self.paths = paths

    @staticmethod
    def _read_dir(directory: Path, pattern: str = "*") -> list[Any]:
        if not directory.exists():
            logger.debug("Raw directory %s does not exist", directory)
            return []
        docs: list[Any] = []
        for path in sorted(directory.glob(pattern)):
            if path.suffix in (".json", ".jsonl") and path.is_file():
                docs.extend(read_documents(path))
        return docs

    def fetch_transactions(self, start, end, location_id=None):
        docs = self._read_dir(self.paths.raw_transactions)
        out = [d for d in docs if _in_scope(d, start, end, location_id, _LOCATION, _RECORD_DATE)]
        logger.info("Read %d transaction records for %s to %s", len(out), start, end)
        return out

    def fetch_labor(self, start, end, location_id=None):
        docs = self._read_dir(self.paths.raw_labor)
        out = [
            d for d in docs if _in_scope(d, start, end, location_id, _SHIFT_LOCATION, _SHIFT_DATE)
        ]
        logger.info("Read %d labor records for %s to %s", len(out), start, end)
        return out

    def fetch_categories(self, location_id=None):
        return _for_location(self._read_dir(self.paths.reference, "categories*"), location_id)
