"""Tests for the deduplicating upsert writer and the document stores."""

from dataclasses import dataclass
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from daily_ops.exceptions import DuplicateKeyError, PersistenceError
from daily_ops.store import JsonFileStore, MemoryStore, UpsertOne
from daily_ops.writer import dedupe_by_key, upsert_records


@dataclass(frozen=True)
class Doc:
    location: str
    day: str
    value: float

    @property
    def key(self) -> tuple:
        return (self.location, self.day)

    def to_document(self) -> dict:
        return {"locationId": self.location, "workingDay": self.day, "totalRevenue": self.value}


def _op(location: str, day: str, value: float) -> UpsertOne:
    doc = Doc(location, day, value).to_document()
    return UpsertOne(filter={"locationId": location, "workingDay": day}, document=doc)


def test_dedupe_keeps_last_record_per_key() -> None:
    records = [Doc("L", "2024-03-01", 1.0), Doc("L", "2024-03-02", 2.0), Doc("L", "2024-03-01", 3.0)]
    out = dedupe_by_key(records)
    assert [(r.day, r.value) for r in out] == [("2024-03-01", 3.0), ("2024-03-02", 2.0)]


def test_duplicate_keys_written_once() -> None:
    """A batch with the same key twice writes the last one, in a single document."""
    store = MemoryStore()
    written = upsert_records(
        store, "sales", [Doc("L", "2024-03-01", 1.0), Doc("L", "2024-03-01", 9.0)]
    )
    assert written == 1
    assert store.find("sales") == [{"locationId": "L", "workingDay": "2024-03-01", "totalRevenue": 9.0}]


def test_rewrite_replaces_documents() -> None:
    store = MemoryStore()
    upsert_records(store, "sales", [Doc("L", "2024-03-01", 1.0)])
    upsert_records(store, "sales", [Doc("L", "2024-03-01", 2.0), Doc("M", "2024-03-01", 5.0)])
    assert store.count("sales") == 2
    assert store.find("sales", {"locationId": "L"})[0]["totalRevenue"] == 2.0


def test_writes_in_batches() -> None:
    store = MemoryStore()
    records = [Doc("L", f"2024-03-{d:02d}", float(d)) for d in range(1, 8)]
    assert upsert_records(store, "sales", records, batch_size=3) == 7
    assert store.bulk_calls == 3


def test_memory_store_rejects_duplicate_keys_in_one_batch() -> None:
    store = MemoryStore()
    with pytest.raises(DuplicateKeyError):
        store.bulk_upsert("sales", [_op("L", "2024-03-01", 1.0), _op("L", "2024-03-01", 2.0)])
    assert store.count("sales") == 0


def test_failure_reports_documents_already_written(monkeypatch) -> None:
    """A failing chunk raises PersistenceError carrying the count written before it."""
    store = MemoryStore()
    original = store.bulk_upsert
    calls = {"n": 0}

    def flaky(collection, operations):
        calls["n"] += 1
        if calls["n"] == 2:
            raise ConnectionError("store went away")
        return original(collection, operations)

    monkeypatch.setattr(store, "bulk_upsert", flaky)
    records = [Doc("L", f"2024-03-{d:02d}", float(d)) for d in range(1, 6)]
    with pytest.raises(PersistenceError, match="store went away") as exc_info:
        upsert_records(store, "sales", records, batch_size=2)
    assert exc_info.value.written == 2
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert store.count("sales") == 2


def test_store_persistence_error_gets_written_count(monkeypatch) -> None:
    store = MemoryStore()
    original = store.bulk_upsert

    def fail_second(collection, operations):
        if store.bulk_calls >= 1:
            raise PersistenceError("disk full")
        return original(collection, operations)

    monkeypatch.setattr(store, "bulk_upsert", fail_second)
    records = [Doc("L", f"2024-03-{d:02d}", float(d)) for d in range(1, 4)]
    with pytest.raises(PersistenceError, match="disk full") as exc_info:
        upsert_records(store, "sales", records, batch_size=1)
    assert exc_info.value.written == 1


class TestJsonFileStore:
    """File-backed store: one JSON list per collection."""

    def test_upsert_and_find(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = JsonFileStore(Path(tmpdir) / "gold")
            first = store.bulk_upsert("sales", [_op("L", "2024-03-01", 1.0), _op("M", "2024-03-01", 2.0)])
            assert (first.matched_count, first.upserted_count) == (0, 2)
            second = store.bulk_upsert("sales", [_op("L", "2024-03-01", 7.0)])
            assert (second.matched_count, second.upserted_count) == (1, 0)
            docs = store.find("sales")
            assert [d["totalRevenue"] for d in docs] == [7.0, 2.0]
            assert store.find("sales", {"locationId": "M"})[0]["totalRevenue"] == 2.0
            assert not list((Path(tmpdir) / "gold").glob("*.tmp"))

    def test_missing_collection_is_empty(self) -> None:
        with TemporaryDirectory() as tmpdir:
            assert JsonFileStore(tmpdir).find("nothing") == []

    def test_corrupt_file_raises(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = JsonFileStore(tmpdir)
            store.path_for("sales").write_text("{not json", encoding="utf-8")
            with pytest.raises(PersistenceError, match="not valid JSON"):
                store.find("sales")

    def test_duplicate_keys_rejected(self) -> None:
        with TemporaryDirectory() as tmpdir:
            store = JsonFileStore(tmpdir)
            with pytest.raises(DuplicateKeyError):
                store.bulk_upsert("sales", [_op("L", "2024-03-01", 1.0), _op("L", "2024-03-01", 1.0)])
            assert not store.path_for("sales").exists()
