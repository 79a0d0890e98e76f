"""Document stores for aggregated collections."""

from daily_ops.store.base import BulkWriteResult, DocumentStore, UpsertOne
from daily_ops.store.files import JsonFileStore
from daily_ops.store.memory import MemoryStore

__all__ = [
    "BulkWriteResult",
    "DocumentStore",
    "JsonFileStore",
    "MemoryStore",
    "UpsertOne",
]
