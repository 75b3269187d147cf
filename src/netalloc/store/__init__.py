"""
Store layer: driver interface, drivers, filters and the adapter.

    from netalloc.store import MemoryStore, StoreAdapter
"""

from netalloc.store.adapter import StoreAdapter
from netalloc.store.base import (
    ANY_ETAG,
    BatchEntry,
    BatchResult,
    BucketSchema,
    Sort,
    Store,
    StoredObject,
)
from netalloc.store.memory import MemoryStore
from netalloc.store.sqlite import SQLiteStore

__all__ = [
    "ANY_ETAG",
    "BatchEntry",
    "BatchResult",
    "BucketSchema",
    "MemoryStore",
    "SQLiteStore",
    "Sort",
    "Store",
    "StoreAdapter",
    "StoredObject",
]
