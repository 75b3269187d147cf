"""
In-memory store driver.

Used by tests and by short-lived tooling. Every call yields to the event loop
first so concurrent callers interleave the way they would against a remote
store, and batches are applied all-or-nothing.
"""

from __future__ import annotations

import asyncio
import copy

from netalloc.exceptions import ResourceNotFound
from netalloc.models.enums import BatchOperation
from netalloc.store.base import (
    ANY_ETAG,
    BatchEntry,
    BatchResult,
    BucketSchema,
    Sort,
    Store,
    StoredObject,
    check_delete,
    check_write,
    compute_etag,
    page,
)
from netalloc.utils.logger import get_logger

logger = get_logger(__name__)


class MemoryStore(Store):
    """Dict-backed store: {bucket: {key: (value, etag)}}."""

    def __init__(self):
        self._schemas: dict[str, BucketSchema] = {}
        self._rows: dict[str, dict[str, tuple[dict, str]]] = {}

    # -------------------------------------------------------------------------
    # Buckets
    # -------------------------------------------------------------------------

    async def init_bucket(self, schema: BucketSchema) -> None:
        await asyncio.sleep(0)
        if schema.name not in self._schemas:
            logger.debug(f"Creating bucket {schema.name}")
            self._rows[schema.name] = {}
        self._schemas[schema.name] = schema

    async def get_bucket(self, name: str) -> BucketSchema:
        await asyncio.sleep(0)
        return self._schema(name)

    async def delete_bucket(self, name: str) -> None:
        await asyncio.sleep(0)
        self._schema(name)
        del self._schemas[name]
        del self._rows[name]

    def _schema(self, name: str) -> BucketSchema:
        try:
            return self._schemas[name]
        except KeyError:
            raise ResourceNotFound(f"bucket {name}", name) from None

    # -------------------------------------------------------------------------
    # Rows
    # -------------------------------------------------------------------------

    async def get(self, bucket: str, key: str) -> StoredObject:
        await asyncio.sleep(0)
        self._schema(bucket)
        row = self._rows[bucket].get(key)
        if row is None:
            raise ResourceNotFound(f"{bucket}/{key}", key)
        value, etag = row
        return StoredObject(bucket, key, copy.deepcopy(value), etag)

    async def put(self, bucket: str, key: str, value: dict, etag=ANY_ETAG) -> str:
        results = await self.batch([BatchEntry(bucket, key, value=value, etag=etag)])
        return results[0].etag

    async def delete(self, bucket: str, key: str, etag=ANY_ETAG) -> None:
        await self.batch(
            [BatchEntry(bucket, key, operation=BatchOperation.DELETE, etag=etag)]
        )

    async def find(
        self,
        bucket: str,
        filter=None,
        sort: Sort | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StoredObject]:
        await asyncio.sleep(0)
        schema = self._schema(bucket)
        found = [
            StoredObject(bucket, key, copy.deepcopy(value), etag)
            for key, (value, etag) in sorted(self._rows[bucket].items())
            if filter is None or filter.match(value)
        ]
        return page(found, schema, sort, limit, offset)

    async def batch(self, entries: list[BatchEntry]) -> list[BatchResult]:
        await asyncio.sleep(0)

        # Stage every entry first; nothing is applied unless all checks pass
        staged: dict[tuple[str, str], tuple[dict, str] | None] = {}
        results = []
        for entry in entries:
            self._schema(entry.bucket)
            ref = (entry.bucket, entry.key)
            current = staged[ref] if ref in staged else self._rows[entry.bucket].get(entry.key)
            current_etag = current[1] if current else None

            if entry.operation == BatchOperation.DELETE:
                check_delete(entry.bucket, entry.key, current_etag, entry.etag)
                staged[ref] = None
                results.append(BatchResult(entry.bucket, entry.key, None))
            else:
                check_write(entry.bucket, entry.key, current_etag, entry.etag)
                value = copy.deepcopy(entry.value or {})
                new_etag = compute_etag(value)
                staged[ref] = (value, new_etag)
                results.append(BatchResult(entry.bucket, entry.key, new_etag))

        for (bucket, key), row in staged.items():
            if row is None:
                self._rows[bucket].pop(key, None)
            else:
                self._rows[bucket][key] = row

        return results
