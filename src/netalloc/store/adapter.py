"""
Store Adapter.

Thin layer between the models and a store driver. It knows bucket schemas,
builds filters from structured queries (indexed fields only), applies the
store timeout, and normalizes errors:

    - a missing row becomes ResourceNotFound naming the bucket's row kind
    - timeouts become a retryable StoreError
    - VersionConflict propagates unchanged
"""

from __future__ import annotations

import asyncio

from netalloc.exceptions import ResourceNotFound, StoreError
from netalloc.store.base import (
    ANY_ETAG,
    BatchEntry,
    BatchResult,
    BucketSchema,
    Sort,
    Store,
    StoredObject,
)
from netalloc.store.filters import build_filter, parse_filter
from netalloc.utils.logger import get_logger

logger = get_logger(__name__)


class StoreAdapter:
    """Convenience wrappers over a Store driver."""

    def __init__(self, store: Store, timeout: float | None = None):
        self.store = store
        self.timeout = timeout

    async def _call(self, coro):
        try:
            if self.timeout:
                return await asyncio.wait_for(coro, self.timeout)
            return await coro
        except asyncio.TimeoutError as e:
            raise StoreError(f"store operation timed out after {self.timeout}s") from e

    # -------------------------------------------------------------------------
    # Buckets
    # -------------------------------------------------------------------------

    async def init_bucket(self, schema: BucketSchema) -> None:
        logger.debug(f"init_bucket: {schema.name}")
        await self._call(self.store.init_bucket(schema))

    async def delete_bucket(self, schema: BucketSchema) -> None:
        await self._call(self.store.delete_bucket(schema.name))

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------

    async def get_obj(self, schema: BucketSchema, key: str) -> StoredObject:
        """
        Get an object.

        Raises:
            ResourceNotFound: If the object does not exist.
        """
        try:
            return await self._call(self.store.get(schema.name, key))
        except ResourceNotFound:
            raise ResourceNotFound(schema.desc, key) from None

    async def get_obj_or_none(self, schema: BucketSchema, key: str) -> StoredObject | None:
        try:
            return await self.get_obj(schema, key)
        except ResourceNotFound:
            return None

    async def put_obj(
        self, schema: BucketSchema, key: str, value: dict, etag=ANY_ETAG
    ) -> str:
        return await self._call(self.store.put(schema.name, key, value, etag=etag))

    async def del_obj(self, schema: BucketSchema, key: str, etag=ANY_ETAG) -> None:
        try:
            await self._call(self.store.delete(schema.name, key, etag=etag))
        except ResourceNotFound:
            raise ResourceNotFound(schema.desc, key) from None

    async def list_objs(
        self,
        schema: BucketSchema,
        query=None,
        default_filter: str | None = None,
        sort: Sort | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StoredObject]:
        """
        Find objects matching a structured query.

        Args:
            schema: Bucket to search.
            query: Mapping of indexed field -> value, or raw filter text.
            default_filter: Filter text used when the query is empty.
            sort: Optional sort order.
            limit: Maximum number of results.
            offset: Results to skip.

        Raises:
            InvalidParameter: If the query names an unindexed field.
        """
        filt = build_filter(query, schema)
        if filt is None and default_filter:
            filt = parse_filter(default_filter)
        logger.debug(f"list_objs: {schema.name} filter={filt}")
        return await self._call(
            self.store.find(schema.name, filt, sort=sort, limit=limit, offset=offset)
        )

    async def update_obj(
        self,
        schema: BucketSchema,
        key: str,
        val: dict,
        remove: bool = False,
        replace: bool = False,
        etag=None,
    ) -> StoredObject:
        """
        Read-modify-write an object.

        Args:
            val: Keys to set (or, with remove=True, keys to delete).
            remove: Delete the keys in val instead of setting them.
            replace: Replace the whole value with val.
            etag: Expected etag; defaults to the etag just read.

        Raises:
            ResourceNotFound: If the object does not exist.
            VersionConflict: If the object changed concurrently.
        """
        current = await self.get_obj(schema, key)
        if replace:
            value = dict(val)
        else:
            value = dict(current.value)
            for k, v in val.items():
                if remove:
                    value.pop(k, None)
                else:
                    value[k] = v

        expected = current.etag if etag is None else etag
        new_etag = await self.put_obj(schema, key, value, etag=expected)
        return StoredObject(schema.name, key, value, new_etag)

    async def batch(self, entries: list[BatchEntry]) -> list[BatchResult]:
        return await self._call(self.store.batch(entries))
