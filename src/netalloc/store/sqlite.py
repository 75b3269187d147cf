"""
SQLite store driver built on the Peewee models in netalloc.db.

All queries run on one dedicated worker thread (peewee connections are
per-thread and SQLite serializes writers anyway). Batches run inside a
single db.atomic() transaction, so a failed etag check rolls back every
entry of the batch.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import peewee

from netalloc.db.base import close_database, db, initialize_database, run_in_executor
from netalloc.db.record import Bucket, Record
from netalloc.exceptions import ResourceNotFound, StoreError
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


class SQLiteStore(Store):
    """Store driver persisting buckets and rows in a SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="netalloc-db")
        self._opened = False

    async def open(self) -> SQLiteStore:
        await self._run(initialize_database, self.db_path)
        self._opened = True
        return self

    async def close(self) -> None:
        if self._opened:
            await self._run(close_database)
            self._opened = False
        self._executor.shutdown(wait=True)

    async def _run(self, func, *args):
        try:
            return await run_in_executor(func, *args, executor=self._executor)
        except peewee.OperationalError as e:
            logger.error(f"SQLite store error: {e}")
            raise StoreError(str(e)) from e

    # -------------------------------------------------------------------------
    # Buckets
    # -------------------------------------------------------------------------

    async def init_bucket(self, schema: BucketSchema) -> None:
        await self._run(self._init_bucket_sync, schema)

    def _init_bucket_sync(self, schema: BucketSchema) -> None:
        bucket = Bucket.get_or_none(Bucket.name == schema.name)
        if bucket is None:
            logger.debug(f"Creating bucket {schema.name}")
            bucket = Bucket(name=schema.name)
            bucket.description = schema.desc
            bucket.set_index(schema.index)
            bucket.version = schema.version
            bucket.save(force_insert=True)
            return
        bucket.description = schema.desc
        bucket.set_index(schema.index)
        bucket.version = schema.version
        bucket.save()

    async def get_bucket(self, name: str) -> BucketSchema:
        return await self._run(lambda: self._bucket_sync(name).to_schema())

    async def delete_bucket(self, name: str) -> None:
        await self._run(self._delete_bucket_sync, name)

    def _delete_bucket_sync(self, name: str) -> None:
        with db.atomic():
            self._bucket_sync(name)
            Record.delete().where(Record.bucket == name).execute()
            Bucket.delete().where(Bucket.name == name).execute()

    def _bucket_sync(self, name: str) -> Bucket:
        bucket = Bucket.get_or_none(Bucket.name == name)
        if bucket is None:
            raise ResourceNotFound(f"bucket {name}", name)
        return bucket

    # -------------------------------------------------------------------------
    # Rows
    # -------------------------------------------------------------------------

    async def get(self, bucket: str, key: str) -> StoredObject:
        return await self._run(self._get_sync, bucket, key)

    def _get_sync(self, bucket: str, key: str) -> StoredObject:
        self._bucket_sync(bucket)
        row = Record.get_or_none((Record.bucket == bucket) & (Record.row_key == key))
        if row is None:
            raise ResourceNotFound(f"{bucket}/{key}", key)
        return StoredObject(bucket, key, row.get_value(), row.etag)

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
        return await self._run(self._find_sync, bucket, filter, sort, limit, offset)

    def _find_sync(self, bucket, filter, sort, limit, offset) -> list[StoredObject]:
        schema = self._bucket_sync(bucket).to_schema()
        query = Record.select().where(Record.bucket == bucket).order_by(Record.row_key)

        if sort is None and filter is None:
            # Unsorted, unfiltered pages come straight from SQL in key order
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return [StoredObject(bucket, row.row_key, row.get_value(), row.etag) for row in query]

        # Without a sort the page keeps key order, so the scan stops once it is full
        wanted = offset + limit if sort is None and limit is not None else None
        found = []
        for row in query.iterator():
            value = row.get_value()
            if filter is None or filter.match(value):
                found.append(StoredObject(bucket, row.row_key, value, row.etag))
                if wanted is not None and len(found) >= wanted:
                    break
        return page(found, schema, sort, limit, offset)

    async def batch(self, entries: list[BatchEntry]) -> list[BatchResult]:
        return await self._run(self._batch_sync, entries)

    def _batch_sync(self, entries: list[BatchEntry]) -> list[BatchResult]:
        results = []
        # Any exception raised inside atomic() rolls the whole batch back
        with db.atomic():
            for entry in entries:
                self._bucket_sync(entry.bucket)
                where = (Record.bucket == entry.bucket) & (Record.row_key == entry.key)
                row = Record.get_or_none(where)
                current_etag = row.etag if row else None

                if entry.operation == BatchOperation.DELETE:
                    check_delete(entry.bucket, entry.key, current_etag, entry.etag)
                    Record.delete().where(where).execute()
                    results.append(BatchResult(entry.bucket, entry.key, None))
                    continue

                check_write(entry.bucket, entry.key, current_etag, entry.etag)
                value = entry.value or {}
                new_etag = compute_etag(value)
                row = row or Record(bucket=entry.bucket, row_key=entry.key)
                row.set_value(value)
                row.etag = new_etag
                if current_etag is None:
                    row.save(force_insert=True)
                else:
                    Record.update(value=row.value, etag=new_etag).where(where).execute()
                results.append(BatchResult(entry.bucket, entry.key, new_etag))
        return results
