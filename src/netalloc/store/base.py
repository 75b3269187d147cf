"""
Store interface shared by all drivers.

The store is a schema-indexed key/value backend organized in buckets. Every
row carries a version token (etag) that changes whenever its value changes;
writes may be made conditional on it:

    - etag=ANY_ETAG: unconditional write
    - etag=None: the row must not exist yet (optimistic create)
    - etag="<token>": the row must still carry this token

A batch applies several puts/deletes all-or-nothing, in the order given.
"""

from __future__ import annotations

import ipaddress
import json
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace

from netalloc.exceptions import ResourceNotFound, VersionConflict
from netalloc.models.enums import BatchOperation


class _AnyEtag:
    def __repr__(self) -> str:
        return "ANY_ETAG"


# Unconditional write marker
ANY_ETAG = _AnyEtag()


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class BucketSchema:
    """
    Bucket definition: name plus the indexed (searchable) fields.

    Index types: "string", "number", "boolean", "ip", "[string]" (array).
    """

    name: str
    desc: str
    index: dict[str, str] = field(default_factory=dict)
    version: int = 0

    def named(self, name: str) -> BucketSchema:
        """Copy of this schema under another bucket name."""
        return replace(self, name=name)


@dataclass
class StoredObject:
    """A row read from the store."""

    bucket: str
    key: str
    value: dict
    etag: str


@dataclass
class Sort:
    attribute: str
    order: str = "ASC"


@dataclass
class BatchEntry:
    """One mutation inside a batch."""

    bucket: str
    key: str
    operation: BatchOperation = BatchOperation.PUT
    value: dict | None = None
    etag: object = ANY_ETAG

    def describe(self) -> dict:
        """Loggable form."""
        desc = {"bucket": self.bucket, "key": self.key, "op": self.operation.value}
        if self.etag is not ANY_ETAG:
            desc["etag"] = self.etag
        return desc


@dataclass
class BatchResult:
    bucket: str
    key: str
    etag: str | None


# =============================================================================
# Helpers
# =============================================================================


def compute_etag(value: dict) -> str:
    """Content-derived version token (CRC32 of the canonical JSON form)."""
    data = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return f"{zlib.crc32(data.encode()):08X}"


def check_write(bucket: str, key: str, current_etag: str | None, expected) -> None:
    """
    Validate a conditional write against the row's current etag.

    Args:
        current_etag: Etag of the existing row, None if there is no row.
        expected: ANY_ETAG, None or an etag string.

    Raises:
        VersionConflict: If the condition does not hold.
    """
    if expected is ANY_ETAG:
        return
    if expected != current_etag:
        raise VersionConflict(bucket, key, expected=expected, actual=current_etag)


def check_delete(bucket: str, key: str, current_etag: str | None, expected) -> None:
    if current_etag is None:
        raise ResourceNotFound(f"{bucket}/{key}", key)
    check_write(bucket, key, current_etag, expected)


def sort_key(schema: BucketSchema | None, attribute: str):
    """Build a sort key function honoring the attribute's index type."""
    kind = schema.index.get(attribute, "string") if schema else "string"

    def key(obj: StoredObject):
        value = obj.value.get(attribute)
        if value is None:
            return (1, 0, "")
        if kind == "ip":
            addr = ipaddress.ip_address(value)
            return (0, addr.version, int(addr))
        if kind == "number":
            return (0, 0, value)
        return (0, 0, str(value))

    return key


def page(objs: list[StoredObject], schema, sort: Sort | None, limit, offset):
    """Apply sort, offset and limit to a result list."""
    if sort is not None:
        objs = sorted(
            objs,
            key=sort_key(schema, sort.attribute),
            reverse=sort.order.upper() == "DESC",
        )
    if offset:
        objs = objs[offset:]
    if limit is not None:
        objs = objs[:limit]
    return objs


# =============================================================================
# Store Interface
# =============================================================================


class Store(ABC):
    """Abstract asynchronous store driver."""

    @abstractmethod
    async def init_bucket(self, schema: BucketSchema) -> None:
        """Create the bucket, or update its schema if it exists."""

    @abstractmethod
    async def get_bucket(self, name: str) -> BucketSchema:
        """Raises ResourceNotFound if the bucket does not exist."""

    @abstractmethod
    async def delete_bucket(self, name: str) -> None:
        pass

    @abstractmethod
    async def get(self, bucket: str, key: str) -> StoredObject:
        """Raises ResourceNotFound if the row does not exist."""

    @abstractmethod
    async def put(self, bucket: str, key: str, value: dict, etag=ANY_ETAG) -> str:
        """Write a row and return its new etag."""

    @abstractmethod
    async def delete(self, bucket: str, key: str, etag=ANY_ETAG) -> None:
        pass

    @abstractmethod
    async def find(
        self,
        bucket: str,
        filter=None,
        sort: Sort | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StoredObject]:
        """Return the rows matching a Filter (None matches everything)."""

    @abstractmethod
    async def batch(self, entries: list[BatchEntry]) -> list[BatchResult]:
        """Apply all entries atomically, in order."""

    async def close(self) -> None:
        pass
