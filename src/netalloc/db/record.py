"""
Store rows as Peewee models.

Buckets and their rows live in two tables. Values and index definitions are
JSON text columns with get_/set_ accessors.
"""

import json

import peewee

from netalloc.db.base import BaseModel


class Bucket(BaseModel):
    """
    Bucket definition.

    Attributes:
        name: Bucket name (primary key).
        description: Human-readable row kind, used in error messages.
        index_spec: JSON object of indexed field -> index type.
        version: Schema version.
    """

    name = peewee.CharField(primary_key=True)
    description = peewee.CharField(default="")
    index_spec = peewee.TextField(default="{}")
    version = peewee.IntegerField(default=0)

    class Meta:
        table_name = "buckets"

    def get_index(self) -> dict[str, str]:
        return json.loads(self.index_spec) if self.index_spec else {}

    def set_index(self, index: dict[str, str]) -> None:
        self.index_spec = json.dumps(index, sort_keys=True)

    def to_schema(self):
        # Imported here to avoid a circular import with netalloc.store
        from netalloc.store.base import BucketSchema

        return BucketSchema(
            name=self.name, desc=self.description, index=self.get_index(), version=self.version
        )


class Record(BaseModel):
    """
    One stored row.

    Attributes:
        bucket: Owning bucket name.
        row_key: Row key, unique within the bucket.
        value: JSON object.
        etag: Version token of the current value.
    """

    bucket = peewee.CharField(index=True)
    row_key = peewee.CharField(column_name="key")
    value = peewee.TextField(default="{}")
    etag = peewee.CharField()

    class Meta:
        table_name = "records"
        primary_key = peewee.CompositeKey("bucket", "row_key")

    def get_value(self) -> dict:
        return json.loads(self.value) if self.value else {}

    def set_value(self, value: dict) -> None:
        self.value = json.dumps(value, sort_keys=True)
