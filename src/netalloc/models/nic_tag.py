"""NIC tag model: a named physical (or overlay) attachment point."""

from __future__ import annotations

from dataclasses import dataclass

from netalloc import constants
from netalloc.models.responses import NicTagResponse
from netalloc.store.base import BucketSchema

NIC_TAG_SCHEMA = BucketSchema(
    name=constants.NIC_TAG_BUCKET,
    desc="nic tag",
    index={"name": "string", "uuid": "string"},
    version=1,
)


@dataclass
class NicTag:
    name: str
    uuid: str
    mtu: int = 1500
    etag: str | None = None

    @property
    def bucket(self) -> str:
        return NIC_TAG_SCHEMA.name

    def key(self) -> str:
        return self.name

    def raw(self) -> dict:
        return {"name": self.name, "uuid": self.uuid, "mtu": self.mtu}

    @classmethod
    def from_raw(cls, value: dict, etag: str | None = None) -> NicTag:
        return cls(
            name=value["name"], uuid=value["uuid"], mtu=value.get("mtu", 1500), etag=etag
        )

    def serialize(self) -> dict:
        return NicTagResponse(name=self.name, uuid=self.uuid, mtu=self.mtu).model_dump()
