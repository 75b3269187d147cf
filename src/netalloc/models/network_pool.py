"""
NetworkPool model: a named set of same-tag networks treated as one
allocation domain.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from netalloc import constants
from netalloc.models.enums import BatchOperation
from netalloc.models.network import Network
from netalloc.models.responses import NetworkPoolResponse
from netalloc.store.base import BatchEntry, BucketSchema

NETWORK_POOL_SCHEMA = BucketSchema(
    name=constants.NETWORK_POOL_BUCKET,
    desc="network pool",
    index={
        "uuid": "string",
        "name": "string",
        "networks": "[string]",
        "owner_uuid": "string",
    },
    version=1,
)


@dataclass
class NetworkPool:
    """
    Network pool.

    Attributes:
        networks: Member network UUIDs, kept sorted.
        member_networks: Resolved member networks, when loaded.
    """

    uuid: str
    name: str
    networks: list[str] = field(default_factory=list)
    owner_uuid: str | None = None
    description: str | None = None
    member_networks: list[Network] = field(default_factory=list)
    etag: str | None = None

    def __post_init__(self):
        self.networks = sorted(self.networks)

    @property
    def bucket(self) -> str:
        return NETWORK_POOL_SCHEMA.name

    def key(self) -> str:
        return self.uuid

    @property
    def nic_tag(self) -> str | None:
        """Tag shared by all members (taken from the first one)."""
        if not self.member_networks:
            return None
        return self.member_networks[0].nic_tag

    @property
    def family(self) -> str | None:
        if not self.member_networks:
            return None
        return self.member_networks[0].family

    def is_owner(self, owner_uuid: str, admin_uuid: str) -> bool:
        if not self.owner_uuid:
            return True
        return owner_uuid in (self.owner_uuid, admin_uuid)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def raw(self) -> dict:
        raw = {"uuid": self.uuid, "name": self.name, "networks": list(self.networks)}
        if self.owner_uuid:
            raw["owner_uuid"] = self.owner_uuid
        if self.description:
            raw["description"] = self.description
        return raw

    @classmethod
    def from_raw(
        cls, value: dict, member_networks: list[Network] | None = None, etag: str | None = None
    ) -> NetworkPool:
        return cls(
            uuid=value["uuid"],
            name=value["name"],
            networks=list(value.get("networks") or []),
            owner_uuid=value.get("owner_uuid"),
            description=value.get("description"),
            member_networks=list(member_networks or []),
            etag=etag,
        )

    def serialize(self) -> dict:
        resp = NetworkPoolResponse(
            uuid=self.uuid,
            name=self.name,
            networks=list(self.networks),
            owner_uuid=self.owner_uuid,
            nic_tag=self.nic_tag,
            family=self.family,
            description=self.description,
        )
        return resp.model_dump(exclude_none=True)

    def batch(self) -> BatchEntry:
        return BatchEntry(
            bucket=NETWORK_POOL_SCHEMA.name,
            key=self.uuid,
            operation=BatchOperation.PUT,
            value=self.raw(),
            etag=self.etag,
        )
