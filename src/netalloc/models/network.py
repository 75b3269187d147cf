"""
Network model: one L2/L3 network.

Networks own subnet arithmetic and the ownership rule used when provisioning
on them. IP records are not embedded; they live in a per-network bucket
whose name is derived from the network UUID (see ip_bucket_name()).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from netalloc import constants
from netalloc.models.enums import AddressFamily, BatchOperation
from netalloc.models.responses import NetworkResponse
from netalloc.store.base import BatchEntry, BucketSchema
from netalloc.utils.addr import IPAddress, IPNetwork, to_ip, to_network

NETWORK_SCHEMA = BucketSchema(
    name=constants.NETWORK_BUCKET,
    desc="network",
    index={
        "uuid": "string",
        "name": "string",
        "nic_tag": "string",
        "vlan_id": "number",
        "owner_uuids": "[string]",
        "fabric": "boolean",
        "vnet_id": "number",
        "family": "string",
        "subnet": "string",
    },
    version=1,
)


# =============================================================================
# IP Bucket Naming
# =============================================================================


def ip_bucket_name(network_uuid: str) -> str:
    """Bucket holding the IP rows of a network."""
    return constants.IP_BUCKET_PREFIX + network_uuid.replace("-", "_")


IP_SCHEMA = BucketSchema(
    name=constants.IP_BUCKET_PREFIX,
    desc="IP",
    index={
        "belongs_to_type": "string",
        "belongs_to_uuid": "string",
        "owner_uuid": "string",
        "ip": "number",
        "ipaddr": "ip",
        "reserved": "boolean",
        "v": "number",
    },
    version=constants.IP_BUCKET_VERSION,
)


def ip_bucket(network_uuid: str) -> BucketSchema:
    return IP_SCHEMA.named(ip_bucket_name(network_uuid))


# =============================================================================
# Network
# =============================================================================


@dataclass
class Network:
    """A single network and its provisioning parameters."""

    uuid: str
    name: str
    subnet: IPNetwork
    vlan_id: int
    nic_tag: str
    provision_start_ip: IPAddress
    provision_end_ip: IPAddress
    mtu: int = 1500
    owner_uuids: list[str] = field(default_factory=list)
    gateway: IPAddress | None = None
    resolvers: list[IPAddress] = field(default_factory=list)
    fabric: bool = False
    vnet_id: int | None = None
    internet_nat: bool = False
    gateway_provisioned: bool = False
    ip_use_strings: bool = True
    description: str | None = None
    etag: str | None = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def family(self) -> str:
        return AddressFamily.IPV4.value if self.subnet.version == 4 else AddressFamily.IPV6.value

    @property
    def netmask(self) -> str | None:
        return str(self.subnet.netmask) if self.subnet.version == 4 else None

    @property
    def bucket(self) -> str:
        return NETWORK_SCHEMA.name

    def key(self) -> str:
        return self.uuid

    @property
    def ip_bucket(self) -> BucketSchema:
        return ip_bucket(self.uuid)

    def contains(self, addr) -> bool:
        addr = to_ip(addr)
        return addr is not None and addr.version == self.subnet.version and addr in self.subnet

    def is_owner(self, owner_uuid: str, admin_uuid: str) -> bool:
        """True if owner_uuid may provision on this network."""
        if not self.owner_uuids:
            return True
        if owner_uuid == admin_uuid:
            return True
        return owner_uuid in self.owner_uuids

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def raw(self) -> dict:
        """Row stored in the networks bucket."""
        raw = {
            "uuid": self.uuid,
            "name": self.name,
            "family": self.family,
            "subnet": str(self.subnet),
            "vlan_id": self.vlan_id,
            "nic_tag": self.nic_tag,
            "provision_start_ip": str(self.provision_start_ip),
            "provision_end_ip": str(self.provision_end_ip),
            "mtu": self.mtu,
            "resolvers": [str(r) for r in self.resolvers],
            "fabric": self.fabric,
            "ip_use_strings": self.ip_use_strings,
        }
        if self.owner_uuids:
            raw["owner_uuids"] = list(self.owner_uuids)
        if self.gateway is not None:
            raw["gateway"] = str(self.gateway)
        if self.fabric:
            raw["vnet_id"] = self.vnet_id
            raw["internet_nat"] = self.internet_nat
            raw["gateway_provisioned"] = self.gateway_provisioned
        if self.description:
            raw["description"] = self.description
        return raw

    @classmethod
    def from_raw(cls, value: dict, etag: str | None = None) -> Network:
        return cls(
            uuid=value["uuid"],
            name=value["name"],
            subnet=to_network(value["subnet"]),
            vlan_id=value["vlan_id"],
            nic_tag=value["nic_tag"],
            provision_start_ip=to_ip(value["provision_start_ip"]),
            provision_end_ip=to_ip(value["provision_end_ip"]),
            mtu=value.get("mtu", 1500),
            owner_uuids=list(value.get("owner_uuids") or []),
            gateway=to_ip(value["gateway"]) if value.get("gateway") else None,
            resolvers=[to_ip(r) for r in value.get("resolvers", [])],
            fabric=value.get("fabric", False),
            vnet_id=value.get("vnet_id"),
            internet_nat=value.get("internet_nat", False),
            gateway_provisioned=value.get("gateway_provisioned", False),
            ip_use_strings=value.get("ip_use_strings", True),
            description=value.get("description"),
            etag=etag,
        )

    def serialize(self) -> dict:
        resp = NetworkResponse(
            uuid=self.uuid,
            name=self.name,
            family=self.family,
            subnet=str(self.subnet),
            netmask=self.netmask,
            vlan_id=self.vlan_id,
            nic_tag=self.nic_tag,
            provision_start_ip=str(self.provision_start_ip),
            provision_end_ip=str(self.provision_end_ip),
            gateway=str(self.gateway) if self.gateway is not None else None,
            resolvers=[str(r) for r in self.resolvers],
            mtu=self.mtu,
            owner_uuids=list(self.owner_uuids) or None,
            fabric=self.fabric,
            vnet_id=self.vnet_id if self.fabric else None,
            internet_nat=self.internet_nat if self.fabric else None,
            gateway_provisioned=self.gateway_provisioned if self.fabric else None,
            description=self.description,
        )
        return resp.model_dump(exclude_none=True)

    def batch(self) -> BatchEntry:
        """Put of this network, conditional on its current etag."""
        return BatchEntry(
            bucket=NETWORK_SCHEMA.name,
            key=self.uuid,
            operation=BatchOperation.PUT,
            value=self.raw(),
            etag=self.etag,
        )
