"""
NIC model: a virtual network interface attached to a workload.

A NIC is keyed by its MAC address in integer form. It optionally sits on
one network and then holds one address there; the IP row is kept
consistent with the NIC by always writing both in the same batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from netalloc import constants
from netalloc.models.enums import BatchOperation, NicState
from netalloc.models.ip import IP
from netalloc.models.network import Network
from netalloc.models.responses import NicResponse
from netalloc.store.base import BatchEntry, BucketSchema
from netalloc.utils.addr import IPAddress, int_to_mac, to_ip

NIC_SCHEMA = BucketSchema(
    name=constants.NIC_BUCKET,
    desc="nic",
    index={
        "mac": "number",
        "ipaddr": "ip",
        "belongs_to_type": "string",
        "belongs_to_uuid": "string",
        "owner_uuid": "string",
        "primary": "boolean",
        "state": "string",
        "nic_tag": "string",
        "vlan_id": "number",
        "network_uuid": "string",
        "cn_uuid": "string",
        "underlay": "boolean",
        "vnet_id": "number",
    },
    version=1,
)

# Optional boolean flags copied through as-is
SPOOF_FLAGS = (
    "allow_dhcp_spoofing",
    "allow_ip_spoofing",
    "allow_mac_spoofing",
    "allow_restricted_traffic",
)


@dataclass
class Nic:
    """
    Network interface.

    Attributes:
        mac: MAC address as a 48-bit integer.
        network: Network the NIC is on, if any.
        ipaddr: Address held on that network.
        ip: The IP record for ipaddr, when loaded.
    """

    mac: int
    belongs_to_type: str
    belongs_to_uuid: str
    owner_uuid: str
    state: str = NicState.RUNNING.value
    primary: bool = False
    nic_tag: str | None = None
    vlan_id: int | None = None
    network: Network | None = None
    ipaddr: IPAddress | None = None
    ip: IP | None = None
    cn_uuid: str | None = None
    underlay: bool = False
    vnet_id: int | None = None
    model: str | None = None
    flags: dict[str, bool] = field(default_factory=dict)
    etag: str | None = None

    @property
    def bucket(self) -> str:
        return NIC_SCHEMA.name

    def key(self) -> str:
        return str(self.mac)

    @property
    def mac_str(self) -> str:
        return int_to_mac(self.mac)

    @property
    def network_uuid(self) -> str | None:
        return self.network.uuid if self.network else None

    def is_fabric(self) -> bool:
        return bool(self.network and self.network.fabric)

    def is_fabric_gateway(self) -> bool:
        return bool(self.ip and self.ip.is_fabric_gateway())

    def owning(self) -> dict:
        return {
            "belongs_to_type": self.belongs_to_type,
            "belongs_to_uuid": self.belongs_to_uuid,
            "owner_uuid": self.owner_uuid,
        }

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def raw(self) -> dict:
        """Row stored in the NIC bucket."""
        raw = {
            "mac": self.mac,
            "primary": self.primary,
            "state": self.state,
            **self.owning(),
        }
        if self.nic_tag is not None:
            raw["nic_tag"] = self.nic_tag
        if self.vlan_id is not None:
            raw["vlan_id"] = self.vlan_id
        if self.network is not None:
            raw["network_uuid"] = self.network.uuid
        if self.ipaddr is not None:
            raw["ipaddr"] = str(self.ipaddr)
        if self.cn_uuid is not None:
            raw["cn_uuid"] = self.cn_uuid
        if self.underlay:
            raw["underlay"] = True
        if self.vnet_id is not None:
            raw["vnet_id"] = self.vnet_id
        if self.model is not None:
            raw["model"] = self.model
        for flag, value in self.flags.items():
            raw[flag] = value
        return raw

    @classmethod
    def from_raw(
        cls, value: dict, network: Network | None = None, etag: str | None = None
    ) -> Nic:
        return cls(
            mac=int(value["mac"]),
            belongs_to_type=value["belongs_to_type"],
            belongs_to_uuid=value["belongs_to_uuid"],
            owner_uuid=value["owner_uuid"],
            state=value.get("state", NicState.RUNNING.value),
            primary=bool(value.get("primary", False)),
            nic_tag=value.get("nic_tag"),
            vlan_id=value.get("vlan_id"),
            network=network,
            ipaddr=to_ip(value["ipaddr"]) if value.get("ipaddr") else None,
            cn_uuid=value.get("cn_uuid"),
            underlay=bool(value.get("underlay", False)),
            vnet_id=value.get("vnet_id"),
            model=value.get("model"),
            flags={f: value[f] for f in SPOOF_FLAGS if f in value},
            etag=etag,
        )

    def serialize(self) -> dict:
        fields = {
            "mac": self.mac_str,
            "primary": self.primary,
            "state": self.state,
            **self.owning(),
            "nic_tag": self.nic_tag,
            "vlan_id": self.vlan_id,
            "cn_uuid": self.cn_uuid,
            "underlay": True if self.underlay else None,
            "vnet_id": self.vnet_id,
            "model": self.model,
            **self.flags,
        }
        net = self.network
        if net is not None:
            fields.update(
                network_uuid=net.uuid,
                netmask=net.netmask,
                gateway=str(net.gateway) if net.gateway is not None else None,
                resolvers=[str(r) for r in net.resolvers],
                mtu=net.mtu,
            )
            if net.fabric:
                fields.update(
                    fabric=True,
                    internet_nat=net.internet_nat,
                    gateway_provisioned=net.gateway_provisioned,
                )
        if self.ipaddr is not None:
            fields["ip"] = str(self.ipaddr)
        return NicResponse(**fields).model_dump(exclude_none=True)

    # -------------------------------------------------------------------------
    # Batch Entries
    # -------------------------------------------------------------------------

    def batch(self) -> BatchEntry:
        return BatchEntry(
            bucket=NIC_SCHEMA.name,
            key=self.key(),
            operation=BatchOperation.PUT,
            value=self.raw(),
            etag=self.etag,
        )

    def delete_batch(self) -> BatchEntry:
        return BatchEntry(
            bucket=NIC_SCHEMA.name,
            key=self.key(),
            operation=BatchOperation.DELETE,
            etag=self.etag,
        )
