"""
Pydantic models for the serialized (caller-facing) form of each record.

The model objects build these in serialize() and dump them with
exclude_none=True, so optional fields only appear when set.

Model Categories:
    - IPResponse: One address on one network
    - NicResponse: A virtual network interface
    - NetworkResponse / NetworkPoolResponse: Topology records
    - NicTagResponse: A physical/overlay NIC tag
"""

from pydantic import BaseModel, Field


# =============================================================================
# Address Responses
# =============================================================================


class IPResponse(BaseModel):
    """Serialized IP record."""

    ip: str = Field(..., description="Address in canonical string form")
    network_uuid: str = Field(..., description="Network the address belongs to")
    reserved: bool = Field(default=False, description="Held administratively")
    free: bool = Field(default=True, description="Not reserved and not owned")
    belongs_to_type: str | None = Field(default=None, description="other/server/zone")
    belongs_to_uuid: str | None = Field(default=None, description="Holding workload")
    owner_uuid: str | None = Field(default=None, description="Owning account")


class NicResponse(BaseModel):
    """Serialized NIC record, with network-derived fields when on a network."""

    mac: str = Field(..., description="MAC address, colon separated")
    primary: bool = Field(default=False)
    state: str = Field(..., description="provisioning/stopped/running")
    belongs_to_type: str = Field(...)
    belongs_to_uuid: str = Field(...)
    owner_uuid: str = Field(...)
    nic_tag: str | None = Field(default=None)
    vlan_id: int | None = Field(default=None)
    network_uuid: str | None = Field(default=None)
    ip: str | None = Field(default=None)
    netmask: str | None = Field(default=None)
    gateway: str | None = Field(default=None)
    resolvers: list[str] | None = Field(default=None)
    mtu: int | None = Field(default=None)
    fabric: bool | None = Field(default=None)
    internet_nat: bool | None = Field(default=None)
    gateway_provisioned: bool | None = Field(default=None)
    vnet_id: int | None = Field(default=None)
    cn_uuid: str | None = Field(default=None, description="Hosting compute node")
    underlay: bool | None = Field(default=None)
    model: str | None = Field(default=None, description="Emulated device model")
    allow_dhcp_spoofing: bool | None = Field(default=None)
    allow_ip_spoofing: bool | None = Field(default=None)
    allow_mac_spoofing: bool | None = Field(default=None)
    allow_restricted_traffic: bool | None = Field(default=None)


# =============================================================================
# Topology Responses
# =============================================================================


class NetworkResponse(BaseModel):
    """Serialized network record."""

    uuid: str = Field(...)
    name: str = Field(...)
    family: str = Field(..., description="ipv4 or ipv6")
    subnet: str = Field(..., description="CIDR")
    netmask: str | None = Field(default=None, description="IPv4 only")
    vlan_id: int = Field(...)
    nic_tag: str = Field(...)
    provision_start_ip: str = Field(...)
    provision_end_ip: str = Field(...)
    gateway: str | None = Field(default=None)
    resolvers: list[str] = Field(default_factory=list)
    mtu: int = Field(...)
    owner_uuids: list[str] | None = Field(default=None)
    fabric: bool = Field(default=False)
    vnet_id: int | None = Field(default=None)
    internet_nat: bool | None = Field(default=None)
    gateway_provisioned: bool | None = Field(default=None)
    description: str | None = Field(default=None)


class NetworkPoolResponse(BaseModel):
    """Serialized network pool record."""

    uuid: str = Field(...)
    name: str = Field(...)
    networks: list[str] = Field(default_factory=list)
    owner_uuid: str | None = Field(default=None)
    nic_tag: str | None = Field(default=None, description="Shared tag of members")
    family: str | None = Field(default=None)
    description: str | None = Field(default=None)


class NicTagResponse(BaseModel):
    """Serialized NIC tag record."""

    name: str = Field(...)
    uuid: str = Field(...)
    mtu: int = Field(...)
