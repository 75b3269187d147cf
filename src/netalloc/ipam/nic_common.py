"""
NIC validation shared by create and update.

The field validators resolve references (nic tags, networks, pools); the
after checks run on the validated bag in order:

    validate_network_params   - network/pool/ip consistency, resolves the
                                address to claim into validated["_ip"]
    validate_fabric_nic       - fabric NICs need a cn_uuid
    validate_underlay_server  - only servers have underlay NICs
"""

from __future__ import annotations

from dataclasses import dataclass

from netalloc import constants
from netalloc.exceptions import (
    AggregatedValidationError,
    AmbiguousNetwork,
    InvalidParameter,
    MissingParameter,
    ResourceNotFound,
)
from netalloc.ipam.intersect import get_pool_intersections
from netalloc.ipam.ip import get_ip
from netalloc.ipam.network import find_containing, get_network
from netalloc.ipam.network_pool import get_network_pool
from netalloc.ipam.nic_tag import validate_exists
from netalloc.models.enums import AddressFamily, BelongsToType
from netalloc.models.ip import IP
from netalloc.models.network import Network
from netalloc.models.network_pool import NetworkPool
from netalloc.validation import Derived
from netalloc.validation import validators as v


@dataclass(frozen=True)
class NetworkRef:
    """What a network_uuid resolved to: a single network or a network pool."""

    network: Network | None = None
    pool: NetworkPool | None = None

    @property
    def target(self):
        return self.network if self.network is not None else self.pool

    @property
    def uuid(self) -> str:
        return self.target.uuid

    @property
    def nic_tag(self) -> str | None:
        return self.target.nic_tag

    @property
    def family(self) -> str | None:
        return self.target.family

    def is_owner(self, owner_uuid: str, admin_uuid: str) -> bool:
        return self.target.is_owner(owner_uuid, admin_uuid)


# =============================================================================
# Helpers
# =============================================================================


def bad_owner_uuid(ctx, validated: dict, target) -> bool:
    """True if the request's owner may not provision on target."""
    if "owner_uuid" not in validated or not validated.get("check_owner", True):
        return False
    return not target.is_owner(validated["owner_uuid"], ctx.config.ADMIN_UUID)


def check_network(ctx, validated: dict, name: str, network: Network) -> None:
    """
    Cross-check the NIC's owner, nic_tag, vlan_id and vnet_id against a
    network; missing values are filled in from the network.
    """
    if bad_owner_uuid(ctx, validated, network):
        raise InvalidParameter("owner_uuid", constants.OWNER_MATCH_MSG)

    if "nic_tag" not in validated:
        validated["nic_tag"] = network.nic_tag
    elif validated["nic_tag"] != network.nic_tag:
        raise InvalidParameter(
            name, constants.NIC_TAGS_DIFFER_FMT.format(validated["nic_tag"], network.nic_tag)
        )

    if "vlan_id" not in validated:
        validated["vlan_id"] = network.vlan_id
    elif validated["vlan_id"] != network.vlan_id:
        raise InvalidParameter(
            name, constants.VLAN_IDS_DIFFER_FMT.format(validated["vlan_id"], network.vlan_id)
        )

    if network.fabric:
        if "vnet_id" not in validated:
            validated["vnet_id"] = network.vnet_id
        elif validated["vnet_id"] != network.vnet_id:
            raise InvalidParameter(
                name,
                constants.VNET_IDS_DIFFER_FMT.format(validated["vnet_id"], network.vnet_id),
            )


async def validate_subnet_contains_ip(ctx, name: str, network: Network, addr) -> IP:
    """
    Load the record of an address requested on a network.

    On create, an address held by something other than a placeholder is
    refused.
    """
    if not network.contains(addr):
        raise InvalidParameter(name, constants.IP_OUTSIDE_FMT.format(addr, network.uuid))

    ip = await get_ip(ctx, network, addr, return_object=True)
    if ctx.create and not ip.provisionable(ctx.config.ADMIN_UUID):
        raise InvalidParameter(
            name, constants.IP_IN_USE_FMT.format(ip.belongs_to_type, ip.belongs_to_uuid)
        )
    return ip


async def lookup_unknown_ip(ctx, validated: dict, name: str, addr) -> IP:
    """Find the one network on the NIC's tag and VLAN that contains addr."""
    nic_tag = validated["nic_tag"]
    vlan_id = validated["vlan_id"]
    uuids = await find_containing(ctx, vlan_id, nic_tag, validated.get("vnet_id"), addr)

    if not uuids:
        raise InvalidParameter(name, constants.IP_NONET_FMT.format(nic_tag, vlan_id, addr))
    if len(uuids) > 1:
        raise AmbiguousNetwork(
            name, constants.IP_MULTI_FMT.format(", ".join(sorted(uuids)), addr), uuids
        )

    network = await get_network(ctx, uuids[0])
    check_network(ctx, validated, name, network)
    validated["network_ref"] = NetworkRef(network=network)
    validated["network_uuid"] = network.uuid
    return await validate_subnet_contains_ip(ctx, name, network, addr)


# =============================================================================
# Field Validators
# =============================================================================


async def validate_nic_tag(ctx, name: str, value):
    """
    Validate a nic tag, which may be an overlay tag of the form "tag/vnet_id".

    An overlay tag also yields vnet_id.
    """
    tag = await v.string(ctx, name, value)
    parts = tag.split("/")
    if len(parts) > 2:
        raise InvalidParameter(name, constants.NIC_TAG_SLASH_MSG)

    await validate_exists(ctx, name, parts[0])
    if len(parts) == 1:
        return parts[0]

    vnet_id = await v.vxlan(ctx, name, parts[1])
    return Derived(parts[0], {"vnet_id": vnet_id})


async def validate_network(ctx, name: str, value):
    """
    Resolve a network UUID, falling back to a network pool of that UUID.

    "admin" names the admin network.
    """
    if value != "admin":
        value = await v.uuid(ctx, name, value)

    try:
        network = await get_network(ctx, value)
    except ResourceNotFound:
        pass
    else:
        return Derived(network.uuid, {"network_ref": NetworkRef(network=network)})

    try:
        pool = await get_network_pool(ctx, value)
    except ResourceNotFound:
        raise InvalidParameter(name, constants.NETWORK_MISSING_MSG) from None
    return Derived(pool.uuid, {"network_ref": NetworkRef(pool=pool)})


async def validate_ipv4_network(ctx, name: str, value):
    result = await validate_network(ctx, name, value)
    if result.extra["network_ref"].family != AddressFamily.IPV4.value:
        raise InvalidParameter(name, constants.NET_BAD_AF_FMT.format("IPv4"))
    return result


# =============================================================================
# After Checks
# =============================================================================


async def validate_network_params(ctx, params: dict, validated: dict) -> None:
    ref: NetworkRef | None = validated.get("network_ref")

    # Pools pick their own address
    if "ip" in validated and ref is not None and ref.pool is not None:
        raise InvalidParameter("ip", constants.POOL_IP_MSG)

    if ref is not None and ref.network is not None:
        check_network(ctx, validated, "network_uuid", ref.network)

    if ref is not None and ref.pool is not None:
        if bad_owner_uuid(ctx, validated, ref.pool):
            raise InvalidParameter("owner_uuid", constants.OWNER_MATCH_MSG)
        validated["intersections"] = get_pool_intersections(
            "network_uuid", validated, [ref.pool]
        )

    if "ip" not in validated:
        return

    if ref is not None and ref.network is not None:
        validated["_ip"] = await validate_subnet_contains_ip(
            ctx, "ip", ref.network, validated["ip"]
        )
        return

    # Without a network, nic_tag and vlan_id identify the network
    missing = [
        MissingParameter(field, constants.IP_NO_VLAN_TAG_MSG)
        for field in ("nic_tag", "vlan_id")
        if field not in validated
    ]
    if missing:
        raise AggregatedValidationError(missing)

    validated["_ip"] = await lookup_unknown_ip(ctx, validated, "ip", validated["ip"])


async def validate_fabric_nic(ctx, params: dict, validated: dict) -> None:
    ref = validated.get("network_ref")
    fabric = ref is not None and ref.network is not None and ref.network.fabric
    existing_cn = ctx.existing.cn_uuid if ctx.existing is not None else None
    if fabric and "cn_uuid" not in validated and existing_cn is None:
        raise MissingParameter("cn_uuid")


async def validate_underlay_server(ctx, params: dict, validated: dict) -> None:
    if params.get("belongs_to_type") is not None:
        belongs_to_type = params["belongs_to_type"]
    elif ctx.existing is not None:
        belongs_to_type = ctx.existing.belongs_to_type
    else:
        belongs_to_type = None

    if validated.get("underlay") and belongs_to_type != BelongsToType.SERVER.value:
        raise InvalidParameter("underlay", constants.SERVER_UNDERLAY_MSG)
