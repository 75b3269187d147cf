"""
Network operations.

Creating a network also creates its IP bucket and, on non-fabric networks,
placeholder rows for the gateway and resolvers that fall inside the subnet.
Placeholders belong to the administrative owner and stay provisionable.
"""

import asyncio
import uuid as uuidlib

from netalloc import constants
from netalloc.batch import commit_batch
from netalloc.exceptions import (
    AggregatedValidationError,
    InUse,
    InvalidParameter,
    MissingParameter,
    ResourceNotFound,
)
from netalloc.ipam.ip import init_ip_bucket
from netalloc.ipam.nic_tag import validate_exists
from netalloc.models.enums import AddressFamily, BelongsToType
from netalloc.models.ip import IP
from netalloc.models.network import NETWORK_SCHEMA, Network
from netalloc.models.network_pool import NETWORK_POOL_SCHEMA
from netalloc.models.nic import NIC_SCHEMA
from netalloc.store.base import Sort
from netalloc.store.filters import And, Equality, Filter, Not, Or, Presence, build_filter
from netalloc.utils.addr import usable_range
from netalloc.validation import Derived, ValidationSchema, validate_params
from netalloc.validation import validators as v


# =============================================================================
# Validation
# =============================================================================


async def _validate_nic_tag(ctx, name: str, value):
    tag_name = await v.nic_tag_name(ctx, name, value)
    tag = await validate_exists(ctx, name, tag_name)
    return Derived(tag_name, {"_nic_tag": tag})


async def _validate_provision_range(ctx, params: dict, validated: dict) -> None:
    """Default the provision range to the usable hosts and keep it in the subnet."""
    subnet = validated["subnet"]
    first, last = usable_range(subnet)
    validated.setdefault("provision_start_ip", first)
    validated.setdefault("provision_end_ip", last)

    errors = []
    for field in ("provision_start_ip", "provision_end_ip"):
        addr = validated[field]
        if addr.version != subnet.version or addr not in subnet:
            errors.append(
                InvalidParameter(field, constants.NET_OUTSIDE_FMT.format(field, subnet))
            )
    if errors:
        raise AggregatedValidationError(errors)

    if validated["provision_start_ip"] > validated["provision_end_ip"]:
        raise InvalidParameter("provision_end_ip", constants.NET_RANGE_MSG)


async def _validate_gateway(ctx, params: dict, validated: dict) -> None:
    gateway = validated.get("gateway")
    subnet = validated["subnet"]
    if gateway is not None and (gateway.version != subnet.version or gateway not in subnet):
        raise InvalidParameter("gateway", constants.NET_OUTSIDE_FMT.format("gateway", subnet))


async def _validate_fabric(ctx, params: dict, validated: dict) -> None:
    if validated.get("fabric"):
        if "vnet_id" not in validated:
            raise MissingParameter("vnet_id")
    elif "vnet_id" in validated:
        raise InvalidParameter("vnet_id", constants.NET_FABRIC_VNET_MSG)
    elif "internet_nat" in validated:
        raise InvalidParameter("internet_nat", constants.NET_FABRIC_VNET_MSG)


async def _validate_mtu(ctx, params: dict, validated: dict) -> None:
    tag = validated["_nic_tag"]
    mtu = validated.setdefault("mtu", min(1500, tag.mtu))
    if mtu > tag.mtu:
        raise InvalidParameter("mtu", constants.NET_MTU_FMT.format(tag.mtu))


CREATE_SCHEMA = ValidationSchema(
    required={
        "name": v.string,
        "subnet": v.subnet,
        "vlan_id": v.vlan,
        "nic_tag": _validate_nic_tag,
    },
    optional={
        "uuid": v.uuid,
        "provision_start_ip": v.ip,
        "provision_end_ip": v.ip,
        "gateway": v.ip,
        "resolvers": v.ip_list,
        "mtu": v.mtu,
        "owner_uuids": v.uuid_list,
        "fabric": v.boolean,
        "vnet_id": v.vxlan,
        "internet_nat": v.boolean,
        "description": v.string,
    },
    after=(_validate_provision_range, _validate_gateway, _validate_fabric, _validate_mtu),
    strict=True,
)

LIST_SCHEMA = ValidationSchema(
    optional={
        "name": v.string_list,
        "nic_tag": v.string_list,
        "vlan_id": v.vlan,
        "owner_uuid": v.uuid,
        "fabric": v.boolean,
        "vnet_id": v.vxlan,
        "family": v.enum_of(AddressFamily),
        "limit": v.limit,
        "offset": v.offset,
    },
    strict=True,
)


def _placeholder_ips(ctx, network: Network) -> list[IP]:
    """Reserved admin rows for the gateway and resolvers inside the subnet."""
    if network.fabric:
        return []
    admin = ctx.config.ADMIN_UUID
    addrs = []
    for addr in [network.gateway, *network.resolvers]:
        if addr is not None and network.contains(addr) and addr not in addrs:
            addrs.append(addr)
    return [
        IP(
            address=addr,
            network=network,
            reserved=True,
            belongs_to_type=BelongsToType.OTHER.value,
            belongs_to_uuid=admin,
            owner_uuid=admin,
        )
        for addr in addrs
    ]


# =============================================================================
# Operations
# =============================================================================


async def create_network(ctx, params: dict) -> Network:
    validated = await validate_params(ctx, CREATE_SCHEMA, params)

    network = Network(
        uuid=validated.get("uuid") or str(uuidlib.uuid4()),
        name=validated["name"],
        subnet=validated["subnet"],
        vlan_id=validated["vlan_id"],
        nic_tag=validated["nic_tag"],
        provision_start_ip=validated["provision_start_ip"],
        provision_end_ip=validated["provision_end_ip"],
        mtu=validated["mtu"],
        owner_uuids=validated.get("owner_uuids", []),
        gateway=validated.get("gateway"),
        resolvers=validated.get("resolvers", []),
        fabric=validated.get("fabric", False),
        vnet_id=validated.get("vnet_id"),
        internet_nat=validated.get("internet_nat", True) if validated.get("fabric") else False,
        ip_use_strings=ctx.config.IP_USE_STRINGS,
        description=validated.get("description"),
    )

    if await ctx.store.get_obj_or_none(NETWORK_SCHEMA, network.uuid) is not None:
        raise InvalidParameter("uuid", constants.ALREADY_EXISTS_MSG)

    await init_ip_bucket(ctx, network.uuid)
    placeholders = _placeholder_ips(ctx, network)
    entries = [network.batch()] + [ip.batch() for ip in placeholders]
    await commit_batch(ctx, entries, models=[network, *placeholders])

    ctx.log.info(f"Created network {network.uuid} ({network.name}, {network.subnet})")
    return network


async def get_network(ctx, uuid: str) -> Network:
    """
    Get a network by UUID, or the network named "admin" for uuid="admin".

    Raises:
        ResourceNotFound: If there is no such network.
    """
    if uuid == "admin":
        objs = await ctx.store.list_objs(NETWORK_SCHEMA, {"name": "admin"}, limit=1)
        if not objs:
            raise ResourceNotFound(NETWORK_SCHEMA.desc, uuid)
        obj = objs[0]
    else:
        obj = await ctx.store.get_obj(NETWORK_SCHEMA, uuid)
    return Network.from_raw(obj.value, obj.etag)


def _owner_filter(owner_uuid: str) -> Filter:
    # Unowned networks are usable by everyone
    return Or([Equality("owner_uuids", owner_uuid), Not(Presence("owner_uuids"))])


async def list_networks(ctx, params: dict | None = None) -> list[Network]:
    validated = await validate_params(ctx, LIST_SCHEMA, params or {})
    limit = validated.pop("limit", ctx.config.DEFAULT_LIMIT)
    offset = validated.pop("offset", 0)
    owner = validated.pop("owner_uuid", None)

    clauses = []
    built = build_filter(validated, NETWORK_SCHEMA)
    if built is not None:
        clauses.append(built)
    if owner:
        clauses.append(_owner_filter(owner))

    query = None
    if len(clauses) == 1:
        query = clauses[0]
    elif clauses:
        query = And(clauses)

    objs = await ctx.store.list_objs(
        NETWORK_SCHEMA,
        query=query,
        default_filter="(uuid=*)",
        sort=Sort("name"),
        limit=limit,
        offset=offset,
    )
    return [Network.from_raw(o.value, o.etag) for o in objs]


async def find_containing(ctx, vlan_id: int, nic_tag: str, vnet_id, address) -> list[str]:
    """UUIDs of the networks on nic_tag/vlan_id (and vnet_id) whose subnet holds address."""
    query = {"nic_tag": nic_tag, "vlan_id": vlan_id}
    if vnet_id is not None:
        query["vnet_id"] = vnet_id
    objs = await ctx.store.list_objs(NETWORK_SCHEMA, query)
    networks = [Network.from_raw(o.value, o.etag) for o in objs]
    return sorted(n.uuid for n in networks if n.contains(address))


async def delete_network(ctx, uuid: str) -> None:
    """
    Delete a network and its IP bucket.

    Raises:
        ResourceNotFound: If the network does not exist.
        InUse: If NICs, held addresses or network pools still reference it.
    """
    network = await get_network(ctx, uuid)

    nics, pools, held = await asyncio.gather(
        ctx.store.list_objs(NIC_SCHEMA, {"network_uuid": network.uuid}),
        ctx.store.list_objs(NETWORK_POOL_SCHEMA, {"networks": network.uuid}),
        ctx.store.list_objs(network.ip_bucket, {"belongs_to_uuid": "*"}),
    )
    ips = [IP.from_raw(o.value, network, o.etag) for o in held]

    usedby = [{"type": "nic", "id": o.value["mac"]} for o in nics]
    usedby += [{"type": "network_pool", "id": o.key} for o in pools]
    usedby += [
        {"type": ip.belongs_to_type, "id": ip.belongs_to_uuid}
        for ip in ips
        if not ip.provisionable(ctx.config.ADMIN_UUID)
    ]
    if usedby:
        raise InUse(constants.NET_IN_USE_MSG, usedby=usedby)

    await ctx.store.del_obj(NETWORK_SCHEMA, network.uuid, etag=network.etag)
    await ctx.store.delete_bucket(network.ip_bucket)
    ctx.log.info(f"Deleted network {network.uuid}")
