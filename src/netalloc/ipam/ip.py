"""
IP operations.

Addresses live in a per-network bucket, so every operation takes the
already-resolved Network. A row that was never written is a free address:
get_ip(..., return_object=True) hands back a synthetic record with etag None,
and writing it is an optimistic create.
"""

from dataclasses import replace

from netalloc import constants
from netalloc.batch import commit_batch
from netalloc.exceptions import (
    AggregatedValidationError,
    InvalidParameter,
    MissingParameter,
    ResourceNotFound,
)
from netalloc.models.enums import BelongsToType
from netalloc.models.ip import IP, OWNING_FIELDS
from netalloc.models.network import Network, ip_bucket
from netalloc.store.base import Sort
from netalloc.utils.addr import ip_key, to_ip
from netalloc.validation import ValidationSchema, validate_params
from netalloc.validation import validators as v

# Parameters used when creating an IP on behalf of another record
CREATE_PARAMS = (
    "belongs_to_type",
    "belongs_to_uuid",
    "check_owner",
    "ip",
    "network",
    "network_uuid",
    "owner_uuid",
    "reserved",
)

# Parameters shared with the NIC holding the address
NIC_SHARED_PARAMS = (
    "belongs_to_type",
    "belongs_to_uuid",
    "check_owner",
    "owner_uuid",
    "reserved",
)


# =============================================================================
# Validation
# =============================================================================


async def _network_obj(ctx, name: str, value):
    if not isinstance(value, Network):
        raise InvalidParameter(name, "could not find network")
    return value


async def _require_owning_info(ctx, params: dict, validated: dict) -> None:
    """Setting any belongs-to field requires all owning fields."""
    if "belongs_to_uuid" not in validated and "belongs_to_type" not in validated:
        return
    missing = [MissingParameter(f) for f in OWNING_FIELDS if f not in validated]
    if missing:
        raise AggregatedValidationError(missing)


async def _validate_in_subnet(ctx, params: dict, validated: dict) -> None:
    network = validated["network"]
    if not network.contains(validated["ip"]):
        raise InvalidParameter(
            "ip", constants.IP_OUTSIDE_FMT.format(validated["ip"], network.uuid)
        )


async def _validate_network_owner(ctx, params: dict, validated: dict) -> None:
    network = validated.get("network")
    owner = validated.get("owner_uuid")
    if network is None or not owner:
        return
    if validated.get("check_owner", True) and not network.is_owner(owner, ctx.config.ADMIN_UUID):
        raise InvalidParameter("owner_uuid", constants.OWNER_MATCH_MSG)


async def _validate_free_unassign(ctx, params: dict, validated: dict) -> None:
    if validated.get("free") and validated.get("unassign"):
        raise InvalidParameter("unassign", constants.FREE_UNASSIGN_MSG)


_belongs_to_type = v.enum_of(BelongsToType)

LIST_SCHEMA = ValidationSchema(
    required={"network_uuid": v.uuid},
    optional={
        "belongs_to_type": _belongs_to_type,
        "belongs_to_uuid": v.uuid,
        "owner_uuid": v.uuid,
        "reserved": v.boolean,
        "limit": v.limit,
        "offset": v.offset,
    },
    strict=True,
)

CREATE_SCHEMA = ValidationSchema(
    required={"ip": v.ip, "network": _network_obj, "network_uuid": v.uuid},
    optional={
        "check_owner": v.boolean,
        "belongs_to_uuid": v.uuid,
        "belongs_to_type": _belongs_to_type,
        "owner_uuid": v.uuid,
        "reserved": v.boolean,
    },
    after=(_validate_in_subnet, _require_owning_info, _validate_network_owner),
)

UPDATE_SCHEMA = ValidationSchema(
    required={"network": _network_obj},
    optional={
        "belongs_to_type": _belongs_to_type,
        "belongs_to_uuid": v.uuid,
        "check_owner": v.boolean,
        "owner_uuid": v.uuid,
        "reserved": v.boolean,
        "unassign": v.boolean,
        "free": v.boolean,
    },
    after=(_validate_network_owner, _validate_free_unassign),
)


def _update_schema(existing: IP, params: dict) -> ValidationSchema:
    """
    belongs_to_type and belongs_to_uuid must always be set together, and an
    owner is needed as soon as either is.
    """
    names = []
    if params.get("belongs_to_uuid") and not existing.belongs_to_type:
        names.append("belongs_to_type")
    if params.get("belongs_to_type") and not existing.belongs_to_uuid:
        names.append("belongs_to_uuid")
    if not existing.owner_uuid and (
        params.get("belongs_to_type") or params.get("belongs_to_uuid")
    ):
        names.append("owner_uuid")
    return UPDATE_SCHEMA.require(*names)


def _parse_address(value):
    addr = to_ip(value)
    if addr is None:
        raise InvalidParameter("ip", f"invalid IP {value!r}")
    return addr


# =============================================================================
# Operations
# =============================================================================


async def init_ip_bucket(ctx, network_uuid: str) -> None:
    await ctx.store.init_bucket(ip_bucket(network_uuid))


async def get_ip(ctx, network: Network, address, return_object: bool = False) -> IP:
    """
    Get one address on a network.

    Args:
        return_object: Return a synthetic free record (etag None) instead of
            raising when the address has no row.

    Raises:
        ResourceNotFound: If the row is missing and return_object is False.
    """
    addr = _parse_address(address)
    key = ip_key(network.ip_use_strings, addr)
    try:
        obj = await ctx.store.get_obj(network.ip_bucket, key)
    except ResourceNotFound:
        if return_object:
            return IP(address=addr, network=network)
        raise
    return IP.from_raw(obj.value, network, obj.etag)


async def list_network_ips(ctx, network: Network, params: dict | None = None) -> list[IP]:
    """List the stored addresses of a network, ascending."""
    query = dict(params or {})
    query["network_uuid"] = network.uuid
    validated = await validate_params(ctx, LIST_SCHEMA, query)

    limit = validated.pop("limit", ctx.config.DEFAULT_LIMIT)
    offset = validated.pop("offset", 0)
    validated.pop("network_uuid")

    lookup = "ipaddr" if network.ip_use_strings else "ip"
    objs = await ctx.store.list_objs(
        network.ip_bucket,
        query=validated,
        default_filter=f"({lookup}=*)",
        sort=Sort(lookup),
        limit=limit,
        offset=offset,
    )
    return [IP.from_raw(o.value, network, o.etag) for o in objs]


async def create_ip(ctx, params: dict) -> IP:
    """
    Create an address row; fails with VersionConflict if it already exists.

    params must include the resolved "network" alongside "network_uuid".
    """
    validated = await validate_params(ctx, CREATE_SCHEMA, params)
    network = validated["network"]
    ip = IP(
        address=validated["ip"],
        network=network,
        reserved=validated.get("reserved", False),
        belongs_to_type=validated.get("belongs_to_type"),
        belongs_to_uuid=validated.get("belongs_to_uuid"),
        owner_uuid=validated.get("owner_uuid"),
    )

    ip.etag = await ctx.store.put_obj(network.ip_bucket, ip.key(), ip.raw(), etag=None)
    ctx.log.info(f"Created IP {ip.address} on network {network.uuid}: {ip.serialize()}")
    return ip


async def update_ip(ctx, network: Network, address, params: dict) -> IP:
    """
    Update an address.

    free=True releases the address entirely (see delete_ip);
    unassign=True removes the belongs-to fields, and the owner unless the
    address is reserved.
    """
    existing = await get_ip(ctx, network, address, return_object=True)
    schema = _update_schema(existing, params)
    validated = await validate_params(ctx, schema, {**params, "network": network})

    if existing.etag is None and (validated.get("free") or validated.get("unassign")):
        # Absent addresses are already free; nothing is persisted
        return existing

    if validated.get("free"):
        return await delete_ip(ctx, network, existing.address, existing=existing)

    if validated.get("unassign"):
        val = {"belongs_to_type": True, "belongs_to_uuid": True}
        if not existing.reserved:
            val["owner_uuid"] = True
        remove = True
    else:
        val = {
            k: validated[k]
            for k in ("belongs_to_type", "belongs_to_uuid", "owner_uuid", "reserved")
            if k in validated
        }
        remove = False

    if existing.etag is None:
        # No row yet: write the synthetic record with the changes applied
        value = existing.raw()
        for k, item in val.items():
            if remove:
                value.pop(k, None)
            else:
                value[k] = item
        etag = await ctx.store.put_obj(network.ip_bucket, existing.key(), value, etag=None)
    else:
        obj = await ctx.store.update_obj(
            network.ip_bucket, existing.key(), val, remove=remove, etag=existing.etag
        )
        value, etag = obj.value, obj.etag

    ip = IP.from_raw(value, network, etag)
    ctx.log.info(f"Updated IP {ip.address} on network {network.uuid}: {ip.serialize()}")
    return ip


async def delete_ip(ctx, network: Network, address, existing: IP | None = None) -> IP:
    """
    Free an address by overwriting its row with a cleared record.

    The row itself is kept, so freeing is conditional on the current etag.
    """
    if existing is None:
        existing = await get_ip(ctx, network, address)
    entry = existing.free_batch()

    ctx.log.info(f"Freeing {existing.address} on network {network.uuid}")
    etag = await ctx.store.put_obj(network.ip_bucket, entry.key, entry.value, etag=existing.etag)
    return IP.from_raw(entry.value, network, etag)


async def batch_create_ips(ctx, ips: list[IP]) -> list[IP]:
    """Write several address rows in one atomic batch, each conditional on its etag."""
    if not ips:
        return []
    ctx.log.info(f"Creating IPs {[str(ip.address) for ip in ips]}")
    await commit_batch(ctx, [ip.batch() for ip in ips], models=ips)
    return ips


async def reserve_ips(ctx, network: Network, addresses: list) -> list[IP]:
    """
    Reserve several unheld addresses of a network in one atomic batch.

    Raises:
        AggregatedValidationError: Listing the addresses outside the subnet
            and the ones already reserved or assigned.
        VersionConflict: If one of the rows changed meanwhile.
    """
    ips = [await get_ip(ctx, network, address, return_object=True) for address in addresses]

    outside = [str(ip.address) for ip in ips if not network.contains(ip.address)]
    held = [str(ip.address) for ip in ips if not ip.free and network.contains(ip.address)]
    errors = []
    if outside:
        errors.append(InvalidParameter("ips", constants.IPS_OUTSIDE_MSG, invalid=outside))
    if held:
        errors.append(InvalidParameter("ips", constants.IPS_HELD_MSG, invalid=held))
    if errors:
        raise AggregatedValidationError(errors)

    return await batch_create_ips(ctx, [replace(ip, reserved=True) for ip in ips])


def create_updated_ip(old_ip: IP, params: dict) -> IP:
    """Copy of old_ip with the NIC-shared fields of params applied."""
    changes = {
        p: params[p] for p in NIC_SHARED_PARAMS if p in params and p != "check_owner"
    }
    return replace(old_ip, **changes)


def extract_ip_params(params: dict, override: dict | None = None) -> dict:
    """Pick the IP-creation parameters out of a larger parameter bag."""
    override = override or {}
    extracted = {}
    for name in CREATE_PARAMS:
        if name in params:
            extracted[name] = params[name]
        if name in override:
            extracted[name] = override[name]
    return extracted
