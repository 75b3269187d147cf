"""
Network pool operations.

Every create and update revalidates the whole member set: the networks must
exist, share one nic tag and address family, and (when the pool has an
owner) be usable by that owner.
"""

import asyncio
import uuid as uuidlib

from netalloc import constants
from netalloc.exceptions import InvalidParameter
from netalloc.models.network import NETWORK_SCHEMA, Network
from netalloc.models.network_pool import NETWORK_POOL_SCHEMA, NetworkPool
from netalloc.store.base import Sort
from netalloc.validation import Derived, ValidationSchema, validate_params
from netalloc.validation import validators as v


# =============================================================================
# Validation
# =============================================================================


async def validate_networks(ctx, name: str, value):
    """
    Resolve the member networks of a pool.

    Returns:
        Derived(uuids, {"_networks": [Network, ...]}).

    Raises:
        InvalidParameter: Too many networks, unknown networks (reported all
            at once), or mismatched nic tags or address families.
    """
    uuids = list(dict.fromkeys(await v.uuid_list(ctx, name, value)))
    max_nets = ctx.config.MAX_POOL_NETWORKS
    if len(uuids) > max_nets:
        raise InvalidParameter(name, constants.POOL_MAX_NETS_FMT.format(max_nets))
    if not uuids:
        raise InvalidParameter(name, constants.POOL_EMPTY_MSG)

    objs = await asyncio.gather(
        *(ctx.store.get_obj_or_none(NETWORK_SCHEMA, uuid) for uuid in uuids)
    )
    not_found = [uuid for uuid, obj in zip(uuids, objs) if obj is None]
    if not_found:
        suffix = "" if len(not_found) == 1 else "s"
        raise InvalidParameter(name, f"unknown network{suffix}", invalid=not_found)

    networks = [Network.from_raw(o.value, o.etag) for o in objs]
    first = networks[0]

    tags_differ = [n.uuid for n in networks if n.nic_tag != first.nic_tag]
    if tags_differ:
        raise InvalidParameter(
            name, constants.POOL_TAGS_MATCH_MSG, invalid=[first.uuid] + tags_differ
        )

    families_differ = [n.uuid for n in networks if n.family != first.family]
    if families_differ:
        raise InvalidParameter(
            name, constants.POOL_AF_MATCH_MSG, invalid=[first.uuid] + families_differ
        )

    return Derived(uuids, {"_networks": networks})


async def validate_network_owners(ctx, params: dict, validated: dict) -> None:
    """A pool owner may only group networks it can provision on."""
    owner = validated.get("owner_uuid")
    networks = validated.get("_networks")
    if not owner or not networks:
        return

    admin = ctx.config.ADMIN_UUID
    not_matching = [
        n.uuid
        for n in networks
        if n.owner_uuids and owner not in n.owner_uuids and admin not in n.owner_uuids
    ]
    if not_matching:
        raise InvalidParameter(
            "networks", constants.POOL_OWNER_MATCH_MSG, invalid=not_matching
        )


async def _owner_or_remove(ctx, name: str, value):
    # A false value removes the owner
    if not value:
        return False
    return await v.uuid(ctx, name, value)


CREATE_SCHEMA = ValidationSchema(
    required={"name": v.string, "networks": validate_networks},
    optional={"uuid": v.uuid, "owner_uuid": v.uuid, "description": v.string},
    after=(validate_network_owners,),
    strict=True,
)

LIST_SCHEMA = ValidationSchema(
    optional={
        "name": v.string,
        "networks": v.uuid,
        "owner_uuid": v.uuid,
        "limit": v.limit,
        "offset": v.offset,
    },
    strict=True,
)


# =============================================================================
# Operations
# =============================================================================


async def _load_members(ctx, uuids: list[str]) -> list[Network]:
    objs = await asyncio.gather(
        *(ctx.store.get_obj_or_none(NETWORK_SCHEMA, uuid) for uuid in uuids)
    )
    return [Network.from_raw(o.value, o.etag) for o in objs if o is not None]


async def create_network_pool(ctx, params: dict) -> NetworkPool:
    validated = await validate_params(ctx, CREATE_SCHEMA, params)
    pool = NetworkPool(
        uuid=validated.get("uuid") or str(uuidlib.uuid4()),
        name=validated["name"],
        networks=validated["networks"],
        owner_uuid=validated.get("owner_uuid"),
        description=validated.get("description"),
        member_networks=validated["_networks"],
    )

    if await ctx.store.get_obj_or_none(NETWORK_POOL_SCHEMA, pool.uuid) is not None:
        raise InvalidParameter("uuid", constants.ALREADY_EXISTS_MSG)

    pool.etag = await ctx.store.put_obj(NETWORK_POOL_SCHEMA, pool.uuid, pool.raw(), etag=None)
    ctx.log.info(f"Created network pool {pool.uuid} ({pool.name}): {pool.networks}")
    return pool


async def get_network_pool(ctx, uuid: str) -> NetworkPool:
    """
    Raises:
        ResourceNotFound: If there is no such pool.
    """
    obj = await ctx.store.get_obj(NETWORK_POOL_SCHEMA, uuid)
    members = await _load_members(ctx, obj.value.get("networks") or [])
    return NetworkPool.from_raw(obj.value, members, obj.etag)


async def list_network_pools(ctx, params: dict | None = None) -> list[NetworkPool]:
    validated = await validate_params(ctx, LIST_SCHEMA, params or {})
    limit = validated.pop("limit", ctx.config.DEFAULT_LIMIT)
    offset = validated.pop("offset", 0)

    objs = await ctx.store.list_objs(
        NETWORK_POOL_SCHEMA,
        query=validated,
        default_filter="(uuid=*)",
        sort=Sort("uuid"),
        limit=limit,
        offset=offset,
    )
    members = await asyncio.gather(
        *(_load_members(ctx, o.value.get("networks") or []) for o in objs)
    )
    return [NetworkPool.from_raw(o.value, m, o.etag) for o, m in zip(objs, members)]


async def update_network_pool(ctx, uuid: str, params: dict) -> NetworkPool:
    """
    Update name, networks, owner_uuid or description of a pool.

    Passing a false owner_uuid removes the owner. Changing only the owner
    revalidates the current members against it.
    """
    old = await get_network_pool(ctx, uuid)
    params = dict(params)
    if "networks" not in params and params.get("owner_uuid") and old.networks:
        params["networks"] = old.networks

    async def inherit_owner(ctx, raw: dict, validated: dict) -> None:
        if "owner_uuid" not in validated and old.owner_uuid:
            validated["owner_uuid"] = old.owner_uuid

    schema = ValidationSchema(
        optional={
            "name": v.string,
            "networks": validate_networks,
            "owner_uuid": _owner_or_remove,
            "description": v.string,
        },
        after=(inherit_owner, validate_network_owners),
        strict=True,
    )
    validated = await validate_params(ctx, schema, params)

    value = old.raw()
    for key, item in validated.items():
        if key == "_networks":
            continue
        if not item:
            value.pop(key, None)
        else:
            value[key] = item

    obj = await ctx.store.update_obj(
        NETWORK_POOL_SCHEMA, uuid, value, replace=True, etag=old.etag
    )
    members = validated.get("_networks") or old.member_networks
    pool = NetworkPool.from_raw(obj.value, members, obj.etag)
    ctx.log.info(f"Updated network pool {pool.uuid}: {pool.raw()}")
    return pool


async def delete_network_pool(ctx, uuid: str) -> None:
    obj = await ctx.store.get_obj(NETWORK_POOL_SCHEMA, uuid)
    await ctx.store.del_obj(NETWORK_POOL_SCHEMA, uuid, etag=obj.etag)
    ctx.log.info(f"Deleted network pool {uuid}")
