"""
NIC tag operations.

A NIC tag names a physical (or overlay) attachment point; networks reference
tags by name, so a tag cannot be removed while any network uses it.
"""

import uuid as uuidlib

from netalloc import constants
from netalloc.exceptions import InUse, InvalidParameter, ResourceNotFound
from netalloc.models.network import NETWORK_SCHEMA
from netalloc.models.nic_tag import NIC_TAG_SCHEMA, NicTag
from netalloc.store.base import Sort
from netalloc.validation import ValidationSchema, validate_params
from netalloc.validation import validators as v

CREATE_SCHEMA = ValidationSchema(
    required={"name": v.nic_tag_name},
    optional={"uuid": v.uuid, "mtu": v.mtu},
    strict=True,
)


def _update_schema(name: str) -> ValidationSchema:
    """Update rules; the new MTU may not drop below any network on the tag."""

    async def check_network_mtus(ctx, params: dict, validated: dict) -> None:
        networks = await ctx.store.list_objs(NETWORK_SCHEMA, {"nic_tag": name})
        largest = max((n.value.get("mtu", 1500) for n in networks), default=0)
        if validated["mtu"] < largest:
            raise InvalidParameter("mtu", constants.NIC_TAG_MTU_FMT.format(largest))

    return ValidationSchema(required={"mtu": v.mtu}, after=(check_network_mtus,), strict=True)


LIST_SCHEMA = ValidationSchema(
    optional={"limit": v.limit, "offset": v.offset},
    strict=True,
)


async def validate_exists(ctx, name: str, tag_name: str) -> NicTag:
    """
    Resolve a tag referenced by another record.

    Raises:
        InvalidParameter: On field `name` if the tag does not exist.
    """
    try:
        return await get_nic_tag(ctx, tag_name)
    except ResourceNotFound:
        raise InvalidParameter(name, constants.NIC_TAG_MISSING_MSG) from None


async def create_nic_tag(ctx, params: dict) -> NicTag:
    validated = await validate_params(ctx, CREATE_SCHEMA, params)
    tag = NicTag(
        name=validated["name"],
        uuid=validated.get("uuid") or str(uuidlib.uuid4()),
        mtu=validated.get("mtu", 1500),
    )

    if await ctx.store.get_obj_or_none(NIC_TAG_SCHEMA, tag.name) is not None:
        raise InvalidParameter("name", constants.ALREADY_EXISTS_MSG)

    tag.etag = await ctx.store.put_obj(NIC_TAG_SCHEMA, tag.key(), tag.raw(), etag=None)
    ctx.log.info(f"Created nic tag {tag.name} (mtu={tag.mtu})")
    return tag


async def get_nic_tag(ctx, name: str) -> NicTag:
    obj = await ctx.store.get_obj(NIC_TAG_SCHEMA, name)
    return NicTag.from_raw(obj.value, obj.etag)


async def list_nic_tags(ctx, params: dict | None = None) -> list[NicTag]:
    validated = await validate_params(ctx, LIST_SCHEMA, params or {})
    objs = await ctx.store.list_objs(
        NIC_TAG_SCHEMA,
        default_filter="(name=*)",
        sort=Sort("name"),
        limit=validated.get("limit", ctx.config.DEFAULT_LIMIT),
        offset=validated.get("offset", 0),
    )
    return [NicTag.from_raw(o.value, o.etag) for o in objs]


async def update_nic_tag(ctx, name: str, params: dict) -> NicTag:
    """Change a tag's MTU; it may not drop below any of its networks' MTUs."""
    tag = await get_nic_tag(ctx, name)
    validated = await validate_params(ctx, _update_schema(name), params)

    tag.mtu = validated["mtu"]
    tag.etag = await ctx.store.put_obj(NIC_TAG_SCHEMA, tag.key(), tag.raw(), etag=tag.etag)
    ctx.log.info(f"Updated nic tag {tag.name} (mtu={tag.mtu})")
    return tag


async def delete_nic_tag(ctx, name: str) -> None:
    """
    Raises:
        ResourceNotFound: If the tag does not exist.
        InUse: If any network uses the tag.
    """
    tag = await get_nic_tag(ctx, name)
    networks = await ctx.store.list_objs(NETWORK_SCHEMA, {"nic_tag": name})
    if networks:
        raise InUse(
            constants.NIC_TAG_IN_USE_MSG,
            usedby=[{"type": "network", "id": n.key} for n in networks],
        )
    await ctx.store.del_obj(NIC_TAG_SCHEMA, tag.key(), etag=tag.etag)
    ctx.log.info(f"Deleted nic tag {name}")
