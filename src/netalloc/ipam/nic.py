"""
NIC operations.

A NIC, the address it holds, the fabric gateway flag of its network and the
overlay entries it implies are always written in one batch. Address
allocation conflicts are retried with the next candidate address; collisions
of generated MACs are retried with a new MAC.
"""

from __future__ import annotations

from dataclasses import replace

from netalloc import constants
from netalloc.batch import commit_batch
from netalloc.event_sink import (
    list_vnet_cns,
    shootdown_events,
    underlay_mapping_delete,
    underlay_mapping_put,
    vnet_mac_ip_put,
)
from netalloc.exceptions import InvalidParameter, MacExhausted, ResourceNotFound, VersionConflict
from netalloc.ipam.ip import create_updated_ip, extract_ip_params, get_ip
from netalloc.ipam.network import get_network
from netalloc.ipam.nic_common import (
    validate_fabric_nic,
    validate_ipv4_network,
    validate_network,
    validate_network_params,
    validate_nic_tag,
    validate_underlay_server,
)
from netalloc.ipam.provision import IPProvisioner, PoolProvisioner
from netalloc.models.enums import BatchOperation, BelongsToType, NicState
from netalloc.models.ip import IP
from netalloc.models.nic import NIC_SCHEMA, SPOOF_FLAGS, Nic
from netalloc.store.base import BatchEntry, Sort
from netalloc.utils.addr import mac_to_int, random_mac
from netalloc.validation import ValidationSchema, validate_params
from netalloc.validation import validators as v

# Plain NIC attributes copied from a validated request
NIC_FIELDS = (
    "belongs_to_type",
    "belongs_to_uuid",
    "owner_uuid",
    "primary",
    "state",
    "model",
    "cn_uuid",
    "underlay",
    "nic_tag",
    "vlan_id",
    "vnet_id",
)


# =============================================================================
# Schemas
# =============================================================================

_OWNING = {
    "belongs_to_type": v.enum_of(BelongsToType),
    "belongs_to_uuid": v.uuid,
    "owner_uuid": v.uuid,
}

_OPTIONAL = {
    "check_owner": v.boolean,
    "cn_uuid": v.uuid,
    "ip": v.ip,
    "model": v.string,
    "network_uuid": validate_network,
    "nic_tag": validate_nic_tag,
    "primary": v.boolean,
    "reserved": v.boolean,
    "state": v.enum_of(NicState),
    "underlay": v.boolean,
    "vlan_id": v.vlan,
    **{flag: v.boolean for flag in SPOOF_FLAGS},
}

_AFTER = (validate_network_params, validate_fabric_nic, validate_underlay_server)

CREATE_SCHEMA = ValidationSchema(
    required=_OWNING, optional={"mac": v.mac, **_OPTIONAL}, after=_AFTER
)

UPDATE_SCHEMA = ValidationSchema(optional={**_OWNING, **_OPTIONAL}, after=_AFTER)

LIST_SCHEMA = ValidationSchema(
    optional={
        "belongs_to_type": v.string_list,
        "belongs_to_uuid": v.uuid_list,
        "owner_uuid": v.uuid_list,
        "cn_uuid": v.uuid_list,
        "network_uuid": v.uuid_list,
        "nic_tag": v.string_list,
        "state": v.string_list,
        "underlay": v.boolean,
        "vlan_id": v.vlan,
        "limit": v.limit,
        "offset": v.offset,
    },
    strict=True,
)


def _schema_for(schema: ValidationSchema, params: dict) -> ValidationSchema:
    # Underlay NICs carry the overlay's IPv4 tunnel endpoint
    if str(params.get("underlay")).lower() == "true":
        optional = dict(schema.optional)
        optional["network_uuid"] = validate_ipv4_network
        return replace(schema, optional=optional)
    return schema


# =============================================================================
# Helpers
# =============================================================================


def _parse_mac(mac) -> int:
    value = mac_to_int(mac)
    if value is None:
        raise InvalidParameter("mac", "invalid MAC address")
    return value


async def _load_nic(ctx, obj, networks: dict | None = None, with_ip: bool = True) -> Nic:
    """Build a Nic from its row, resolving its network (and held IP)."""
    network = None
    network_uuid = obj.value.get("network_uuid")
    if network_uuid:
        if networks is not None and network_uuid in networks:
            network = networks[network_uuid]
        else:
            try:
                network = await get_network(ctx, network_uuid)
            except ResourceNotFound:
                ctx.log.warning(f"nic {obj.key}: network {network_uuid} not found")
            if networks is not None:
                networks[network_uuid] = network

    nic = Nic.from_raw(obj.value, network, obj.etag)
    if with_ip and network is not None and nic.ipaddr is not None:
        nic.ip = await get_ip(ctx, network, nic.ipaddr, return_object=True)
    return nic


def _claim_params(nic: Nic, validated: dict) -> dict:
    override = {"reserved": validated["reserved"]} if "reserved" in validated else None
    return extract_ip_params(nic.owning(), override)


def _ip_source(ctx, validated: dict, claim_params: dict):
    """Provisioner for the network or pool of a request, if it needs one."""
    ref = validated.get("network_ref")
    if ref is None or "_ip" in validated:
        return None
    if ref.network is not None:
        return IPProvisioner(ctx, ref.network, claim_params)

    allowed = {
        (i["nic_tag"], i["vlan_id"], i["vnet_id"], i["mtu"])
        for i in validated.get("intersections", [])
    }
    owner = validated.get("owner_uuid")
    check_owner = validated.get("check_owner", True)
    networks = [
        n
        for n in ref.pool.member_networks
        if (n.nic_tag, n.vlan_id, n.vnet_id, n.mtu) in allowed
        and (not check_owner or not owner or n.is_owner(owner, ctx.config.ADMIN_UUID))
    ]
    return PoolProvisioner(ctx, ref.pool, claim_params, networks)


def _attach(nic: Nic, ip: IP | None) -> None:
    """Put the NIC on the network of ip (or take it off any network)."""
    nic.ip = ip
    if ip is None:
        return
    network = ip.network
    nic.network = network
    nic.ipaddr = ip.address
    nic.nic_tag = network.nic_tag
    nic.vlan_id = network.vlan_id
    nic.vnet_id = network.vnet_id if network.fabric else None


async def _unset_other_primaries(ctx, nic: Nic) -> list[BatchEntry]:
    """A workload has at most one primary NIC."""
    objs = await ctx.store.list_objs(
        NIC_SCHEMA, {"belongs_to_uuid": nic.belongs_to_uuid, "primary": True}
    )
    return [
        BatchEntry(
            bucket=NIC_SCHEMA.name,
            key=o.key,
            operation=BatchOperation.PUT,
            value={**o.value, "primary": False},
            etag=o.etag,
        )
        for o in objs
        if o.key != nic.key()
    ]


class _NetworkUpdates:
    """Gateway flag changes, at most one write per network."""

    def __init__(self):
        self.networks = {}

    def set_gateway(self, network, value: bool) -> None:
        net = self.networks.get(network.uuid) or replace(network)
        net.gateway_provisioned = value
        self.networks[network.uuid] = net

    def entries(self) -> list[BatchEntry]:
        return [n.batch() for n in self.networks.values()]


async def _commit_with_retries(ctx, nic: Nic, build, source, next_mac=None) -> None:
    """
    Commit the batch from build(ip), retrying lost address races and
    (when next_mac is given) MAC collisions.
    """
    ip = await source.next_ip() if source is not None else None
    mac_attempts = 0
    while True:
        entries, models = await build(ip)
        try:
            await commit_batch(ctx, entries, models)
            return
        except VersionConflict as err:
            if source is not None and ip is not None and err.bucket == ip.bucket:
                source.record_conflict(err)
                ip = await source.next_ip()
                continue
            if next_mac is not None and err.bucket == NIC_SCHEMA.name:
                mac_attempts += 1
                if mac_attempts >= ctx.config.MAC_PROVISION_RETRIES:
                    raise MacExhausted(mac_attempts) from err
                ctx.log.warning(f"MAC {nic.mac_str} collided, generating another")
                next_mac()
                continue
            raise


# =============================================================================
# Operations
# =============================================================================


async def create_nic(ctx, params: dict) -> Nic:
    """
    Create a NIC, claiming an address when it is placed on a network or pool.

    Raises:
        AggregatedValidationError: If the parameters are invalid.
        CapacityExhausted: If no address could be claimed.
        MacExhausted: If no unused MAC could be generated.
    """
    ctx = ctx.derive(create=True)
    validated = await validate_params(ctx, _schema_for(CREATE_SCHEMA, params), params)
    prefix = ctx.config.EVENT_SINK_PREFIX

    nic = Nic(
        mac=validated.get("mac", 0),
        belongs_to_type=validated["belongs_to_type"],
        belongs_to_uuid=validated["belongs_to_uuid"],
        owner_uuid=validated["owner_uuid"],
        state=validated.get("state", NicState.RUNNING.value),
        primary=validated.get("primary", False),
        nic_tag=validated.get("nic_tag"),
        vlan_id=validated.get("vlan_id"),
        cn_uuid=validated.get("cn_uuid"),
        underlay=validated.get("underlay", False),
        vnet_id=validated.get("vnet_id"),
        model=validated.get("model"),
        flags={f: validated[f] for f in SPOOF_FLAGS if f in validated},
    )

    next_mac = None
    if "mac" in validated:
        if await ctx.store.get_obj_or_none(NIC_SCHEMA, nic.key()) is not None:
            raise InvalidParameter("mac", constants.MAC_IN_USE_MSG)
    else:

        def next_mac():
            nic.mac = random_mac(ctx.config.MAC_OUI)

        next_mac()

    claim = _claim_params(nic, validated)
    source = _ip_source(ctx, validated, claim)
    fixed = create_updated_ip(validated["_ip"], claim) if "_ip" in validated else None
    done = {}

    async def build(ip):
        ip = ip or fixed
        _attach(nic, ip)
        entries, models = [nic.batch()], [nic]
        updates = _NetworkUpdates()
        if ip is not None:
            entries.append(ip.batch())
            models.append(ip)
            if ip.is_fabric_gateway():
                updates.set_gateway(ip.network, True)
        entries += updates.entries()
        models += list(updates.networks.values())
        done["updates"] = updates

        if nic.primary:
            entries += await _unset_other_primaries(ctx, nic)
        if nic.is_fabric() and nic.ipaddr is not None and nic.cn_uuid:
            entries.append(vnet_mac_ip_put(prefix, nic))
        if nic.underlay and nic.ipaddr is not None:
            entries.append(
                underlay_mapping_put(prefix, nic.belongs_to_uuid, nic.ipaddr, ctx.config.VNET_PORT)
            )
        return entries, models

    await _commit_with_retries(ctx, nic, build, source, next_mac)

    for network in done["updates"].networks.values():
        nic.network = network
        nic.ip.network = network

    ctx.log.info(f"Created nic {nic.mac_str}: {nic.serialize()}")
    return nic


async def get_nic(ctx, mac) -> Nic:
    """
    Raises:
        InvalidParameter: If mac is not a MAC address.
        ResourceNotFound: If there is no such NIC.
    """
    obj = await ctx.store.get_obj(NIC_SCHEMA, str(_parse_mac(mac)))
    return await _load_nic(ctx, obj)


async def list_nics(ctx, params: dict | None = None) -> list[Nic]:
    validated = await validate_params(ctx, LIST_SCHEMA, params or {})
    limit = validated.pop("limit", ctx.config.DEFAULT_LIMIT)
    offset = validated.pop("offset", 0)

    objs = await ctx.store.list_objs(
        NIC_SCHEMA,
        query=validated,
        default_filter="(mac=*)",
        sort=Sort("mac"),
        limit=limit,
        offset=offset,
    )
    networks: dict = {}
    return [await _load_nic(ctx, o, networks, with_ip=False) for o in objs]


async def update_nic(ctx, mac, params: dict) -> Nic:
    """
    Update a NIC.

    Owning fields propagate to the held address. Moving to another network
    (or another address) releases the old address and claims the new one in
    the same batch.
    """
    existing = await get_nic(ctx, mac)
    ctx = ctx.derive(existing=existing)
    prefix = ctx.config.EVENT_SINK_PREFIX

    params = dict(params)
    if (
        params.get("ip") is not None
        and params.get("network_uuid") is None
        and existing.network is not None
    ):
        params["network_uuid"] = existing.network.uuid
    validated = await validate_params(ctx, _schema_for(UPDATE_SCHEMA, params), params)

    nic = replace(existing, flags=dict(existing.flags))
    for field in NIC_FIELDS:
        if field in validated:
            setattr(nic, field, validated[field])
    for flag in SPOOF_FLAGS:
        if flag in validated:
            nic.flags[flag] = validated[flag]

    new_ip = validated.get("_ip")
    if (
        new_ip is not None
        and not new_ip.provisionable(ctx.config.ADMIN_UUID)
        and new_ip.belongs_to_uuid != existing.belongs_to_uuid
    ):
        raise InvalidParameter(
            "ip",
            constants.IP_IN_USE_FMT.format(new_ip.belongs_to_type, new_ip.belongs_to_uuid),
        )

    ref = validated.get("network_ref")
    moving = new_ip is not None and new_ip.address != existing.ipaddr
    if ref is not None and ref.uuid != existing.network_uuid:
        on_member = ref.pool is not None and existing.network_uuid in ref.pool.networks
        moving = moving or not on_member

    claim = _claim_params(nic, validated)
    source = _ip_source(ctx, validated, claim) if moving else None
    old_ip = existing.ip if existing.ip is not None and existing.ip.etag is not None else None
    cns = []
    vnet_id = nic.vnet_id if nic.vnet_id is not None else existing.vnet_id
    if vnet_id is not None:
        cns = await list_vnet_cns(ctx, vnet_id)

    async def build(ip):
        entries, models = [], [nic]
        updates = _NetworkUpdates()
        held = old_ip if old_ip and old_ip.belongs_to_uuid == existing.belongs_to_uuid else None

        if moving:
            claimed = ip or create_updated_ip(new_ip, claim)
            if held is not None:
                entries.append(held.unassign_batch())
                if held.is_fabric_gateway():
                    updates.set_gateway(held.network, False)
            if existing.is_fabric() and existing.ipaddr is not None:
                entries.append(vnet_mac_ip_put(prefix, existing, deleted=True))
                entries += shootdown_events(prefix, cns, existing, existing.ipaddr)
            _attach(nic, claimed)
            entries.append(claimed.batch())
            models.append(claimed)
            if claimed.is_fabric_gateway():
                updates.set_gateway(claimed.network, True)
        elif held is not None and (
            held.owning() != {k: val for k, val in claim.items() if k != "reserved"}
            or "reserved" in claim
        ):
            updated = create_updated_ip(held, claim)
            nic.ip = updated
            entries.append(updated.batch())
            models.append(updated)

        entries.insert(0, nic.batch())
        entries += updates.entries()
        models += list(updates.networks.values())

        if "primary" in validated and nic.primary:
            entries += await _unset_other_primaries(ctx, nic)

        if nic.is_fabric() and nic.ipaddr is not None and nic.cn_uuid:
            if moving or nic.cn_uuid != existing.cn_uuid:
                entries.append(vnet_mac_ip_put(prefix, nic))
                if not moving:
                    entries += shootdown_events(prefix, cns, nic, nic.ipaddr)

        if existing.underlay and existing.ipaddr is not None and (moving or not nic.underlay):
            entries.append(underlay_mapping_delete(prefix, existing.belongs_to_uuid))
        if nic.underlay and nic.ipaddr is not None and (moving or not existing.underlay):
            entries.append(
                underlay_mapping_put(prefix, nic.belongs_to_uuid, nic.ipaddr, ctx.config.VNET_PORT)
            )
        return entries, models

    await _commit_with_retries(ctx, nic, build, source)
    ctx.log.info(f"Updated nic {nic.mac_str}: {nic.serialize()}")
    return nic


async def delete_nic(ctx, mac) -> None:
    """
    Delete a NIC, releasing its address in the same batch.

    Deleting the NIC holding a fabric network's gateway clears the network's
    gateway_provisioned flag.
    """
    nic = await get_nic(ctx, mac)
    prefix = ctx.config.EVENT_SINK_PREFIX
    entries = [nic.delete_batch()]

    ip = nic.ip
    if ip is not None and ip.etag is not None and ip.belongs_to_uuid == nic.belongs_to_uuid:
        entries.append(ip.unassign_batch())
        if ip.is_fabric_gateway():
            entries.append(replace(nic.network, gateway_provisioned=False).batch())

    if nic.is_fabric() and nic.ipaddr is not None:
        cns = await list_vnet_cns(ctx, nic.vnet_id)
        entries.append(vnet_mac_ip_put(prefix, nic, deleted=True))
        entries += shootdown_events(prefix, cns, nic, nic.ipaddr)

    if nic.underlay and nic.ipaddr is not None:
        entries.append(underlay_mapping_delete(prefix, nic.belongs_to_uuid))

    await commit_batch(ctx, entries)
    ctx.log.info(f"Deleted nic {nic.mac_str}")
