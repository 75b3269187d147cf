"""
Overlay notification entries (the event sink).

Fabric NIC changes are published to the overlay subsystem by writing rows
into its buckets inside the same batch as the topology change:

    <prefix>_vnet_mac_ip        - vnet/MAC/IP mapping of each fabric NIC
    <prefix>_underlay_mappings  - compute node -> underlay address
    <prefix>_net_events         - ordered cache-invalidation events, one per
                                  compute node with NICs on the vnet

Event rows must stay in submission order; the batch coordinator appends
them after the sorted topology entries without reordering them.
"""

from __future__ import annotations

import time
import uuid

from netalloc.models.enums import BatchOperation
from netalloc.store.base import ANY_ETAG, BatchEntry, BucketSchema
from netalloc.store.filters import And, Equality, Not

VL2_EVENT = "VL2_INVALIDATE"
VL3_EVENT = "VL3_INVALIDATE"


# =============================================================================
# Buckets
# =============================================================================


def vnet_mac_ip_schema(prefix: str) -> BucketSchema:
    return BucketSchema(
        name=f"{prefix}_vnet_mac_ip",
        desc="vnet mapping",
        index={
            "mac": "number",
            "ip": "ip",
            "cn_uuid": "string",
            "vnet_id": "number",
            "deleted": "boolean",
        },
    )


def underlay_schema(prefix: str) -> BucketSchema:
    return BucketSchema(
        name=f"{prefix}_underlay_mappings",
        desc="underlay mapping",
        index={"cn_uuid": "string", "ip": "ip", "port": "number"},
    )


def net_events_schema(prefix: str) -> BucketSchema:
    return BucketSchema(
        name=f"{prefix}_net_events",
        desc="net event",
        index={"vnet_id": "number", "cn_uuid": "string", "type": "string", "id": "string"},
    )


def all_schemas(prefix: str) -> list[BucketSchema]:
    return [vnet_mac_ip_schema(prefix), underlay_schema(prefix), net_events_schema(prefix)]


# =============================================================================
# Mapping Entries
# =============================================================================


def _mapping_key(vnet_id: int, ip) -> str:
    return f"{vnet_id}_{ip}"


def vnet_mac_ip_put(prefix: str, nic, deleted: bool = False) -> BatchEntry:
    """Publish (or retract, with deleted=True) the mapping of a fabric NIC."""
    value = {
        "mac": nic.mac,
        "ip": str(nic.ipaddr),
        "cn_uuid": nic.cn_uuid,
        "vnet_id": nic.vnet_id,
        "vlan_id": nic.vlan_id,
        "deleted": deleted,
    }
    return BatchEntry(
        bucket=vnet_mac_ip_schema(prefix).name,
        key=_mapping_key(nic.vnet_id, nic.ipaddr),
        operation=BatchOperation.PUT,
        value=value,
        etag=ANY_ETAG,
    )


def underlay_mapping_put(prefix: str, cn_uuid: str, ip, port: int) -> BatchEntry:
    return BatchEntry(
        bucket=underlay_schema(prefix).name,
        key=cn_uuid,
        operation=BatchOperation.PUT,
        value={"cn_uuid": cn_uuid, "ip": str(ip), "port": port},
        etag=ANY_ETAG,
    )


def underlay_mapping_delete(prefix: str, cn_uuid: str) -> BatchEntry:
    return BatchEntry(
        bucket=underlay_schema(prefix).name,
        key=cn_uuid,
        operation=BatchOperation.DELETE,
        etag=ANY_ETAG,
    )


# =============================================================================
# Events
# =============================================================================


def _event(prefix: str, kind: str, cn_uuid: str, nic, ip) -> BatchEntry:
    event_id = str(uuid.uuid4())
    value = {
        "id": event_id,
        "type": kind,
        "cn_uuid": cn_uuid,
        "vnet_id": nic.vnet_id,
        "vlan_id": nic.vlan_id,
        "mac": nic.mac,
        "time": time.time(),
    }
    if kind == VL3_EVENT:
        value["ip"] = str(ip)
    return BatchEntry(
        bucket=net_events_schema(prefix).name,
        key=event_id,
        operation=BatchOperation.PUT,
        value=value,
        etag=None,
    )


def shootdown_events(prefix: str, cns: list[str], nic, ip=None) -> list[BatchEntry]:
    """
    Invalidation events for every compute node on the NIC's vnet.

    A VL2 (MAC) event is emitted per node; a VL3 (IP) event follows it when
    an address is given.
    """
    entries = []
    for cn_uuid in cns:
        entries.append(_event(prefix, VL2_EVENT, cn_uuid, nic, None))
        if ip is not None:
            entries.append(_event(prefix, VL3_EVENT, cn_uuid, nic, ip))
    return entries


async def list_vnet_cns(ctx, vnet_id: int) -> list[str]:
    """Compute nodes that currently hold live mappings on a vnet."""
    prefix = ctx.config.EVENT_SINK_PREFIX
    ctx.log.debug(f"list_vnet_cns: vnet_id={vnet_id}")
    filt = And([Equality("vnet_id", str(vnet_id)), Not(Equality("deleted", "true"))])
    rows = await ctx.store.list_objs(vnet_mac_ip_schema(prefix), query=filt)
    cns = sorted({row.value["cn_uuid"] for row in rows if row.value.get("cn_uuid")})
    ctx.log.debug(f"list_vnet_cns: {cns}")
    return cns
