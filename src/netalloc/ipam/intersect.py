"""
Pool intersections: which (nic_tag, vlan_id, vnet_id, mtu) selectors a set
of network pools have in common.

Provisioning on several pools at once only makes sense when every pool can
supply a network with the same attachment parameters.
"""

from netalloc import constants
from netalloc.exceptions import InvalidParameter

SELECTOR_FIELDS = ("nic_tag", "vlan_id", "vnet_id", "mtu")

# Fields the caller may pin; the others only take part in the intersection
_FILTER_FIELDS = ("nic_tag", "vlan_id", "vnet_id")


def _selectors(pool, params: dict) -> set[tuple]:
    selectors = set()
    for network in pool.member_networks:
        selector = (network.nic_tag, network.vlan_id, network.vnet_id, network.mtu)
        pinned = dict(zip(SELECTOR_FIELDS, selector))
        if any(f in params and params[f] != pinned[f] for f in _FILTER_FIELDS):
            continue
        selectors.add(selector)
    return selectors


def _sort_key(selector: tuple):
    nic_tag, vlan_id, vnet_id, mtu = selector
    return (nic_tag, vlan_id, -1 if vnet_id is None else vnet_id, mtu)


def get_pool_intersections(name: str, params: dict, pools: list) -> list[dict]:
    """
    Intersect the selectors of every pool's member networks.

    Args:
        name: Field reported on failure.
        params: Validated request fields; nic_tag, vlan_id and vnet_id, when
            present, restrict the member networks considered.
        pools: NetworkPool objects with member_networks loaded.

    Returns:
        The common selectors as dicts, sorted.

    Raises:
        InvalidParameter: If the pools have nothing in common.
    """
    common = None
    for pool in pools:
        selectors = _selectors(pool, params)
        common = selectors if common is None else common & selectors

    if not common:
        raise InvalidParameter(name, constants.POOL_NO_INTERSECT_MSG)

    return [dict(zip(SELECTOR_FIELDS, s)) for s in sorted(common, key=_sort_key)]
