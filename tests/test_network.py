"""Tests for NIC tag and network operations."""

import pytest

from netalloc import constants
from netalloc.exceptions import (
    AggregatedValidationError,
    InUse,
    InvalidParameter,
    ResourceNotFound,
)
from netalloc.ipam.ip import list_network_ips
from netalloc.ipam.network import (
    create_network,
    delete_network,
    find_containing,
    get_network,
    list_networks,
)
from netalloc.ipam.nic import create_nic
from netalloc.ipam.nic_tag import (
    create_nic_tag,
    delete_nic_tag,
    get_nic_tag,
    list_nic_tags,
    update_nic_tag,
)

from conftest import ADMIN_UUID, OTHER_OWNER_UUID, OWNER_UUID, zone_nic_params


class TestNicTags:
    async def test_create_and_get(self, ctx):
        tag = await create_nic_tag(ctx, {"name": "admin_tag"})
        assert tag.mtu == 1500
        assert (await get_nic_tag(ctx, "admin_tag")).uuid == tag.uuid

    async def test_duplicate_name(self, ctx, nic_tag):
        with pytest.raises(InvalidParameter) as exc:
            await create_nic_tag(ctx, {"name": "external"})
        assert exc.value.message == constants.ALREADY_EXISTS_MSG

    async def test_bad_name(self, ctx):
        with pytest.raises(AggregatedValidationError) as exc:
            await create_nic_tag(ctx, {"name": "has-dash"})
        assert exc.value.fields() == ["name"]

    async def test_list_sorted(self, ctx):
        for name in ("zz", "aa", "mm"):
            await create_nic_tag(ctx, {"name": name})
        assert [t.name for t in await list_nic_tags(ctx)] == ["aa", "mm", "zz"]

    async def test_mtu_cannot_drop_below_networks(self, ctx, make_network):
        await make_network(mtu=9000)
        with pytest.raises(AggregatedValidationError) as exc:
            await update_nic_tag(ctx, "external", {"mtu": 1500})
        assert exc.value.fields() == ["mtu"]
        tag = await update_nic_tag(ctx, "external", {"mtu": 9000})
        assert tag.mtu == 9000

    async def test_delete_in_use(self, ctx, network):
        with pytest.raises(InUse) as exc:
            await delete_nic_tag(ctx, "external")
        assert exc.value.usedby == [{"type": "network", "id": network.uuid}]

    async def test_delete(self, ctx, nic_tag):
        await delete_nic_tag(ctx, "external")
        with pytest.raises(ResourceNotFound):
            await get_nic_tag(ctx, "external")


class TestCreateNetwork:
    async def test_defaults(self, ctx, nic_tag):
        network = await create_network(
            ctx,
            {"name": "n", "subnet": "10.1.0.0/24", "vlan_id": "12", "nic_tag": "external"},
        )
        assert str(network.provision_start_ip) == "10.1.0.1"
        assert str(network.provision_end_ip) == "10.1.0.254"
        assert network.vlan_id == 12
        assert network.mtu == 1500
        assert network.ip_use_strings is True
        assert network.etag is not None

    async def test_placeholders_for_gateway_and_resolvers(self, ctx, network):
        ips = await list_network_ips(ctx, network)
        assert [str(ip.address) for ip in ips] == ["10.0.0.1", "10.0.0.2"]
        for ip in ips:
            assert ip.reserved
            assert ip.belongs_to_type == "other"
            assert ip.belongs_to_uuid == ADMIN_UUID
            assert ip.provisionable(ctx.config.ADMIN_UUID)

    async def test_fabric_networks_get_no_placeholders(self, ctx, fabric_network):
        assert await list_network_ips(ctx, fabric_network) == []
        assert fabric_network.internet_nat is True

    async def test_numeric_encoding(self, ctx, make_network):
        ctx.config.IP_USE_STRINGS = False
        network = await make_network()
        assert network.ip_use_strings is False
        ips = await list_network_ips(ctx, network)
        assert [str(ip.address) for ip in ips] == ["10.0.0.1", "10.0.0.2"]

    async def test_unknown_nic_tag(self, ctx, make_network):
        with pytest.raises(AggregatedValidationError) as exc:
            await make_network(nic_tag="missing")
        assert exc.value.errors[0].message == constants.NIC_TAG_MISSING_MSG

    async def test_reports_all_field_errors(self, ctx, nic_tag):
        with pytest.raises(AggregatedValidationError) as exc:
            await create_network(
                ctx, {"name": "n", "subnet": "nope", "vlan_id": 1, "nic_tag": "external"}
            )
        assert exc.value.fields() == ["subnet", "vlan_id"]

    async def test_unknown_parameter(self, ctx, make_network):
        with pytest.raises(AggregatedValidationError) as exc:
            await make_network(colour="blue")
        assert exc.value.fields() == ["colour"]

    async def test_provision_range_checks(self, ctx, make_network):
        with pytest.raises(AggregatedValidationError) as exc:
            await make_network(provision_start_ip="10.0.1.1")
        assert exc.value.fields() == ["provision_start_ip"]

        with pytest.raises(AggregatedValidationError) as exc:
            await make_network(provision_start_ip="10.0.0.30", provision_end_ip="10.0.0.20")
        assert exc.value.fields() == ["provision_end_ip"]

    async def test_gateway_outside_subnet(self, ctx, make_network):
        with pytest.raises(AggregatedValidationError) as exc:
            await make_network(gateway="10.9.9.9")
        assert exc.value.fields() == ["gateway"]

    async def test_fabric_needs_vnet_id(self, ctx, make_network):
        with pytest.raises(AggregatedValidationError) as exc:
            await make_network(fabric=True)
        assert exc.value.fields() == ["vnet_id"]

        with pytest.raises(AggregatedValidationError) as exc:
            await make_network(vnet_id=5)
        assert exc.value.fields() == ["vnet_id"]

    async def test_mtu_limited_by_tag(self, ctx):
        await create_nic_tag(ctx, {"name": "small", "mtu": 1400})
        params = {"name": "n", "subnet": "10.1.0.0/24", "vlan_id": 0, "nic_tag": "small"}
        network = await create_network(ctx, params)
        assert network.mtu == 1400
        with pytest.raises(AggregatedValidationError) as exc:
            await create_network(ctx, {**params, "mtu": 1500})
        assert exc.value.fields() == ["mtu"]

    async def test_duplicate_uuid(self, ctx, make_network, network):
        with pytest.raises(InvalidParameter) as exc:
            await make_network(uuid=network.uuid)
        assert exc.value.field == "uuid"


class TestQueries:
    async def test_get_admin_by_name(self, ctx, make_network):
        admin = await make_network(name="admin")
        assert (await get_network(ctx, "admin")).uuid == admin.uuid

    async def test_get_missing(self, ctx, nic_tag):
        with pytest.raises(ResourceNotFound):
            await get_network(ctx, "b330e2a1-6260-41a8-8567-a8a011f202f1")

    async def test_list_sorted_and_filtered(self, ctx, make_network):
        await make_network(name="b", vlan_id=5)
        await make_network(name="a")
        await make_network(name="c", vlan_id=5)
        assert [n.name for n in await list_networks(ctx)] == ["a", "b", "c"]
        assert [n.name for n in await list_networks(ctx, {"vlan_id": 5})] == ["b", "c"]
        assert [n.name for n in await list_networks(ctx, {"name": "a,c"})] == ["a", "c"]
        assert [n.name for n in await list_networks(ctx, {"limit": 1, "offset": 1})] == ["b"]

    async def test_list_by_owner_includes_unowned(self, ctx, make_network):
        await make_network(name="mine", owner_uuids=[OWNER_UUID])
        await make_network(name="theirs", owner_uuids=[OTHER_OWNER_UUID])
        await make_network(name="shared")
        names = [n.name for n in await list_networks(ctx, {"owner_uuid": OWNER_UUID})]
        assert names == ["mine", "shared"]

    async def test_find_containing(self, ctx, make_network):
        first = await make_network()
        second = await make_network(subnet="10.0.1.0/24", gateway=None, resolvers=None,
                                    provision_start_ip=None, provision_end_ip=None)
        await make_network(vlan_id=7)
        assert await find_containing(ctx, 0, "external", None, "10.0.0.50") == [first.uuid]
        assert await find_containing(ctx, 0, "external", None, "10.0.1.50") == [second.uuid]
        assert await find_containing(ctx, 0, "external", None, "10.0.2.1") == []


class TestDeleteNetwork:
    async def test_delete_removes_ip_bucket(self, ctx, network):
        await delete_network(ctx, network.uuid)
        with pytest.raises(ResourceNotFound):
            await get_network(ctx, network.uuid)
        with pytest.raises(ResourceNotFound):
            await ctx.store.store.get_bucket(network.ip_bucket.name)

    async def test_delete_in_use(self, ctx, network):
        nic = await create_nic(ctx, zone_nic_params(network_uuid=network.uuid))
        with pytest.raises(InUse) as exc:
            await delete_network(ctx, network.uuid)
        types = [u["type"] for u in exc.value.usedby]
        assert "nic" in types
        assert "zone" in types
        assert {"type": "nic", "id": nic.mac} in exc.value.usedby

    async def test_placeholders_follow_configured_admin(self, ctx, make_network):
        admin = "11111111-2222-3333-4444-555555555555"
        ctx.config.ADMIN_UUID = admin
        network = await make_network()
        placeholders = await list_network_ips(ctx, network)
        assert {ip.belongs_to_uuid for ip in placeholders} == {admin}
        assert all(ip.provisionable(admin) for ip in placeholders)

        await delete_network(ctx, network.uuid)
        with pytest.raises(ResourceNotFound):
            await get_network(ctx, network.uuid)

    async def test_delete_in_pool(self, ctx, network, make_pool):
        pool = await make_pool([network])
        with pytest.raises(InUse) as exc:
            await delete_network(ctx, network.uuid)
        assert exc.value.usedby == [{"type": "network_pool", "id": pool.uuid}]
