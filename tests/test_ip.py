"""Tests for IP operations."""

import pytest

from netalloc import constants
from netalloc.batch import commit_batch
from netalloc.exceptions import (
    AggregatedValidationError,
    InvalidParameter,
    ResourceNotFound,
    VersionConflict,
)
from netalloc.ipam.ip import (
    batch_create_ips,
    create_ip,
    create_updated_ip,
    delete_ip,
    extract_ip_params,
    get_ip,
    list_network_ips,
    reserve_ips,
    update_ip,
)
from netalloc.models.ip import IP
from netalloc.utils.addr import to_ip

from conftest import OTHER_OWNER_UUID, OWNER_UUID, ZONE2_UUID, ZONE_UUID

OWNING = {"belongs_to_type": "zone", "belongs_to_uuid": ZONE_UUID, "owner_uuid": OWNER_UUID}


def ip_params(network, address, **extra):
    return {"ip": address, "network": network, "network_uuid": network.uuid, **extra}


class TestGet:
    async def test_absent_address_is_free(self, ctx, network):
        ip = await get_ip(ctx, network, "10.0.0.57", return_object=True)
        assert ip.etag is None
        assert ip.serialize() == {
            "ip": "10.0.0.57",
            "network_uuid": network.uuid,
            "reserved": False,
            "free": True,
        }

    async def test_absent_address_not_found(self, ctx, network):
        with pytest.raises(ResourceNotFound):
            await get_ip(ctx, network, "10.0.0.57")

    async def test_bad_address(self, ctx, network):
        with pytest.raises(InvalidParameter) as exc:
            await get_ip(ctx, network, "not-an-ip")
        assert exc.value.field == "ip"


class TestCreate:
    async def test_create_assigned(self, ctx, network):
        ip = await create_ip(ctx, ip_params(network, "10.0.0.57", **OWNING))
        assert ip.etag is not None
        data = (await get_ip(ctx, network, "10.0.0.57")).serialize()
        assert data["free"] is False
        assert data["belongs_to_uuid"] == ZONE_UUID

    async def test_create_existing_conflicts(self, ctx, network):
        await create_ip(ctx, ip_params(network, "10.0.0.57"))
        with pytest.raises(VersionConflict):
            await create_ip(ctx, ip_params(network, "10.0.0.57"))

    async def test_outside_subnet(self, ctx, network):
        with pytest.raises(AggregatedValidationError) as exc:
            await create_ip(ctx, ip_params(network, "10.0.1.5"))
        assert exc.value.fields() == ["ip"]

    async def test_owning_fields_come_together(self, ctx, network):
        with pytest.raises(AggregatedValidationError) as exc:
            await create_ip(ctx, ip_params(network, "10.0.0.57", belongs_to_uuid=ZONE_UUID))
        assert set(exc.value.fields()) == {"belongs_to_type", "owner_uuid"}

    async def test_network_owner_checked(self, ctx, make_network):
        network = await make_network(owner_uuids=[OTHER_OWNER_UUID])
        with pytest.raises(AggregatedValidationError) as exc:
            await create_ip(ctx, ip_params(network, "10.0.0.57", **OWNING))
        assert exc.value.errors[0].message == constants.OWNER_MATCH_MSG

        ip = await create_ip(ctx, ip_params(network, "10.0.0.57", check_owner=False, **OWNING))
        assert ip.owner_uuid == OWNER_UUID

    async def test_batch_create(self, ctx, network):
        ips = [
            IP(address=to_ip(addr), network=network, reserved=True)
            for addr in ("10.0.0.60", "10.0.0.61")
        ]
        created = await batch_create_ips(ctx, ips)
        assert all(ip.etag for ip in created)
        assert (await get_ip(ctx, network, "10.0.0.61")).reserved
        assert await batch_create_ips(ctx, []) == []

    async def test_reserve_several(self, ctx, network):
        reserved = await reserve_ips(ctx, network, ["10.0.0.70", "10.0.0.71"])
        assert [str(ip.address) for ip in reserved] == ["10.0.0.70", "10.0.0.71"]
        for address in ("10.0.0.70", "10.0.0.71"):
            stored = await get_ip(ctx, network, address)
            assert stored.reserved
            assert not stored.free

    async def test_reserve_rejects_held_and_outside(self, ctx, network):
        await create_ip(ctx, ip_params(network, "10.0.0.57", **OWNING))
        with pytest.raises(AggregatedValidationError) as exc:
            await reserve_ips(ctx, network, ["10.0.0.56", "10.0.0.57", "10.0.1.5"])
        outside, held = exc.value.errors
        assert outside.message == constants.IPS_OUTSIDE_MSG
        assert outside.invalid == ["10.0.1.5"]
        assert held.message == constants.IPS_HELD_MSG
        assert held.invalid == ["10.0.0.57"]
        # Nothing from the failed request was written
        with pytest.raises(ResourceNotFound):
            await get_ip(ctx, network, "10.0.0.56")


class TestUpdate:
    async def test_assign_absent_address(self, ctx, network):
        ip = await update_ip(ctx, network, "10.0.0.57", dict(OWNING))
        assert ip.belongs_to_uuid == ZONE_UUID
        assert not ip.free
        assert (await get_ip(ctx, network, "10.0.0.57")).etag == ip.etag

    async def test_assign_requires_owner(self, ctx, network):
        with pytest.raises(AggregatedValidationError) as exc:
            await update_ip(
                ctx, network, "10.0.0.57", {"belongs_to_type": "zone", "belongs_to_uuid": ZONE_UUID}
            )
        assert exc.value.fields() == ["owner_uuid"]

    async def test_unassign_clears_owner(self, ctx, network):
        await update_ip(ctx, network, "10.0.0.57", dict(OWNING))
        ip = await update_ip(ctx, network, "10.0.0.57", {"unassign": True})
        assert ip.belongs_to_uuid is None
        assert ip.owner_uuid is None
        assert ip.free

    async def test_unassign_keeps_reservation(self, ctx, network):
        await update_ip(ctx, network, "10.0.0.57", {**OWNING, "reserved": True})
        ip = await update_ip(ctx, network, "10.0.0.57", {"unassign": True})
        assert ip.belongs_to_uuid is None
        assert ip.owner_uuid == OWNER_UUID
        assert ip.reserved and not ip.free

    async def test_reserve(self, ctx, network):
        ip = await update_ip(ctx, network, "10.0.0.57", {"reserved": True})
        assert ip.reserved and not ip.free

    async def test_free(self, ctx, network):
        await update_ip(ctx, network, "10.0.0.57", {**OWNING, "reserved": True})
        ip = await update_ip(ctx, network, "10.0.0.57", {"free": True})
        assert ip.free
        stored = await get_ip(ctx, network, "10.0.0.57")
        assert stored.serialize()["free"] is True

    async def test_free_and_unassign(self, ctx, network):
        with pytest.raises(AggregatedValidationError) as exc:
            await update_ip(ctx, network, "10.0.0.57", {"free": True, "unassign": True})
        assert exc.value.errors[0].message == constants.FREE_UNASSIGN_MSG

    async def test_freeing_absent_address_writes_nothing(self, ctx, network):
        for params in ({"free": True}, {"unassign": True}):
            ip = await update_ip(ctx, network, "10.0.0.99", params)
            assert ip.free
            assert ip.etag is None
            with pytest.raises(ResourceNotFound):
                await get_ip(ctx, network, "10.0.0.99")

    async def test_stale_assignment_conflicts(self, ctx, network):
        await update_ip(ctx, network, "10.0.0.57", {"reserved": True})
        stale = await get_ip(ctx, network, "10.0.0.57")
        await update_ip(ctx, network, "10.0.0.57", dict(OWNING))

        claim = create_updated_ip(stale, {**OWNING, "belongs_to_uuid": ZONE2_UUID})
        assert claim.etag == stale.etag
        with pytest.raises(VersionConflict):
            await commit_batch(ctx, [claim.batch()], models=[claim])
        with pytest.raises(VersionConflict):
            await delete_ip(ctx, network, "10.0.0.57", existing=stale)
        assert (await get_ip(ctx, network, "10.0.0.57")).belongs_to_uuid == ZONE_UUID


class TestDeleteAndList:
    async def test_delete_keeps_row(self, ctx, network):
        await create_ip(ctx, ip_params(network, "10.0.0.57", **OWNING))
        freed = await delete_ip(ctx, network, "10.0.0.57")
        assert freed.free
        assert (await get_ip(ctx, network, "10.0.0.57")).etag == freed.etag

    async def test_free_twice_is_stable(self, ctx, network):
        await create_ip(ctx, ip_params(network, "10.0.0.57", **OWNING))
        first = await delete_ip(ctx, network, "10.0.0.57")
        second = await delete_ip(ctx, network, "10.0.0.57")
        assert second.raw() == first.raw()
        assert second.etag == first.etag
        stored = await get_ip(ctx, network, "10.0.0.57")
        assert stored.etag == first.etag
        assert stored.free

    async def test_delete_absent(self, ctx, network):
        with pytest.raises(ResourceNotFound):
            await delete_ip(ctx, network, "10.0.0.57")

    async def test_list_sorted_and_filtered(self, ctx, network):
        await create_ip(ctx, ip_params(network, "10.0.0.100", **OWNING))
        await create_ip(ctx, ip_params(network, "10.0.0.9", reserved=True))
        listed = await list_network_ips(ctx, network)
        assert [str(ip.address) for ip in listed] == [
            "10.0.0.1",
            "10.0.0.2",
            "10.0.0.9",
            "10.0.0.100",
        ]
        owned = await list_network_ips(ctx, network, {"belongs_to_uuid": ZONE_UUID})
        assert [str(ip.address) for ip in owned] == ["10.0.0.100"]
        reserved = await list_network_ips(ctx, network, {"reserved": True, "limit": 1})
        assert [str(ip.address) for ip in reserved] == ["10.0.0.1"]

    async def test_list_numeric_network(self, ctx, make_network):
        ctx.config.IP_USE_STRINGS = False
        network = await make_network()
        await create_ip(ctx, ip_params(network, "10.0.0.100"))
        await create_ip(ctx, ip_params(network, "10.0.0.9"))
        listed = await list_network_ips(ctx, network)
        assert [str(ip.address) for ip in listed][-2:] == ["10.0.0.9", "10.0.0.100"]


class TestHelpers:
    def test_extract_ip_params(self):
        params = {"ip": "10.0.0.5", "mac": "x", "owner_uuid": OWNER_UUID, "primary": True}
        extracted = extract_ip_params(params, {"reserved": True})
        assert extracted == {"ip": "10.0.0.5", "owner_uuid": OWNER_UUID, "reserved": True}

    async def test_create_updated_ip(self, ctx, network):
        base = await get_ip(ctx, network, "10.0.0.57", return_object=True)
        updated = create_updated_ip(base, {**OWNING, "check_owner": False, "mac": 1})
        assert updated.belongs_to_uuid == ZONE_UUID
        assert updated.etag is None
        assert base.belongs_to_uuid is None
