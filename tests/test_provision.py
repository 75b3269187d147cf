"""Tests for next-free-address allocation on networks and pools."""

import asyncio

import pytest

from netalloc import constants
from netalloc.exceptions import CapacityExhausted, VersionConflict
from netalloc.ipam.ip import create_ip, get_ip
from netalloc.ipam.provision import IPProvisioner, PoolProvisioner, next_ip_on_network
from netalloc.store import ANY_ETAG, MemoryStore

from conftest import OWNER_UUID, ZONE2_UUID, ZONE_UUID

OWNING = {"belongs_to_type": "zone", "belongs_to_uuid": ZONE_UUID, "owner_uuid": OWNER_UUID}


class RacingStore(MemoryStore):
    """Loses the race for the addresses in `taken` once each."""

    def __init__(self):
        super().__init__()
        self.taken = set()

    async def put(self, bucket, key, value, etag=ANY_ETAG):
        if key in self.taken:
            self.taken.discard(key)
            raise VersionConflict(bucket, key, expected=etag, actual="RACED")
        return await super().put(bucket, key, value, etag=etag)


async def hold(ctx, network, address, **owning):
    params = {"ip": address, "network": network, "network_uuid": network.uuid}
    params.update(owning or OWNING)
    return await create_ip(ctx, params)


class TestNetworkAllocation:
    async def test_lowest_free_address(self, ctx, network):
        first = await next_ip_on_network(ctx, network, OWNING)
        second = await next_ip_on_network(ctx, network, OWNING)
        assert str(first.address) == "10.0.0.10"
        assert str(second.address) == "10.0.0.11"
        stored = await get_ip(ctx, network, "10.0.0.10")
        assert stored.belongs_to_uuid == ZONE_UUID
        assert stored.etag == first.etag

    async def test_skips_held_addresses_across_chunks(self, ctx, network):
        ctx.config.IP_SCAN_CHUNK = 2
        for last_octet in range(10, 15):
            await hold(ctx, network, f"10.0.0.{last_octet}")
        ip = await next_ip_on_network(ctx, network, OWNING)
        assert str(ip.address) == "10.0.0.15"

    async def test_reuses_freed_rows(self, ctx, network):
        await hold(ctx, network, "10.0.0.10")
        await hold(ctx, network, "10.0.0.11")
        await ctx.store.put_obj(
            network.ip_bucket, "10.0.0.10", {"reserved": False, "ipaddr": "10.0.0.10", "v": 2}
        )
        ip = await next_ip_on_network(ctx, network, OWNING)
        assert str(ip.address) == "10.0.0.10"

    async def test_placeholders_are_reusable(self, ctx, make_network):
        network = await make_network(
            provision_start_ip="10.0.0.1", provision_end_ip="10.0.0.3"
        )
        ip = await next_ip_on_network(ctx, network, OWNING)
        assert str(ip.address) == "10.0.0.1"
        assert ip.belongs_to_uuid == ZONE_UUID

    async def test_numeric_network(self, ctx, make_network):
        ctx.config.IP_USE_STRINGS = False
        network = await make_network()
        await hold(ctx, network, "10.0.0.10")
        ip = await next_ip_on_network(ctx, network, OWNING)
        assert str(ip.address) == "10.0.0.11"
        assert ip.key() == str(int(ip.address))

    async def test_exhaustion(self, ctx, make_network):
        network = await make_network(
            provision_start_ip="10.0.0.10", provision_end_ip="10.0.0.11"
        )
        await next_ip_on_network(ctx, network, OWNING)
        await next_ip_on_network(ctx, network, OWNING)
        with pytest.raises(CapacityExhausted) as exc:
            await next_ip_on_network(ctx, network, OWNING)
        assert exc.value.code == "SubnetFull"
        assert exc.value.network_uuid == network.uuid

    async def test_concurrent_requests_get_distinct_addresses(self, ctx, network):
        owners = [OWNING, dict(OWNING, belongs_to_uuid=ZONE2_UUID)]
        results = await asyncio.gather(
            *(next_ip_on_network(ctx, network, owners[i % 2]) for i in range(8))
        )
        addresses = [str(ip.address) for ip in results]
        assert len(set(addresses)) == 8
        start, end = network.provision_start_ip, network.provision_end_ip
        assert all(start <= ip.address <= end for ip in results)

    async def test_next_ip_does_not_write(self, ctx, network):
        provisioner = IPProvisioner(ctx, network, OWNING)
        candidate = await provisioner.next_ip()
        assert candidate.etag is None
        assert candidate.belongs_to_uuid == ZONE_UUID
        assert (await get_ip(ctx, network, candidate.address, return_object=True)).etag is None
        assert str((await provisioner.next_ip()).address) == "10.0.0.11"


class TestConflicts:
    @pytest.fixture
    def store(self):
        return RacingStore()

    async def test_resumes_from_next_candidate(self, ctx, store, network):
        store.taken = {"10.0.0.10", "10.0.0.11"}
        provisioner = IPProvisioner(ctx, network, OWNING)
        ip = await provisioner.claim()
        assert str(ip.address) == "10.0.0.12"
        assert provisioner.conflicts == 2

    async def test_retry_limit(self, ctx, store, network):
        ctx.config.IP_PROVISION_RETRIES = 3
        store.taken = {f"10.0.0.{n}" for n in range(10, 21)}
        with pytest.raises(CapacityExhausted) as exc:
            await next_ip_on_network(ctx, network, OWNING)
        assert "3 conflicts" in str(exc.value)
        assert len(store.taken) == 8


class TestPoolAllocation:
    @pytest.fixture
    async def small_networks(self, make_network):
        first = await make_network(provision_start_ip="10.0.0.10", provision_end_ip="10.0.0.10")
        second = await make_network(
            vlan_id=5, provision_start_ip="10.0.0.10", provision_end_ip="10.0.0.11"
        )
        return first, second

    async def test_moves_to_next_member_when_full(self, ctx, small_networks, make_pool):
        first, second = small_networks
        pool = await make_pool([first, second])
        await hold(ctx, first, "10.0.0.10")

        provisioner = PoolProvisioner(ctx, pool, OWNING, networks=[first, second])
        ip = await provisioner.next_ip()
        assert provisioner.network.uuid == second.uuid
        assert ip.network.uuid == second.uuid
        assert str(ip.address) == "10.0.0.10"

    async def test_all_members_full(self, ctx, small_networks, make_pool):
        first, second = small_networks
        pool = await make_pool([first, second])
        provisioner = PoolProvisioner(ctx, pool, OWNING, networks=[first, second])
        for _ in range(3):
            await provisioner.next_ip()
        with pytest.raises(CapacityExhausted) as exc:
            await provisioner.next_ip()
        assert str(exc.value) == constants.POOL_FULL_FMT.format(pool.uuid)

    async def test_retry_limit_advances_member(self, ctx, small_networks, make_pool):
        ctx.config.IP_PROVISION_RETRIES = 1
        first, second = small_networks
        pool = await make_pool([first, second])
        provisioner = PoolProvisioner(ctx, pool, OWNING, networks=[first, second])

        await provisioner.next_ip()
        provisioner.record_conflict(VersionConflict(first.ip_bucket.name, "10.0.0.10"))
        ip = await provisioner.next_ip()
        assert ip.network.uuid == second.uuid

    async def test_last_member_conflicts_raise(self, ctx, network, make_pool):
        ctx.config.IP_PROVISION_RETRIES = 1
        pool = await make_pool([network])
        provisioner = PoolProvisioner(ctx, pool, OWNING)
        await provisioner.next_ip()
        with pytest.raises(CapacityExhausted):
            provisioner.record_conflict(VersionConflict(network.ip_bucket.name, "10.0.0.10"))
