"""Shared fixtures: an in-memory store, a request context and topology factories."""

import copy

import pytest

from netalloc.config import AllocatorConfig, config
from netalloc.context import RequestContext
from netalloc.ipam.buckets import init_buckets
from netalloc.ipam.network import create_network
from netalloc.ipam.network_pool import create_network_pool
from netalloc.ipam.nic_tag import create_nic_tag
from netalloc.store import MemoryStore

ADMIN_UUID = config.ADMIN_UUID
OWNER_UUID = "930896af-bf8c-48d4-885c-6573a94b1853"
OTHER_OWNER_UUID = "1a9f4c6e-6a35-4f44-9d1b-0c5f3e2a7b11"
ZONE_UUID = "0e56fe34-39a3-42d5-86c7-d719487f892b"
ZONE2_UUID = "7f3c1b2a-58d4-4e0f-a1b9-c2d3e4f5a6b7"
SERVER_UUID = "564d4d2c-ddd0-7be7-40ae-bae473a1d53e"
CN_UUID = "44454c4c-4800-1034-804a-b2c04f354d31"
CN2_UUID = "44454c4c-4800-1034-804a-b3c04f354d32"


class ConflictInjectingStore(MemoryStore):
    """
    Memory store that runs queued callbacks right before the next batches,
    playing the part of a writer racing the operation under test.
    """

    def __init__(self):
        super().__init__()
        self.before_batch = []
        self._injecting = False

    async def batch(self, entries):
        if self.before_batch and not self._injecting:
            hook = self.before_batch.pop(0)
            self._injecting = True
            try:
                await hook(self, entries)
            finally:
                self._injecting = False
        return await super().batch(entries)


@pytest.fixture(autouse=True)
def reset_config():
    """Restore the global config after tests that mutate it (the CLI does)."""
    saved = copy.deepcopy(vars(config))
    yield
    vars(config).update(saved)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
async def ctx(store):
    context = RequestContext.create_for(store, AllocatorConfig())
    await init_buckets(context)
    return context


@pytest.fixture
async def nic_tag(ctx):
    return await create_nic_tag(ctx, {"name": "external", "mtu": 9000})


@pytest.fixture
def make_network(ctx, nic_tag):
    """Factory creating networks on the "external" tag."""
    counter = {"n": 0}

    async def factory(**overrides):
        counter["n"] += 1
        params = {
            "name": f"net{counter['n']}",
            "subnet": "10.0.0.0/24",
            "vlan_id": 0,
            "nic_tag": "external",
            "provision_start_ip": "10.0.0.10",
            "provision_end_ip": "10.0.0.20",
            "gateway": "10.0.0.1",
            "resolvers": ["10.0.0.2", "8.8.8.8"],
        }
        params.update(overrides)
        params = {k: val for k, val in params.items() if val is not None}
        return await create_network(ctx, params)

    return factory


@pytest.fixture
async def network(make_network):
    return await make_network()


@pytest.fixture
async def fabric_network(make_network):
    return await make_network(
        name="fabric0",
        subnet="192.168.0.0/24",
        vlan_id=2,
        provision_start_ip="192.168.0.1",
        provision_end_ip="192.168.0.20",
        gateway="192.168.0.1",
        resolvers=None,
        fabric=True,
        vnet_id=1234,
    )


@pytest.fixture
def make_pool(ctx):
    async def factory(networks, **overrides):
        params = {"name": "pool", "networks": [n.uuid for n in networks]}
        params.update(overrides)
        return await create_network_pool(ctx, params)

    return factory


def zone_nic_params(**overrides) -> dict:
    params = {
        "belongs_to_type": "zone",
        "belongs_to_uuid": ZONE_UUID,
        "owner_uuid": OWNER_UUID,
    }
    params.update(overrides)
    return params


@pytest.fixture
def nic_params():
    return zone_nic_params
