"""Tests for the IP, NIC and network record models."""

import pytest

from netalloc.exceptions import InvalidParameter
from netalloc.models.ip import IP
from netalloc.models.network import Network, ip_bucket_name
from netalloc.models.nic import Nic
from netalloc.utils.addr import to_ip, to_network

from conftest import ADMIN_UUID, CN_UUID, OWNER_UUID, ZONE_UUID

NET_UUID = "b330e2a1-6260-41a8-8567-a8a011f202f1"


def make_network(**overrides) -> Network:
    fields = dict(
        uuid=NET_UUID,
        name="net0",
        subnet=to_network("10.0.0.0/24"),
        vlan_id=0,
        nic_tag="external",
        provision_start_ip=to_ip("10.0.0.10"),
        provision_end_ip=to_ip("10.0.0.20"),
        gateway=to_ip("10.0.0.1"),
        resolvers=[to_ip("10.0.0.2")],
    )
    fields.update(overrides)
    return Network(**fields)


class TestNetwork:
    def test_ip_bucket_name(self):
        assert ip_bucket_name(NET_UUID) == "netalloc_ips_b330e2a1_6260_41a8_8567_a8a011f202f1"
        assert make_network().ip_bucket.name == ip_bucket_name(NET_UUID)

    def test_round_trip(self):
        network = make_network(owner_uuids=[OWNER_UUID], description="web")
        again = Network.from_raw(network.raw())
        assert again.serialize() == network.serialize()

    def test_address_encoding_default(self):
        raw = make_network().raw()
        del raw["ip_use_strings"]
        assert Network.from_raw(raw).ip_use_strings is True
        numeric = make_network(ip_use_strings=False)
        assert Network.from_raw(numeric.raw()).ip_use_strings is False

    def test_is_owner(self):
        assert make_network().is_owner(OWNER_UUID, ADMIN_UUID)
        owned = make_network(owner_uuids=[OWNER_UUID])
        assert owned.is_owner(OWNER_UUID, ADMIN_UUID)
        assert owned.is_owner(ADMIN_UUID, ADMIN_UUID)
        assert not owned.is_owner(ZONE_UUID, ADMIN_UUID)

    def test_contains(self):
        network = make_network()
        assert network.contains("10.0.0.200")
        assert not network.contains("10.0.1.1")
        assert not network.contains("fd00::1")
        assert not network.contains("junk")


class TestIP:
    def test_string_encoding(self):
        ip = IP(address=to_ip("10.0.0.5"), network=make_network())
        assert ip.key() == "10.0.0.5"
        assert ip.raw() == {"reserved": False, "ipaddr": "10.0.0.5", "v": 2}

    def test_numeric_encoding(self):
        ip = IP(address=to_ip("10.0.0.5"), network=make_network(ip_use_strings=False))
        assert ip.key() == str(int(to_ip("10.0.0.5")))
        assert ip.raw() == {"reserved": False, "ip": int(to_ip("10.0.0.5"))}

    def test_mixed_encoding_refused(self):
        with pytest.raises(InvalidParameter):
            IP.from_raw({"ip": 167772165}, make_network())
        with pytest.raises(InvalidParameter):
            IP.from_raw({"ipaddr": "10.0.0.5"}, make_network(ip_use_strings=False))

    def test_states(self):
        network = make_network()
        free = IP(address=to_ip("10.0.0.5"), network=network)
        assert free.free and free.provisionable(ADMIN_UUID)

        reserved = IP(address=to_ip("10.0.0.5"), network=network, reserved=True)
        assert not reserved.free and reserved.provisionable(ADMIN_UUID)

        assigned = IP(
            address=to_ip("10.0.0.5"),
            network=network,
            belongs_to_type="zone",
            belongs_to_uuid=ZONE_UUID,
            owner_uuid=OWNER_UUID,
        )
        assert not assigned.free and not assigned.provisionable(ADMIN_UUID)

        placeholder = IP(
            address=to_ip("10.0.0.1"),
            network=network,
            reserved=True,
            belongs_to_type="other",
            belongs_to_uuid=ADMIN_UUID,
            owner_uuid=ADMIN_UUID,
        )
        assert placeholder.provisionable(ADMIN_UUID)
        assert not placeholder.provisionable(OWNER_UUID)

    def test_unassign_keeps_owner_only_when_reserved(self):
        network = make_network()
        owning = dict(belongs_to_type="zone", belongs_to_uuid=ZONE_UUID, owner_uuid=OWNER_UUID)

        plain = IP(address=to_ip("10.0.0.5"), network=network, **owning).unassign_batch()
        assert plain.value == {"reserved": False, "ipaddr": "10.0.0.5", "v": 2}

        kept = IP(
            address=to_ip("10.0.0.5"), network=network, reserved=True, **owning
        ).unassign_batch()
        assert kept.value["owner_uuid"] == OWNER_UUID
        assert "belongs_to_uuid" not in kept.value

    def test_free_batch_uses_existing_etag(self):
        ip = IP(
            address=to_ip("10.0.0.5"),
            network=make_network(),
            reserved=True,
            owner_uuid=OWNER_UUID,
            etag="ABCD",
        )
        entry = ip.free_batch()
        assert entry.etag == "ABCD"
        assert entry.value == {"reserved": False, "ipaddr": "10.0.0.5", "v": 2}

    def test_fabric_gateway(self):
        network = make_network(fabric=True, vnet_id=5)
        assert IP(address=to_ip("10.0.0.1"), network=network).is_fabric_gateway()
        assert not IP(address=to_ip("10.0.0.5"), network=network).is_fabric_gateway()
        assert not IP(address=to_ip("10.0.0.1"), network=make_network()).is_fabric_gateway()


class TestNic:
    def make_nic(self, **overrides) -> Nic:
        network = make_network()
        fields = dict(
            mac=0x90B8D0C0FFEE,
            belongs_to_type="zone",
            belongs_to_uuid=ZONE_UUID,
            owner_uuid=OWNER_UUID,
            nic_tag="external",
            vlan_id=0,
            network=network,
            ipaddr=to_ip("10.0.0.10"),
            cn_uuid=CN_UUID,
            model="virtio",
            flags={"allow_ip_spoofing": True},
        )
        fields.update(overrides)
        return Nic(**fields)

    def test_key_and_mac(self):
        nic = self.make_nic()
        assert nic.key() == str(0x90B8D0C0FFEE)
        assert nic.mac_str == "90:b8:d0:c0:ff:ee"

    def test_round_trip(self):
        nic = self.make_nic()
        again = Nic.from_raw(nic.raw(), nic.network)
        assert again.serialize() == nic.serialize()

    def test_serialize_includes_network_fields(self):
        data = self.make_nic().serialize()
        assert data["network_uuid"] == NET_UUID
        assert data["netmask"] == "255.255.255.0"
        assert data["gateway"] == "10.0.0.1"
        assert data["resolvers"] == ["10.0.0.2"]
        assert data["ip"] == "10.0.0.10"
        assert data["allow_ip_spoofing"] is True
        assert "fabric" not in data

    def test_serialize_without_network(self):
        data = self.make_nic(network=None, ipaddr=None).serialize()
        assert "network_uuid" not in data
        assert "ip" not in data

    def test_raw_omits_unset_fields(self):
        raw = self.make_nic(network=None, ipaddr=None, cn_uuid=None, model=None, flags={}).raw()
        assert set(raw) == {
            "mac",
            "primary",
            "state",
            "belongs_to_type",
            "belongs_to_uuid",
            "owner_uuid",
            "nic_tag",
            "vlan_id",
        }
