"""
IP model: the allocation state of one address on one network.

States:
    absent   - no row in the network's IP bucket (implicitly free)
    free     - row exists, no owning fields, not reserved
    reserved - held administratively (reserved=True)
    assigned - belongs_to_type/belongs_to_uuid/owner_uuid set

Rows are never removed: freeing overwrites them with a cleared record so the
etag stays usable for the next optimistic write.

Each network stores its addresses in one encoding, fixed at network
creation: numeric rows keep the address as an integer in "ip", string rows
keep it in "ipaddr" together with the row version "v".
"""

from __future__ import annotations

from dataclasses import dataclass

from netalloc import constants
from netalloc.exceptions import InvalidParameter
from netalloc.models.enums import BatchOperation, BelongsToType
from netalloc.models.network import Network
from netalloc.models.responses import IPResponse
from netalloc.store.base import BatchEntry
from netalloc.utils.addr import IPAddress, ip_key, to_ip

# Setting any of these (or reserved) makes the address not free
OWNING_FIELDS = ("belongs_to_type", "belongs_to_uuid", "owner_uuid")


@dataclass
class IP:
    """One address on one network."""

    address: IPAddress
    network: Network
    reserved: bool = False
    belongs_to_type: str | None = None
    belongs_to_uuid: str | None = None
    owner_uuid: str | None = None
    etag: str | None = None

    @property
    def network_uuid(self) -> str:
        return self.network.uuid

    @property
    def use_strings(self) -> bool:
        return self.network.ip_use_strings

    @property
    def bucket(self) -> str:
        return self.network.ip_bucket.name

    def key(self) -> str:
        return ip_key(self.use_strings, self.address)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def free(self) -> bool:
        if self.reserved:
            return False
        return all(getattr(self, f) is None for f in OWNING_FIELDS)

    def provisionable(self, admin_uuid: str) -> bool:
        """True if this address may be handed to a new holder."""
        if not self.belongs_to_uuid or not self.belongs_to_type:
            return True

        # Placeholders created with the network (gateway, resolvers)
        return (
            self.belongs_to_type == BelongsToType.OTHER.value
            and self.belongs_to_uuid == admin_uuid
        )

    def is_fabric(self) -> bool:
        return self.network.fabric

    def is_fabric_gateway(self) -> bool:
        return (
            self.network.fabric
            and self.network.gateway is not None
            and self.address == self.network.gateway
        )

    def owning(self) -> dict:
        return {f: getattr(self, f) for f in OWNING_FIELDS if getattr(self, f) is not None}

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def _address_fields(self) -> dict:
        if self.use_strings:
            return {"ipaddr": str(self.address), "v": constants.IP_BUCKET_VERSION}
        return {"ip": int(self.address)}

    def raw(self) -> dict:
        """Row stored in the network's IP bucket."""
        raw = {"reserved": bool(self.reserved)}
        raw.update(self._address_fields())
        raw.update(self.owning())
        return raw

    def serialize(self) -> dict:
        resp = IPResponse(
            ip=str(self.address),
            network_uuid=self.network.uuid,
            reserved=bool(self.reserved),
            free=self.free,
            **self.owning(),
        )
        return resp.model_dump(exclude_none=True)

    @classmethod
    def from_raw(cls, value: dict, network: Network, etag: str | None = None) -> IP:
        """
        Build an IP from a stored row.

        Raises:
            InvalidParameter: If the row's address encoding does not match
                the network's (a string row in a numeric bucket or vice versa).
        """
        if network.ip_use_strings:
            if "ipaddr" not in value or "ip" in value:
                raise InvalidParameter("ip", constants.IP_ENCODING_MSG)
            address = to_ip(value["ipaddr"])
        else:
            if "ip" not in value or "ipaddr" in value:
                raise InvalidParameter("ip", constants.IP_ENCODING_MSG)
            address = to_ip(value["ip"])

        return cls(
            address=address,
            network=network,
            reserved=bool(value.get("reserved", False)),
            belongs_to_type=value.get("belongs_to_type"),
            belongs_to_uuid=value.get("belongs_to_uuid"),
            owner_uuid=value.get("owner_uuid"),
            etag=etag,
        )

    # -------------------------------------------------------------------------
    # Batch Entries
    # -------------------------------------------------------------------------

    def batch(self) -> BatchEntry:
        """Put of this record, conditional on its etag."""
        return BatchEntry(
            bucket=self.bucket,
            key=self.key(),
            operation=BatchOperation.PUT,
            value=self.raw(),
            etag=self.etag,
        )

    def unassign_batch(self) -> BatchEntry:
        """Put releasing this address from its holder."""
        entry = self.batch()
        entry.value.pop("belongs_to_type", None)
        entry.value.pop("belongs_to_uuid", None)
        # A reservation survives release and keeps its owner
        if not self.reserved:
            entry.value.pop("owner_uuid", None)
        return entry

    def free_batch(self) -> BatchEntry:
        """Put overwriting this address with a cleared record."""
        value = {"reserved": False}
        value.update(self._address_fields())
        return BatchEntry(
            bucket=self.bucket,
            key=self.key(),
            operation=BatchOperation.PUT,
            value=value,
            etag=self.etag,
        )
