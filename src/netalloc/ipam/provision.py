"""
Address allocation.

IPProvisioner walks a network's provision range in ascending order. Stored
rows are fetched one chunk at a time (IP_SCAN_CHUNK addresses per query);
addresses with no row, and rows that are still provisionable, become
candidates. A candidate carries the etag it was read with (None for an
absent row), so the claiming write only succeeds if nobody took the address
in the meantime. On a VersionConflict the search resumes with the next
candidate instead of starting over; after IP_PROVISION_RETRIES conflicts, or
at the end of the range, allocation fails with CapacityExhausted.

The provisioner does not write by itself when used through next_ip(): NIC
operations put the claimed address into the same batch as the NIC and report
conflicts back with record_conflict().
"""

from __future__ import annotations

from netalloc import constants
from netalloc.exceptions import CapacityExhausted, VersionConflict
from netalloc.models.ip import IP
from netalloc.models.network import Network
from netalloc.store.filters import And, Range
from netalloc.utils.addr import ip_key

# Owning fields copied from the request onto a claimed address
_CLAIM_FIELDS = ("belongs_to_type", "belongs_to_uuid", "owner_uuid")


class IPProvisioner:
    """Finds and claims free addresses on one network."""

    def __init__(self, ctx, network: Network, params: dict | None = None):
        self.ctx = ctx
        self.network = network
        self.params = params or {}
        self.conflicts = 0
        self._cursor = int(network.provision_start_ip)
        self._end = int(network.provision_end_ip)
        self._pending: list[IP] = []

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _address(self, value: int):
        return type(self.network.provision_start_ip)(value)

    def _filter_value(self, addr) -> str:
        return str(addr) if self.network.ip_use_strings else str(int(addr))

    async def _stored(self, first, last) -> dict[str, IP]:
        field = "ipaddr" if self.network.ip_use_strings else "ip"
        query = And(
            [
                Range(field, ">=", self._filter_value(first)),
                Range(field, "<=", self._filter_value(last)),
            ]
        )
        objs = await self.ctx.store.list_objs(self.network.ip_bucket, query=query)
        return {o.key: IP.from_raw(o.value, self.network, o.etag) for o in objs}

    async def _fill(self) -> None:
        chunk = self.ctx.config.IP_SCAN_CHUNK
        while not self._pending and self._cursor <= self._end:
            first = self._cursor
            last = min(first + chunk - 1, self._end)
            stored = await self._stored(self._address(first), self._address(last))

            for value in range(first, last + 1):
                addr = self._address(value)
                ip = stored.get(ip_key(self.network.ip_use_strings, addr))
                if ip is None:
                    ip = IP(address=addr, network=self.network)
                if ip.provisionable(self.ctx.config.ADMIN_UUID):
                    self._pending.append(ip)

            self._cursor = last + 1

    def _claim(self, candidate: IP) -> IP:
        claimed = IP(
            address=candidate.address,
            network=self.network,
            reserved=bool(self.params.get("reserved", False)),
            etag=candidate.etag,
        )
        for field in _CLAIM_FIELDS:
            setattr(claimed, field, self.params.get(field))
        return claimed

    # -------------------------------------------------------------------------
    # Allocation
    # -------------------------------------------------------------------------

    async def next_ip(self) -> IP:
        """
        Next candidate with the request's owning fields applied (not written).

        Raises:
            CapacityExhausted: If the provision range has no more candidates.
        """
        await self._fill()
        if not self._pending:
            raise CapacityExhausted(self.network.uuid)
        return self._claim(self._pending.pop(0))

    def record_conflict(self, err: VersionConflict) -> None:
        """
        Note a lost race on the last candidate.

        Raises:
            CapacityExhausted: Once the conflict retry limit is reached.
        """
        self.conflicts += 1
        self.ctx.log.warning(
            f"IP provision conflict on network {self.network.uuid} "
            f"({self.conflicts}/{self.ctx.config.IP_PROVISION_RETRIES}): {err}"
        )
        if self.conflicts >= self.ctx.config.IP_PROVISION_RETRIES:
            raise CapacityExhausted(
                self.network.uuid,
                f"gave up after {self.conflicts} conflicts on network {self.network.uuid}",
            ) from err

    async def claim(self) -> IP:
        """Claim and persist the next free address."""
        while True:
            ip = await self.next_ip()
            try:
                ip.etag = await self.ctx.store.put_obj(
                    self.network.ip_bucket, ip.key(), ip.raw(), etag=ip.etag
                )
            except VersionConflict as err:
                self.record_conflict(err)
                continue
            self.ctx.log.info(f"Provisioned IP {ip.address} on network {self.network.uuid}")
            return ip


class PoolProvisioner:
    """
    Allocates from the member networks of a pool, in pool order.

    A member that is full (or that keeps losing races) is skipped for the
    next one; only when every member is exhausted does allocation fail.
    """

    def __init__(self, ctx, pool, params: dict | None = None, networks=None):
        self.ctx = ctx
        self.pool = pool
        self.params = params or {}
        self._networks = list(networks if networks is not None else pool.member_networks)
        self._current: IPProvisioner | None = None

    @property
    def network(self) -> Network | None:
        return self._current.network if self._current else None

    def _advance(self) -> bool:
        if not self._networks:
            self._current = None
            return False
        self._current = IPProvisioner(self.ctx, self._networks.pop(0), self.params)
        return True

    async def next_ip(self) -> IP:
        if self._current is None and not self._advance():
            raise CapacityExhausted(
                self.pool.uuid, constants.POOL_FULL_FMT.format(self.pool.uuid)
            )
        while True:
            try:
                return await self._current.next_ip()
            except CapacityExhausted:
                self.ctx.log.debug(
                    f"pool {self.pool.uuid}: network {self._current.network.uuid} is full"
                )
                if not self._advance():
                    raise CapacityExhausted(
                        self.pool.uuid, constants.POOL_FULL_FMT.format(self.pool.uuid)
                    ) from None

    def record_conflict(self, err: VersionConflict) -> None:
        try:
            self._current.record_conflict(err)
        except CapacityExhausted:
            self._current = None
            if not self._networks:
                raise


async def next_ip_on_network(ctx, network: Network, params: dict | None = None) -> IP:
    """Claim and persist the lowest free address of a network."""
    return await IPProvisioner(ctx, network, params).claim()
