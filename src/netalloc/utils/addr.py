"""
Address helpers: IP parsing, store keys for addresses, MAC conversion.
"""

import ipaddress
import re
import secrets

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

MAX_VLAN_ID = 4094
MAX_VNET_ID = 2**24 - 1

_MAC_RE = re.compile(r"^[0-9a-fA-F]{1,2}([:-][0-9a-fA-F]{1,2}){5}$")
_MAC_BARE_RE = re.compile(r"^[0-9a-fA-F]{12}$")


# =============================================================================
# IP Addresses
# =============================================================================


def to_ip(value) -> IPAddress | None:
    """
    Parse an address from a string, an integer or an address object.

    Integers up to 2**32 - 1 are IPv4. Returns None when unparseable.
    """
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return ipaddress.ip_address(value)
        except ValueError:
            return None
    if isinstance(value, str):
        value = value.strip()
        if value.isdigit():
            return to_ip(int(value))
        try:
            return ipaddress.ip_address(value)
        except ValueError:
            return None
    return None


def to_network(value) -> IPNetwork | None:
    """Parse a CIDR subnet ("10.0.0.0/24"); host bits must be zero."""
    if isinstance(value, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return value
    if not isinstance(value, str) or "/" not in value:
        return None
    try:
        return ipaddress.ip_network(value.strip(), strict=True)
    except ValueError:
        return None


def ip_key(use_strings: bool, addr: IPAddress) -> str:
    """Store key of an address in its network's IP bucket."""
    if use_strings:
        return str(addr)
    return str(int(addr))


def usable_range(subnet: IPNetwork) -> tuple[IPAddress, IPAddress]:
    """First and last host address of a subnet."""
    if subnet.num_addresses <= 2:
        return subnet[0], subnet[-1]
    if subnet.version == 4:
        return subnet[1], subnet[-2]
    return subnet[1], subnet[-1]


# =============================================================================
# MAC Addresses
# =============================================================================


def mac_to_int(value) -> int | None:
    """Parse "aa:bb:cc:dd:ee:ff", "aa-bb-..", "aabbccddeeff" or an int."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value < 2**48 else None
    if not isinstance(value, str):
        return None
    value = value.strip()
    if _MAC_BARE_RE.match(value):
        return int(value, 16)
    if value.isdigit():
        return mac_to_int(int(value))
    if not _MAC_RE.match(value):
        return None
    return int("".join(part.zfill(2) for part in re.split("[:-]", value)), 16)


def int_to_mac(value: int) -> str:
    raw = f"{value:012x}"
    return ":".join(raw[i : i + 2] for i in range(0, 12, 2))


def random_mac(oui: str) -> int:
    """Random MAC under a 24-bit OUI given as 6 hex digits."""
    return (int(oui, 16) << 24) | secrets.randbits(24)
