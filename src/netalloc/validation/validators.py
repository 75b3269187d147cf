"""
Field validators.

Each validator has the pipeline signature ``async (ctx, name, value)`` and
returns the normalized value or raises InvalidParameter. Scalar coercion is
done by pydantic type adapters; addresses go through netalloc.utils.addr.
"""

from typing import Annotated
from uuid import UUID

from pydantic import (
    BeforeValidator,
    Field,
    StrictStr,
    StringConstraints,
    TypeAdapter,
    ValidationError,
)

from netalloc.exceptions import InvalidParameter
from netalloc.utils.addr import MAX_VLAN_ID, MAX_VNET_ID, mac_to_int, to_ip, to_network

MIN_MTU = 576
MAX_MTU = 9000


def _not_bool(value):
    if isinstance(value, bool):
        raise ValueError("booleans are not integers")
    return value


Int = Annotated[int, BeforeValidator(_not_bool)]
NonEmptyStr = Annotated[StrictStr, StringConstraints(min_length=1)]

_UUID = TypeAdapter(UUID)
_UUID_LIST = TypeAdapter(list[UUID])
_STRING = TypeAdapter(NonEmptyStr)
_STRING_LIST = TypeAdapter(list[NonEmptyStr])
_BOOL = TypeAdapter(bool)
_INT = TypeAdapter(Int)
_VLAN = TypeAdapter(Annotated[Int, Field(ge=0, le=MAX_VLAN_ID)])
_VXLAN = TypeAdapter(Annotated[Int, Field(ge=0, le=MAX_VNET_ID)])
_MTU = TypeAdapter(Annotated[Int, Field(ge=MIN_MTU, le=MAX_MTU)])
_POSITIVE = TypeAdapter(Annotated[Int, Field(ge=1)])
_NON_NEGATIVE = TypeAdapter(Annotated[Int, Field(ge=0)])
_NIC_TAG_NAME = TypeAdapter(
    Annotated[StrictStr, StringConstraints(pattern=r"^[a-zA-Z0-9_]{1,31}$")]
)


def _coerce(adapter: TypeAdapter, name: str, value, message: str):
    """Run a type adapter, reporting failures as InvalidParameter on `name`."""
    try:
        return adapter.validate_python(value)
    except ValidationError:
        raise InvalidParameter(name, message) from None


def _bad_items(err: ValidationError, items: list) -> list:
    indexes = dict.fromkeys(e["loc"][0] for e in err.errors() if e["loc"])
    return [items[i] for i in indexes]


def to_list(value) -> list:
    """Comma-separated string or list to list."""
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


# =============================================================================
# Scalars
# =============================================================================


async def uuid(ctx, name: str, value) -> str:
    if not isinstance(value, (str, UUID)):
        raise InvalidParameter(name, "invalid UUID")
    return str(_coerce(_UUID, name, value, "invalid UUID"))


async def string(ctx, name: str, value) -> str:
    return _coerce(_STRING, name, value, "must be a string")


async def boolean(ctx, name: str, value) -> bool:
    return _coerce(_BOOL, name, value, "must be a boolean value")


async def integer(ctx, name: str, value) -> int:
    return _coerce(_INT, name, value, "must be an integer")


async def ip(ctx, name: str, value):
    addr = to_ip(value)
    if addr is None:
        raise InvalidParameter(name, "invalid IP address")
    return addr


async def subnet(ctx, name: str, value):
    net = to_network(value)
    if net is None:
        raise InvalidParameter(name, "Subnet must be in CIDR form")
    return net


async def mac(ctx, name: str, value) -> int:
    number = mac_to_int(value)
    if number is None:
        raise InvalidParameter(name, "invalid MAC address")
    return number


async def vlan(ctx, name: str, value) -> int:
    message = f"VLAN ID must be a number between 0 and {MAX_VLAN_ID}, and not 1"
    number = _coerce(_VLAN, name, value, message)
    # VLAN 1 is reserved on most switches
    if number == 1:
        raise InvalidParameter(name, message)
    return number


async def vxlan(ctx, name: str, value) -> int:
    return _coerce(
        _VXLAN, name, value, f"VxLAN ID must be a number between 0 and {MAX_VNET_ID}"
    )


async def mtu(ctx, name: str, value) -> int:
    return _coerce(_MTU, name, value, f"MTU must be a number between {MIN_MTU} and {MAX_MTU}")


async def limit(ctx, name: str, value) -> int:
    max_limit = ctx.config.MAX_LIMIT
    message = f"invalid limit, must be an integer between 1 and {max_limit}"
    number = _coerce(_POSITIVE, name, value, message)
    if number > max_limit:
        raise InvalidParameter(name, message)
    return number


async def offset(ctx, name: str, value) -> int:
    return _coerce(_NON_NEGATIVE, name, value, "invalid offset, must be a positive integer")


async def nic_tag_name(ctx, name: str, value) -> str:
    return _coerce(
        _NIC_TAG_NAME, name, value, "must only contain numbers, letters and underscores (max 31)"
    )


def enum_of(values):
    """Validator accepting one of a fixed set of values."""
    allowed = [getattr(v, "value", v) for v in values]

    async def validate_enum(ctx, name: str, value) -> str:
        value = getattr(value, "value", value)
        if value not in allowed:
            raise InvalidParameter(name, f"must be one of: {', '.join(map(str, allowed))}")
        return value

    return validate_enum


# =============================================================================
# Lists
# =============================================================================


async def uuid_list(ctx, name: str, value) -> list[str]:
    items = to_list(value)
    try:
        return [str(u) for u in _UUID_LIST.validate_python(items)]
    except ValidationError as e:
        raise InvalidParameter(name, "invalid UUID", invalid=_bad_items(e, items)) from None


async def string_list(ctx, name: str, value) -> list[str]:
    return _coerce(_STRING_LIST, name, to_list(value), "must be an array of strings")


async def ip_list(ctx, name: str, value) -> list:
    items = to_list(value)
    parsed = [to_ip(v) for v in items]
    bad = [v for v, addr in zip(items, parsed) if addr is None]
    if bad:
        raise InvalidParameter(name, "invalid IP address", invalid=bad)
    return parsed
