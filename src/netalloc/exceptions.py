"""
Exception classes for netalloc.

Field-level problems are ParameterError subclasses; the validation pipeline
collects them into one AggregatedValidationError so a caller sees every
invalid field at once. Store-level failures (VersionConflict, StoreError)
propagate unchanged to the operation caller.
"""

from netalloc import constants


class NetallocError(Exception):
    """Base exception for netalloc operations."""

    code = "InternalError"
    retryable = False

    def to_dict(self) -> dict:
        """Render the error for a response body."""
        return {"code": self.code, "message": str(self)}


# =============================================================================
# Parameter Errors
# =============================================================================


class ParameterError(NetallocError):
    """A problem with one request field."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict:
        return {"field": self.field, "code": self.code, "message": self.message}


class MissingParameter(ParameterError):
    """A required field was not supplied."""

    code = "MissingParameter"

    def __init__(self, field: str, message: str = constants.MSG_MISSING):
        super().__init__(field, message)


class InvalidParameter(ParameterError):
    """A field value is invalid; `invalid` lists the offending values."""

    code = "InvalidParameter"

    def __init__(self, field: str, message: str, invalid: list | None = None):
        self.invalid = invalid
        super().__init__(field, message)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.invalid is not None:
            result["invalid"] = list(self.invalid)
        return result


class AmbiguousNetwork(InvalidParameter):
    """More than one network matches a tag + VLAN + address lookup."""

    code = "AmbiguousNetwork"

    def __init__(self, field: str, message: str, matches: list[str]):
        self.matches = sorted(matches)
        super().__init__(field, message, invalid=self.matches)


class AggregatedValidationError(NetallocError):
    """One or more field errors from a single validation run."""

    code = "InvalidParameters"

    def __init__(self, errors: list[ParameterError], message: str = "Invalid parameters"):
        self.errors = list(_flatten(errors))
        super().__init__(f"{message}: " + "; ".join(str(e) for e in self.errors))
        self.message = message

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "errors": [e.to_dict() for e in self.errors],
        }

    def fields(self) -> list[str]:
        return [e.field for e in self.errors]


def _flatten(errors):
    for err in errors:
        if isinstance(err, AggregatedValidationError):
            yield from err.errors
        else:
            yield err


# =============================================================================
# Resource Errors
# =============================================================================


class ResourceNotFound(NetallocError):
    """A network, pool, IP, NIC or NIC tag does not exist."""

    code = "ResourceNotFound"

    def __init__(self, resource: str, key: str | None = None):
        self.resource = resource
        self.key = key
        super().__init__(f"{resource} not found")


class InUse(NetallocError):
    """A resource cannot be removed while others reference it."""

    code = "InUse"

    def __init__(self, message: str, usedby: list | None = None):
        self.usedby = usedby or []
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": str(self), "usedby": self.usedby}


class CapacityExhausted(NetallocError):
    """No free address could be claimed on a network."""

    code = "SubnetFull"

    def __init__(self, network_uuid: str, message: str | None = None):
        self.network_uuid = network_uuid
        super().__init__(message or f"no more free IPs on network {network_uuid}")


class MacExhausted(NetallocError):
    """Every generated MAC address collided with an existing NIC."""

    code = "MacExhausted"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"{constants.MAC_EXHAUSTED_MSG} after {attempts} attempts")


# =============================================================================
# Store Errors
# =============================================================================


class VersionConflict(NetallocError):
    """Optimistic-concurrency failure: the row changed since it was read."""

    code = "VersionConflict"
    retryable = True

    def __init__(self, bucket: str, key: str, expected=None, actual=None):
        self.bucket = bucket
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"etag conflict on {bucket}/{key}: expected {expected!r}, found {actual!r}"
        )


class StoreError(NetallocError):
    """Transport or backend failure talking to the store."""

    code = "StoreError"
    retryable = True
