"""
Two-phase parameter validation.

Phase one runs every field validator of a schema concurrently and collects
all of their errors, so one request reports every bad field at once. Phase
two runs the schema's "after" checks one at a time, only when phase one
passed; they see the whole validated bag and may derive or reject.

A field validator is an async callable ``(ctx, name, value)`` that returns
the validated value, or a Derived result when it also yields extra fields
(validating "nic_tag" can also produce "vnet_id"). It reports problems by
raising ParameterError (or an AggregatedValidationError). Any other
exception is not a validation failure and propagates unchanged.

An after check is an async callable ``(ctx, params, validated)``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any

from netalloc import constants
from netalloc.exceptions import (
    AggregatedValidationError,
    InvalidParameter,
    MissingParameter,
    ParameterError,
)

Validator = Callable[[Any, str, Any], Awaitable[Any]]
AfterCheck = Callable[[Any, dict, dict], Awaitable[None]]


class _Omit:
    def __repr__(self) -> str:
        return "OMIT"


# Derived.value marker: do not set the validated field itself
OMIT = _Omit()


@dataclass(frozen=True)
class Derived:
    """Validator result carrying extra fields to merge into the output."""

    value: Any
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationSchema:
    """
    Declarative validation rules.

    Attributes:
        required: Field name -> validator; missing fields are errors.
        optional: Field name -> validator; missing fields are skipped.
        after: Cross-field checks run in order after all fields pass.
        strict: Reject fields that are neither required nor optional.
    """

    required: dict[str, Validator] = field(default_factory=dict)
    optional: dict[str, Validator] = field(default_factory=dict)
    after: tuple[AfterCheck, ...] = ()
    strict: bool = False

    def require(self, *names: str) -> ValidationSchema:
        """Copy of this schema with some optional fields made required."""
        required = dict(self.required)
        optional = dict(self.optional)
        for name in names:
            if name in optional:
                required[name] = optional.pop(name)
        return replace(self, required=required, optional=optional)


def _present(params: dict, name: str) -> bool:
    return name in params and params[name] is not None


async def validate_params(ctx, schema: ValidationSchema, params: dict) -> dict:
    """
    Validate and derive a parameter bag.

    Args:
        ctx: RequestContext passed through to every validator.
        schema: Rules to apply.
        params: Raw parameters.

    Returns:
        The validated bag, including fields derived by validators.

    Raises:
        AggregatedValidationError: If any field or after check fails.
    """
    errors: list[ParameterError] = []
    names: list[str] = []
    pending = []

    for name, validator in schema.required.items():
        if not _present(params, name):
            errors.append(MissingParameter(name))
            continue
        names.append(name)
        pending.append(validator(ctx, name, params[name]))

    for name, validator in schema.optional.items():
        if _present(params, name):
            names.append(name)
            pending.append(validator(ctx, name, params[name]))

    if schema.strict:
        known = set(schema.required) | set(schema.optional)
        for name in sorted(set(params) - known):
            errors.append(InvalidParameter(name, constants.MSG_UNKNOWN_PARAM))

    results = await asyncio.gather(*pending, return_exceptions=True)

    validated: dict = {}
    for name, result in zip(names, results):
        if isinstance(result, (ParameterError, AggregatedValidationError)):
            errors.append(result)
        elif isinstance(result, BaseException):
            raise result
        elif isinstance(result, Derived):
            if result.value is not OMIT:
                validated[name] = result.value
            validated.update(result.extra)
        else:
            validated[name] = result

    if errors:
        ctx.log.debug(f"validation failed: {[str(e) for e in errors]}")
        raise AggregatedValidationError(sorted(errors, key=_error_field))

    for check in schema.after:
        try:
            await check(ctx, params, validated)
        except (ParameterError, AggregatedValidationError) as e:
            raise AggregatedValidationError([e]) from e

    return validated


def _error_field(err) -> str:
    return getattr(err, "field", "")
