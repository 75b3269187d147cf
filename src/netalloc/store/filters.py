"""
LDAP-style search filters for store queries.

Filters are small trees that render to LDAP filter text (the query syntax of
the store) and can also be evaluated directly against a stored value, which
is what the bundled drivers do.

build_filter() turns a structured query (field -> value) into a filter,
restricted to the indexed fields of a bucket:

    str(build_filter({"owner_uuid": "a,b", "state": "running"}))
    # "(&(|(owner_uuid=a)(owner_uuid=b))(state=running))"

Value conventions in structured queries:
    - "a,b,c" or ["a", "b"]: any of the values, rendered as (|(f=a)(f=b))
    - "!a": negation, rendered as (!(f=a))
    - "*": presence, rendered as (f=*)

Range clauses ("(f>=v)", "(f<=v)") are only built directly or parsed from
filter text; they compare numbers and addresses by value.
"""

from __future__ import annotations

import ipaddress
import re

from netalloc.exceptions import InvalidParameter

_ESCAPES = {"\\": r"\5c", "*": r"\2a", "(": r"\28", ")": r"\29"}
_UNESCAPE_RE = re.compile(r"\\([0-9a-fA-F]{2})")
_LIST_SPLIT_RE = re.compile(r"\s*,\s*")


def escape_value(value: str) -> str:
    return "".join(_ESCAPES.get(c, c) for c in value)


def unescape_value(value: str) -> str:
    return _UNESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), value)


# =============================================================================
# Filter Nodes
# =============================================================================


class Filter:
    """Base class for filter nodes."""

    def match(self, value: dict) -> bool:
        raise NotImplementedError

    def __eq__(self, other) -> bool:
        return isinstance(other, Filter) and str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r})"


class Equality(Filter):
    """(attribute=value)"""

    def __init__(self, attribute: str, value: str):
        self.attribute = attribute
        self.value = value

    def __str__(self) -> str:
        return f"({self.attribute}={escape_value(self.value)})"

    def match(self, value: dict) -> bool:
        stored = value.get(self.attribute)
        if stored is None:
            return False
        # Array fields match when any element matches
        if isinstance(stored, (list, tuple, set)):
            return any(_values_equal(item, self.value) for item in stored)
        return _values_equal(stored, self.value)


class Presence(Filter):
    """(attribute=*)"""

    def __init__(self, attribute: str):
        self.attribute = attribute

    def __str__(self) -> str:
        return f"({self.attribute}=*)"

    def match(self, value: dict) -> bool:
        return value.get(self.attribute) is not None


class Range(Filter):
    """(attribute>=value) or (attribute<=value)"""

    def __init__(self, attribute: str, op: str, value: str):
        if op not in (">=", "<="):
            raise ValueError(f"unsupported range operator {op!r}")
        self.attribute = attribute
        self.op = op
        self.value = value

    def __str__(self) -> str:
        return f"({self.attribute}{self.op}{escape_value(self.value)})"

    def match(self, value: dict) -> bool:
        stored = value.get(self.attribute)
        if stored is None:
            return False
        cmp = _compare(stored, self.value)
        if cmp is None:
            return False
        return cmp >= 0 if self.op == ">=" else cmp <= 0


class Not(Filter):
    def __init__(self, child: Filter):
        self.child = child

    def __str__(self) -> str:
        return f"(!{self.child})"

    def match(self, value: dict) -> bool:
        return not self.child.match(value)


class And(Filter):
    def __init__(self, children: list[Filter]):
        self.children = list(children)

    def __str__(self) -> str:
        return "(&" + "".join(str(c) for c in self.children) + ")"

    def match(self, value: dict) -> bool:
        return all(c.match(value) for c in self.children)


class Or(Filter):
    def __init__(self, children: list[Filter]):
        self.children = list(children)

    def __str__(self) -> str:
        return "(|" + "".join(str(c) for c in self.children) + ")"

    def match(self, value: dict) -> bool:
        return any(c.match(value) for c in self.children)


def _values_equal(stored, wanted: str) -> bool:
    """Compare a stored value with the string form used in a filter."""
    if isinstance(stored, bool):
        return wanted.lower() == ("true" if stored else "false")
    if isinstance(stored, int):
        try:
            return stored == int(wanted)
        except ValueError:
            return False
    if stored == wanted:
        return True
    # Addresses compare by value, so "fd00::1" matches "fd00:0::1"
    try:
        return ipaddress.ip_address(stored) == ipaddress.ip_address(wanted)
    except ValueError:
        return False


def _compare(stored, wanted: str) -> int | None:
    """Order a stored value against a filter value; None if incomparable."""
    if isinstance(stored, bool):
        return None
    if isinstance(stored, int):
        try:
            other = int(wanted)
        except ValueError:
            return None
        return (stored > other) - (stored < other)
    try:
        a, b = ipaddress.ip_address(stored), ipaddress.ip_address(wanted)
        if a.version == b.version:
            return (a > b) - (a < b)
        return None
    except ValueError:
        pass
    stored = str(stored)
    return (stored > wanted) - (stored < wanted)


# =============================================================================
# Construction
# =============================================================================


def _field_clause(attribute: str, value: str) -> Filter:
    if value == "*":
        return Presence(attribute)
    if value.startswith("!"):
        return Not(Equality(attribute, value[1:]))
    return Equality(attribute, value)


def _to_filter_str(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_filter(query, schema=None) -> Filter | None:
    """
    Build a filter from a structured query.

    Args:
        query: Mapping of field -> value, a raw filter string, or a mapping
            holding a raw string under "filter".
        schema: Optional BucketSchema; only its indexed fields may be used.

    Returns:
        The filter, or None when the query is empty.

    Raises:
        InvalidParameter: If a field is not indexed in the bucket.
    """
    if not query:
        return None
    if isinstance(query, Filter):
        return query
    if isinstance(query, str):
        return parse_filter(query)
    if isinstance(query.get("filter"), str):
        return parse_filter(query["filter"])

    clauses = []
    for attribute, value in query.items():
        if value is None:
            continue
        if schema is not None and attribute not in schema.index:
            raise InvalidParameter(
                attribute, f"cannot search {schema.desc}s by unindexed field"
            )

        if isinstance(value, str) and "," in value:
            value = _LIST_SPLIT_RE.split(value.strip())

        if isinstance(value, (list, tuple, set)):
            clauses.append(
                Or([_field_clause(attribute, _to_filter_str(v)) for v in value])
            )
        else:
            clauses.append(_field_clause(attribute, _to_filter_str(value)))

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return And(clauses)


# =============================================================================
# Parsing
# =============================================================================


def parse_filter(text: str) -> Filter:
    """
    Parse LDAP filter text into a filter tree.

    Raises:
        InvalidParameter: If the text is not a well-formed filter.
    """
    text = text.strip()
    node, pos = _parse(text, 0)
    if pos != len(text):
        raise InvalidParameter("filter", f"trailing characters at offset {pos}")
    return node


def _parse(text: str, pos: int) -> tuple[Filter, int]:
    if pos >= len(text) or text[pos] != "(":
        raise InvalidParameter("filter", f"expected '(' at offset {pos}")
    pos += 1
    if pos >= len(text):
        raise InvalidParameter("filter", "unexpected end of filter")

    op = text[pos]
    if op in "&|":
        children = []
        pos += 1
        while pos < len(text) and text[pos] == "(":
            child, pos = _parse(text, pos)
            children.append(child)
        pos = _expect_close(text, pos)
        return (And(children) if op == "&" else Or(children)), pos

    if op == "!":
        child, pos = _parse(text, pos + 1)
        pos = _expect_close(text, pos)
        return Not(child), pos

    end = text.find(")", pos)
    if end == -1:
        raise InvalidParameter("filter", "unterminated clause")
    attribute, sep, raw_value = text[pos:end].partition("=")
    if not sep or not attribute:
        raise InvalidParameter("filter", f"bad clause {text[pos:end]!r}")
    if attribute[-1] in "<>":
        if len(attribute) == 1:
            raise InvalidParameter("filter", f"bad clause {text[pos:end]!r}")
        op = attribute[-1] + "="
        return Range(attribute[:-1], op, unescape_value(raw_value)), end + 1
    if raw_value == "*":
        return Presence(attribute), end + 1
    return Equality(attribute, unescape_value(raw_value)), end + 1


def _expect_close(text: str, pos: int) -> int:
    if pos >= len(text) or text[pos] != ")":
        raise InvalidParameter("filter", f"expected ')' at offset {pos}")
    return pos + 1
