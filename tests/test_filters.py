"""Tests for LDAP-style filter construction, parsing and matching."""

import pytest

from netalloc.exceptions import InvalidParameter
from netalloc.models.nic import NIC_SCHEMA
from netalloc.store.filters import (
    And,
    Equality,
    Presence,
    Range,
    build_filter,
    parse_filter,
)


class TestBuildFilter:
    def test_conjoins_fields(self):
        filt = build_filter({"owner_uuid": "a,b", "state": "running"})
        assert str(filt) == "(&(|(owner_uuid=a)(owner_uuid=b))(state=running))"

    def test_list_value(self):
        assert str(build_filter({"state": ["running", "stopped"]})) == (
            "(|(state=running)(state=stopped))"
        )

    def test_negation_and_presence(self):
        assert str(build_filter({"state": "!running"})) == "(!(state=running))"
        assert str(build_filter({"ipaddr": "*"})) == "(ipaddr=*)"

    def test_booleans_render_lowercase(self):
        assert str(build_filter({"primary": True})) == "(primary=true)"

    def test_empty_query(self):
        assert build_filter({}) is None
        assert build_filter({"state": None}) is None

    def test_unindexed_field_rejected(self):
        with pytest.raises(InvalidParameter) as exc:
            build_filter({"model": "virtio"}, NIC_SCHEMA)
        assert exc.value.field == "model"

    def test_indexed_field_accepted(self):
        filt = build_filter({"belongs_to_uuid": "x"}, NIC_SCHEMA)
        assert filt == Equality("belongs_to_uuid", "x")

    def test_raw_filter_text(self):
        assert build_filter("(mac=*)") == Presence("mac")
        assert build_filter({"filter": "(mac=*)"}) == Presence("mac")


class TestParseFilter:
    def test_round_trip(self):
        text = "(&(|(a=1)(a=2))(!(b=x))(c=*))"
        assert str(parse_filter(text)) == text

    def test_escaped_values(self):
        filt = Equality("name", "a*(b)")
        assert str(filt) == r"(name=a\2a\28b\29)"
        assert parse_filter(str(filt)).value == "a*(b)"

    def test_range_clauses(self):
        filt = parse_filter("(&(ip>=5)(ip<=10))")
        assert isinstance(filt, And)
        assert all(isinstance(c, Range) for c in filt.children)
        assert str(filt) == "(&(ip>=5)(ip<=10))"

    @pytest.mark.parametrize("text", ["a=b", "(a=b", "(&(a=b)", "(=b)", "(a=b)x"])
    def test_malformed(self, text):
        with pytest.raises(InvalidParameter):
            parse_filter(text)


class TestMatch:
    def test_equality_types(self):
        assert Equality("vlan_id", "0").match({"vlan_id": 0})
        assert Equality("primary", "true").match({"primary": True})
        assert not Equality("primary", "true").match({"primary": False})
        assert not Equality("state", "running").match({})

    def test_array_fields_match_any_element(self):
        assert Equality("owner_uuids", "x").match({"owner_uuids": ["y", "x"]})
        assert not Equality("owner_uuids", "z").match({"owner_uuids": ["y", "x"]})

    def test_addresses_compare_by_value(self):
        assert Equality("ipaddr", "fd00:0::1").match({"ipaddr": "fd00::1"})

    def test_numeric_range(self):
        filt = parse_filter("(&(ip>=5)(ip<=10))")
        assert filt.match({"ip": 5})
        assert filt.match({"ip": 10})
        assert not filt.match({"ip": 11})
        assert not filt.match({})

    def test_address_range_is_not_lexical(self):
        # "10.0.0.10" sorts before "10.0.0.9" as a string
        assert Range("ipaddr", ">=", "10.0.0.9").match({"ipaddr": "10.0.0.10"})
        assert not Range("ipaddr", "<=", "10.0.0.9").match({"ipaddr": "10.0.0.10"})

    def test_range_across_families_never_matches(self):
        assert not Range("ipaddr", ">=", "10.0.0.1").match({"ipaddr": "fd00::1"})

    def test_bad_range_operator(self):
        with pytest.raises(ValueError):
            Range("ip", "<", "5")
