"""Tests for batch ordering and atomic commit."""

import functools

import pytest

from netalloc.batch import commit_batch, compare_requests, order_batch
from netalloc.exceptions import VersionConflict
from netalloc.models.enums import BatchOperation
from netalloc.models.nic_tag import NIC_TAG_SCHEMA, NicTag
from netalloc.store.base import BatchEntry, compute_etag


def entry(bucket, key, **kwargs):
    return BatchEntry(bucket=bucket, key=key, value={"k": key}, **kwargs)


class TestOrdering:
    def test_compare_requests(self):
        a = entry("netalloc_nics", "1")
        b = entry("netalloc_networks", "1")
        c = entry("netalloc_nics", "2")
        assert compare_requests(a, b) == -1
        assert compare_requests(b, a) == 1
        assert compare_requests(a, c) == -1
        assert compare_requests(a, entry("netalloc_nics", "1")) == 0

    def test_bucket_descending_key_ascending(self):
        entries = [
            entry("netalloc_ips_x", "10.0.0.5"),
            entry("netalloc_networks", "n1"),
            entry("netalloc_nics", "200"),
            entry("netalloc_nics", "100"),
        ]
        ordered = order_batch(entries, "portolan")
        assert [(e.bucket, e.key) for e in ordered] == [
            ("netalloc_nics", "100"),
            ("netalloc_nics", "200"),
            ("netalloc_networks", "n1"),
            ("netalloc_ips_x", "10.0.0.5"),
        ]

    def test_event_sink_entries_keep_submission_order(self):
        entries = [
            entry("portolan_net_events", "z"),
            entry("netalloc_ips_x", "10.0.0.5"),
            entry("portolan_vnet_mac_ip", "a"),
            entry("netalloc_nics", "1"),
            entry("portolan_net_events", "b"),
        ]
        ordered = order_batch(entries, "portolan")
        assert [e.key for e in ordered] == ["1", "10.0.0.5", "z", "a", "b"]

    def test_order_is_pure(self):
        entries = [entry("a", "1"), entry("b", "1")]
        order_batch(entries, "portolan")
        assert [e.bucket for e in entries] == ["a", "b"]

    def test_any_permutation_gives_same_topology_order(self):
        entries = [entry("b", "2"), entry("a", "1"), entry("b", "1"), entry("c", "9")]
        expected = sorted(entries, key=functools.cmp_to_key(compare_requests))
        for start in range(len(entries)):
            rotated = entries[start:] + entries[:start]
            assert order_batch(rotated, "portolan") == expected


class TestCommit:
    async def test_refreshes_model_etags(self, ctx):
        tag = NicTag(name="external", uuid="0e56fe34-39a3-42d5-86c7-d719487f892b")
        batch = [
            BatchEntry(
                bucket=tag.bucket,
                key=tag.key(),
                operation=BatchOperation.PUT,
                value=tag.raw(),
                etag=None,
            )
        ]
        results = await commit_batch(ctx, batch, models=[tag])
        assert tag.etag == compute_etag(tag.raw())
        assert results[0].etag == tag.etag

    async def test_conflict_applies_nothing(self, ctx):
        await ctx.store.put_obj(NIC_TAG_SCHEMA, "existing", {"name": "existing"})
        batch = [
            BatchEntry(NIC_TAG_SCHEMA.name, "new", value={"name": "new"}, etag=None),
            BatchEntry(NIC_TAG_SCHEMA.name, "existing", value={"name": "x"}, etag="BOGUS"),
        ]
        with pytest.raises(VersionConflict) as exc:
            await commit_batch(ctx, batch)
        assert exc.value.key == "existing"
        assert await ctx.store.get_obj_or_none(NIC_TAG_SCHEMA, "new") is None
        assert (await ctx.store.get_obj(NIC_TAG_SCHEMA, "existing")).value == {
            "name": "existing"
        }
