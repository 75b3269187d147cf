"""
Batch/transaction coordinator.

The store takes row locks in the order a batch lists its entries. To keep
two concurrent batches touching overlapping rows from deadlocking, every
batch is put into one global order before commit:

    - topology entries (networks, pools, IPs, NICs) sorted by bucket name
      descending, then key ascending
    - event-sink entries appended afterwards in their original order, since
      they form a causally ordered event log

Descending bucket order puts the NIC row first when deleting a NIC
(netalloc_nics > netalloc_networks > netalloc_ips_*), so racing deletes fail
on the missing NIC rather than on an etag conflict further down.
"""

from __future__ import annotations

import functools

from netalloc.exceptions import NetallocError
from netalloc.store.base import BatchEntry, BatchResult


def compare_requests(a: BatchEntry, b: BatchEntry) -> int:
    """Bucket descending, then key ascending."""
    if a.bucket < b.bucket:
        return 1
    if a.bucket > b.bucket:
        return -1
    if a.key < b.key:
        return -1
    if a.key > b.key:
        return 1
    return 0


def is_event_sink_entry(entry: BatchEntry, prefix: str) -> bool:
    return entry.bucket.startswith(prefix)


def order_batch(entries: list[BatchEntry], event_sink_prefix: str) -> list[BatchEntry]:
    """Return the commit order of a batch (pure; does not mutate entries)."""
    topology = [e for e in entries if not is_event_sink_entry(e, event_sink_prefix)]
    events = [e for e in entries if is_event_sink_entry(e, event_sink_prefix)]
    topology.sort(key=functools.cmp_to_key(compare_requests))
    return topology + events


def refresh_etags(results: list[BatchResult], models) -> None:
    """Copy new etags onto the models (anything with bucket and key()) of a batch."""
    etags = {(r.bucket, r.key): r.etag for r in results}
    for model in models:
        ref = (model.bucket, model.key())
        if ref in etags:
            model.etag = etags[ref]


async def commit_batch(ctx, entries: list[BatchEntry], models=()) -> list[BatchResult]:
    """
    Order and atomically commit a batch.

    Args:
        ctx: RequestContext.
        entries: Mutations to apply.
        models: Model objects written by the batch; their etags are refreshed
            from the commit response.

    Returns:
        The store's per-entry results, in commit order.

    Raises:
        VersionConflict: If any entry's etag check failed; nothing is applied.
    """
    ordered = order_batch(entries, ctx.config.EVENT_SINK_PREFIX)
    ctx.log.info(f"commit_batch: {[e.describe() for e in ordered]}")

    try:
        results = await ctx.store.batch(ordered)
    except NetallocError as e:
        ctx.log.error(f"commit_batch error: {e}")
        raise

    refresh_etags(results, models)
    return results
