"""
Bucket setup: creates (or updates the schema of) every fixed bucket.

Per-network IP buckets are created with their network instead.
"""

from netalloc.event_sink import all_schemas
from netalloc.models.network import NETWORK_SCHEMA
from netalloc.models.network_pool import NETWORK_POOL_SCHEMA
from netalloc.models.nic import NIC_SCHEMA
from netalloc.models.nic_tag import NIC_TAG_SCHEMA


def fixed_schemas(event_sink_prefix: str) -> list:
    return [
        NIC_TAG_SCHEMA,
        NETWORK_SCHEMA,
        NETWORK_POOL_SCHEMA,
        NIC_SCHEMA,
        *all_schemas(event_sink_prefix),
    ]


async def init_buckets(ctx) -> None:
    for schema in fixed_schemas(ctx.config.EVENT_SINK_PREFIX):
        await ctx.store.init_bucket(schema)
    ctx.log.debug("buckets initialized")
