"""
Store lifecycle for CLI commands.

Each command opens the configured store, makes sure the fixed buckets exist,
runs one engine operation and closes the store again.
"""

import asyncio

import typer

from netalloc.config import config
from netalloc.context import RequestContext
from netalloc.exceptions import NetallocError
from netalloc.ipam.buckets import init_buckets
from netalloc.models.enums import LogLevel, StoreBackend
from netalloc.store import MemoryStore, SQLiteStore
from netalloc.utils.logger import format_traceback, get_logger

from netalloc.cli.output import print_engine_error

logger = get_logger(__name__)


async def open_store():
    if config.STORE_BACKEND == StoreBackend.MEMORY:
        return MemoryStore()
    return await SQLiteStore(config.DB_FILE).open()


async def _run(op):
    store = await open_store()
    try:
        ctx = RequestContext.create_for(store, config)
        await init_buckets(ctx)
        return await op(ctx)
    finally:
        await store.close()


def run_op(op):
    """
    Run op(ctx) against the configured store.

    Engine errors are printed and turned into exit code 1.
    """
    try:
        return asyncio.run(_run(op))
    except NetallocError as e:
        if config.LOG_LEVEL == LogLevel.FULL:
            logger.trace(format_traceback(e))
        print_engine_error(e)
        raise typer.Exit(1)


def parse_params(items: list[str] | None) -> dict:
    """
    Turn KEY=VALUE arguments into a parameter bag.

    Values stay strings; the validators parse them.
    """
    params = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {item!r}")
        params[key] = value
    return params
