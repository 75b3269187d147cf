"""Network pool management commands."""

from typing import Annotated

import typer

from netalloc.cli.output import print_json, print_success, print_table
from netalloc.cli.state import parse_params, run_op
from netalloc.ipam import network_pool as ops

app = typer.Typer(help="Network pool management commands")

COLUMNS = ["uuid", "name", "nic_tag", "family", "networks", "owner_uuid"]


@app.command("create")
def create_pool(
    name: Annotated[str, typer.Argument(help="Pool name")],
    networks: Annotated[str, typer.Argument(help="Comma-separated network UUIDs")],
    params: Annotated[
        list[str] | None, typer.Argument(help="Extra KEY=VALUE parameters")
    ] = None,
):
    """Create a network pool."""
    body = {**parse_params(params), "name": name, "networks": networks}
    pool = run_op(lambda ctx: ops.create_network_pool(ctx, body))
    print_json(pool.serialize())


@app.command("list")
def list_pools(
    params: Annotated[list[str] | None, typer.Argument(help="KEY=VALUE filters")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """List network pools."""
    query = parse_params(params)
    pools = run_op(lambda ctx: ops.list_network_pools(ctx, query))
    rows = [p.serialize() for p in pools]
    if json_output:
        print_json(rows)
    else:
        print_table("Network Pools", COLUMNS, rows)


@app.command("get")
def get_pool(uuid: Annotated[str, typer.Argument(help="Pool UUID")]):
    """Show a network pool."""
    pool = run_op(lambda ctx: ops.get_network_pool(ctx, uuid))
    print_json(pool.serialize())


@app.command("update")
def update_pool(
    uuid: Annotated[str, typer.Argument(help="Pool UUID")],
    params: Annotated[list[str], typer.Argument(help="KEY=VALUE parameters")],
):
    """Update a network pool (name, networks, owner_uuid, description)."""
    body = parse_params(params)
    pool = run_op(lambda ctx: ops.update_network_pool(ctx, uuid, body))
    print_json(pool.serialize())


@app.command("delete")
def delete_pool(uuid: Annotated[str, typer.Argument(help="Pool UUID")]):
    """Delete a network pool."""
    run_op(lambda ctx: ops.delete_network_pool(ctx, uuid))
    print_success(f"Deleted network pool {uuid}")
