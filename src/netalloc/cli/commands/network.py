"""Network management commands."""

from typing import Annotated

import typer

from netalloc.cli.output import print_json, print_success, print_table
from netalloc.cli.state import parse_params, run_op
from netalloc.ipam import network as ops

app = typer.Typer(help="Network management commands")

COLUMNS = ["uuid", "name", "subnet", "vlan_id", "nic_tag", "gateway", "mtu", "fabric"]


@app.command("create")
def create_network(
    params: Annotated[
        list[str],
        typer.Argument(help="KEY=VALUE parameters (name, subnet, vlan_id, nic_tag, ...)"),
    ],
):
    """
    Create a network.

    Example: netalloc network create name=web subnet=10.0.0.0/24 vlan_id=0 nic_tag=external
    """
    body = parse_params(params)
    network = run_op(lambda ctx: ops.create_network(ctx, body))
    print_json(network.serialize())


@app.command("list")
def list_networks(
    params: Annotated[list[str] | None, typer.Argument(help="KEY=VALUE filters")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """List networks."""
    query = parse_params(params)
    networks = run_op(lambda ctx: ops.list_networks(ctx, query))
    rows = [n.serialize() for n in networks]
    if json_output:
        print_json(rows)
    else:
        print_table("Networks", COLUMNS, rows)


@app.command("get")
def get_network(uuid: Annotated[str, typer.Argument(help="Network UUID or 'admin'")]):
    """Show a network."""
    network = run_op(lambda ctx: ops.get_network(ctx, uuid))
    print_json(network.serialize())


@app.command("delete")
def delete_network(uuid: Annotated[str, typer.Argument(help="Network UUID")]):
    """Delete a network with no NICs, pools or assigned addresses."""
    run_op(lambda ctx: ops.delete_network(ctx, uuid))
    print_success(f"Deleted network {uuid}")
