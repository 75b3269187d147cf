"""Address management commands."""

from typing import Annotated

import typer

from netalloc.cli.output import print_json, print_table
from netalloc.cli.state import parse_params, run_op
from netalloc.ipam import ip as ops
from netalloc.ipam.network import get_network
from netalloc.ipam.provision import next_ip_on_network

app = typer.Typer(help="Address management commands")

COLUMNS = ["ip", "reserved", "free", "belongs_to_type", "belongs_to_uuid", "owner_uuid"]

NetworkArg = Annotated[str, typer.Argument(help="Network UUID or 'admin'")]
AddressArg = Annotated[str, typer.Argument(help="IP address")]


@app.command("list")
def list_ips(
    network_uuid: NetworkArg,
    params: Annotated[list[str] | None, typer.Argument(help="KEY=VALUE filters")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """List the stored addresses of a network."""
    query = parse_params(params)

    async def op(ctx):
        network = await get_network(ctx, network_uuid)
        return await ops.list_network_ips(ctx, network, query)

    rows = [ip.serialize() for ip in run_op(op)]
    if json_output:
        print_json(rows)
    else:
        print_table("IPs", COLUMNS, rows)


@app.command("get")
def get_ip(network_uuid: NetworkArg, address: AddressArg):
    """Show an address; addresses without a row show as free."""

    async def op(ctx):
        network = await get_network(ctx, network_uuid)
        return await ops.get_ip(ctx, network, address, return_object=True)

    print_json(run_op(op).serialize())


@app.command("create")
def create_ip(
    network_uuid: NetworkArg,
    address: AddressArg,
    params: Annotated[list[str] | None, typer.Argument(help="KEY=VALUE parameters")] = None,
):
    """Create the row of an address (reserve or assign it)."""
    body = parse_params(params)

    async def op(ctx):
        network = await get_network(ctx, network_uuid)
        return await ops.create_ip(
            ctx, {**body, "ip": address, "network": network, "network_uuid": network.uuid}
        )

    print_json(run_op(op).serialize())


@app.command("update")
def update_ip(
    network_uuid: NetworkArg,
    address: AddressArg,
    params: Annotated[list[str], typer.Argument(help="KEY=VALUE parameters")],
):
    """Update an address (free=true releases it, unassign=true detaches it)."""
    body = parse_params(params)

    async def op(ctx):
        network = await get_network(ctx, network_uuid)
        return await ops.update_ip(ctx, network, address, body)

    print_json(run_op(op).serialize())


@app.command("provision")
def provision_ip(
    network_uuid: NetworkArg,
    params: Annotated[
        list[str] | None,
        typer.Argument(help="KEY=VALUE owning fields (belongs_to_type, ...)"),
    ] = None,
):
    """Claim the lowest free address of a network."""
    body = parse_params(params)

    async def op(ctx):
        network = await get_network(ctx, network_uuid)
        return await next_ip_on_network(ctx, network, body)

    print_json(run_op(op).serialize())


@app.command("reserve")
def reserve_ips(
    network_uuid: NetworkArg,
    addresses: Annotated[list[str], typer.Argument(help="IP addresses to reserve")],
):
    """Reserve several free addresses at once; nothing is written if one is unavailable."""

    async def op(ctx):
        network = await get_network(ctx, network_uuid)
        return await ops.reserve_ips(ctx, network, addresses)

    print_json([ip.serialize() for ip in run_op(op)])
