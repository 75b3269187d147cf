"""NIC management commands."""

from typing import Annotated

import typer

from netalloc.cli.output import print_json, print_success, print_table
from netalloc.cli.state import parse_params, run_op
from netalloc.ipam import nic as ops

app = typer.Typer(help="NIC management commands")

COLUMNS = ["mac", "ip", "network_uuid", "belongs_to_uuid", "state", "primary"]

MacArg = Annotated[str, typer.Argument(help="MAC address")]


@app.command("create")
def create_nic(
    params: Annotated[
        list[str],
        typer.Argument(
            help="KEY=VALUE parameters (belongs_to_type, belongs_to_uuid, owner_uuid, ...)"
        ),
    ],
):
    """
    Create a NIC, claiming an address when network_uuid is given.

    Example: netalloc nic create belongs_to_type=zone belongs_to_uuid=... owner_uuid=... network_uuid=...
    """
    body = parse_params(params)
    nic = run_op(lambda ctx: ops.create_nic(ctx, body))
    print_json(nic.serialize())


@app.command("list")
def list_nics(
    params: Annotated[list[str] | None, typer.Argument(help="KEY=VALUE filters")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """List NICs."""
    query = parse_params(params)
    nics = run_op(lambda ctx: ops.list_nics(ctx, query))
    rows = [n.serialize() for n in nics]
    if json_output:
        print_json(rows)
    else:
        print_table("NICs", COLUMNS, rows)


@app.command("get")
def get_nic(mac: MacArg):
    """Show a NIC."""
    nic = run_op(lambda ctx: ops.get_nic(ctx, mac))
    print_json(nic.serialize())


@app.command("update")
def update_nic(
    mac: MacArg,
    params: Annotated[list[str], typer.Argument(help="KEY=VALUE parameters")],
):
    """Update a NIC; changing network_uuid or ip moves its address."""
    body = parse_params(params)
    nic = run_op(lambda ctx: ops.update_nic(ctx, mac, body))
    print_json(nic.serialize())


@app.command("delete")
def delete_nic(mac: MacArg):
    """Delete a NIC and release its address."""
    run_op(lambda ctx: ops.delete_nic(ctx, mac))
    print_success(f"Deleted NIC {mac}")
