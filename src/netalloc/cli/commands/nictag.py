"""NIC tag management commands."""

from typing import Annotated

import typer

from netalloc.cli.output import print_json, print_success, print_table
from netalloc.cli.state import parse_params, run_op
from netalloc.ipam import nic_tag as ops

app = typer.Typer(help="NIC tag management commands")

COLUMNS = ["name", "mtu", "uuid"]


@app.command("create")
def create_nic_tag(
    name: Annotated[str, typer.Argument(help="Tag name")],
    mtu: Annotated[int | None, typer.Option("--mtu", help="Maximum MTU")] = None,
):
    """Create a NIC tag."""
    params = {"name": name}
    if mtu is not None:
        params["mtu"] = mtu
    tag = run_op(lambda ctx: ops.create_nic_tag(ctx, params))
    print_json(tag.serialize())


@app.command("list")
def list_nic_tags(
    params: Annotated[list[str] | None, typer.Argument(help="KEY=VALUE filters")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """List NIC tags."""
    query = parse_params(params)
    tags = run_op(lambda ctx: ops.list_nic_tags(ctx, query))
    rows = [t.serialize() for t in tags]
    if json_output:
        print_json(rows)
    else:
        print_table("NIC Tags", COLUMNS, rows)


@app.command("get")
def get_nic_tag(name: Annotated[str, typer.Argument(help="Tag name")]):
    """Show a NIC tag."""
    tag = run_op(lambda ctx: ops.get_nic_tag(ctx, name))
    print_json(tag.serialize())


@app.command("update")
def update_nic_tag(
    name: Annotated[str, typer.Argument(help="Tag name")],
    mtu: Annotated[int, typer.Option("--mtu", help="New maximum MTU")],
):
    """Change the MTU of a NIC tag."""
    tag = run_op(lambda ctx: ops.update_nic_tag(ctx, name, {"mtu": mtu}))
    print_json(tag.serialize())


@app.command("delete")
def delete_nic_tag(name: Annotated[str, typer.Argument(help="Tag name")]):
    """Delete a NIC tag that no network uses."""
    run_op(lambda ctx: ops.delete_nic_tag(ctx, name))
    print_success(f"Deleted NIC tag {name}")
