"""
netalloc CLI entry point.

Usage:
    netalloc [OPTIONS] COMMAND [ARGS]...

Commands:
    nictag   NIC tag management
    network  Network management
    pool     Network pool management
    ip       Address management
    nic      NIC management
"""

from typing import Annotated

import typer

from netalloc.cli.commands import ip, network, nic, nictag, pool
from netalloc.cli.output import console
from netalloc.config import config
from netalloc.models.enums import LogLevel, StoreBackend
from netalloc.utils.logger import configure_logging

app = typer.Typer(
    name="netalloc",
    help="IP/MAC address and network topology allocation",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(nictag.app, name="nictag", help="NIC tag management")
app.add_typer(network.app, name="network", help="Network management")
app.add_typer(pool.app, name="pool", help="Network pool management")
app.add_typer(ip.app, name="ip", help="Address management")
app.add_typer(nic.app, name="nic", help="NIC management")


@app.callback()
def main(
    db: Annotated[
        str | None,
        typer.Option("--db", help="SQLite database file", envvar="NETALLOC_DB"),
    ] = None,
    memory: Annotated[
        bool,
        typer.Option("--memory", help="Use a throwaway in-memory store"),
    ] = False,
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", "-l", help="Log level", envvar="NETALLOC_LOG_LEVEL"),
    ] = LogLevel.WARNING,
):
    """
    netalloc allocation engine CLI.

    Manage NIC tags, networks, network pools, addresses and NICs.
    """
    if db:
        config.DB_FILE = db
    if memory:
        config.STORE_BACKEND = StoreBackend.MEMORY
    config.LOG_LEVEL = log_level
    configure_logging(log_level, config.LOG_FILE)


@app.command("version")
def version():
    """Show version information."""
    from netalloc import __version__

    console.print(f"netalloc v{__version__}")


def run():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
