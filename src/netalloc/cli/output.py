"""Console output helpers for the CLI."""

import json

from rich.console import Console
from rich.table import Table

from netalloc.exceptions import NetallocError

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]{message}[/green]")


def print_engine_error(error: NetallocError) -> None:
    """Print an engine error along with its per-field details."""
    body = error.to_dict()
    print_error(f"{body['message']} ({body['code']})")
    for item in body.get("errors", []):
        line = f"  [cyan]{item.get('field')}[/cyan]: {item.get('message')}"
        if item.get("invalid"):
            line += f" [dim]{', '.join(str(i) for i in item['invalid'])}[/dim]"
        err_console.print(line)


def print_json(data) -> None:
    console.print_json(json.dumps(data, default=str))


def print_table(title: str, columns: list[str], rows: list[dict]) -> None:
    """Render serialized records as a table, one column per field."""
    if not rows:
        console.print(f"[yellow]No {title.lower()} found.[/yellow]")
        return

    table = Table(title=title, show_header=True)
    for column in columns:
        table.add_column(column, style="cyan" if column == columns[0] else None)
    for row in rows:
        table.add_row(*(_cell(row.get(c)) for c in columns))
    console.print(table)


def _cell(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)
