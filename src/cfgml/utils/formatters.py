"""Rich output formatters for CLI display."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def print_table(
    rows: Sequence[Mapping[str, Any]],
    title: str | None = None,
    columns: Sequence[str] | None = None,
) -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No results.[/dim]")
        return

    cols = columns or list(rows[0].keys())
    table = Table(title=title, show_lines=True)
    for col in cols:
        table.add_column(col, overflow="fold")

    for row in rows:
        table.add_row(*(str(row.get(c, "")) for c in cols))

    console.print(table)


def print_summary(title: str, processed: int, skipped: int, failed: int) -> None:
    """Batch outcome counts, one row."""
    print_table(
        [{"Processed": processed, "Skipped": skipped, "Failed": failed}],
        title=title,
    )


def print_success(msg: str) -> None:
    console.print(f"[bold green]{msg}[/bold green]")


def print_error(msg: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {msg}")


def print_warning(msg: str) -> None:
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {msg}")
