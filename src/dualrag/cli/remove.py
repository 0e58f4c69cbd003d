"""dualrag remove / clear: drop records from the live index.

Usage:
  dualrag remove docs/old-notes.md
  dualrag clear --yes
"""

from __future__ import annotations

from typing import Annotated

import typer

from dualrag.cli.context import DataDirOption, console, open_engine
from dualrag.cli.errors import err_source_not_found


def remove_cmd(
    path: Annotated[str, typer.Argument(help="File path exactly as it was indexed.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Remove every chunk indexed from PATH."""
    engine = open_engine(data_dir)
    try:
        if path not in engine.store.file_paths():
            console.print(err_source_not_found(path))
            raise typer.Exit(0)

        console.print(f"\nRemove source: [bold]{path}[/]")
        if not yes and not typer.confirm("Confirm removal?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

        result = engine.remove_file(path)
    finally:
        engine.close()

    if not result.success:
        console.print(f"[red]✗[/] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")


def clear_cmd(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Delete every record in the live index. Saved snapshots are kept."""
    engine = open_engine(data_dir)
    try:
        count = engine.get_stats().count
        console.print(f"\nClear index: [bold]{count:,}[/] chunks in {engine.settings.live_dir}")
        if not yes and not typer.confirm("Confirm clear?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        result = engine.clear_database()
    finally:
        engine.close()

    if not result.success:
        console.print(f"[red]✗[/] Clear failed: {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
