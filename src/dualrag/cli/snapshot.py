"""dualrag snapshot commands.

Commands:
  dualrag snapshot save NAME [--timestamp]   copy the live index into a named snapshot
  dualrag snapshot load NAME [--skip-backup] replace the live index with a snapshot
  dualrag snapshot append NAME               merge a snapshot's files into the live index
  dualrag snapshot list                      show saved snapshots, newest first
  dualrag snapshot info NAME                 show a snapshot's metadata
  dualrag snapshot check NAME                check the snapshot's models are available
  dualrag snapshot delete NAME [--yes]       remove a snapshot
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Annotated

import typer
from rich.table import Table

from dualrag.cli.context import DataDirOption, console, open_engine
from dualrag.cli.errors import err_snapshot, warn_model_mismatch

snapshot_app = typer.Typer(
    name="snapshot",
    help="Save, load and merge whole-index snapshots.",
    add_completion=False,
)

NameArg = Annotated[str, typer.Argument(help="Snapshot name.")]


@snapshot_app.command("save")
def snapshot_save_cmd(
    name: NameArg,
    timestamp: Annotated[
        bool,
        typer.Option("--timestamp", help="Append the current date and time to NAME."),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Save the live index as a named snapshot."""
    engine = open_engine(data_dir)
    try:
        result = asyncio.run(engine.save_snapshot(name, auto_timestamp=timestamp))
    finally:
        engine.close()

    if not result.success:
        console.print(err_snapshot("save", result.error))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
    console.print(f"  [dim]{result.path}[/]")


@snapshot_app.command("load")
def snapshot_load_cmd(
    name: NameArg,
    skip_backup: Annotated[
        bool,
        typer.Option("--skip-backup", help="Do not auto-save the current index first."),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Replace the live index with snapshot NAME and adopt its model config."""
    engine = open_engine(data_dir)
    try:
        result = asyncio.run(engine.load_snapshot(name, skip_backup=skip_backup))
    finally:
        engine.close()

    if not result.success:
        console.print(err_snapshot("load", result.error))
        raise typer.Exit(1)
    if result.backup_name:
        console.print(f"  [dim]Previous index saved as {result.backup_name}[/]")
    console.print(f"[green]✓[/] {result.message}")
    if result.config is not None:
        console.print(
            f"  Text: {result.config.text_embedding_model}  |  "
            f"Code: {result.config.code_embedding_model}  |  "
            f"{result.config.dimension}D"
        )


@snapshot_app.command("append")
def snapshot_append_cmd(name: NameArg, data_dir: DataDirOption = None) -> None:
    """Add records from snapshot NAME for files not already indexed."""
    engine = open_engine(data_dir)
    try:
        result = asyncio.run(engine.append_snapshot(name))
    finally:
        engine.close()

    if result.warning:
        console.print(warn_model_mismatch(result.warning))
    if not result.success:
        console.print(err_snapshot("append", result.error))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
    console.print(
        f"  Added: {result.files_added}  |  Skipped (already indexed): "
        f"{result.duplicates_skipped}  |  Total chunks: {result.total_chunks:,}"
    )


@snapshot_app.command("list")
def snapshot_list_cmd(data_dir: DataDirOption = None) -> None:
    """List saved snapshots, newest first."""
    engine = open_engine(data_dir)
    try:
        snapshots = engine.list_snapshots()
        active = engine.get_active_snapshot().snapshot_name
    finally:
        engine.close()

    if not snapshots:
        console.print("[yellow]No snapshots saved.[/]\n  Run:  dualrag snapshot save NAME")
        raise typer.Exit(0)

    table = Table(title="Snapshots", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Saved")
    table.add_column("Chunks", justify="right")
    table.add_column("Models")
    table.add_column("Dim", justify="right")

    for snap in snapshots:
        marker = " [green](active)[/]" if snap.name == active else ""
        saved = datetime.fromtimestamp(snap.saved_at).strftime("%Y-%m-%d %H:%M") if snap.saved_at else ""
        models = f"{snap.text_embedding_model}\n{snap.code_embedding_model} [dim]({snap.embedding_mode})[/]"
        table.add_row(
            snap.name + marker,
            saved,
            f"{snap.chunks:,}",
            models,
            str(snap.dimension or "?"),
        )
    console.print(table)


@snapshot_app.command("info")
def snapshot_info_cmd(name: NameArg, data_dir: DataDirOption = None) -> None:
    """Print a snapshot's metadata as JSON."""
    engine = open_engine(data_dir)
    try:
        info = engine.get_snapshot_info(name)
    finally:
        engine.close()

    if not info.success:
        console.print(err_snapshot("info", info.error))
        raise typer.Exit(1)
    console.print(f"[bold]{info.name}[/]  [dim]{info.path}[/]")
    typer.echo(json.dumps(info.metadata, indent=2))


@snapshot_app.command("check")
def snapshot_check_cmd(name: NameArg, data_dir: DataDirOption = None) -> None:
    """Check that snapshot NAME can be loaded with the current embedding service."""
    engine = open_engine(data_dir)
    try:
        report = asyncio.run(engine.check_snapshot_compatibility(name))
    finally:
        engine.close()

    if report.compatible:
        console.print(f"[green]✓[/] Snapshot '{name}' is compatible.")
        return
    console.print(f"[red]✗[/] Snapshot '{name}' is not compatible:")
    for issue in report.issues:
        console.print(f"  • {issue}")
    raise typer.Exit(1)


@snapshot_app.command("delete")
def snapshot_delete_cmd(
    name: NameArg,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Delete snapshot NAME. The active snapshot cannot be deleted."""
    if not yes and not typer.confirm(f"Delete snapshot '{name}'?", default=False):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)

    engine = open_engine(data_dir)
    try:
        result = engine.delete_snapshot(name)
    finally:
        engine.close()

    if not result.success:
        console.print(err_snapshot("delete", result.error))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
