"""dualrag pin / unpin: index a single message as a boosted record."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from dualrag.cli.context import DataDirOption, console, open_engine


def pin_cmd(
    text: Annotated[str, typer.Argument(help="Message text to pin.")],
    message_id: Annotated[str, typer.Option("--id", help="Stable message id.")],
    role: Annotated[
        str,
        typer.Option("--role", help="user or assistant."),
    ] = "user",
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", help="Tag to attach (repeatable). Default: pinned."),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Pin a message so it ranks above indexed files."""
    if role not in ("user", "assistant"):
        console.print(f"[red]Error:[/] --role must be 'user' or 'assistant', got '{role}'.")
        raise typer.Exit(1)

    engine = open_engine(data_dir)
    try:
        result = asyncio.run(engine.add_pinned_record(message_id, role, text, tags=tag))
    finally:
        engine.close()

    if not result.success:
        console.print(f"[red]✗[/] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")


def unpin_cmd(
    message_id: Annotated[str, typer.Argument(help="Id given to 'dualrag pin --id'.")],
    data_dir: DataDirOption = None,
) -> None:
    """Remove a pinned message from the index."""
    engine = open_engine(data_dir)
    try:
        result = asyncio.run(engine.remove_pinned_record(message_id))
    finally:
        engine.close()

    if not result.success:
        console.print(f"[red]✗[/] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
