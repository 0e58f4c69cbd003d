"""dualrag CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from dualrag.cli.context import setup_logging
from dualrag.cli.index import index_cmd
from dualrag.cli.pin import pin_cmd, unpin_cmd
from dualrag.cli.remove import clear_cmd, remove_cmd
from dualrag.cli.search import search_cmd
from dualrag.cli.snapshot import snapshot_app
from dualrag.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("dualrag")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dualrag {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="dualrag",
    help=(
        "dualrag: dual-embedding document index and search.\n\n"
        "  dualrag index PATH   Chunk and embed files (text and code models).\n"
        "  dualrag search TEXT  Query both embedding spaces and merge the results."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """dualrag: dual-embedding document index and search."""
    setup_logging(verbose)


app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)
app.command("clear")(clear_cmd)
app.command("pin")(pin_cmd)
app.command("unpin")(unpin_cmd)
app.add_typer(snapshot_app, name="snapshot")


@app.command("version")
def version_cmd() -> None:
    """Show the installed dualrag version."""
    typer.echo(f"dualrag {_installed_version()}")


if __name__ == "__main__":
    app()
