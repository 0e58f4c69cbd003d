"""Shared CLI plumbing: settings loading, engine construction, logging."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from dualrag.cli.errors import err_config
from dualrag.config import ConfigError, Settings, load_config
from dualrag.engine import RagEngine

console = Console()

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", help="Data directory (default: ~/.dualrag or storage.data_dir)."),
]


def setup_logging(verbose: bool) -> None:
    """Route library logging through rich. litellm stays at WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_settings(data_dir: Path | None = None) -> Settings:
    """Load layered settings, applying the --data-dir flag on top."""
    try:
        settings = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if data_dir is not None:
        settings.data_dir = data_dir.expanduser()
    return settings


def open_engine(data_dir: Path | None = None) -> RagEngine:
    return RagEngine(load_settings(data_dir))
