"""dualrag index: chunk, embed and store files in the live index.

Files are routed by extension (see ``dualrag.ingest.detect``): code files are
embedded with the code model, Markdown/text/PDF with the text model (in
``auto`` mode). Directories are expanded to their indexable files.
Ctrl-C stops the job at the next file or batch boundary; everything flushed
up to that point stays indexed.
"""

from __future__ import annotations

import asyncio
import fnmatch
import signal
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from dualrag.cli.context import DataDirOption, console, open_engine
from dualrag.cli.errors import err_embedding_unavailable, err_no_files
from dualrag.engine import RagEngine
from dualrag.errors import EmbeddingProviderError
from dualrag.ingest.detect import FILE_TYPE_MAP
from dualrag.ingest.events import (
    CompletedEvent,
    EmbeddingEvent,
    ErrorEvent,
    ParsingEvent,
    ProgressEvent,
)
from dualrag.ingest.indexer import IndexResult
from dualrag.rag.embedding_client import validate_api_key

_MAX_DEPTH = 10


def index_cmd(
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to index."),
    ],
    recursive: Annotated[
        bool,
        typer.Option("--recursive", "-r", help="Recurse into subdirectories (max 10 levels)."),
    ] = False,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Glob pattern to exclude (repeatable)."),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Index files into the dual-embedding store."""
    files = expand_paths(paths, recursive=recursive, exclude=exclude or [])
    if not files:
        console.print(err_no_files([str(p) for p in paths]))
        raise typer.Exit(0)

    engine = open_engine(data_dir)
    cfg = engine.config
    try:
        for model in {cfg.text_embedding_model, cfg.code_embedding_model}:
            validate_api_key(model)
    except EmbeddingProviderError as exc:
        engine.close()
        console.print(err_embedding_unavailable(exc.model, exc.reason))
        raise typer.Exit(1) from exc

    try:
        result = asyncio.run(_run(engine, files))
    finally:
        engine.close()

    if result.aborted:
        console.print(f"[yellow]⏹[/] {result.message}")
        raise typer.Exit(130)
    if not result.success:
        console.print(f"[red]✗[/] {result.message}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {result.message}")
    if result.files_failed:
        console.print(f"  [yellow]{result.files_failed} file(s) skipped; see messages above.[/]")


async def _run(engine: RagEngine, files: list[str]) -> IndexResult:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, engine.abort_indexing)
    except (NotImplementedError, RuntimeError):
        pass  # Windows: Ctrl-C falls back to KeyboardInterrupt

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Indexing…", total=len(files))

        def _on_event(event: ProgressEvent) -> None:
            label = f"[{event.file_index}/{event.total_files}] {event.file_name}"
            if isinstance(event, ParsingEvent):
                prog.update(task, description=f"{label} (PDF, {event.pages} pages)")
            elif isinstance(event, EmbeddingEvent):
                prog.update(
                    task,
                    description=f"{label} embedding {event.chunk_index}/{event.total_chunks}",
                )
            elif isinstance(event, CompletedEvent):
                prog.update(task, advance=1)
                prog.console.print(f"  [green]✓[/] {event.file_name}: {event.chunks} chunks")
            elif isinstance(event, ErrorEvent):
                prog.update(task, advance=1)
                prog.console.print(f"  [red]✗[/] {event.file_name}: {event.error}")
            else:
                prog.update(task, description=label)

        try:
            return await engine.add_documents(files, on_progress=_on_event)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass


# ------------------------------------------------------------------
# Path expansion
# ------------------------------------------------------------------


def expand_paths(paths: list[Path], recursive: bool, exclude: list[str]) -> list[str]:
    """Expand directories to indexable files; keep explicit files as given."""
    result: list[str] = []
    for p in paths:
        if p.is_dir():
            result.extend(str(f) for f in _scan_dir(p, recursive, exclude, depth=0))
        elif not any(fnmatch.fnmatch(p.name, pat) for pat in exclude):
            result.append(str(p))
    return result


def _scan_dir(directory: Path, recursive: bool, exclude: list[str], depth: int) -> list[Path]:
    if depth > _MAX_DEPTH:
        return []
    files: list[Path] = []
    try:
        entries = sorted(directory.iterdir())
    except PermissionError:
        return []
    for entry in entries:
        if entry.name.startswith(".") or any(fnmatch.fnmatch(entry.name, pat) for pat in exclude):
            continue
        if entry.is_file() and entry.suffix.lower() in FILE_TYPE_MAP:
            files.append(entry)
        elif entry.is_dir() and recursive:
            files.extend(_scan_dir(entry, recursive, exclude, depth + 1))
    return files
