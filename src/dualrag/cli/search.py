"""dualrag search: query both embedding spaces and print the best passages."""

from __future__ import annotations

import asyncio
import dataclasses
import json
from typing import Annotated

import typer
from rich.panel import Panel

from dualrag.cli.context import DataDirOption, console, open_engine
from dualrag.cli.errors import err_search_failed
from dualrag.rag.retriever import SearchResult

_PREVIEW_CHARS = 400


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language or code query.")],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw result as JSON."),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Search the index and show the top passages."""
    engine = open_engine(data_dir)
    try:
        result = asyncio.run(engine.search(query))
    finally:
        engine.close()

    if as_json:
        typer.echo(json.dumps(dataclasses.asdict(result), indent=2))
        raise typer.Exit(1 if result.error else 0)

    if result.error:
        console.print(err_search_failed(result.error_message))
        raise typer.Exit(1)
    _render(result)


def _render(result: SearchResult) -> None:
    if result.message:
        console.print(f"[yellow]{result.message}[/]")
        return
    if not result.results:
        console.print("[dim]No results.[/]")
        return

    for i, passage in enumerate(result.results, start=1):
        text = passage.text
        if len(text) > _PREVIEW_CHARS:
            text = text[:_PREVIEW_CHARS] + "…"
        subtitle = f"score {passage.score:.3f} · {passage.search_source}"
        if passage.rerank_score is not None:
            subtitle += f" · rerank {passage.rerank_score:.3f}"
        if passage.metadata.score_boost:
            subtitle += f" · boost +{passage.metadata.score_boost:.2f}"
        console.print(
            Panel(
                text,
                title=f"[bold]{i}. {passage.file_path}[/]",
                subtitle=f"[dim]{subtitle}[/]",
                expand=False,
            )
        )
    console.print(
        f"[dim]{result.chunks_count} chunks from {result.sources_count} files "
        f"in {result.duration:.2f}s[/]"
    )
