"""dualrag status command.

Shows the data directory, the live store (size, chunks, dimension), the
configured models, and the active snapshot if one is loaded.
"""

from __future__ import annotations

from datetime import datetime

from rich.panel import Panel
from rich.table import Table

from dualrag.cli.context import DataDirOption, console, open_engine
from dualrag.engine import RagEngine


def status_cmd(data_dir: DataDirOption = None) -> None:
    """Show index status: store, models and snapshots."""
    engine = open_engine(data_dir)
    try:
        _show_store_panel(engine)
        _show_models_panel(engine)
        _show_snapshots_panel(engine)
    finally:
        engine.close()


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_store_panel(engine: RagEngine) -> None:
    db = engine.db_path
    lines = [f"Data dir:  {engine.settings.data_dir}"]
    if not db.exists():
        lines.append("[yellow]No database found.[/]")
        lines.append("  Run:  dualrag index PATH")
        console.print(Panel("\n".join(lines), title="[bold]Index[/]", expand=False))
        return

    size_mb = db.stat().st_size / (1024 * 1024)
    stats = engine.get_stats()
    lines.append(f"Database:  {db} ({size_mb:.1f} MB)")
    lines.append(
        f"Chunks: [bold]{stats.count:,}[/]  |  Dimension: [bold]{engine.store.dimension}D[/]"
    )
    console.print(Panel("\n".join(lines), title="[bold]Index[/]", expand=False))


def _show_models_panel(engine: RagEngine) -> None:
    cfg = engine.config
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Text model", cfg.text_embedding_model)
    table.add_row("Code model", cfg.code_embedding_model)
    table.add_row("Mode", cfg.embedding_mode)
    table.add_row("Chunking", f"{cfg.chunk_size} tokens, overlap {cfg.chunk_overlap}")
    rerank = cfg.reranker_model or cfg.text_embedding_model
    table.add_row("Reranking", rerank if cfg.use_reranking else "[dim]off[/]")
    console.print(Panel(table, title="[bold]Models[/]", expand=False))


def _show_snapshots_panel(engine: RagEngine) -> None:
    pointer = engine.get_active_snapshot()
    snapshots = engine.list_snapshots()
    lines = [f"Saved: [bold]{len(snapshots)}[/]"]
    if pointer.is_active:
        active = f"Active: [green]{pointer.snapshot_name}[/]"
        if pointer.loaded_at:
            loaded = datetime.fromtimestamp(pointer.loaded_at).strftime("%Y-%m-%d %H:%M")
            active += f" [dim](loaded {loaded})[/]"
        lines.append(active)
    else:
        lines.append("[dim]No snapshot loaded.[/]")
    console.print(Panel("\n".join(lines), title="[bold]Snapshots[/]", expand=False))
