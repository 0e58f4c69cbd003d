"""dualrag rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from dualrag.cli.errors import err_embedding_unavailable
    console.print(err_embedding_unavailable(model, reason))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_config(detail: str) -> str:
    """Config file is invalid or contains a forbidden key."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {detail}\n"
        "  Fix dualrag.yaml (or ~/.dualrag/config.yaml) and retry."
    )


def err_embedding_unavailable(model: str, reason: str) -> str:
    """The embedding service could not serve *model*."""
    hint = "  Is Ollama running?  ollama serve"
    if model.startswith("ollama/"):
        hint += f"\n  Install the model:  ollama pull {model.split('/', 1)[1]}"
    return f"[red]Error:[/] Embedding model '{model}' is unavailable.\n  {reason}\n{hint}"


def err_search_failed(detail: str) -> str:
    """Search returned an error result (dimension gate, provider, store)."""
    return (
        f"[red]Error:[/] Search failed.\n"
        f"  {detail}\n"
        "  If the models changed, run:  dualrag clear  and re-index,\n"
        "  or load a snapshot built with the current models:  dualrag snapshot list"
    )


def err_no_files(paths: list[str]) -> str:
    """Nothing indexable was found under the given paths."""
    return (
        f"[yellow]No indexable files found in:[/] {', '.join(paths)}\n"
        "  Use --recursive to descend into subdirectories."
    )


def err_snapshot(action: str, detail: str) -> str:
    """A snapshot operation failed."""
    return (
        f"[red]Error:[/] Snapshot {action} failed.\n"
        f"  {detail}\n"
        "  Run:  dualrag snapshot list  to see available snapshots."
    )


def err_source_not_found(source: str) -> str:
    """File path has no records in the store."""
    return (
        f"[yellow]Source not found:[/] '{source}' is not in the index.\n"
        "  Run:  dualrag status  to see what is indexed."
    )


def warn_model_mismatch(warning: str) -> str:
    return f"[yellow]⚠[/] {warning}"
