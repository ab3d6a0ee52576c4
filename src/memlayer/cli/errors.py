"""memlayer rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from memlayer.cli.errors import err_no_db
    console.print(err_no_db("memory-layer.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(detail: str) -> str:
    """A configured model's provider has no API key in the environment.

    Example:
        API key not found for provider 'openai'. Set the OPENAI_API_KEY ...
    """
    return (
        f"[red]Error:[/] {detail}\n"
        "  API keys are read from the environment only, e.g.:\n"
        "    export OPENAI_API_KEY=sk-..."
    )


def err_no_db(db_path: str = "memory-layer.db") -> str:
    """No memory database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  memlayer init   or   memlayer ingest --file history.json"
    )


def err_config(detail: str) -> str:
    """Configuration could not be loaded or failed validation."""
    return (
        f"[red]Error:[/] Invalid configuration: {detail}\n"
        "  Fix memlayer.yaml or ~/.memlayer/config.yaml and retry."
    )


def err_history_file(path: str, detail: str) -> str:
    """History export missing or not a JSON array of entries."""
    return (
        f"[red]Error:[/] Cannot read browsing history from '{path}': {detail}\n"
        '  Expected a JSON array of objects like {"url": ..., "title": ..., '
        '"visitCount": ..., "visitTime": ...}.'
    )


def err_no_connectivity() -> str:
    """Connectivity pre-flight failed."""
    return (
        "[red]Error:[/] No internet connection.\n"
        "  Check your network (or fetch.connectivity_url in memlayer.yaml) and retry."
    )


def err_curation_unavailable(detail: str) -> str:
    """External URL ranker failed; the ingestion run was aborted."""
    return (
        f"[red]Error:[/] URL curation failed: {detail}\n"
        "  Check the ai.ranking_model setting and its provider API key, then retry.\n"
        "  Nothing was fetched or stored."
    )


def err_memory_not_found(memory_id: int) -> str:
    """No memory with this id."""
    return (
        f"[yellow]Memory not found:[/] no memory with id {memory_id}.\n"
        "  Run:  memlayer stats  to inspect the store."
    )


def err_port_in_use(host: str, port: int, detail: str) -> str:
    """Capture bridge could not bind."""
    return (
        f"[red]Error:[/] Cannot listen on {host}:{port}: {detail}\n"
        "  Stop the other process or set MEMLAYER_BRIDGE_PORT / --port."
    )


def warn_stale_searches() -> str:
    """Shown after memlayer remove — cached answers may still cite the memory."""
    return (
        "[yellow]⚠[/] Cached search answers may still reference this memory.\n"
        "  They refresh automatically after the next saved page."
    )
