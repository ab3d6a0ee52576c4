"""memlayer add — save a single URL as a memory."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memlayer.cli.common import build_capabilities, load_config_or_exit, open_db, resolve_db
from memlayer.db.repository import Repository
from memlayer.ingest.pipeline import HistoryIngestor

console = Console()


def add_cmd(
    url: Annotated[str, typer.Argument(help="Page to fetch and remember.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the memory database (created if missing)."),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", help="Profile to store the memory under."),
    ] = None,
) -> None:
    """Fetch one page, summarise it and store it."""
    cfg = load_config_or_exit()
    capabilities = build_capabilities(cfg)

    conn = open_db(resolve_db(db, cfg))
    try:
        ingestor = HistoryIngestor(Repository(conn), capabilities, cfg)
        with console.status(f"Fetching {url}…"):
            outcome = ingestor.add_url(user or cfg.storage.user_id, url)
    finally:
        conn.close()

    if not outcome["success"]:
        console.print(f"[red]✗[/] {outcome['error']}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {outcome['message']}")
