"""memlayer recent / stats — read-only views of the store."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from memlayer.cli.common import load_config_or_exit, open_db, resolve_db
from memlayer.cli.errors import err_no_db
from memlayer.db.repository import Repository
from memlayer.search.service import QueryService

console = Console()


def _service(db: Path | None) -> tuple[QueryService, str, sqlite3.Connection]:
    cfg = load_config_or_exit()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    conn = open_db(db_path)
    return QueryService(Repository(conn), config=cfg.search), cfg.storage.user_id, conn


def recent_cmd(
    db: Annotated[Path | None, typer.Option("--db", help="Path to the memory database.")] = None,
    user: Annotated[str | None, typer.Option("--user", help="Profile to inspect.")] = None,
) -> None:
    """Show the most recent distinct searches, newest first."""
    service, default_user, conn = _service(db)
    try:
        outcome = service.get_recent_searches(user or default_user)
    finally:
        conn.close()

    if not outcome["success"]:
        console.print(f"[red]Error:[/] {outcome['error']}")
        raise typer.Exit(1)
    if not outcome["data"]:
        console.print("[dim]No searches yet.[/]")
        return

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Query", style="bold")
    table.add_column("Date", style="dim")
    for row in outcome["data"]:
        table.add_row(row["query"], row["date"])
    console.print(Panel(table, title="[bold]Recent searches[/]", expand=False))


def stats_cmd(
    db: Annotated[Path | None, typer.Option("--db", help="Path to the memory database.")] = None,
    user: Annotated[str | None, typer.Option("--user", help="Profile to inspect.")] = None,
) -> None:
    """Show corpus and cache statistics."""
    service, default_user, conn = _service(db)
    try:
        outcome = service.get_stats(user or default_user)
    finally:
        conn.close()

    if not outcome["success"]:
        console.print(f"[red]Error:[/] {outcome['error']}")
        raise typer.Exit(1)

    data = outcome["data"]
    lines = [
        f"Memories: [bold]{data['totalMemories']}[/]  |  "
        f"Cached searches: [bold]{data['cachedSearches']}[/]",
    ]
    for source, count in data["memoriesBySource"].items():
        lines.append(f"  {source}: {count}")
    dims = ", ".join(str(d) for d in data["embeddingDimensions"]) or "-"
    lines.append(f"Embedding dims: {dims}")
    if data["lastMemoryAt"]:
        lines.append(f"Last saved: [dim]{data['lastMemoryAt']}[/]")
    else:
        lines.append("[dim]Nothing saved yet.[/]")
    console.print(Panel("\n".join(lines), title="[bold]Memory store[/]", expand=False))
