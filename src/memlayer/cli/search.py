"""memlayer search — semantic search over stored memories (cached)."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from memlayer.cli.common import build_capabilities, load_config_or_exit, open_db, resolve_db
from memlayer.cli.errors import err_no_db
from memlayer.db.repository import Repository
from memlayer.search.service import QueryService

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="What you are looking for.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the memory database."),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", help="Profile to search."),
    ] = None,
) -> None:
    """Find saved pages related to QUERY."""
    cfg = load_config_or_exit()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    capabilities = build_capabilities(cfg)

    conn = open_db(db_path)
    try:
        service = QueryService(Repository(conn), capabilities, cfg.search)
        outcome = service.semantic_search(user or cfg.storage.user_id, query)
    finally:
        conn.close()

    if not outcome["success"]:
        console.print(f"[red]Error:[/] {outcome['error']}")
        raise typer.Exit(1)

    data = outcome["data"]
    console.print(f"[bold]{data['answer']}[/]")
    if not data["sources"]:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title")
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Similarity", justify="right")
    table.add_column("Score", justify="right")
    for i, source in enumerate(data["sources"], start=1):
        table.add_row(
            str(i),
            source["title"] or "(untitled)",
            source["url"],
            f"{source['similarity']:.2f}",
            f"{source['finalScore']:.2f}",
        )
    console.print(table)
