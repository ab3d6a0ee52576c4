"""memlayer remove — delete one memory by id.

Deletion by id is the only destructive operation on the store.

Usage:
  memlayer remove --id 42
  memlayer remove --id 42 --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memlayer.cli.common import load_config_or_exit, open_db, resolve_db
from memlayer.cli.errors import err_memory_not_found, err_no_db, warn_stale_searches
from memlayer.db.repository import Repository

console = Console()


def remove_cmd(
    memory_id: Annotated[
        int,
        typer.Option("--id", help="Id of the memory to delete."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the memory database."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete a stored memory."""
    cfg = load_config_or_exit()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    conn = open_db(db_path)
    try:
        repo = Repository(conn)
        memory = repo.get_memory(memory_id)
        if memory is None:
            console.print(err_memory_not_found(memory_id))
            raise typer.Exit(1)

        console.print(f"\nRemove memory [bold]{memory.id}[/]: {memory.title or memory.url}")
        console.print(f"  {memory.url}  |  saved {memory.created_at}  |  {memory.source_type}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        repo.delete_memory(memory_id)
        console.print(f"\n[green]✓[/] Removed memory {memory_id}")
        console.print(f"\n{warn_stale_searches()}")
    finally:
        conn.close()
