"""memlayer ingest — turn a browsing-history export into stored memories.

The history file is a JSON array of entries:
  [{"url": "...", "title": "...", "visitCount": 3, "visitTime": "2024-05-01T10:00:00Z"}, ...]

Pipeline: connectivity check → blocklist → dedup → curation → fetch → save.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from memlayer.cli.common import build_capabilities, load_config_or_exit, open_db, resolve_db
from memlayer.cli.errors import err_curation_unavailable, err_history_file, err_no_connectivity
from memlayer.db.repository import Repository
from memlayer.errors import CurationUnavailable, NoConnectivity
from memlayer.ingest.base import HistoryEntry, IngestionResult
from memlayer.ingest.pipeline import HistoryIngestor, ProgressEvent, ingest_history

console = Console()


def ingest_cmd(
    file: Annotated[
        Path,
        typer.Option("--file", "-f", help="Browsing-history export (JSON array)."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the memory database (created if missing)."),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", help="Profile to store memories under."),
    ] = None,
) -> None:
    """Curate, fetch and store the most valuable pages from browsing history."""
    entries = _load_history(file)

    cfg = load_config_or_exit()
    user_id = user or cfg.storage.user_id
    capabilities = build_capabilities(cfg)

    conn = open_db(resolve_db(db, cfg))
    try:
        ingestor = HistoryIngestor(Repository(conn), capabilities, cfg)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Starting…", total=100)

            def _on_progress(event: ProgressEvent) -> None:
                prog.update(task, completed=event.progress, description=event.message)

            try:
                result = ingest_history(ingestor, user_id, entries, on_progress=_on_progress)
            except NoConnectivity:
                prog.stop()
                console.print(err_no_connectivity())
                raise typer.Exit(1)
            except CurationUnavailable as exc:
                prog.stop()
                console.print(err_curation_unavailable(str(exc)))
                raise typer.Exit(1)
    finally:
        conn.close()

    _show_result(result)


def _load_history(path: Path) -> list[HistoryEntry]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        console.print(err_history_file(str(path), exc.strerror or str(exc)))
        raise typer.Exit(1) from exc
    except json.JSONDecodeError as exc:
        console.print(err_history_file(str(path), f"invalid JSON ({exc.msg})"))
        raise typer.Exit(1) from exc

    if not isinstance(data, list):
        console.print(err_history_file(str(path), "top-level value is not an array"))
        raise typer.Exit(1)

    entries: list[HistoryEntry] = []
    for i, item in enumerate(data):
        try:
            entries.append(HistoryEntry.from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            console.print(err_history_file(str(path), f"entry {i} is malformed ({exc})"))
            raise typer.Exit(1) from exc
    return entries


def _show_result(result: IngestionResult) -> None:
    console.print(f"[green]✓[/] {result.message}")

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Stage", style="dim")
    table.add_column("Count", justify="right")
    stats = result.stats
    table.add_row("History entries", str(stats.total_input))
    table.add_row("After blocklist", str(stats.after_blocklist))
    table.add_row("Sent to curation", str(stats.sent_to_curation))
    table.add_row("Curated", str(stats.curated_count))
    table.add_row("Fetched", str(stats.successfully_fetched))
    table.add_row("Saved", str(result.saved_count))
    console.print(table)
