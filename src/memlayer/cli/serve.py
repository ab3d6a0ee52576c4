"""memlayer serve — run the capture bridge for the browser agent.

Listens on ipc.host:ipc.port (default 127.0.0.1:12346) for newline-delimited
JSON capture requests and stores each captured page as a memory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memlayer.cli.common import build_capabilities, load_config_or_exit, open_db, resolve_db
from memlayer.cli.errors import err_port_in_use
from memlayer.db.repository import Repository
from memlayer.ingest.capture import CaptureProcessor
from memlayer.ingest.memory_writer import MemoryWriter
from memlayer.ipc.server import make_server

console = Console()


def serve_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the memory database (created if missing)."),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", help="Profile captured pages are stored under."),
    ] = None,
    host: Annotated[str | None, typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Bind port.")] = None,
) -> None:
    """Accept page captures from the browser agent until interrupted."""
    cfg = load_config_or_exit()
    if host is not None:
        cfg.ipc.host = host
    if port is not None:
        cfg.ipc.port = port
    capabilities = build_capabilities(cfg)

    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    processor = CaptureProcessor(
        repo,
        MemoryWriter(repo, capabilities, cfg.writer),
        user or cfg.storage.user_id,
    )

    try:
        server = make_server(cfg.ipc, processor.handle)
    except OSError as exc:
        conn.close()
        console.print(err_port_in_use(cfg.ipc.host, cfg.ipc.port, str(exc)))
        raise typer.Exit(1) from exc

    console.print(
        f"[green]✓[/] Capture bridge listening on [bold]{cfg.ipc.host}:{cfg.ipc.port}[/] "
        "[dim](Ctrl+C to stop)[/]"
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping.[/]")
    finally:
        server.server_close()
        conn.close()
