"""memlayer init — scaffold a memory store in a directory.

Creates:
  memory-layer.db           — empty store with schema
  memlayer.yaml             — project config template
  ~/.memlayer/config.yaml   — global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memlayer.cli.common import open_db
from memlayer.config import StorageCfg, ensure_global_config

console = Console()

_PROJECT_YAML = """\
# memlayer project configuration. API keys belong in environment variables.
storage:
  db_path: "{db_name}"
  user_id: "local"

curation:
  max_candidates: 500
  target_size: 20

fetch:
  concurrency: 5
  request_timeout: 10.0
  single_url_timeout: 30.0

search:
  top_k: 5
  min_similarity: 0.3
  recency_decay_days: 30.0

# blocklist:
#   extra_domains: ["intranet.example.com"]
#   extra_patterns: ["/private/"]
"""


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Create the memory database and config files."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    db_name = StorageCfg().db_path

    console.print(f"\n[bold]Initializing memlayer in {project_dir} …[/]\n")

    conn = open_db(project_dir / db_name)
    conn.close()
    console.print(f"  [green]✓[/] {db_name}")

    yaml_path = project_dir / "memlayer.yaml"
    if yaml_path.exists():
        console.print("  [dim]↷ memlayer.yaml already exists — left unchanged[/]")
    else:
        yaml_path.write_text(_PROJECT_YAML.format(db_name=db_name), encoding="utf-8")
        console.print("  [green]✓[/] memlayer.yaml")

    global_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {global_path}")

    console.print(
        "\nNext:\n"
        "  export OPENAI_API_KEY=sk-...\n"
        "  memlayer ingest --file history.json"
    )
