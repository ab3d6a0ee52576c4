"""memlayer CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from memlayer.cli.add import add_cmd
from memlayer.cli.ingest import ingest_cmd
from memlayer.cli.init import init_cmd
from memlayer.cli.remove import remove_cmd
from memlayer.cli.search import search_cmd
from memlayer.cli.serve import serve_cmd
from memlayer.cli.status import recent_cmd, stats_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("memlayer")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"memlayer {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route memlayer.* log records through a stderr RichHandler."""
    logger = logging.getLogger("memlayer")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        )


app = typer.Typer(
    name="memlayer",
    help=(
        "memlayer — personal memory layer over your browsing history.\n\n"
        "  memlayer ingest  Curate, fetch and store pages from a history export.\n"
        "  memlayer search  Semantic search over what you have saved."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """memlayer — personal memory layer over your browsing history."""
    _configure_logging(verbose)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("add")(add_cmd)
app.command("search")(search_cmd)
app.command("recent")(recent_cmd)
app.command("stats")(stats_cmd)
app.command("remove")(remove_cmd)
app.command("serve")(serve_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed memlayer version."""
    typer.echo(f"memlayer {_installed_version()}")


if __name__ == "__main__":
    app()
