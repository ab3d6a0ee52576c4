"""Shared CLI plumbing: config, database and capability setup."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from memlayer.ai.capabilities import LiteLLMCapabilities
from memlayer.cli.errors import err_config, err_no_api_key
from memlayer.config import ConfigError, MemlayerConfig, load_config
from memlayer.db.connection import Database
from memlayer.db.schema import initialize

console = Console()


def load_config_or_exit() -> MemlayerConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def resolve_db(db: Path | None, cfg: MemlayerConfig) -> Path:
    """--db wins over config and environment."""
    return db if db is not None else Path(cfg.storage.db_path)


def open_db(db_path: Path) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def build_capabilities(cfg: MemlayerConfig) -> LiteLLMCapabilities:
    """LiteLLM-backed capabilities; exits with a hint if an API key is missing."""
    capabilities = LiteLLMCapabilities(cfg.ai)
    try:
        capabilities.validate()
    except EnvironmentError as exc:
        console.print(err_no_api_key(str(exc)))
        raise typer.Exit(1) from exc
    return capabilities
