"""memlayer database layer."""

from memlayer.db.connection import Database
from memlayer.db.migrations import MIGRATIONS, run_migrations
from memlayer.db.repository import Repository
from memlayer.db.schema import EMPTY_SNAPSHOT, initialize

__all__ = [
    "Database",
    "EMPTY_SNAPSHOT",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
]
