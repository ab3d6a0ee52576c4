"""Fixtures isolating CLI runs from the user's real config and network."""

from __future__ import annotations

import pytest
import sqlite_vec

from memlayer.db.connection import Database
from memlayer.db.models import Memory
from memlayer.db.repository import Repository
from memlayer.db.schema import initialize
from memlayer.ingest.base import Article


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """No global config, no project config, no MEMLAYER_* overrides."""
    monkeypatch.setattr("memlayer.config._GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")
    for var in (
        "MEMLAYER_DB",
        "MEMLAYER_USER_ID",
        "MEMLAYER_SUMMARY_MODEL",
        "MEMLAYER_EMBEDDING_MODEL",
        "MEMLAYER_BRIDGE_PORT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


class FakeFetcher:
    """Stands in for ArticleFetcher; every page has a short article."""

    def __init__(self, config=None) -> None:
        self.config = config

    def fetch(self, url: str) -> Article:
        body = f"Readable text from {url}. " * 10
        return Article(title=f"Page {url.rsplit('/', 1)[-1]}", content=body, word_count=len(body.split()))


@pytest.fixture
def offline_web(monkeypatch):
    """Replace network access in the ingestion pipeline."""
    monkeypatch.setattr("memlayer.ingest.pipeline.ArticleFetcher", FakeFetcher)
    monkeypatch.setattr("memlayer.ingest.pipeline.check_connectivity", lambda cfg: True)


@pytest.fixture
def cli_caps(stub_caps, monkeypatch):
    """Route every command's capability construction to the stub."""
    for module in ("ingest", "add", "search", "serve"):
        monkeypatch.setattr(f"memlayer.cli.{module}.build_capabilities", lambda cfg: stub_caps)
    return stub_caps


@pytest.fixture
def seeded_db(tmp_path):
    """Database file with two memories for user 'local'. Returns its path."""
    path = tmp_path / "seeded.db"
    conn = Database(path).connect()
    initialize(conn)
    repo = Repository(conn)
    for i, url in enumerate(["https://example.com/alpha", "https://example.com/beta"]):
        repo.add_memory(
            Memory(
                user_id="local",
                url=url,
                canonical_url=url,
                title=f"Memory {i}",
                summary="s",
                embedding=sqlite_vec.serialize_float32([1.0, float(i), 0.0, 0.0]),
                source_type="web",
            )
        )
    conn.close()
    return path
