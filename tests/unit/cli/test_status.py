"""Tests for memlayer recent / stats."""

from __future__ import annotations

from typer.testing import CliRunner

from memlayer.cli.main import app

runner = CliRunner()


def test_recent_no_db_exits_1(tmp_path) -> None:
    result = runner.invoke(app, ["recent", "--db", str(tmp_path / "missing.db")])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_recent_empty(seeded_db) -> None:
    result = runner.invoke(app, ["recent", "--db", str(seeded_db)])
    assert result.exit_code == 0
    assert "No searches yet" in result.output


def test_recent_after_search(seeded_db, cli_caps) -> None:
    runner.invoke(app, ["search", "Rust Lifetimes", "--db", str(seeded_db)])
    result = runner.invoke(app, ["recent", "--db", str(seeded_db)])
    assert result.exit_code == 0
    assert "Rust Lifetimes" in result.output


def test_stats(seeded_db) -> None:
    result = runner.invoke(app, ["stats", "--db", str(seeded_db)])
    assert result.exit_code == 0
    assert "Memories: 2" in result.output
    assert "web: 2" in result.output
    assert "Embedding dims: 4" in result.output


def test_stats_unknown_user(seeded_db) -> None:
    result = runner.invoke(app, ["stats", "--db", str(seeded_db), "--user", "nobody"])
    assert result.exit_code == 0
    assert "Nothing saved yet" in result.output
