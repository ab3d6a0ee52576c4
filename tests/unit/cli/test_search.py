"""Tests for memlayer search."""

from __future__ import annotations

from typer.testing import CliRunner

from memlayer.cli.main import app
from memlayer.search.cache import EMPTY_ANSWER, FOUND_ANSWER

runner = CliRunner()


def test_search_no_db_exits_1(tmp_path, cli_caps) -> None:
    result = runner.invoke(app, ["search", "anything", "--db", str(tmp_path / "missing.db")])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_search_lists_sources(seeded_db, cli_caps) -> None:
    result = runner.invoke(app, ["search", "alpha things", "--db", str(seeded_db)])
    assert result.exit_code == 0, result.output
    assert FOUND_ANSWER in result.output
    assert "Memory 0" in result.output


def test_search_blank_query_exits_1(seeded_db, cli_caps) -> None:
    result = runner.invoke(app, ["search", "   ", "--db", str(seeded_db)])
    assert result.exit_code == 1
    assert "Query cannot be empty" in result.output


def test_search_other_user_finds_nothing(seeded_db, cli_caps) -> None:
    result = runner.invoke(app, ["search", "alpha", "--db", str(seeded_db), "--user", "bob"])
    assert result.exit_code == 0
    assert EMPTY_ANSWER in result.output
