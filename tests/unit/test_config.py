"""Tests for memlayer config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from memlayer.config import ConfigError, ensure_global_config, load_config


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for var in (
        "MEMLAYER_DB",
        "MEMLAYER_USER_ID",
        "MEMLAYER_SUMMARY_MODEL",
        "MEMLAYER_EMBEDDING_MODEL",
        "MEMLAYER_BRIDGE_PORT",
    ):
        monkeypatch.delenv(var, raising=False)


# ---------------------------------------------------------------------------
# Defaults: no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → all hardcoded defaults."""
    missing_global = tmp_path / "nonexistent" / "config.yaml"
    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)

    assert cfg.storage.db_path == "memory-layer.db"
    assert cfg.storage.user_id == "local"
    assert cfg.ai.embedding_model == "openai/text-embedding-3-small"
    assert cfg.curation.max_candidates == 500
    assert cfg.curation.target_size == 20
    assert cfg.fetch.concurrency == 5
    assert cfg.fetch.request_timeout == 10.0
    assert cfg.fetch.single_url_timeout == 30.0
    assert cfg.writer.max_processing_length == 20_000
    assert cfg.search.top_k == 5
    assert cfg.search.similarity_weight == 0.85
    assert cfg.search.recency_weight == 0.15
    assert cfg.ipc.port == 12346
    assert cfg.ipc.max_request_bytes == 12 * 1024 * 1024


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_config_applies(tmp_path: Path) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"ai": {"summary_model": "anthropic/claude-3-haiku"}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_path)

    assert cfg.ai.summary_model == "anthropic/claude-3-haiku"
    assert cfg.ai.embedding_model == "openai/text-embedding-3-small"


def test_project_config_overrides_global(tmp_path: Path) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"fetch": {"concurrency": 3}})
    _write_yaml(tmp_path / "memlayer.yaml", {"fetch": {"concurrency": 8}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_path)

    assert cfg.fetch.concurrency == 8
    assert cfg.fetch.request_timeout == 10.0


def test_env_overrides_project(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "memlayer.yaml", {"storage": {"db_path": "project.db"}})
    monkeypatch.setenv("MEMLAYER_DB", "env.db")
    monkeypatch.setenv("MEMLAYER_USER_ID", "alice")
    monkeypatch.setenv("MEMLAYER_BRIDGE_PORT", "23456")

    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")

    assert cfg.storage.db_path == "env.db"
    assert cfg.storage.user_id == "alice"
    assert cfg.ipc.port == 23456


def test_bad_port_env_raises(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("MEMLAYER_BRIDGE_PORT", "not-a-port")
    with pytest.raises(ConfigError, match="MEMLAYER_BRIDGE_PORT"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_blocklist_extras_loaded(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "memlayer.yaml",
        {"blocklist": {"extra_domains": ["Intranet.Example.com"], "extra_patterns": ["/private/"]}},
    )
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")

    assert cfg.blocklist.extra_domains == ["intranet.example.com"]
    assert cfg.blocklist.extra_patterns == ["/private/"]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_global_config_api_key_rejected(tmp_path: Path) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"ai": {"openai_api_key": "sk-secret"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(project_dir=tmp_path, global_config_path=global_path)


def test_max_request_bytes_not_mistaken_for_secret(tmp_path: Path) -> None:
    global_path = tmp_path / "global.yaml"
    _write_yaml(global_path, {"ipc": {"max_request_bytes": 1024}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_path)

    assert cfg.ipc.max_request_bytes == 1024


def test_zero_concurrency_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "memlayer.yaml", {"fetch": {"concurrency": 0}})
    with pytest.raises(ConfigError, match="fetch.concurrency"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_weight_out_of_range_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "memlayer.yaml", {"search": {"recency_weight": 1.5}})
    with pytest.raises(ConfigError, match="search.recency_weight"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_embedding_dimensions_loaded(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "memlayer.yaml", {"ai": {"embedding_dimensions": 1536}})
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.ai.embedding_dimensions == 1536


def test_zero_embedding_dimensions_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "memlayer.yaml", {"ai": {"embedding_dimensions": 0}})
    with pytest.raises(ConfigError, match="ai.embedding_dimensions"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_invalid_blocklist_regex_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "memlayer.yaml", {"blocklist": {"extra_patterns": ["(unclosed"]}})
    with pytest.raises(ConfigError, match="invalid regex"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "memlayer.yaml", {"mystery": {"x": 1}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert any("mystery" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / ".memlayer" / "config.yaml"
    path = ensure_global_config(target)

    assert path == target
    assert target.exists()
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["ai"]["embedding_model"] == "openai/text-embedding-3-small"


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("ai:\n  summary_model: mine\n", encoding="utf-8")

    ensure_global_config(target)

    assert "mine" in target.read_text(encoding="utf-8")
