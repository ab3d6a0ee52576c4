"""memlayer configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (MEMLAYER_DB, MEMLAYER_USER_ID, MEMLAYER_SUMMARY_MODEL,
                             MEMLAYER_EMBEDDING_MODEL, MEMLAYER_BRIDGE_PORT)
  3. Per-project memlayer.yaml  (current working directory)
  4. Global ~/.memlayer/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
Blocklists, concurrency limits, timeouts and scoring weights all live here
rather than at call sites.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".memlayer"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "memlayer.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Does NOT match max_request_bytes etc.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "ai", "curation", "fetch", "writer", "search", "blocklist", "ipc"]
)

_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Database location and the default local profile (memlayer.yaml: storage:)."""

    db_path: str = "memory-layer.db"
    user_id: str = "local"


@dataclass
class AiCfg:
    """LiteLLM model strings for the external capabilities (memlayer.yaml: ai:)."""

    summary_model: str = "openai/gpt-4o-mini"
    embedding_model: str = "openai/text-embedding-3-small"
    ranking_model: str = "openai/gpt-4o-mini"
    num_retries: int = 3
    # Expected embedding length; None accepts whatever the model returns.
    embedding_dimensions: int | None = None


@dataclass
class CurationCfg:
    """Curation boundary limits (memlayer.yaml: curation:)."""

    max_candidates: int = 500
    target_size: int = 20


@dataclass
class FetchCfg:
    """Bounded fetch pool settings (memlayer.yaml: fetch:).

    Attributes:
        concurrency: Maximum simultaneously active fetch tasks.
        request_timeout: Per-request network timeout in seconds.
        single_url_timeout: Wall-clock limit for the single-URL path.
        connectivity_url: URL probed before an ingestion run starts.
        connectivity_timeout: Timeout for the connectivity probe.
        user_agent: User-Agent header sent with every page request.
        max_bytes: Response body size cap.
        min_content_length: Extracted text shorter than this is an extraction failure.
    """

    concurrency: int = 5
    request_timeout: float = 10.0
    single_url_timeout: float = 30.0
    connectivity_url: str = "https://www.google.com"
    connectivity_timeout: float = 5.0
    user_agent: str = _BROWSER_USER_AGENT
    max_bytes: int = 5 * 1024 * 1024
    min_content_length: int = 400


@dataclass
class WriterCfg:
    """Memory store writer settings (memlayer.yaml: writer:)."""

    max_processing_length: int = 20_000


@dataclass
class SearchCfg:
    """Vector ranking and query cache settings (memlayer.yaml: search:)."""

    top_k: int = 5
    min_similarity: float = 0.3
    recency_decay_days: float = 30.0
    similarity_weight: float = 0.85
    recency_weight: float = 0.15
    recent_limit: int = 5


@dataclass
class BlocklistCfg:
    """Additions to the built-in blocklists (memlayer.yaml: blocklist:)."""

    extra_domains: list[str] = field(default_factory=list)
    extra_patterns: list[str] = field(default_factory=list)


@dataclass
class IpcCfg:
    """Capture-agent bridge settings (memlayer.yaml: ipc:)."""

    host: str = "127.0.0.1"
    port: int = 12346
    max_request_bytes: int = 12 * 1024 * 1024


@dataclass
class MemlayerConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    ai: AiCfg = field(default_factory=AiCfg)
    curation: CurationCfg = field(default_factory=CurationCfg)
    fetch: FetchCfg = field(default_factory=FetchCfg)
    writer: WriterCfg = field(default_factory=WriterCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    blocklist: BlocklistCfg = field(default_factory=BlocklistCfg)
    ipc: IpcCfg = field(default_factory=IpcCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: MemlayerConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    positive = {
        "fetch.concurrency": cfg.fetch.concurrency,
        "fetch.request_timeout": cfg.fetch.request_timeout,
        "fetch.single_url_timeout": cfg.fetch.single_url_timeout,
        "curation.max_candidates": cfg.curation.max_candidates,
        "curation.target_size": cfg.curation.target_size,
        "writer.max_processing_length": cfg.writer.max_processing_length,
        "search.top_k": cfg.search.top_k,
        "search.recency_decay_days": cfg.search.recency_decay_days,
    }
    for name, value in positive.items():
        if value <= 0:
            raise ConfigError(f"{name} must be > 0, got {value}")
    if cfg.ai.embedding_dimensions is not None and cfg.ai.embedding_dimensions <= 0:
        raise ConfigError(
            f"ai.embedding_dimensions must be > 0, got {cfg.ai.embedding_dimensions}"
        )

    for name, value in {
        "search.similarity_weight": cfg.search.similarity_weight,
        "search.recency_weight": cfg.search.recency_weight,
    }.items():
        if not 0.0 <= value <= 1.0:
            raise ConfigError(f"{name} must be in [0.0, 1.0], got {value}")

    for pattern in cfg.blocklist.extra_patterns:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ConfigError(f"blocklist.extra_patterns: invalid regex '{pattern}': {exc}") from exc


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> MemlayerConfig:
    """Build a *MemlayerConfig* from a merged raw YAML dict."""
    cfg = MemlayerConfig()

    if "storage" in data:
        s = data["storage"]
        cfg.storage = StorageCfg(
            db_path=str(s.get("db_path", cfg.storage.db_path)),
            user_id=str(s.get("user_id", cfg.storage.user_id)),
        )

    if "ai" in data:
        a = data["ai"]
        cfg.ai = AiCfg(
            summary_model=str(a.get("summary_model", cfg.ai.summary_model)),
            embedding_model=str(a.get("embedding_model", cfg.ai.embedding_model)),
            ranking_model=str(a.get("ranking_model", cfg.ai.ranking_model)),
            num_retries=int(a.get("num_retries", cfg.ai.num_retries)),
            embedding_dimensions=(
                int(a["embedding_dimensions"])
                if a.get("embedding_dimensions") is not None
                else cfg.ai.embedding_dimensions
            ),
        )

    if "curation" in data:
        c = data["curation"]
        cfg.curation = CurationCfg(
            max_candidates=int(c.get("max_candidates", cfg.curation.max_candidates)),
            target_size=int(c.get("target_size", cfg.curation.target_size)),
        )

    if "fetch" in data:
        f = data["fetch"]
        d = cfg.fetch
        cfg.fetch = FetchCfg(
            concurrency=int(f.get("concurrency", d.concurrency)),
            request_timeout=float(f.get("request_timeout", d.request_timeout)),
            single_url_timeout=float(f.get("single_url_timeout", d.single_url_timeout)),
            connectivity_url=str(f.get("connectivity_url", d.connectivity_url)),
            connectivity_timeout=float(f.get("connectivity_timeout", d.connectivity_timeout)),
            user_agent=str(f.get("user_agent", d.user_agent)),
            max_bytes=int(f.get("max_bytes", d.max_bytes)),
            min_content_length=int(f.get("min_content_length", d.min_content_length)),
        )

    if "writer" in data:
        w = data["writer"]
        cfg.writer = WriterCfg(
            max_processing_length=int(
                w.get("max_processing_length", cfg.writer.max_processing_length)
            ),
        )

    if "search" in data:
        r = data["search"]
        d = cfg.search
        cfg.search = SearchCfg(
            top_k=int(r.get("top_k", d.top_k)),
            min_similarity=float(r.get("min_similarity", d.min_similarity)),
            recency_decay_days=float(r.get("recency_decay_days", d.recency_decay_days)),
            similarity_weight=float(r.get("similarity_weight", d.similarity_weight)),
            recency_weight=float(r.get("recency_weight", d.recency_weight)),
            recent_limit=int(r.get("recent_limit", d.recent_limit)),
        )

    if "blocklist" in data:
        b = data["blocklist"]
        cfg.blocklist = BlocklistCfg(
            extra_domains=[str(x).lower() for x in b.get("extra_domains", []) or []],
            extra_patterns=[str(x) for x in b.get("extra_patterns", []) or []],
        )

    if "ipc" in data:
        i = data["ipc"]
        cfg.ipc = IpcCfg(
            host=str(i.get("host", cfg.ipc.host)),
            port=int(i.get("port", cfg.ipc.port)),
            max_request_bytes=int(i.get("max_request_bytes", cfg.ipc.max_request_bytes)),
        )

    return cfg


def _apply_env_overrides(cfg: MemlayerConfig) -> MemlayerConfig:
    """Apply MEMLAYER_* environment variable overrides (layer 2)."""
    if db := os.environ.get("MEMLAYER_DB"):
        cfg.storage.db_path = db
    if user := os.environ.get("MEMLAYER_USER_ID"):
        cfg.storage.user_id = user
    if model := os.environ.get("MEMLAYER_SUMMARY_MODEL"):
        cfg.ai.summary_model = model
    if model := os.environ.get("MEMLAYER_EMBEDDING_MODEL"):
        cfg.ai.embedding_model = model
    if port := os.environ.get("MEMLAYER_BRIDGE_PORT"):
        try:
            cfg.ipc.port = int(port)
        except ValueError as exc:
            raise ConfigError(f"MEMLAYER_BRIDGE_PORT must be an integer, got '{port}'") from exc
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> MemlayerConfig:
    """Load and return a merged *MemlayerConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *memlayer.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *MemlayerConfig*.

    Raises:
        ConfigError: If global config contains API-key-like fields, or if a
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.memlayer/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# memlayer global configuration: model defaults only.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "ai:\n"
            "  summary_model: openai/gpt-4o-mini\n"
            "  embedding_model: openai/text-embedding-3-small\n"
            "  ranking_model: openai/gpt-4o-mini\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
