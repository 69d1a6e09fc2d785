"""searchhub configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (SEARCHHUB_EMBEDDING_MODEL, SEARCHHUB_RERANK_MODEL,
                             SEARCHHUB_DB, SEARCHHUB_LOG_LEVEL)
  3. Per-project searchhub.yaml  (working directory)
  4. Global ~/.searchhub/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; provider keys are read from the
environment (VOYAGE_API_KEY, COHERE_API_KEY, ...).
All YAML reads use yaml.safe_load(), never yaml.load().
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

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".searchhub"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "searchhub.yaml"

# Fields that suggest an API key are forbidden in config files.
# Does NOT match legitimate config keys like max_in_flight or snippet_chars.
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
    ["database", "embedding", "rerank", "worker", "search", "retention", "logging"]
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
class DatabaseCfg:
    """SQLite location (searchhub.yaml: database:)."""

    path: str = ".searchhub.db"


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (searchhub.yaml: embedding:).

    Attributes:
        model: LiteLLM model string in 'provider/model' format.
        dimensions: Fixed vector length every returned embedding must have.
        batch_size: Maximum texts sent in one provider request.
        max_in_flight: Concurrent requests allowed against the provider.
        timeout_seconds: Per-request timeout; exceeding it is a transient error.
        num_retries: LiteLLM-level retries (the worker requeues on failure).
    """

    model: str = "voyage/voyage-3.5-lite"
    dimensions: int = 1024
    batch_size: int = 128
    max_in_flight: int = 4
    timeout_seconds: float = 30.0
    num_retries: int = 0


@dataclass
class RerankCfg:
    """Rerank provider configuration (searchhub.yaml: rerank:)."""

    model: str = "voyage/rerank-2.5-lite"
    max_in_flight: int = 4
    timeout_seconds: float = 30.0
    snippet_chars: int = 2_000


@dataclass
class WorkerCfg:
    """Indexing worker policy (searchhub.yaml: worker:)."""

    concurrency: int = 5
    max_attempts: int = 5
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 60.0
    lease_seconds: float = 300.0
    poll_interval_seconds: float = 1.0


@dataclass
class SearchCfg:
    """Semantic query defaults and circuit breaker (searchhub.yaml: search:)."""

    k: int = 10
    recall_k: int = 50
    breaker_failure_threshold: int = 5
    breaker_reset_timeout_seconds: float = 30.0
    breaker_half_open_timeout_seconds: float = 10.0


@dataclass
class RetentionCfg:
    """Job ledger retention (searchhub.yaml: retention:)."""

    indexed_job_days: float = 1.0
    interval_hours: float = 24.0
    stuck_minutes: float = 5.0


@dataclass
class LoggingCfg:
    level: str = "INFO"


@dataclass
class SearchHubConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    rerank: RerankCfg = field(default_factory=RerankCfg)
    worker: WorkerCfg = field(default_factory=WorkerCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    retention: RetentionCfg = field(default_factory=RetentionCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


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
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
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
                f"Unknown config key '{key}' in '{source}' (ignored).",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: SearchHubConfig) -> None:
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.embedding.batch_size < 1:
        raise ConfigError(f"embedding.batch_size must be >= 1, got {cfg.embedding.batch_size}")
    for name, value in (
        ("embedding.max_in_flight", cfg.embedding.max_in_flight),
        ("rerank.max_in_flight", cfg.rerank.max_in_flight),
        ("worker.concurrency", cfg.worker.concurrency),
        ("worker.max_attempts", cfg.worker.max_attempts),
    ):
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")
    if cfg.worker.lease_seconds <= 0:
        raise ConfigError(f"worker.lease_seconds must be > 0, got {cfg.worker.lease_seconds}")


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


def _cfg_from_dict(data: dict[str, Any]) -> SearchHubConfig:
    """Build a *SearchHubConfig* from a merged raw YAML dict."""
    cfg = SearchHubConfig()

    if "database" in data:
        d = data["database"]
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            max_in_flight=int(e.get("max_in_flight", cfg.embedding.max_in_flight)),
            timeout_seconds=float(e.get("timeout_seconds", cfg.embedding.timeout_seconds)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )

    if "rerank" in data:
        r = data["rerank"]
        cfg.rerank = RerankCfg(
            model=str(r.get("model", cfg.rerank.model)),
            max_in_flight=int(r.get("max_in_flight", cfg.rerank.max_in_flight)),
            timeout_seconds=float(r.get("timeout_seconds", cfg.rerank.timeout_seconds)),
            snippet_chars=int(r.get("snippet_chars", cfg.rerank.snippet_chars)),
        )

    if "worker" in data:
        w = data["worker"]
        cfg.worker = WorkerCfg(
            concurrency=int(w.get("concurrency", cfg.worker.concurrency)),
            max_attempts=int(w.get("max_attempts", cfg.worker.max_attempts)),
            backoff_base_seconds=float(
                w.get("backoff_base_seconds", cfg.worker.backoff_base_seconds)
            ),
            backoff_max_seconds=float(
                w.get("backoff_max_seconds", cfg.worker.backoff_max_seconds)
            ),
            lease_seconds=float(w.get("lease_seconds", cfg.worker.lease_seconds)),
            poll_interval_seconds=float(
                w.get("poll_interval_seconds", cfg.worker.poll_interval_seconds)
            ),
        )

    if "search" in data:
        s = data["search"]
        cfg.search = SearchCfg(
            k=int(s.get("k", cfg.search.k)),
            recall_k=int(s.get("recall_k", cfg.search.recall_k)),
            breaker_failure_threshold=int(
                s.get("breaker_failure_threshold", cfg.search.breaker_failure_threshold)
            ),
            breaker_reset_timeout_seconds=float(
                s.get("breaker_reset_timeout_seconds", cfg.search.breaker_reset_timeout_seconds)
            ),
            breaker_half_open_timeout_seconds=float(
                s.get(
                    "breaker_half_open_timeout_seconds",
                    cfg.search.breaker_half_open_timeout_seconds,
                )
            ),
        )

    if "retention" in data:
        rt = data["retention"]
        cfg.retention = RetentionCfg(
            indexed_job_days=float(rt.get("indexed_job_days", cfg.retention.indexed_job_days)),
            interval_hours=float(rt.get("interval_hours", cfg.retention.interval_hours)),
            stuck_minutes=float(rt.get("stuck_minutes", cfg.retention.stuck_minutes)),
        )

    if "logging" in data:
        lg = data["logging"]
        cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)).upper())

    return cfg


def _apply_env_overrides(cfg: SearchHubConfig) -> SearchHubConfig:
    """Apply SEARCHHUB_* environment variable overrides."""
    if model := os.environ.get("SEARCHHUB_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("SEARCHHUB_RERANK_MODEL"):
        cfg.rerank.model = model
    if db_path := os.environ.get("SEARCHHUB_DB"):
        cfg.database.path = db_path
    if level := os.environ.get("SEARCHHUB_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> SearchHubConfig:
    """Load and return a merged *SearchHubConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *searchhub.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If any config file contains API-key-like fields or a
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
        _check_no_api_keys(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
