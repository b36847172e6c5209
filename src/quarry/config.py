"""Quarry configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (QUARRY_EMBEDDING_MODEL, QUARRY_GENERATION_MODEL,
                             QUARRY_EMBEDDING_DIMENSIONS)
  3. Per-project quarry.yaml  (next to .quarry.db)
  4. Global ~/.quarry/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
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

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".quarry"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "quarry.yaml"

# Matches api_key, api-key, api_secret, *_token, token, *_secret, secret,
# password, passwd, credential(s). Leaves max_tokens, token_budget alone.
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
    ["embedding", "generation", "index", "search", "rag"]
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
class EmbeddingCfg:
    """Embedding model configuration (quarry.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Fixed vector dimension every returned embedding must have.
        max_input_chars: Each input text is truncated to this many characters.
        num_retries: LiteLLM transport retries per call (0 = fail fast).
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    max_input_chars: int = 8_000
    num_retries: int = 0


@dataclass
class GenerationCfg:
    """Chat completion configuration (quarry.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2_048
    num_retries: int = 0


@dataclass
class IndexCfg:
    """Vector index lifecycle configuration (quarry.yaml: index:).

    Attributes:
        chunk_max_tokens: Estimated-token budget per chunk.
        upsert_batch_size: Entries per vector store upsert call.
        snippet_chars: Length of the content snippet stored on each entry.
        delete_scan_top_k: topK of the filtered scan used to find a page's entries.
        max_chunks_per_page: Bound used to synthesize ids when filtered scans fail.
    """

    chunk_max_tokens: int = 500
    upsert_batch_size: int = 100
    snippet_chars: int = 2_000
    delete_scan_top_k: int = 1_000
    max_chunks_per_page: int = 100


@dataclass
class SearchCfg:
    """Search configuration (quarry.yaml: search:)."""

    limit: int = 10
    min_score: float = 0.5
    chunks_min_score: float = 0.3
    lexical_score: float = 1.0
    lexical_discount: float = 0.8


@dataclass
class RagCfg:
    """Retrieval-augmented generation configuration (quarry.yaml: rag:)."""

    top_k: int = 5
    min_score: float = 0.3
    token_budget: int = 8_192
    max_query_chars: int = 10_000
    max_messages: int = 50


@dataclass
class QuarryConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    index: IndexCfg = field(default_factory=IndexCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    rag: RagCfg = field(default_factory=RagCfg)


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
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: QuarryConfig) -> None:
    """Raise ConfigError for values the pipeline cannot work with."""
    positive = {
        "embedding.dimensions": cfg.embedding.dimensions,
        "embedding.max_input_chars": cfg.embedding.max_input_chars,
        "generation.max_tokens": cfg.generation.max_tokens,
        "index.chunk_max_tokens": cfg.index.chunk_max_tokens,
        "index.upsert_batch_size": cfg.index.upsert_batch_size,
        "index.snippet_chars": cfg.index.snippet_chars,
        "index.delete_scan_top_k": cfg.index.delete_scan_top_k,
        "index.max_chunks_per_page": cfg.index.max_chunks_per_page,
        "search.limit": cfg.search.limit,
        "rag.top_k": cfg.rag.top_k,
        "rag.token_budget": cfg.rag.token_budget,
        "rag.max_query_chars": cfg.rag.max_query_chars,
        "rag.max_messages": cfg.rag.max_messages,
    }
    for name, value in positive.items():
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")
    if not 0.0 < cfg.search.lexical_discount <= 1.0:
        raise ConfigError(
            f"search.lexical_discount must be in (0, 1], got {cfg.search.lexical_discount}"
        )


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


def _cfg_from_dict(data: dict[str, Any]) -> QuarryConfig:
    """Build a *QuarryConfig* from a merged raw YAML dict."""
    cfg = QuarryConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            max_input_chars=int(e.get("max_input_chars", cfg.embedding.max_input_chars)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            num_retries=int(g.get("num_retries", cfg.generation.num_retries)),
        )

    if "index" in data:
        i = data["index"] or {}
        cfg.index = IndexCfg(
            chunk_max_tokens=int(i.get("chunk_max_tokens", cfg.index.chunk_max_tokens)),
            upsert_batch_size=int(i.get("upsert_batch_size", cfg.index.upsert_batch_size)),
            snippet_chars=int(i.get("snippet_chars", cfg.index.snippet_chars)),
            delete_scan_top_k=int(i.get("delete_scan_top_k", cfg.index.delete_scan_top_k)),
            max_chunks_per_page=int(
                i.get("max_chunks_per_page", cfg.index.max_chunks_per_page)
            ),
        )

    if "search" in data:
        s = data["search"] or {}
        cfg.search = SearchCfg(
            limit=int(s.get("limit", cfg.search.limit)),
            min_score=float(s.get("min_score", cfg.search.min_score)),
            chunks_min_score=float(s.get("chunks_min_score", cfg.search.chunks_min_score)),
            lexical_score=float(s.get("lexical_score", cfg.search.lexical_score)),
            lexical_discount=float(s.get("lexical_discount", cfg.search.lexical_discount)),
        )

    if "rag" in data:
        r = data["rag"] or {}
        cfg.rag = RagCfg(
            top_k=int(r.get("top_k", cfg.rag.top_k)),
            min_score=float(r.get("min_score", cfg.rag.min_score)),
            token_budget=int(r.get("token_budget", cfg.rag.token_budget)),
            max_query_chars=int(r.get("max_query_chars", cfg.rag.max_query_chars)),
            max_messages=int(r.get("max_messages", cfg.rag.max_messages)),
        )

    return cfg


def _apply_env_overrides(cfg: QuarryConfig) -> QuarryConfig:
    """Apply QUARRY_* environment variable overrides (layer 2)."""
    if model := os.environ.get("QUARRY_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("QUARRY_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if dims := os.environ.get("QUARRY_EMBEDDING_DIMENSIONS"):
        try:
            cfg.embedding.dimensions = int(dims)
        except ValueError as exc:
            raise ConfigError(
                f"QUARRY_EMBEDDING_DIMENSIONS must be an integer, got '{dims}'"
            ) from exc
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> QuarryConfig:
    """Load and return a merged *QuarryConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *quarry.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *QuarryConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def ensure_project_config(project_dir: Path) -> Path:
    """Write a default ``quarry.yaml`` into *project_dir* unless one exists.

    Returns:
        Path to the project config file.
    """
    target = project_dir / _PROJECT_CONFIG_NAME
    if not target.exists():
        defaults = QuarryConfig()
        content = (
            "# Quarry project configuration.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            f"  model: {defaults.embedding.model}\n"
            f"  dimensions: {defaults.embedding.dimensions}\n"
            "\n"
            "generation:\n"
            f"  model: {defaults.generation.model}\n"
            "\n"
            "index:\n"
            f"  chunk_max_tokens: {defaults.index.chunk_max_tokens}\n"
            "\n"
            "search:\n"
            f"  min_score: {defaults.search.min_score}\n"
        )
        target.write_text(content, encoding="utf-8")
    return target
