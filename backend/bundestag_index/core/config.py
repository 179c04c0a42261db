"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "BTIX_"
DEFAULT_CONFIG_PATH = Path("~/.config/bundestag-index/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("dip", "base_url"): "dip_base_url",
    ("dip", "api_key"): "dip_api_key",
    ("dip", "timeout"): "dip_timeout",
    ("dip", "page_size"): "page_size",
    ("qdrant", "url"): "qdrant_url",
    ("qdrant", "api_key"): "qdrant_api_key",
    ("qdrant", "timeout"): "qdrant_timeout",
    ("vector_store", "backend"): "vector_backend",
    ("embeddings", "provider"): "embedding_provider",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "api_key"): "embedding_api_key",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "batch_size"): "embed_batch_size",
    ("indexer", "enabled"): "indexer_enabled",
    ("indexer", "interval_minutes"): "interval_minutes",
    ("indexer", "periods"): "periods",
    ("indexer", "categories"): "categories",
    ("indexer", "batch_size"): "batch_size",
    ("indexer", "upsert_batch_size"): "upsert_batch_size",
    ("indexer", "page_delay"): "page_delay",
    ("indexer", "overlap_minutes"): "overlap_minutes",
    ("indexer", "rate_limit_cooldown"): "rate_limit_cooldown",
    ("indexer", "rate_limit_max_cooldowns"): "rate_limit_max_cooldowns",
    ("indexer", "id_scheme"): "id_scheme",
    ("indexer", "shutdown_grace"): "shutdown_grace",
    ("resilience", "max_retries"): "max_retries",
    ("resilience", "retry_base_delay"): "retry_base_delay",
    ("resilience", "retry_max_delay"): "retry_max_delay",
    ("resilience", "failure_threshold"): "failure_threshold",
    ("resilience", "reset_timeout"): "reset_timeout",
    ("resilience", "half_open_max_requests"): "half_open_max_requests",
    ("resilience", "requests_per_minute"): "requests_per_minute",
    ("resilience", "burst_size"): "burst_size",
    ("resilience", "max_wait"): "max_wait",
    ("analysis", "url"): "analysis_url",
    ("analysis", "enabled"): "analysis_enabled",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".bundestag-index" / "index_state.db")

    dip_base_url: str = "https://search.dip.bundestag.de/api/v1"
    dip_api_key: str = ""
    dip_timeout: float = 30.0
    page_size: int = 100

    vector_backend: Literal["qdrant", "memory"] = "qdrant"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_timeout: float = 30.0
    collection_documents: str = "bundestag-docs"
    collection_protocol_chunks: str = "bundestag-protocol-chunks"
    collection_document_chunks: str = "bundestag-document-chunks"

    embedding_provider: Literal["mistral", "hashed"] = "mistral"
    embedding_model: str = "mistral-embed"
    embedding_api_key: str = ""
    embedding_url: str = "https://api.mistral.ai/v1/embeddings"
    embedding_dim: int = 1024
    embed_batch_size: int = 32

    indexer_enabled: bool = True
    interval_minutes: int = 15
    periods: list[int] = Field(default_factory=lambda: [20, 19])
    categories: list[str] = Field(
        default_factory=lambda: [
            "printed",
            "proceeding",
            "activity",
            "transcript",
            "bill",
            "inquiry",
            "motion",
            "report",
        ]
    )
    batch_size: int = 64
    upsert_batch_size: int = 64
    page_delay: float = 0.5
    overlap_minutes: int = 20
    rate_limit_cooldown: float = 30.0
    rate_limit_max_cooldowns: int = 5
    id_scheme: Literal["legacy", "wide"] = "legacy"
    shutdown_grace: float = 30.0

    max_retries: int = 3
    retry_base_delay: float = 0.1
    retry_max_delay: float = 5.0
    failure_threshold: int = 5
    reset_timeout: float = 30.0
    half_open_max_requests: int = 3
    requests_per_minute: int = 60
    burst_size: int = 10
    max_wait: float = 30.0

    analysis_url: str = "http://localhost:8001"
    analysis_enabled: bool = False

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("periods", mode="before")
    @classmethod
    def _parse_periods(cls, value: Any) -> Any:
        if isinstance(value, (int, str)):
            return [int(part) for part in str(value).split(",") if part.strip()]
        return value

    @field_validator("categories", mode="before")
    @classmethod
    def _parse_categories(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def collections(self) -> list[str]:
        return [
            self.collection_documents,
            self.collection_protocol_chunks,
            self.collection_document_chunks,
        ]

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with BTIX_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
