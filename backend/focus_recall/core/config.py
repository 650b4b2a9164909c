"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

from focus_recall.models.entities import CandidateFilters, ContentType, TimeWindow

ENV_PREFIX = "FREC_"
DEFAULT_CONFIG_PATH = Path("~/.config/focus-recall/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "batch_size"): "candidate_batch_size",
    ("storage", "cache_ttl_seconds"): "cache_ttl_seconds",
    ("storage", "cache_max_entries"): "cache_max_entries",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "url"): "embedding_url",
    ("generation", "url"): "generation_url",
    ("generation", "model"): "generation_model",
    ("generation", "ai_classification"): "ai_classification_enabled",
    ("providers", "api_key"): "provider_api_key",
    ("providers", "timeout_seconds"): "provider_timeout_seconds",
    ("providers", "max_retries"): "provider_max_retries",
    ("providers", "backoff_seconds"): "provider_backoff_seconds",
}

RerankModel = Literal["cross-encoder", "semantic-similarity", "hybrid"]


class SearchOptions(BaseModel):
    """Per-search tuning knobs; defaults come from ``Settings.search``."""

    max_results: int = Field(default=20, ge=1, le=200)
    vector_weight: float = Field(default=1.0, ge=0.0)
    keyword_weight: float = Field(default=1.0, ge=0.0)
    rrf_k: float = Field(default=60.0, gt=0.0)
    min_vector_similarity: float = 0.1
    min_keyword_score: float = Field(default=0.0, ge=0.0)
    enhanced_bm25: bool = True
    bm25_k1: float = Field(default=1.2, gt=0.0)
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0)
    position_weight: float = 0.1
    proximity_weight: float = 0.1
    title_boost: float = Field(default=1.3, ge=0.0)
    content_type_boosts: dict[str, float] = Field(default_factory=dict)
    recency_weight: float = Field(default=0.005, ge=0.0)
    diversity_weight: float = Field(default=0.1, ge=0.0)
    productivity_weight: float = Field(default=0.0, ge=0.0)
    enable_reranking: bool = False
    reranking_model: RerankModel = "hybrid"
    reranking_candidates: int = Field(default=50, ge=1)
    min_rerank_score: float = Field(default=0.1, ge=0.0, le=1.0)
    rerank_diversity_weight: float = Field(default=0.1, ge=0.0)
    rerank_recency_weight: float = Field(default=0.05, ge=0.0, le=1.0)
    rerank_content_type_weights: dict[str, float] = Field(default_factory=dict)
    enable_diversity: bool = True
    use_classifier_filter: bool = True
    use_classifier_boosts: bool = True
    content_types: list[ContentType] = Field(default_factory=list)
    time_window: TimeWindow = TimeWindow.ALL
    project_ids: list[str] = Field(default_factory=list)
    chunk_levels: list[int] = Field(default_factory=list)

    model_config = {
        "extra": "ignore",
    }

    def merged(self, overrides: "SearchOptions | Mapping[str, Any] | None") -> "SearchOptions":
        """Return a copy with caller overrides applied; ``self`` is left untouched."""
        if overrides is None:
            return self
        if isinstance(overrides, SearchOptions):
            data = overrides.model_dump(exclude_unset=True)
        else:
            data = {key: value for key, value in overrides.items() if value is not None}
        return SearchOptions.model_validate({**self.model_dump(), **data})

    def filters(self, limit: int) -> CandidateFilters:
        return CandidateFilters(
            content_types=tuple(self.content_types),
            time_window=self.time_window,
            project_ids=tuple(self.project_ids),
            chunk_levels=tuple(self.chunk_levels),
            limit=limit,
        )


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".focus-recall" / "documents.db")
    candidate_batch_size: int = Field(default=200, ge=1, le=1000)
    cache_ttl_seconds: float = Field(default=0.0, ge=0.0)
    cache_max_entries: int = Field(default=256, ge=1)
    embedding_backend: Literal["hashed", "http"] = "hashed"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = Field(default=384, ge=1)
    embedding_url: str | None = None
    generation_url: str | None = None
    generation_model: str = "gpt-4o-mini"
    provider_api_key: str | None = None
    provider_timeout_seconds: float = Field(default=15.0, gt=0.0)
    provider_max_retries: int = Field(default=3, ge=0)
    provider_backoff_seconds: float = Field(default=0.5, ge=0.0)
    stage_timeout_seconds: float = Field(default=20.0, gt=0.0)
    ai_classification_enabled: bool = False
    search: SearchOptions = Field(default_factory=SearchOptions)

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
        if next_prefix == ("search",):
            # search options stay nested and are validated by SearchOptions
            flat["search"] = dict(value or {})
        elif isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with FREC_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields and field_name != "search":
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "SearchOptions", "RerankModel", "get_settings"]
