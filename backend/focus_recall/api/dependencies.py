"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from focus_recall.core.config import Settings, get_settings
from focus_recall.providers import (
    EmbeddingProvider,
    GenerationProvider,
    embedding_provider_from_settings,
    generation_provider_from_settings,
)
from focus_recall.retrieval import AIQueryClassifier, QueryClassifier, Reranker, SearchEngine
from focus_recall.sources import CachedCandidateSource, CandidateSource, SQLiteCandidateSource, SQLiteDatabase

_DB: SQLiteDatabase | None = None
_SOURCE: CandidateSource | None = None
_EMBEDDINGS: EmbeddingProvider | None = None
_CLASSIFIER: QueryClassifier | AIQueryClassifier | None = None
_ENGINE: SearchEngine | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        # the file is created and seeded elsewhere
        _DB = SQLiteDatabase(settings.db_path, read_only=True)
    return _DB


def get_candidate_source() -> CandidateSource:
    global _SOURCE
    if _SOURCE is None:
        settings = get_app_settings()
        source: CandidateSource = SQLiteCandidateSource(get_database())
        if settings.cache_ttl_seconds > 0:
            source = CachedCandidateSource(
                source,
                ttl_seconds=settings.cache_ttl_seconds,
                max_entries=settings.cache_max_entries,
            )
        _SOURCE = source
    return _SOURCE


def get_embedding_provider() -> EmbeddingProvider:
    global _EMBEDDINGS
    if _EMBEDDINGS is None:
        _EMBEDDINGS = embedding_provider_from_settings(get_app_settings())
    return _EMBEDDINGS


def get_generation_provider() -> GenerationProvider | None:
    return generation_provider_from_settings(get_app_settings())


def get_classifier() -> QueryClassifier | AIQueryClassifier:
    global _CLASSIFIER
    if _CLASSIFIER is None:
        generation = get_generation_provider()
        rules = QueryClassifier()
        _CLASSIFIER = AIQueryClassifier(generation, fallback=rules) if generation is not None else rules
    return _CLASSIFIER


def get_search_engine() -> SearchEngine:
    global _ENGINE
    if _ENGINE is None:
        embeddings = get_embedding_provider()
        _ENGINE = SearchEngine(
            source=get_candidate_source(),
            embedding_provider=embeddings,
            settings=get_app_settings(),
            classifier=get_classifier(),
            reranker=Reranker(embeddings),
        )
    return _ENGINE


def reset_singletons() -> None:
    """Drop cached singletons so the next request rebuilds them from settings."""
    global _DB, _SOURCE, _EMBEDDINGS, _CLASSIFIER, _ENGINE
    if _DB is not None:
        _DB.close()
    _DB = _SOURCE = _EMBEDDINGS = _CLASSIFIER = _ENGINE = None
    get_app_settings.cache_clear()


__all__ = [
    "get_app_settings",
    "get_database",
    "get_candidate_source",
    "get_embedding_provider",
    "get_generation_provider",
    "get_classifier",
    "get_search_engine",
    "reset_singletons",
]
