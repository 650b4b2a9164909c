"""Embedding and generation provider adapters."""

from .embeddings import (
    EmbeddingProvider,
    HashedEmbeddingProvider,
    HTTPEmbeddingProvider,
    embedding_provider_from_settings,
)
from .generation import GenerationProvider, HTTPGenerationProvider, generation_provider_from_settings

__all__ = [
    "EmbeddingProvider",
    "HashedEmbeddingProvider",
    "HTTPEmbeddingProvider",
    "embedding_provider_from_settings",
    "GenerationProvider",
    "HTTPGenerationProvider",
    "generation_provider_from_settings",
]
