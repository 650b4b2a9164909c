"""Embedding providers used to vectorize queries."""

from __future__ import annotations

import hashlib
import math
import re
import time
from typing import Callable, Protocol, Sequence, runtime_checkable

import requests

from focus_recall.core.config import Settings
from focus_recall.core.errors import ConfigurationError, EmbeddingProviderError
from focus_recall.providers.http import RETRYABLE_ERRORS, auth_headers, post_json

_TOKEN_RE = re.compile(r"\w+")


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a fixed-length vector; raises instead of returning short vectors."""

    @property
    def dim(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...


class HashedEmbeddingProvider:
    """Deterministic hashed bag-of-words embeddings, useful offline and in tests."""

    def __init__(self, dim: int = 384, model_name: str = "hashed") -> None:
        if dim <= 0:
            raise ConfigurationError("Embedding dimension must be positive", context={"dim": dim})
        self.model_name = model_name
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            raise EmbeddingProviderError("Cannot embed text without word tokens", context={"model": self.model_name})
        vector = [0.0] * self._dim
        for token in tokens:
            vector[_hash_token(token, self._dim)] += 1.0
        _normalize(vector)
        return vector


class HTTPEmbeddingProvider:
    """Client for an OpenAI-compatible ``/embeddings`` endpoint."""

    provider_name = "embedding"

    def __init__(
        self,
        url: str,
        model: str,
        dim: int,
        api_key: str | None = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.url = url
        self.model = model
        self._dim = dim
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise EmbeddingProviderError("Cannot embed empty text")
        try:
            payload = post_json(
                self._session,
                self.url,
                {"model": self.model, "input": text},
                headers=auth_headers(self.api_key),
                timeout=self.timeout,
                attempts=self.max_retries,
                base_delay=self.backoff_seconds,
                provider=self.provider_name,
                sleep=self._sleep,
            )
        except (*RETRYABLE_ERRORS, requests.RequestException, ValueError) as exc:
            raise EmbeddingProviderError(
                "Embedding request failed",
                cause=exc,
                context={"url": self.url, "model": self.model},
            ) from exc
        return self._extract_vector(payload)

    def _extract_vector(self, payload: object) -> list[float]:
        try:
            raw = payload["data"][0]["embedding"]  # type: ignore[index]
        except (KeyError, IndexError, TypeError) as exc:
            raise EmbeddingProviderError("Malformed embedding response", cause=exc) from exc
        if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
            raise EmbeddingProviderError("Embedding response is not a vector")
        try:
            vector = [float(value) for value in raw]
        except (TypeError, ValueError) as exc:
            raise EmbeddingProviderError("Embedding contains non-numeric values", cause=exc) from exc
        if len(vector) != self._dim:
            raise EmbeddingProviderError(
                "Embedding dimension mismatch",
                context={"expected": self._dim, "received": len(vector)},
            )
        return vector


def embedding_provider_from_settings(settings: Settings) -> EmbeddingProvider:
    if settings.embedding_backend == "http":
        if not settings.embedding_url:
            raise ConfigurationError("embedding_url is required for the http embedding backend")
        return HTTPEmbeddingProvider(
            url=settings.embedding_url,
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            api_key=settings.provider_api_key,
            timeout=settings.provider_timeout_seconds,
            max_retries=settings.provider_max_retries,
            backoff_seconds=settings.provider_backoff_seconds,
        )
    return HashedEmbeddingProvider(dim=settings.embedding_dim)


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingProvider",
    "HashedEmbeddingProvider",
    "HTTPEmbeddingProvider",
    "embedding_provider_from_settings",
]
