"""Tests for embedding and generation providers."""

from __future__ import annotations

import math
from typing import Any

import pytest
import requests

from focus_recall.core.config import Settings
from focus_recall.core.errors import ConfigurationError, EmbeddingProviderError, GenerationProviderError
from focus_recall.providers import (
    HashedEmbeddingProvider,
    HTTPEmbeddingProvider,
    HTTPGenerationProvider,
    embedding_provider_from_settings,
    generation_provider_from_settings,
)
from focus_recall.providers.http import RetryableStatusError, retry_call


class _FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class _FakeSession:
    def __init__(self, responses: list[Any]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _embedding_payload(vector: list[float]) -> dict[str, Any]:
    return {"data": [{"embedding": vector}]}


def _provider(session: _FakeSession, delays: list[float], **kwargs: Any) -> HTTPEmbeddingProvider:
    return HTTPEmbeddingProvider(
        url="http://embed.local/v1/embeddings",
        model="test-model",
        dim=3,
        api_key="secret",
        session=session,
        sleep=delays.append,
        **kwargs,
    )


def test_hashed_provider_is_deterministic_and_normalized() -> None:
    provider = HashedEmbeddingProvider(dim=32)
    first = provider.embed("Marketing launch plan")
    assert first == provider.embed("marketing LAUNCH plan")
    assert len(first) == 32
    assert math.isclose(math.sqrt(sum(value * value for value in first)), 1.0)


@pytest.mark.parametrize("text", ["", "   ", "?!", "--- ..."])
def test_hashed_provider_fails_without_tokens(text: str) -> None:
    with pytest.raises(EmbeddingProviderError):
        HashedEmbeddingProvider(dim=32).embed(text)


def test_hashed_provider_rejects_bad_dimension() -> None:
    with pytest.raises(ConfigurationError):
        HashedEmbeddingProvider(dim=0)


def test_http_embedding_success() -> None:
    session = _FakeSession([_FakeResponse(payload=_embedding_payload([0.1, 0.2, 0.3]))])
    vector = _provider(session, []).embed("hello")
    assert vector == [0.1, 0.2, 0.3]
    call = session.calls[0]
    assert call["json"] == {"model": "test-model", "input": "hello"}
    assert call["headers"] == {"Authorization": "Bearer secret"}


def test_http_embedding_retries_transient_failures() -> None:
    delays: list[float] = []
    session = _FakeSession(
        [
            _FakeResponse(status_code=503, payload="busy"),
            requests.ConnectionError("reset"),
            _FakeResponse(payload=_embedding_payload([1.0, 0.0, 0.0])),
        ]
    )
    assert _provider(session, delays, backoff_seconds=0.5).embed("hello") == [1.0, 0.0, 0.0]
    assert delays == [0.5, 1.0]


def test_http_embedding_gives_up_after_retries() -> None:
    delays: list[float] = []
    session = _FakeSession([_FakeResponse(status_code=429, payload="slow down") for _ in range(3)])
    with pytest.raises(EmbeddingProviderError):
        _provider(session, delays, max_retries=2).embed("hello")
    assert len(session.calls) == 3


def test_http_embedding_does_not_retry_client_errors() -> None:
    session = _FakeSession([_FakeResponse(status_code=400, payload="bad request")])
    with pytest.raises(EmbeddingProviderError):
        _provider(session, []).embed("hello")
    assert len(session.calls) == 1


@pytest.mark.parametrize(
    "payload",
    [
        {"data": []},
        _embedding_payload([0.1, 0.2]),
        _embedding_payload(["a", "b", "c"]),
        _embedding_payload("nope"),
        ValueError("not json"),
    ],
)
def test_http_embedding_rejects_bad_payloads(payload: Any) -> None:
    session = _FakeSession([_FakeResponse(payload=payload)])
    with pytest.raises(EmbeddingProviderError):
        _provider(session, []).embed("hello")


def test_http_embedding_rejects_empty_text() -> None:
    with pytest.raises(EmbeddingProviderError):
        _provider(_FakeSession([]), []).embed("   ")


def test_retry_call_only_retries_listed_errors() -> None:
    calls = []

    def _fn() -> int:
        calls.append(1)
        raise KeyError("boom")

    with pytest.raises(KeyError):
        retry_call(_fn, attempts=3, base_delay=0.1, provider="test", retry_on=(RetryableStatusError,), sleep=lambda _: None)
    assert len(calls) == 1


def test_generation_provider_reads_first_choice() -> None:
    session = _FakeSession([_FakeResponse(payload={"choices": [{"message": {"content": '{"primaryTypes": []}'}}]})])
    provider = HTTPGenerationProvider(url="http://llm.local/v1/chat/completions", model="m", session=session)
    assert provider.complete("classify this", context="system prompt") == '{"primaryTypes": []}'
    body = session.calls[0]["json"]
    assert body["messages"][0] == {"role": "system", "content": "system prompt"}
    assert body["messages"][1]["content"] == "classify this"
    assert body["temperature"] == 0.0


def test_generation_provider_rejects_empty_reply() -> None:
    session = _FakeSession([_FakeResponse(payload={"choices": [{"message": {"content": "  "}}]})])
    provider = HTTPGenerationProvider(url="http://llm.local", model="m", session=session)
    with pytest.raises(GenerationProviderError):
        provider.complete("classify this")


def test_providers_from_settings(tmp_path) -> None:
    base = Settings(db_path=tmp_path / "x.db", embedding_dim=16)
    assert isinstance(embedding_provider_from_settings(base), HashedEmbeddingProvider)
    assert generation_provider_from_settings(base) is None

    with pytest.raises(ConfigurationError):
        embedding_provider_from_settings(base.model_copy(update={"embedding_backend": "http"}))

    configured = base.model_copy(
        update={
            "embedding_backend": "http",
            "embedding_url": "http://embed.local",
            "generation_url": "http://llm.local",
            "ai_classification_enabled": True,
        }
    )
    http_provider = embedding_provider_from_settings(configured)
    assert isinstance(http_provider, HTTPEmbeddingProvider)
    assert http_provider.dim == 16
    assert isinstance(generation_provider_from_settings(configured), HTTPGenerationProvider)
