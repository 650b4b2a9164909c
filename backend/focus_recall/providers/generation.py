"""Text generation provider used by the AI-assisted query classifier."""

from __future__ import annotations

import time
from typing import Callable, Protocol, runtime_checkable

import requests

from focus_recall.core.config import Settings
from focus_recall.core.errors import GenerationProviderError
from focus_recall.providers.http import RETRYABLE_ERRORS, auth_headers, post_json


@runtime_checkable
class GenerationProvider(Protocol):
    def complete(self, prompt: str, context: str | None = None) -> str: ...


class HTTPGenerationProvider:
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    provider_name = "generation"

    def __init__(
        self,
        url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        temperature: float = 0.0,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.url = url
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.temperature = temperature
        self._session = session or requests.Session()
        self._sleep = sleep

    def complete(self, prompt: str, context: str | None = None) -> str:
        messages = []
        if context:
            messages.append({"role": "system", "content": context})
        messages.append({"role": "user", "content": prompt})
        body = {"model": self.model, "messages": messages, "temperature": self.temperature}
        try:
            payload = post_json(
                self._session,
                self.url,
                body,
                headers=auth_headers(self.api_key),
                timeout=self.timeout,
                attempts=self.max_retries,
                base_delay=self.backoff_seconds,
                provider=self.provider_name,
                sleep=self._sleep,
            )
        except (*RETRYABLE_ERRORS, requests.RequestException, ValueError) as exc:
            raise GenerationProviderError(
                "Generation request failed",
                cause=exc,
                context={"url": self.url, "model": self.model},
            ) from exc
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationProviderError("Malformed completion response", cause=exc) from exc
        if not isinstance(content, str) or not content.strip():
            raise GenerationProviderError("Completion response is empty")
        return content


def generation_provider_from_settings(settings: Settings) -> GenerationProvider | None:
    """Build the provider when AI classification is enabled and configured."""
    if not settings.ai_classification_enabled or not settings.generation_url:
        return None
    return HTTPGenerationProvider(
        url=settings.generation_url,
        model=settings.generation_model,
        api_key=settings.provider_api_key,
        timeout=settings.provider_timeout_seconds,
        max_retries=settings.provider_max_retries,
        backoff_seconds=settings.provider_backoff_seconds,
    )


__all__ = ["GenerationProvider", "HTTPGenerationProvider", "generation_provider_from_settings"]
