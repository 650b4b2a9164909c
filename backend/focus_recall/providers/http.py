"""HTTP plumbing shared by provider adapters: bounded retries with backoff."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, TypeVar

import requests

from focus_recall.core.metrics import PROVIDER_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableStatusError(Exception):
    """Raised for HTTP statuses worth retrying (429 and 5xx)."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {body[:200]}")
        self.status_code = status_code


RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    requests.ConnectionError,
    requests.Timeout,
    RetryableStatusError,
)


def retry_call(
    fn: Callable[[], T],
    *,
    attempts: int,
    base_delay: float,
    provider: str,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` up to ``attempts + 1`` times, doubling the delay each retry."""
    for attempt in range(attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt >= attempts:
                raise
            delay = base_delay * (2**attempt)
            PROVIDER_RETRIES.labels(provider=provider).inc()
            logger.warning(
                "%s call failed (attempt %d/%d), retrying in %.2fs: %s",
                provider,
                attempt + 1,
                attempts + 1,
                delay,
                exc,
            )
            sleep(delay)
    raise AssertionError("unreachable")


def post_json(
    session: requests.Session,
    url: str,
    body: Mapping[str, Any],
    *,
    headers: Mapping[str, str] | None,
    timeout: float,
    attempts: int,
    base_delay: float,
    provider: str,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """POST a JSON body and decode the JSON reply, retrying transient failures."""

    def _send() -> Any:
        response = session.post(url, json=dict(body), headers=dict(headers or {}), timeout=timeout)
        if response.status_code == 429 or response.status_code >= 500:
            raise RetryableStatusError(response.status_code, response.text)
        response.raise_for_status()
        return response.json()

    return retry_call(_send, attempts=attempts, base_delay=base_delay, provider=provider, sleep=sleep)


def auth_headers(api_key: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"} if api_key else {}


__all__ = ["RetryableStatusError", "RETRYABLE_ERRORS", "retry_call", "post_json", "auth_headers"]
