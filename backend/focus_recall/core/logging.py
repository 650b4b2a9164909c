"""Structured logging for Focus Recall."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

import orjson

_DEFAULT_LEVEL = os.environ.get("FREC_LOG_LEVEL", "INFO")
_DEFAULT_FORMAT = os.environ.get("FREC_LOG_FORMAT", "json")

_CONTEXT: ContextVar[dict[str, Any]] = ContextVar("frec_log_context", default={})


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Fields bound with :func:`log_context` are merged in first, then any
    ``ctx_*`` attribute passed through ``extra=`` on the call itself.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        payload.update(_CONTEXT.get())
        for key, value in record.__dict__.items():
            if key.startswith("ctx_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind ``ctx_<name>`` fields to every record logged inside the block."""
    bound = {**_CONTEXT.get(), **{f"ctx_{key}": value for key, value in fields.items()}}
    token = _CONTEXT.set(bound)
    try:
        yield
    finally:
        _CONTEXT.reset(token)


def current_context() -> dict[str, Any]:
    return dict(_CONTEXT.get())


def configure_logging(level: str | int | None = None, use_json: bool | None = None) -> None:
    """Install a single stdout handler on the root logger."""
    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level or _DEFAULT_LEVEL)
    if use_json is None:
        use_json = _DEFAULT_FORMAT.lower() != "text"
    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.handlers = [handler]


__all__ = ["JsonFormatter", "log_context", "current_context", "configure_logging"]
