"""Exception hierarchy for Focus Recall."""

from __future__ import annotations

from typing import Any


class FocusRecallError(Exception):
    """Base error carrying a stable code and structured context."""

    error_code: str = "FREC_ERR"

    def __init__(
        self,
        message: str,
        *,
        cause: Exception | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error_code": self.error_code,
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.context:
            payload["context"] = self.context
        if self.cause is not None:
            payload["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return payload


class ConfigurationError(FocusRecallError):
    error_code = "FREC_CONFIG"


class CandidateSourceError(FocusRecallError):
    """Raised when candidate documents cannot be fetched; fatal for a search."""

    error_code = "FREC_SOURCE"


class ProviderError(FocusRecallError):
    error_code = "FREC_PROVIDER"


class EmbeddingProviderError(ProviderError):
    error_code = "FREC_EMBEDDING"


class GenerationProviderError(ProviderError):
    error_code = "FREC_GENERATION"


class RerankError(FocusRecallError):
    error_code = "FREC_RERANK"


class ClassificationParseError(FocusRecallError):
    error_code = "FREC_CLASSIFY_PARSE"


__all__ = [
    "FocusRecallError",
    "ConfigurationError",
    "CandidateSourceError",
    "ProviderError",
    "EmbeddingProviderError",
    "GenerationProviderError",
    "RerankError",
    "ClassificationParseError",
]
