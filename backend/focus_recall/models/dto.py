"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from focus_recall.models.entities import ContentType, TimeWindow


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    max_results: int | None = Field(default=None, ge=1, le=200)
    vector_weight: float | None = Field(default=None, ge=0.0)
    keyword_weight: float | None = Field(default=None, ge=0.0)
    enable_reranking: bool | None = None
    reranking_model: Literal["cross-encoder", "semantic-similarity", "hybrid"] | None = None
    enable_diversity: bool | None = None
    use_classifier_filter: bool | None = None
    content_types: list[ContentType] | None = None
    time_window: TimeWindow | None = None
    project_ids: list[str] | None = None
    chunk_levels: list[int] | None = None

    def overrides(self) -> dict[str, Any]:
        """Search option overrides the caller actually set."""
        return self.model_dump(exclude_none=True, exclude={"query", "user_id"})


class DocumentResult(BaseModel):
    id: str
    content: str
    content_type: str
    metadata: dict[str, Any]
    created_at: str | None = None
    rank: int
    score: float
    hybrid_score: float
    rerank_score: float | None = None
    vector_score: float | None = None
    keyword_score: float | None = None
    vector_rank: int | None = None
    keyword_rank: int | None = None
    confidence: float | None = None


class SearchResponse(BaseModel):
    documents: list[DocumentResult]
    metadata: dict[str, Any]


class ClassifyRequest(BaseModel):
    query: str = Field(min_length=1)


class ClassifyResponse(BaseModel):
    primary_intent: str
    secondary_intents: list[str]
    confidence: float
    suggested_content_types: list[str]
    mixing_strategy: str
    project_mentions: list[str]
    is_project_query: bool
    source: str
    reasoning: str | None = None
    content_type_boosts: dict[str, float]


__all__ = [
    "SearchRequest",
    "DocumentResult",
    "SearchResponse",
    "ClassifyRequest",
    "ClassifyResponse",
]
