"""Dataclasses describing documents and per-query retrieval results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from focus_recall.utils.time import parse_timestamp


class ContentType(str, Enum):
    TASK_AGGREGATE = "task_aggregate"
    TASK_SESSIONS = "task_sessions"
    PROJECT_SUMMARY = "project_summary"
    DAILY_SUMMARY = "daily_summary"
    WEEKLY_SUMMARY = "weekly_summary"
    MONTHLY_SUMMARY = "monthly_summary"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "ContentType":
        if isinstance(value, ContentType):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.OTHER
        return cls.OTHER


class Intent(str, Enum):
    TASK_PRIORITY = "task_priority"
    PROJECT_FOCUS = "project_focus"
    SUMMARY_INSIGHTS = "summary_insights"
    GENERAL = "general"


class MixingStrategy(str, Enum):
    PRIORITIZED = "prioritized"
    BALANCED = "balanced"
    COMPREHENSIVE = "comprehensive"


class TimeWindow(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


@dataclass(slots=True, frozen=True)
class Document:
    """A user-scoped productivity document supplied by a candidate source."""

    id: str
    content: str
    content_type: ContentType = ContentType.OTHER
    embedding: Sequence[float] | str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        # naive datetimes are taken as UTC so age and ordering never mix the two
        if self.created_at is not None:
            object.__setattr__(self, "created_at", parse_timestamp(self.created_at))

    @property
    def project_id(self) -> str | None:
        entities = self.metadata.get("entities")
        value = entities.get("projectId") if isinstance(entities, Mapping) else None
        value = value or self.metadata.get("projectId") or self.metadata.get("project_id")
        return str(value) if value else None

    @property
    def chunk_level(self) -> int | None:
        value = self.metadata.get("chunkLevel", self.metadata.get("chunk_level"))
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def title(self) -> str | None:
        value = self.metadata.get("title") or self.metadata.get("heading")
        return str(value) if value else None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Document":
        metadata = dict(payload.get("metadata") or {})
        raw_type = payload.get("content_type") or payload.get("contentType") or metadata.get("contentType")
        created = payload.get("created_at") or payload.get("createdAt") or metadata.get("created_at")
        doc_id = payload.get("id") or payload.get("document_id")
        if not doc_id:
            raise ValueError("Document payload is missing an id")
        return cls(
            id=str(doc_id),
            content=str(payload.get("content") or ""),
            content_type=ContentType.parse(raw_type),
            embedding=payload.get("embedding"),
            metadata=metadata,
            created_at=parse_timestamp(created),
        )

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "content_type": self.content_type.value,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_embedding:
            payload["embedding"] = self.embedding
        return payload


@dataclass(slots=True)
class CandidateFilters:
    content_types: tuple[ContentType, ...] = ()
    time_window: TimeWindow = TimeWindow.ALL
    project_ids: tuple[str, ...] = ()
    chunk_levels: tuple[int, ...] = ()
    limit: int = 200

    def cache_key(self) -> dict[str, Any]:
        return {
            "content_types": sorted(item.value for item in self.content_types),
            "time_window": self.time_window.value,
            "project_ids": sorted(self.project_ids),
            "chunk_levels": sorted(self.chunk_levels),
            "limit": self.limit,
        }

    def without_content_types(self) -> "CandidateFilters":
        return CandidateFilters(
            content_types=(),
            time_window=self.time_window,
            project_ids=self.project_ids,
            chunk_levels=self.chunk_levels,
            limit=self.limit,
        )


@dataclass(slots=True)
class ScoredCandidate:
    """One scorer's view of a document; the other stage's score stays ``None``."""

    document: Document
    vector_score: float | None = None
    keyword_score: float | None = None


@dataclass(slots=True)
class FusedResult:
    document_id: str
    document: Document
    fused_score: float
    vector_rank: int | None = None
    keyword_rank: int | None = None
    vector_score: float | None = None
    keyword_score: float | None = None


@dataclass(slots=True)
class RerankedResult:
    document: Document
    original_score: float
    rerank_score: float
    rank: int
    confidence: float
    explanation: str | None = None


@dataclass(slots=True)
class QueryClassification:
    primary_intent: Intent
    secondary_intents: tuple[str, ...]
    confidence: float
    suggested_content_types: tuple[ContentType, ...]
    mixing_strategy: MixingStrategy
    project_mentions: tuple[str, ...] = ()
    is_project_query: bool = False
    source: str = "rules"
    reasoning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary_intent": self.primary_intent.value,
            "secondary_intents": list(self.secondary_intents),
            "confidence": self.confidence,
            "suggested_content_types": [item.value for item in self.suggested_content_types],
            "mixing_strategy": self.mixing_strategy.value,
            "project_mentions": list(self.project_mentions),
            "is_project_query": self.is_project_query,
            "source": self.source,
            "reasoning": self.reasoning,
        }


@dataclass(slots=True)
class RankedDocument:
    """Final ranked row returned to callers."""

    document: Document
    rank: int
    score: float
    fused_score: float
    rerank_score: float | None = None
    vector_score: float | None = None
    keyword_score: float | None = None
    vector_rank: int | None = None
    keyword_rank: int | None = None
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.document.to_dict(),
            "rank": self.rank,
            "score": self.score,
            "hybrid_score": self.fused_score,
            "rerank_score": self.rerank_score,
            "vector_score": self.vector_score,
            "keyword_score": self.keyword_score,
            "vector_rank": self.vector_rank,
            "keyword_rank": self.keyword_rank,
            "confidence": self.confidence,
        }


@dataclass(slots=True)
class SearchMetadata:
    query_id: str
    total_documents: int = 0
    stage_counts: dict[str, int] = field(default_factory=dict)
    stage_timings_ms: dict[str, float] = field(default_factory=dict)
    processing_time_ms: float = 0.0
    strategy: str = "hybrid_vector_bm25_rrf"
    degraded: list[str] = field(default_factory=list)
    classification: QueryClassification | None = None
    fusion_analysis: dict[str, Any] = field(default_factory=dict)
    rerank: dict[str, Any] | None = None
    filter_relaxed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "query_id": self.query_id,
            "total_documents": self.total_documents,
            "stage_counts": dict(self.stage_counts),
            "stage_timings_ms": dict(self.stage_timings_ms),
            "processing_time_ms": self.processing_time_ms,
            "strategy": self.strategy,
            "degraded": list(self.degraded),
            "classification": self.classification.to_dict() if self.classification else None,
            "fusion_analysis": dict(self.fusion_analysis),
            "rerank": self.rerank,
            "filter_relaxed": self.filter_relaxed,
        }


@dataclass(slots=True)
class SearchResult:
    documents: list[RankedDocument]
    metadata: SearchMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": [item.to_dict() for item in self.documents],
            "metadata": self.metadata.to_dict(),
        }


__all__ = [
    "ContentType",
    "Intent",
    "MixingStrategy",
    "TimeWindow",
    "Document",
    "CandidateFilters",
    "ScoredCandidate",
    "FusedResult",
    "RerankedResult",
    "QueryClassification",
    "RankedDocument",
    "SearchMetadata",
    "SearchResult",
]
