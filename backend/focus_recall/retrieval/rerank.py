"""Second-pass relevance scoring over the top fused candidates."""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from rapidfuzz import fuzz

from focus_recall.core.config import RerankModel, SearchOptions
from focus_recall.core.errors import EmbeddingProviderError, RerankError
from focus_recall.models.entities import Document, RerankedResult
from focus_recall.providers.embeddings import EmbeddingProvider
from focus_recall.retrieval.keyword import tokenize
from focus_recall.retrieval.vector import coerce_embedding, cosine_similarity
from focus_recall.utils.time import age_in_days, utc_now

logger = logging.getLogger(__name__)

_QUERY_FILLER = frozenset({"tell", "show", "give", "please", "where", "why", "much", "does", "should", "might"})
_SENTENCE_END_RE = re.compile(r"[.!?]+")
_STRUCTURE_RE = re.compile(r"[:\-*]|\d+\.")
_TYPE_PENALTY_CAP = 0.3


@dataclass(slots=True)
class RerankOptions:
    model: RerankModel = "hybrid"
    max_candidates: int = 50
    min_relevance_score: float = 0.1
    diversity_weight: float = 0.1
    recency_weight: float = 0.05
    content_type_weights: Mapping[str, float] = field(default_factory=dict)
    max_results: int | None = None

    @classmethod
    def from_search(cls, options: SearchOptions, max_results: int | None = None) -> "RerankOptions":
        return cls(
            model=options.reranking_model,
            max_candidates=options.reranking_candidates,
            min_relevance_score=options.min_rerank_score,
            diversity_weight=options.rerank_diversity_weight,
            recency_weight=options.rerank_recency_weight,
            content_type_weights=dict(options.rerank_content_type_weights),
            max_results=max_results,
        )


@dataclass(slots=True)
class RerankMetadata:
    total_candidates: int = 0
    reranked_results: int = 0
    processing_time_ms: float = 0.0
    strategy: str = "hybrid"
    average_confidence: float = 0.0
    score_distribution: dict[str, int] = field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0}
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_candidates": self.total_candidates,
            "reranked_results": self.reranked_results,
            "processing_time_ms": self.processing_time_ms,
            "strategy": self.strategy,
            "average_confidence": self.average_confidence,
            "score_distribution": dict(self.score_distribution),
        }


@dataclass(slots=True)
class _Scored:
    document: Document
    original_score: float
    score: float
    confidence: float
    explanation: str


class Reranker:
    """Heuristic reranker with cross-encoder style, embedding and hybrid scoring."""

    def __init__(self, embedding_provider: EmbeddingProvider | None = None) -> None:
        self.embedding_provider = embedding_provider

    def rerank(
        self,
        query: str,
        candidates: Sequence[tuple[Document, float]],
        options: RerankOptions | None = None,
        query_embedding: Sequence[float] | None = None,
        now: datetime | None = None,
    ) -> tuple[list[RerankedResult], RerankMetadata]:
        opts = options or RerankOptions()
        started = time.perf_counter()
        if not candidates:
            return [], RerankMetadata(strategy=opts.model)

        subset = list(candidates)[: opts.max_candidates]
        current = now or utc_now()
        terms = extract_key_terms(query)

        if opts.model == "cross-encoder":
            scored = [self._cross_encoder(query, terms, doc, score) for doc, score in subset]
        elif opts.model == "semantic-similarity":
            q_vec = self._query_vector(query, query_embedding)
            scored = [self._semantic(q_vec, doc, score) for doc, score in subset]
        else:
            q_vec = coerce_embedding(query_embedding)
            scored = [
                self._hybrid(query, terms, q_vec, doc, score, opts, current) for doc, score in subset
            ]

        scored.sort(key=lambda item: (-item.score, -item.original_score, item.document.id))
        self._apply_diversity_penalty(scored, opts.diversity_weight)
        if opts.model != "hybrid":
            for item in scored:
                item.score = self._adjust(item.score, item.document, opts, current)

        kept = [item for item in scored if _clip(item.score) >= opts.min_relevance_score]
        kept.sort(key=lambda item: (-_clip(item.score), -item.original_score, item.document.id))
        if opts.max_results is not None:
            kept = kept[: opts.max_results]

        results = [
            RerankedResult(
                document=item.document,
                original_score=item.original_score,
                rerank_score=_clip(item.score),
                rank=rank,
                confidence=_clip(item.confidence),
                explanation=item.explanation,
            )
            for rank, item in enumerate(kept, start=1)
        ]
        metadata = _build_metadata(len(subset), results, opts.model, started)
        logger.debug(
            "Reranked %d candidates into %d results",
            len(subset),
            len(results),
            extra={"ctx_stage": "rerank", "ctx_model": opts.model},
        )
        return results, metadata

    def _query_vector(self, query: str, query_embedding: Sequence[float] | None) -> Any:
        if query_embedding is not None:
            vector = coerce_embedding(query_embedding)
            if vector is not None:
                return vector
        if self.embedding_provider is None:
            raise RerankError("Semantic reranking needs a query embedding or an embedding provider")
        try:
            vector = coerce_embedding(self.embedding_provider.embed(query))
        except EmbeddingProviderError as exc:
            raise RerankError("Failed to embed query for reranking", cause=exc) from exc
        if vector is None:
            raise RerankError("Embedding provider returned an unusable query vector")
        return vector

    def _document_vector(self, doc: Document, dim: int) -> Any:
        vector = coerce_embedding(doc.embedding)
        if vector is not None and vector.shape[0] == dim:
            return vector
        if self.embedding_provider is None or not doc.content.strip():
            return None
        try:
            return coerce_embedding(self.embedding_provider.embed(doc.content))
        except EmbeddingProviderError as exc:
            raise RerankError(
                "Failed to embed document for reranking", cause=exc, context={"document_id": doc.id}
            ) from exc

    def _cross_encoder(self, query: str, terms: list[str], doc: Document, original: float) -> _Scored:
        relevance = _relevance(query, terms, doc.content)
        contextual = _contextual_relevance(query, doc)
        position = _position_score(doc.content, terms)
        score = relevance * 0.6 + contextual * 0.3 + position * 0.1
        return _Scored(
            document=doc,
            original_score=original,
            score=score,
            confidence=min(0.95, relevance + 0.1),
            explanation=f"cross-encoder: relevance={relevance:.3f} context={contextual:.3f} position={position:.3f}",
        )

    def _semantic(self, q_vec: Any, doc: Document, original: float) -> _Scored:
        semantic = self._semantic_score(q_vec, doc)
        coherence = _coherence(doc.content)
        return _Scored(
            document=doc,
            original_score=original,
            score=semantic * coherence,
            confidence=semantic,
            explanation=f"semantic: similarity={semantic:.3f} coherence={coherence:.3f}",
        )

    def _semantic_score(self, q_vec: Any, doc: Document) -> float:
        if q_vec is None:
            return 0.0
        d_vec = self._document_vector(doc, q_vec.shape[0])
        if d_vec is None:
            return 0.0
        return max(0.0, cosine_similarity(q_vec, d_vec))

    def _hybrid(
        self,
        query: str,
        terms: list[str],
        q_vec: Any,
        doc: Document,
        original: float,
        opts: RerankOptions,
        now: datetime,
    ) -> _Scored:
        relevance = _relevance(query, terms, doc.content)
        if q_vec is not None:
            semantic = self._semantic_score(q_vec, doc)
        else:
            semantic = _lexical_overlap(terms, doc.content)
        structural = _structural_relevance(query, doc)
        freshness = _freshness(doc, opts.recency_weight, now)
        type_score = _content_type_score(doc, opts.content_type_weights)
        position = _position_score(doc.content, terms)
        score = (
            relevance * 0.35
            + semantic * 0.25
            + structural * 0.15
            + freshness * 0.1
            + type_score * 0.1
            + position * 0.05
        )
        return _Scored(
            document=doc,
            original_score=original,
            score=score,
            confidence=min(0.95, (relevance + semantic) / 2 + 0.1),
            explanation=(
                f"hybrid: relevance={relevance:.2f} semantic={semantic:.2f} structure={structural:.2f} "
                f"fresh={freshness:.2f} type={type_score:.2f}"
            ),
        )

    @staticmethod
    def _apply_diversity_penalty(scored: list[_Scored], weight: float) -> None:
        if not weight:
            return
        seen: dict[str, int] = {}
        for item in scored:
            key = item.document.content_type.value
            same = seen.get(key, 0)
            if same:
                item.score -= min(_TYPE_PENALTY_CAP, weight * same)
            seen[key] = same + 1

    @staticmethod
    def _adjust(score: float, doc: Document, opts: RerankOptions, now: datetime) -> float:
        if opts.recency_weight:
            score = score * (1.0 - opts.recency_weight) + opts.recency_weight * _decay(doc, now)
        return score * opts.content_type_weights.get(doc.content_type.value, 1.0)


def extract_key_terms(query: str, limit: int = 10) -> list[str]:
    terms = [term for term in tokenize(query) if len(term) > 2 and term not in _QUERY_FILLER]
    return list(dict.fromkeys(terms))[:limit]


def _clip(value: float) -> float:
    return min(1.0, max(0.0, value))


def _relevance(query: str, terms: list[str], content: str) -> float:
    query_lower = query.lower().strip()
    content_lower = content.lower()
    exact = 1.0 if query_lower and query_lower in content_lower else 0.0
    matches = [term for term in terms if term in content_lower]
    coverage = len(matches) / max(len(terms), 1)
    fuzzy = fuzz.token_set_ratio(query_lower, content_lower) / 100.0 if content_lower else 0.0
    early = 1.0 if any(0 <= content_lower.find(term) < 100 for term in terms) else 0.0
    return _clip(exact * 0.35 + coverage * 0.35 + fuzzy * 0.2 + early * 0.1)


def _contextual_relevance(query: str, doc: Document) -> float:
    query_lower = query.lower()
    kind = doc.content_type.value
    score = 0.5
    if "project" in query_lower and "project" in kind:
        score += 0.3
    if "task" in query_lower and "task" in kind:
        score += 0.3
    if "summary" in query_lower and "summary" in kind:
        score += 0.2
    return min(1.0, score)


def _position_score(content: str, terms: list[str]) -> float:
    content_lower = content.lower()
    window = max(min(len(content), 500), 1)
    scores = []
    for term in terms:
        pos = content_lower.find(term)
        if pos != -1:
            scores.append(max(0.0, 1.0 - pos / window))
    return sum(scores) / len(scores) if scores else 0.0


def _lexical_overlap(terms: list[str], content: str) -> float:
    if not terms:
        return 0.0
    content_lower = content.lower()
    coverage = sum(1 for term in terms if term in content_lower) / len(terms)
    content_words = content_lower.split()
    consecutive = 0
    for start in range(len(content_words)):
        run = 0
        for offset, term in enumerate(terms):
            if start + offset < len(content_words) and term in content_words[start + offset]:
                run += 1
            else:
                break
        consecutive = max(consecutive, run)
    return min(1.0, coverage + 0.2 * consecutive / len(terms))


def _coherence(content: str) -> float:
    sentences = len(_SENTENCE_END_RE.findall(content))
    word_count = len(content.split())
    if sentences:
        avg = word_count / sentences
        length_score = max(0.0, 1.0 - abs(avg - 20) / 20)
    else:
        length_score = 0.5
    structure = 0.1 if _STRUCTURE_RE.search(content) else 0.0
    return min(1.0, length_score + structure + 0.3)


def _query_shape(query: str) -> str:
    query_lower = query.lower()
    if any(marker in query_lower for marker in ("how many", "count", "number")):
        return "quantitative"
    if any(marker in query_lower for marker in ("what", "which", "show")):
        return "informational"
    if any(marker in query_lower for marker in ("why", "how", "explain")):
        return "analytical"
    if any(marker in query_lower for marker in ("status", "progress", "update")):
        return "status"
    return "general"


_SHAPE_TYPE_MARKERS = {
    "quantitative": ("summary", "aggregate"),
    "informational": ("project", "task"),
    "analytical": ("session",),
    "status": ("summary",),
}


def _structural_relevance(query: str, doc: Document) -> float:
    kind = doc.content_type.value
    score = 0.5
    markers = _SHAPE_TYPE_MARKERS.get(_query_shape(query), ())
    if any(marker in kind for marker in markers):
        score += 0.3
    if doc.metadata.get("entities") or doc.metadata.get("analytics"):
        score += 0.1
    return min(1.0, score)


def _decay(doc: Document, now: datetime) -> float:
    age = age_in_days(doc.created_at, now)
    if age is None:
        return 0.3
    return math.exp(-max(age, 0.0) / 30.0)


def _freshness(doc: Document, recency_weight: float, now: datetime) -> float:
    if not recency_weight:
        return 0.5
    return _decay(doc, now) * recency_weight + (1.0 - recency_weight) * 0.5


def _content_type_score(doc: Document, weights: Mapping[str, float]) -> float:
    weight = weights.get(doc.content_type.value)
    return min(1.0, weight) if weight is not None else 0.5


def _build_metadata(total: int, results: list[RerankedResult], strategy: str, started: float) -> RerankMetadata:
    distribution = {"high": 0, "medium": 0, "low": 0}
    for result in results:
        if result.rerank_score > 0.8:
            distribution["high"] += 1
        elif result.rerank_score > 0.4:
            distribution["medium"] += 1
        else:
            distribution["low"] += 1
    average = sum(result.confidence for result in results) / len(results) if results else 0.0
    return RerankMetadata(
        total_candidates=total,
        reranked_results=len(results),
        processing_time_ms=(time.perf_counter() - started) * 1000.0,
        strategy=strategy,
        average_confidence=average,
        score_distribution=distribution,
    )


__all__ = ["Reranker", "RerankOptions", "RerankMetadata", "extract_key_terms"]
