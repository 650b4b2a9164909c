"""Reciprocal rank fusion of the vector and keyword rankings."""

from __future__ import annotations

import statistics
from collections import Counter
from datetime import datetime
from typing import Any, Mapping, Sequence

from focus_recall.core.config import SearchOptions
from focus_recall.models.entities import Document, FusedResult, ScoredCandidate
from focus_recall.utils.time import age_in_days

RECENCY_HORIZON_DAYS = 365.0
MAX_DIVERSITY_PENALTY = 0.5


def reciprocal_rank_fusion(
    rankings: Sequence[Sequence[str]],
    weights: Sequence[float] | None = None,
    k: float = 60.0,
) -> list[tuple[str, float]]:
    """Combine ranked id lists; each list contributes ``weight / (k + rank)``."""
    if weights is not None and len(weights) != len(rankings):
        raise ValueError("weights must match the number of rankings")
    scores: dict[str, float] = {}
    for idx, hits in enumerate(rankings):
        weight = weights[idx] if weights is not None else 1.0
        for rank, identifier in enumerate(hits, start=1):
            scores[identifier] = scores.get(identifier, 0.0) + weight / (k + rank)
    return sorted(scores.items(), key=lambda item: (-item[1], item[0]))


def recency_decay(created_at: datetime | None, now: datetime) -> float:
    """Linear decay over a year: 1.0 for new (or future-dated) documents, 0.0 when unknown."""
    age = age_in_days(created_at, now)
    if age is None:
        return 0.0
    if age <= 0:
        return 1.0
    return max(0.0, 1.0 - age / RECENCY_HORIZON_DAYS)


def fusion_sort_key(score: float, vector_score: float | None, keyword_score: float | None, doc_id: str) -> tuple:
    return (
        -score,
        -(vector_score if vector_score is not None else float("-inf")),
        -(keyword_score if keyword_score is not None else float("-inf")),
        doc_id,
    )


def _sort_key(result: FusedResult) -> tuple:
    return fusion_sort_key(result.fused_score, result.vector_score, result.keyword_score, result.document_id)


def _productivity(document: Document) -> float:
    analytics = document.metadata.get("analytics")
    if not isinstance(analytics, Mapping):
        return 0.0
    value = analytics.get("productivity", analytics.get("productivityScore"))
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


class FusionCombiner:
    def fuse(
        self,
        vector_results: Sequence[ScoredCandidate],
        keyword_results: Sequence[ScoredCandidate],
        options: SearchOptions,
        now: datetime,
        boosts: Mapping[str, float] | None = None,
        max_results: int | None = None,
    ) -> list[FusedResult]:
        """Fuse two ranked lists into one, applying boosts and a diversity penalty.

        ``boosts`` defaults to ``options.content_type_boosts``; ``max_results``
        of ``None`` keeps every fused document.
        """
        boost_map = dict(options.content_type_boosts if boosts is None else boosts)
        k = options.rrf_k
        merged: dict[str, FusedResult] = {}

        for rank, candidate in enumerate(vector_results, start=1):
            doc = candidate.document
            merged[doc.id] = FusedResult(
                document_id=doc.id,
                document=doc,
                fused_score=options.vector_weight / (k + rank),
                vector_rank=rank,
                vector_score=candidate.vector_score,
            )
        for rank, candidate in enumerate(keyword_results, start=1):
            doc = candidate.document
            contribution = options.keyword_weight / (k + rank)
            existing = merged.get(doc.id)
            if existing is None:
                merged[doc.id] = FusedResult(
                    document_id=doc.id,
                    document=doc,
                    fused_score=contribution,
                    keyword_rank=rank,
                    keyword_score=candidate.keyword_score,
                )
            else:
                existing.fused_score += contribution
                existing.keyword_rank = rank
                existing.keyword_score = candidate.keyword_score

        for result in merged.values():
            doc = result.document
            result.fused_score *= boost_map.get(doc.content_type.value, 1.0)
            if options.recency_weight:
                result.fused_score += options.recency_weight * recency_decay(doc.created_at, now)
            if options.productivity_weight:
                result.fused_score += options.productivity_weight * _productivity(doc)

        ordered = sorted(merged.values(), key=_sort_key)
        if options.diversity_weight:
            self._apply_diversity_penalty(ordered, options.diversity_weight)
            ordered.sort(key=_sort_key)
        if max_results is not None:
            ordered = ordered[:max_results]
        return ordered

    @staticmethod
    def _apply_diversity_penalty(ordered: list[FusedResult], weight: float) -> None:
        seen_types: Counter[str] = Counter()
        seen_projects: Counter[str] = Counter()
        for result in ordered:
            doc = result.document
            project = doc.project_id
            shared = seen_types[doc.content_type.value] + (seen_projects[project] if project else 0)
            if shared:
                result.fused_score -= result.fused_score * min(MAX_DIVERSITY_PENALTY, weight * shared)
            seen_types[doc.content_type.value] += 1
            if project:
                seen_projects[project] += 1


def analyze_fusion(results: Sequence[FusedResult]) -> dict[str, Any]:
    """Summarize where fused results came from and how their scores spread."""
    if not results:
        return {
            "total": 0,
            "vector_only": 0,
            "keyword_only": 0,
            "hybrid": 0,
            "average_score": 0.0,
            "score_distribution": {"min": 0.0, "max": 0.0, "median": 0.0},
        }
    vector_only = sum(1 for item in results if item.vector_rank is not None and item.keyword_rank is None)
    keyword_only = sum(1 for item in results if item.keyword_rank is not None and item.vector_rank is None)
    hybrid = sum(1 for item in results if item.vector_rank is not None and item.keyword_rank is not None)
    scores = [item.fused_score for item in results]
    return {
        "total": len(results),
        "vector_only": vector_only,
        "keyword_only": keyword_only,
        "hybrid": hybrid,
        "average_score": sum(scores) / len(scores),
        "score_distribution": {
            "min": min(scores),
            "max": max(scores),
            "median": statistics.median(scores),
        },
    }


__all__ = [
    "reciprocal_rank_fusion",
    "recency_decay",
    "fusion_sort_key",
    "FusionCombiner",
    "analyze_fusion",
]
