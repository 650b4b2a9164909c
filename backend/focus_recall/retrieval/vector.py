"""Dense-vector scoring over candidate documents."""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np
import orjson

from focus_recall.models.entities import Document, ScoredCandidate


def coerce_embedding(raw: Any) -> np.ndarray | None:
    """Return a finite 1-d float array, or ``None`` when the value is unusable.

    Embeddings persisted as JSON text are decoded first.
    """
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        try:
            raw = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return None
    if isinstance(raw, (str, bytes, dict)) or not isinstance(raw, (Sequence, np.ndarray)):
        return None
    try:
        vector = np.asarray(raw, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if vector.ndim != 1 or vector.size == 0 or not np.all(np.isfinite(vector)):
        return None
    return vector


def cosine_similarity(a: Any, b: Any) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for missing, malformed, mismatched or zero vectors."""
    vec_a = coerce_embedding(a)
    vec_b = coerce_embedding(b)
    if vec_a is None or vec_b is None or vec_a.shape != vec_b.shape:
        return 0.0
    return _cosine(_unit(vec_a), vec_b)


def _unit(vector: np.ndarray) -> np.ndarray | None:
    # scale by the largest coordinate first so huge or tiny values neither overflow nor underflow
    scale = float(np.max(np.abs(vector)))
    if scale == 0.0:
        return None
    scaled = vector / scale
    return scaled / float(np.linalg.norm(scaled))


def _cosine(query_unit: np.ndarray | None, vector: np.ndarray) -> float:
    vector_unit = _unit(vector)
    if query_unit is None or vector_unit is None:
        return 0.0
    return float(np.clip(np.dot(query_unit, vector_unit), -1.0, 1.0))


def rank_by_vector(
    query_embedding: Sequence[float],
    documents: Sequence[Document],
    min_similarity: float = 0.1,
) -> list[ScoredCandidate]:
    """Score every document against the query and keep those above the threshold."""
    query = coerce_embedding(query_embedding)
    if query is None or not documents:
        return []
    query_unit = _unit(query)
    scored: list[ScoredCandidate] = []
    for doc in documents:
        vector = coerce_embedding(doc.embedding)
        if vector is None or vector.shape != query.shape:
            score = 0.0
        else:
            score = _cosine(query_unit, vector)
        if score >= min_similarity:
            scored.append(ScoredCandidate(document=doc, vector_score=score))
    scored.sort(key=lambda item: (-item.vector_score, item.document.id))
    return scored


__all__ = ["coerce_embedding", "cosine_similarity", "rank_by_vector"]
