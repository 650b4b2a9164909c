"""BM25 keyword scoring with optional position, proximity and title signals."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from rank_bm25 import BM25Okapi

from focus_recall.models.entities import Document, ScoredCandidate
from focus_recall.utils.text import words

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
        "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
        "to", "was", "will", "with", "have", "had", "this", "these", "they",
        "been", "their", "said", "each", "which", "she", "do", "how", "his",
        "or", "but", "what", "some", "we", "can", "out", "other", "were",
        "all", "any", "your", "when", "up", "use", "word", "way", "about",
        "many", "then", "them", "would", "like", "so", "her", "long",
        "make", "thing", "see", "him", "two", "more", "go", "no", "could",
        "my", "than", "first", "water", "call", "who", "oil", "sit", "now",
        "find", "down", "day", "did", "get", "come", "made", "may", "part",
    }
)


def tokenize(text: str | None) -> list[str]:
    return [token for token in words(text or "") if len(token) >= 2 and token not in STOP_WORDS]


class _NonNegativeBM25(BM25Okapi):
    """Okapi BM25 with the ``log(1 + ...)`` IDF, so common terms never go negative."""

    def _calc_idf(self, nd: dict[str, int]) -> None:
        for word, freq in nd.items():
            self.idf[word] = math.log(1.0 + (self.corpus_size - freq + 0.5) / (freq + 0.5))


class BM25Scorer:
    def __init__(
        self,
        k1: float = 1.2,
        b: float = 0.75,
        position_weight: float = 0.1,
        proximity_weight: float = 0.1,
        title_boost: float = 1.3,
        position_window: int = 50,
        proximity_window: int = 10,
    ) -> None:
        self.k1 = k1
        self.b = b
        self.position_weight = position_weight
        self.proximity_weight = proximity_weight
        self.title_boost = title_boost
        self.position_window = position_window
        self.proximity_window = proximity_window

    def score(
        self,
        query: str,
        documents: Sequence[Document],
        min_score: float = 0.0,
        enhanced: bool = False,
    ) -> list[ScoredCandidate]:
        """Return candidates carrying ``keyword_score``, sorted by score, ties by id."""
        if not documents:
            return []
        query_terms = tokenize(query)
        corpus = [tokenize(doc.content) for doc in documents]
        base = self._base_scores(query_terms, corpus)
        scored: list[ScoredCandidate] = []
        for doc, tokens, value in zip(documents, corpus, base):
            score = float(value)
            if enhanced and score > 0:
                score = self._enhance(score, query_terms, tokens, doc)
            if score >= min_score:
                scored.append(ScoredCandidate(document=doc, keyword_score=score))
        scored.sort(key=lambda item: (-item.keyword_score, item.document.id))
        return scored

    def _base_scores(self, query_terms: list[str], corpus: list[list[str]]) -> np.ndarray:
        if not query_terms or not any(corpus):
            return np.zeros(len(corpus))
        model = _NonNegativeBM25(corpus, k1=self.k1, b=self.b)
        scores = model.get_scores(query_terms)
        # empty documents with b == 1 divide 0 by 0
        return np.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0)

    def _enhance(self, score: float, query_terms: list[str], tokens: list[str], doc: Document) -> float:
        length = len(tokens)
        first_positions: dict[str, int] = {}
        for idx, token in enumerate(tokens):
            first_positions.setdefault(token, idx)
        matched = [term for term in dict.fromkeys(query_terms) if term in first_positions]

        for term in matched:
            first = first_positions[term]
            if first < self.position_window:
                score += self.position_weight * (length - first) / length

        if len(matched) >= 2:
            span = _min_covering_span(tokens, set(matched))
            if span is not None and span <= self.proximity_window:
                score += self.proximity_weight * max(0.0, 1.0 - span / length)

        title_terms = set(tokenize(doc.title))
        if title_terms and title_terms.intersection(query_terms):
            score *= self.title_boost
        return score


def _min_covering_span(tokens: list[str], terms: set[str]) -> int | None:
    """Smallest ``last - first`` token distance covering one occurrence of every term."""
    hits = [(idx, token) for idx, token in enumerate(tokens) if token in terms]
    counts: dict[str, int] = {}
    best: int | None = None
    left = 0
    for pos, token in hits:
        counts[token] = counts.get(token, 0) + 1
        while len(counts) == len(terms):
            start_pos, start_token = hits[left]
            span = pos - start_pos
            if best is None or span < best:
                best = span
            counts[start_token] -= 1
            if counts[start_token] == 0:
                del counts[start_token]
            left += 1
    return best


__all__ = ["STOP_WORDS", "tokenize", "BM25Scorer"]
