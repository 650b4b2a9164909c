"""Tests for BM25 keyword scoring."""

from __future__ import annotations

from focus_recall.models.entities import Document, ScoredCandidate
from focus_recall.retrieval.keyword import BM25Scorer, tokenize


def _docs() -> list[Document]:
    return [
        Document(id="d1", content="Marketing campaign launch plan for the spring quarter"),
        Document(id="d2", content="Engineering sprint notes about database migrations"),
        Document(id="d3", content="Quarterly budget review with finance"),
        Document(id="d4", content=""),
    ]


def _by_id(results: list[ScoredCandidate]) -> dict[str, float]:
    return {item.document.id: item.keyword_score for item in results}


def test_tokenize_drops_stop_words_and_short_tokens() -> None:
    assert tokenize("What are the tasks in a Marketing project?") == ["tasks", "marketing", "project"]
    assert tokenize(None) == []


def test_score_ranks_matching_document_first() -> None:
    results = BM25Scorer().score("marketing campaign", _docs())
    assert results[0].document.id == "d1"
    assert results[0].keyword_score > 0
    assert all(item.keyword_score == 0.0 for item in results if item.document.id != "d1")
    assert all(item.vector_score is None for item in results)


def test_scores_are_never_negative() -> None:
    docs = [Document(id=str(i), content="focus focus session") for i in range(5)]
    results = BM25Scorer().score("focus", docs)
    assert all(item.keyword_score >= 0.0 for item in results)


def test_query_without_terms_scores_zero() -> None:
    results = BM25Scorer().score("the and of", _docs())
    assert len(results) == 4
    assert all(item.keyword_score == 0.0 for item in results)


def test_min_score_filters_results() -> None:
    results = BM25Scorer().score("marketing", _docs(), min_score=0.01)
    assert [item.document.id for item in results] == ["d1"]


def test_empty_corpus_scores_zero() -> None:
    docs = [Document(id="x", content=""), Document(id="y", content="   ")]
    results = BM25Scorer().score("anything", docs)
    assert [item.keyword_score for item in results] == [0.0, 0.0]


def test_enhanced_scoring_adds_position_proximity_and_title_signals() -> None:
    docs = [
        Document(id="near", content="budget review early in the document", metadata={"title": "Budget review"}),
        Document(id="far", content="notes " * 30 + "budget " + "filler " * 20 + "review"),
    ]
    plain = _by_id(BM25Scorer().score("budget review", docs))
    enhanced = _by_id(BM25Scorer().score("budget review", docs, enhanced=True))
    assert enhanced["near"] > plain["near"]
    assert enhanced["near"] > enhanced["far"]


def test_enhanced_scoring_leaves_non_matches_at_zero() -> None:
    results = BM25Scorer().score("marketing", _docs(), enhanced=True)
    assert _by_id(results)["d2"] == 0.0


def test_ties_break_by_document_id() -> None:
    docs = [Document(id="b", content="alpha beta"), Document(id="a", content="alpha beta")]
    results = BM25Scorer().score("alpha", docs)
    assert [item.document.id for item in results] == ["a", "b"]


def test_score_grows_with_term_frequency() -> None:
    docs = [
        Document(id="once", content="deadline report notes filler"),
        Document(id="twice", content="deadline deadline notes filler"),
        Document(id="other", content="unrelated words only here"),
    ]
    scores = _by_id(BM25Scorer().score("deadline", docs))
    assert scores["twice"] > scores["once"] > 0.0
