"""Tests for dense-vector scoring."""

from __future__ import annotations

import math

import pytest

from focus_recall.models.entities import Document
from focus_recall.retrieval.vector import coerce_embedding, cosine_similarity, rank_by_vector


def test_cosine_similarity_basic() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_cosine_similarity_degenerate_inputs_score_zero() -> None:
    assert cosine_similarity(None, [1.0, 0.0]) == 0.0
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity("not json", [1.0]) == 0.0
    assert cosine_similarity([math.nan, 1.0], [1.0, 1.0]) == 0.0


def test_coerce_embedding_decodes_json_text() -> None:
    vector = coerce_embedding("[0.5, 0.25]")
    assert vector is not None
    assert vector.tolist() == [0.5, 0.25]
    assert coerce_embedding('{"a": 1}') is None
    assert coerce_embedding([]) is None
    assert coerce_embedding([[1.0], [2.0]]) is None


def test_rank_by_vector_orders_and_filters() -> None:
    docs = [
        Document(id="b", content="b", embedding=[1.0, 0.0]),
        Document(id="a", content="a", embedding=[1.0, 0.0]),
        Document(id="c", content="c", embedding=[0.6, 0.8]),
        Document(id="d", content="d", embedding=[0.0, 1.0]),
        Document(id="e", content="e", embedding=None),
        Document(id="f", content="f", embedding="[1.0, 0.0, 0.0]"),
    ]
    results = rank_by_vector([1.0, 0.0], docs, min_similarity=0.1)
    assert [item.document.id for item in results] == ["a", "b", "c"]
    assert results[2].vector_score == pytest.approx(0.6)
    assert all(item.keyword_score is None for item in results)


def test_rank_by_vector_empty_inputs() -> None:
    assert rank_by_vector([1.0], []) == []
    assert rank_by_vector([], [Document(id="a", content="a", embedding=[1.0])]) == []


def test_cosine_similarity_is_symmetric_and_self_similar() -> None:
    a, b = [0.3, -1.2, 4.0], [2.0, 0.5, -0.7]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert cosine_similarity(a, a) == pytest.approx(1.0)


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ([1e200, 1e200], [1e200, 1e200], 1.0),
        ([1e200, 0.0], [0.0, 1e200], 0.0),
        ([1e-300, 1e-300], [-1e-300, -1e-300], -1.0),
        ([1e308, -1e308], [1.0, -1.0], 1.0),
    ],
)
def test_cosine_similarity_extreme_magnitudes_stay_in_range(a, b, expected) -> None:
    score = cosine_similarity(a, b)
    assert math.isfinite(score)
    assert -1.0 <= score <= 1.0
    assert score == pytest.approx(expected)


def test_rank_by_vector_handles_huge_coordinates() -> None:
    docs = [Document(id="big", content="big", embedding=[1e200, 1e200])]
    results = rank_by_vector([3.0, 3.0], docs)
    assert [item.document.id for item in results] == ["big"]
    assert results[0].vector_score == pytest.approx(1.0)
