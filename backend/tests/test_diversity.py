"""Tests for the diversity optimizer."""

from __future__ import annotations

from focus_recall.models.entities import ContentType, Document, RankedDocument
from focus_recall.retrieval.diversity import DiversityOptimizer, bucket_counts


def _row(doc_id: str, content_type: ContentType, score: float, project: str | None = None) -> RankedDocument:
    metadata = {"entities": {"projectId": project}} if project else {}
    doc = Document(id=doc_id, content=doc_id, content_type=content_type, metadata=metadata)
    return RankedDocument(document=doc, rank=0, score=score, fused_score=score)


def _pool() -> list[RankedDocument]:
    rows = [_row(f"t{i}", ContentType.TASK_AGGREGATE, 1.0 - i * 0.01, "p1" if i < 4 else "p2") for i in range(8)]
    rows += [_row(f"d{i}", ContentType.DAILY_SUMMARY, 0.5 - i * 0.01) for i in range(2)]
    rows += [_row(f"w{i}", ContentType.WEEKLY_SUMMARY, 0.4 - i * 0.01) for i in range(2)]
    return rows


def test_limits() -> None:
    optimizer = DiversityOptimizer()
    assert optimizer.limits(6) == (2, 4)
    assert optimizer.limits(20) == (2, 6)
    assert optimizer.limits(50) == (5, 15)


def test_select_guarantees_floor_per_type() -> None:
    chosen = DiversityOptimizer().select(_pool(), 6)
    assert bucket_counts(chosen) == {"task_aggregate": 2, "daily_summary": 2, "weekly_summary": 2}
    assert [row.score for row in chosen] == sorted((row.score for row in chosen), reverse=True)


def test_select_rotates_projects_within_a_type() -> None:
    chosen = DiversityOptimizer().select(_pool(), 6)
    tasks = [row.document.id for row in chosen if row.document.content_type is ContentType.TASK_AGGREGATE]
    assert tasks == ["t0", "t4"]


def test_select_caps_each_type_and_may_underfill() -> None:
    chosen = DiversityOptimizer().select(_pool(), 10)
    counts = bucket_counts(chosen)
    assert counts["task_aggregate"] == 4
    assert len(chosen) == 8


def test_select_returns_everything_when_target_covers_pool() -> None:
    pool = _pool()
    assert DiversityOptimizer().select(pool, 20) == pool
    assert DiversityOptimizer().select(pool, 0) == []
