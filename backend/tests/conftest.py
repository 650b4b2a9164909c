"""Test fixtures for Focus Recall."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from focus_recall.models.entities import ContentType, Document  # noqa: E402
from focus_recall.providers.embeddings import HashedEmbeddingProvider  # noqa: E402

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
EMBED_DIM = 64

PROJECTS = ("Marketing", "Engineering", "Sales", "Design")
TASKS = {
    "Marketing": ("Launch Q3 campaign", "Write newsletter copy", "Plan trade show booth"),
    "Engineering": ("Fix login bug", "Refactor billing service", "Upgrade database cluster"),
    "Sales": ("Prepare renewal deck", "Call enterprise leads", "Update pricing sheet"),
    "Design": ("Draft onboarding screens", "Build icon set", "Review brand guidelines"),
}


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("FREC_DB_PATH", str(tmp_path / "frec.db"))
    monkeypatch.delenv("FREC_CONFIG", raising=False)

    from focus_recall.api import dependencies as deps
    from focus_recall.core.config import get_settings

    deps.reset_singletons()
    get_settings.cache_clear()
    yield
    deps.reset_singletons()
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def embedder() -> HashedEmbeddingProvider:
    return HashedEmbeddingProvider(dim=EMBED_DIM)


@pytest.fixture
def make_doc(embedder: HashedEmbeddingProvider) -> Callable[..., Document]:
    def _make(
        doc_id: str,
        content: str,
        content_type: ContentType = ContentType.TASK_AGGREGATE,
        project: str | None = None,
        age_days: float = 1.0,
        embed: bool = True,
        **metadata: Any,
    ) -> Document:
        meta = dict(metadata)
        if project:
            meta["entities"] = {"projectId": project}
        return Document(
            id=doc_id,
            content=content,
            content_type=content_type,
            embedding=embedder.embed(content) if embed else None,
            metadata=meta,
            created_at=NOW - timedelta(days=age_days),
        )

    return _make


@pytest.fixture
def marketing_corpus(make_doc: Callable[..., Document]) -> list[Document]:
    """Forty documents across four projects and six content types."""
    docs: list[Document] = []
    for p_idx, project in enumerate(PROJECTS):
        slug = project.lower()
        for t_idx, task in enumerate(TASKS[project]):
            docs.append(
                make_doc(
                    f"{slug}-task-{t_idx}",
                    f"{project} project task: {task}. Tasks in the {project} project are tracked "
                    f"with {2 + t_idx} sessions and {3 + t_idx} hours logged.",
                    ContentType.TASK_AGGREGATE,
                    project=project,
                    age_days=2 + t_idx + p_idx,
                    title=task,
                )
            )
        for s_idx in range(2):
            docs.append(
                make_doc(
                    f"{slug}-session-{s_idx}",
                    f"Work session {s_idx + 1} on {TASKS[project][s_idx]} lasted 45 minutes of deep focus.",
                    ContentType.TASK_SESSIONS,
                    project=project,
                    age_days=1 + s_idx + p_idx,
                )
            )
        docs.append(
            make_doc(
                f"{slug}-summary",
                f"{project} project summary: three tasks, steady progress, 12 hours this month.",
                ContentType.PROJECT_SUMMARY,
                project=project,
                age_days=5 + p_idx,
                title=f"{project} overview",
            )
        )
    for d_idx in range(8):
        docs.append(
            make_doc(
                f"daily-{d_idx}",
                f"Daily summary for day {d_idx + 1}: worked across {1 + d_idx % 3} projects, five hours focused.",
                ContentType.DAILY_SUMMARY,
                age_days=d_idx + 1,
            )
        )
    for w_idx in range(4):
        docs.append(
            make_doc(
                f"weekly-{w_idx}",
                f"Weekly summary {w_idx + 1}: productivity trend rising, 30 hours across projects.",
                ContentType.WEEKLY_SUMMARY,
                age_days=7 * (w_idx + 1),
            )
        )
    for m_idx in range(4):
        docs.append(
            make_doc(
                f"monthly-{m_idx}",
                f"Monthly summary {m_idx + 1}: long-term focus patterns and totals.",
                ContentType.MONTHLY_SUMMARY,
                age_days=30 * (m_idx + 1),
            )
        )
    return docs
