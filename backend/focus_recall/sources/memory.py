"""In-process candidate source, mostly for tests and embedding the engine."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable

from focus_recall.models.entities import CandidateFilters, Document
from focus_recall.utils.time import utc_now, window_start

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryCandidateSource:
    def __init__(self, documents: dict[str, Iterable[Document]] | None = None) -> None:
        self._documents: dict[str, list[Document]] = defaultdict(list)
        for user_id, docs in (documents or {}).items():
            self.add(user_id, docs)

    def add(self, user_id: str, documents: Iterable[Document]) -> None:
        self._documents[user_id].extend(documents)

    def fetch(self, user_id: str, filters: CandidateFilters) -> list[Document]:
        start = window_start(filters.time_window.value, utc_now())
        allowed_types = set(filters.content_types)
        projects = set(filters.project_ids)
        levels = set(filters.chunk_levels)
        selected = []
        for doc in self._documents.get(user_id, []):
            if allowed_types and doc.content_type not in allowed_types:
                continue
            if start is not None and (doc.created_at is None or doc.created_at < start):
                continue
            if projects and doc.project_id not in projects:
                continue
            if levels and doc.chunk_level not in levels:
                continue
            selected.append(doc)
        # newest first, matching the SQLite source
        selected.sort(key=lambda doc: (doc.created_at or _EPOCH, doc.id), reverse=True)
        return selected[: filters.limit]


__all__ = ["InMemoryCandidateSource"]
