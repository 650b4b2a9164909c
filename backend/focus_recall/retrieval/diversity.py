"""Spread the final selection across content types and projects."""

from __future__ import annotations

import math
from collections import Counter, OrderedDict
from typing import Protocol, Sequence, TypeVar

from focus_recall.models.entities import Document
from focus_recall.retrieval.fusion import fusion_sort_key


class _Selectable(Protocol):
    document: Document
    score: float


T = TypeVar("T", bound=_Selectable)


def _key(item: _Selectable) -> tuple:
    return fusion_sort_key(
        item.score,
        getattr(item, "vector_score", None),
        getattr(item, "keyword_score", None),
        item.document.id,
    )


def bucket_counts(items: Sequence[_Selectable]) -> dict[str, int]:
    return dict(Counter(item.document.content_type.value for item in items))


class DiversityOptimizer:
    """Guarantee a floor per content type, then fill by score under a per-type cap."""

    min_ratio = 0.1
    max_ratio = 0.3

    def limits(self, target: int) -> tuple[int, int]:
        min_per_bucket = max(2, math.floor(target * self.min_ratio))
        max_per_bucket = max(2 * min_per_bucket, math.floor(target * self.max_ratio))
        return min_per_bucket, max_per_bucket

    def select(self, items: Sequence[T], target: int) -> list[T]:
        if target >= len(items):
            return list(items)
        if target <= 0:
            return []
        min_per_bucket, max_per_bucket = self.limits(target)
        ordered = sorted(items, key=_key)

        buckets: OrderedDict[str, list[T]] = OrderedDict()
        for item in ordered:
            buckets.setdefault(item.document.content_type.value, []).append(item)

        chosen: list[T] = []
        chosen_ids: set[int] = set()
        per_type: Counter[str] = Counter()

        # pass 1: floor per bucket, rotating across projects
        for kind, members in buckets.items():
            for item in _round_robin_by_project(members, min_per_bucket):
                if len(chosen) >= target:
                    break
                chosen.append(item)
                chosen_ids.add(id(item))
                per_type[kind] += 1

        # pass 2: best remaining, capped per type
        for item in ordered:
            if len(chosen) >= target:
                break
            if id(item) in chosen_ids:
                continue
            kind = item.document.content_type.value
            if per_type[kind] >= max_per_bucket:
                continue
            chosen.append(item)
            chosen_ids.add(id(item))
            per_type[kind] += 1

        chosen.sort(key=_key)
        return chosen


def _round_robin_by_project(members: list[T], limit: int) -> list[T]:
    groups: OrderedDict[str | None, list[T]] = OrderedDict()
    for item in members:
        groups.setdefault(item.document.project_id, []).append(item)
    picked: list[T] = []
    queues = [list(group) for group in groups.values()]
    while len(picked) < limit and any(queues):
        for queue in queues:
            if queue and len(picked) < limit:
                picked.append(queue.pop(0))
    return picked


__all__ = ["DiversityOptimizer", "bucket_counts"]
