"""Candidate source protocol plus chaining and caching wrappers."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol, Sequence, runtime_checkable

from focus_recall.core.errors import CandidateSourceError
from focus_recall.models.entities import CandidateFilters, Document, TimeWindow
from focus_recall.utils.hashing import fingerprint
from focus_recall.utils.time import utc_now, window_start

logger = logging.getLogger(__name__)


@runtime_checkable
class CandidateSource(Protocol):
    """Supplies the per-user document batch a search runs over."""

    def fetch(self, user_id: str, filters: CandidateFilters) -> list[Document]: ...


@dataclass(slots=True, frozen=True)
class SourceCapabilities:
    """What a source can filter natively; the chain filters the rest itself."""

    name: str
    content_types: bool = True
    time_window: bool = True
    project_ids: bool = True
    chunk_levels: bool = True


@dataclass(slots=True)
class _ChainEntry:
    source: CandidateSource
    capabilities: SourceCapabilities


class CandidateSourceChain:
    """Try sources in priority order; the first non-empty batch wins.

    A failing source is skipped with a warning. The chain only raises when
    every source failed, so an empty result from a healthy source is still a
    valid answer.
    """

    def __init__(self) -> None:
        self._entries: list[_ChainEntry] = []

    def register(self, source: CandidateSource, capabilities: SourceCapabilities) -> "CandidateSourceChain":
        self._entries.append(_ChainEntry(source=source, capabilities=capabilities))
        return self

    @property
    def capabilities(self) -> list[SourceCapabilities]:
        return [entry.capabilities for entry in self._entries]

    def fetch(self, user_id: str, filters: CandidateFilters) -> list[Document]:
        if not self._entries:
            raise CandidateSourceError("No candidate sources registered")
        failures: list[str] = []
        for entry in self._entries:
            try:
                documents = entry.source.fetch(user_id, filters)
            except CandidateSourceError as exc:
                failures.append(entry.capabilities.name)
                logger.warning(
                    "Candidate source %s failed: %s",
                    entry.capabilities.name,
                    exc,
                    extra={"ctx_source": entry.capabilities.name},
                )
                continue
            documents = _apply_missing_filters(documents, filters, entry.capabilities)
            if documents:
                logger.debug(
                    "Candidate source %s returned %d documents",
                    entry.capabilities.name,
                    len(documents),
                )
                return documents
        if len(failures) == len(self._entries):
            raise CandidateSourceError("All candidate sources failed", context={"sources": failures})
        return []


def _apply_missing_filters(
    documents: Sequence[Document],
    filters: CandidateFilters,
    capabilities: SourceCapabilities,
) -> list[Document]:
    result = list(documents)
    if filters.content_types and not capabilities.content_types:
        allowed = set(filters.content_types)
        result = [doc for doc in result if doc.content_type in allowed]
    if filters.time_window is not TimeWindow.ALL and not capabilities.time_window:
        start = window_start(filters.time_window.value, utc_now())
        result = [doc for doc in result if doc.created_at is not None and doc.created_at >= start]
    if filters.project_ids and not capabilities.project_ids:
        projects = set(filters.project_ids)
        result = [doc for doc in result if doc.project_id in projects]
    if filters.chunk_levels and not capabilities.chunk_levels:
        levels = set(filters.chunk_levels)
        result = [doc for doc in result if doc.chunk_level in levels]
    return result[: filters.limit]


@dataclass(slots=True)
class _KeyLock:
    lock: threading.Lock
    holders: int = 0


class CachedCandidateSource:
    """TTL cache in front of another source.

    Concurrent fetches for the same ``(user_id, filters)`` share one lock, so
    the backing source is hit once. Locks exist only while a key is being
    fetched. Expired entries are dropped whenever a new batch is stored, and
    the oldest entries go first once ``max_entries`` is reached.
    """

    def __init__(
        self,
        source: CandidateSource,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 256,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._source = source
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, list[Document]]] = OrderedDict()
        self._locks: dict[str, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._entries)

    def fetch(self, user_id: str, filters: CandidateFilters) -> list[Document]:
        key = fingerprint({"user_id": user_id, "filters": filters.cache_key()})
        with self._key_lock(key):
            now = self._clock()
            with self._registry_lock:
                cached = self._entries.get(key)
            if cached is not None and now - cached[0] < self._ttl:
                return list(cached[1])
            documents = list(self._source.fetch(user_id, filters))
            with self._registry_lock:
                self._entries.pop(key, None)
                self._entries[key] = (now, documents)
                self._prune(now)
            return list(documents)

    def invalidate(self) -> None:
        with self._registry_lock:
            self._entries.clear()

    def _prune(self, now: float) -> None:
        expired = [key for key, (stored, _) in self._entries.items() if now - stored >= self._ttl]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    @contextmanager
    def _key_lock(self, key: str) -> Iterator[None]:
        with self._registry_lock:
            slot = self._locks.get(key)
            if slot is None:
                slot = self._locks[key] = _KeyLock(threading.Lock())
            slot.holders += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._registry_lock:
                slot.holders -= 1
                if slot.holders == 0:
                    del self._locks[key]


__all__ = ["CandidateSource", "SourceCapabilities", "CandidateSourceChain", "CachedCandidateSource"]
