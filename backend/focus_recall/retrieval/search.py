"""Search orchestration."""

from __future__ import annotations

import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, Mapping, Protocol, Sequence, TypeVar

from focus_recall.core.config import SearchOptions, Settings, get_settings
from focus_recall.core.errors import CandidateSourceError, FocusRecallError
from focus_recall.core.logging import log_context
from focus_recall.core.metrics import DEGRADED_STAGES, SEARCH_COUNT, SEARCH_LATENCY, STAGE_LATENCY
from focus_recall.models.entities import (
    CandidateFilters,
    Document,
    MixingStrategy,
    QueryClassification,
    RankedDocument,
    ScoredCandidate,
    SearchMetadata,
    SearchResult,
)
from focus_recall.providers.embeddings import EmbeddingProvider
from focus_recall.retrieval.classifier import SOURCE_RULES_FALLBACK, QueryClassifier, content_type_boosts
from focus_recall.retrieval.diversity import DiversityOptimizer
from focus_recall.retrieval.fusion import FusionCombiner, analyze_fusion
from focus_recall.retrieval.keyword import BM25Scorer
from focus_recall.retrieval.rerank import Reranker, RerankOptions
from focus_recall.retrieval.vector import rank_by_vector
from focus_recall.sources.base import CandidateSource
from focus_recall.utils.ids import new_id
from focus_recall.utils.time import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

STRATEGY_HYBRID = "hybrid_vector_bm25_rrf"
STRATEGY_RERANKED = "hybrid_vector_bm25_rrf_reranked"
STRATEGY_KEYWORD_ONLY = "keyword_only"
STRATEGY_VECTOR_ONLY = "vector_only"
STRATEGY_NO_CANDIDATES = "no_candidates"
STRATEGY_FAILED = "hybrid_failed"


class Classifier(Protocol):
    def classify(self, query: str) -> QueryClassification: ...


@dataclass(slots=True)
class StageOutcome(Generic[T]):
    value: T
    degraded: bool = False
    error: str | None = None
    elapsed_ms: float = 0.0


@dataclass(slots=True)
class _VectorHits:
    results: list[ScoredCandidate]
    query_embedding: list[float] | None


class SearchEngine:
    """Runs one query through classify, fetch, score, fuse, rerank and diversify."""

    def __init__(
        self,
        source: CandidateSource,
        embedding_provider: EmbeddingProvider,
        settings: Settings | None = None,
        classifier: Classifier | None = None,
        reranker: Reranker | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.embedding_provider = embedding_provider
        self.settings = settings or get_settings()
        self.classifier = classifier or QueryClassifier()
        self.reranker = reranker or Reranker(embedding_provider)
        self.clock = clock
        self.fusion = FusionCombiner()
        self.diversity = DiversityOptimizer()

    def search(
        self,
        query: str,
        user_id: str,
        options: SearchOptions | Mapping[str, Any] | None = None,
    ) -> SearchResult:
        started = time.perf_counter()
        opts = self.settings.search.merged(options)
        meta = SearchMetadata(query_id=new_id("srch"))
        with log_context(query_id=meta.query_id, user_id=user_id):
            return self._run(query, user_id, opts, meta, started)

    def _run(
        self,
        query: str,
        user_id: str,
        opts: SearchOptions,
        meta: SearchMetadata,
        started: float,
    ) -> SearchResult:
        now = self.clock()
        classification = self._timed(meta, "classify", lambda: self.classifier.classify(query))
        meta.classification = classification
        if classification.source == SOURCE_RULES_FALLBACK:
            self._degrade(meta, "classify", classification.reasoning)

        filters = opts.filters(limit=self.settings.candidate_batch_size)
        classifier_filtered = False
        if (
            opts.use_classifier_filter
            and not filters.content_types
            and classification.mixing_strategy is MixingStrategy.PRIORITIZED
            and classification.suggested_content_types
        ):
            filters.content_types = tuple(classification.suggested_content_types)
            classifier_filtered = True

        documents = self._timed(meta, "fetch", lambda: self._fetch(user_id, filters, classifier_filtered, meta))
        meta.total_documents = len(documents)
        meta.stage_counts["candidates"] = len(documents)
        if not documents:
            logger.info("No candidate documents for query")
            return self._finish(meta, [], STRATEGY_NO_CANDIDATES, started)

        vector, keyword = self._score_parallel(query, documents, opts)
        meta.stage_timings_ms["vector"] = vector.elapsed_ms
        meta.stage_timings_ms["keyword"] = keyword.elapsed_ms
        for name, outcome in (("vector", vector), ("keyword", keyword)):
            if outcome.degraded:
                self._degrade(meta, name, outcome.error)
        meta.stage_counts["vector"] = len(vector.value.results)
        meta.stage_counts["keyword"] = len(keyword.value)

        if vector.degraded and keyword.degraded:
            return self._finish(meta, [], STRATEGY_FAILED, started)
        if vector.degraded:
            strategy = STRATEGY_KEYWORD_ONLY
        elif keyword.degraded:
            strategy = STRATEGY_VECTOR_ONLY
        else:
            strategy = STRATEGY_HYBRID

        boosts: dict[str, float] = {}
        if opts.use_classifier_boosts:
            boosts.update(content_type_boosts(classification))
        boosts.update(opts.content_type_boosts)
        fused = self._timed(
            meta,
            "fuse",
            lambda: self.fusion.fuse(vector.value.results, keyword.value, opts, now, boosts=boosts),
        )
        meta.stage_counts["fused"] = len(fused)
        meta.fusion_analysis = analyze_fusion(fused)

        rows = [
            RankedDocument(
                document=item.document,
                rank=idx,
                score=item.fused_score,
                fused_score=item.fused_score,
                vector_score=item.vector_score,
                keyword_score=item.keyword_score,
                vector_rank=item.vector_rank,
                keyword_rank=item.keyword_rank,
            )
            for idx, item in enumerate(fused, start=1)
        ]

        if opts.enable_reranking and rows:
            reranked = self._rerank(query, rows, opts, vector.value.query_embedding, now)
            meta.stage_timings_ms["rerank"] = reranked.elapsed_ms
            if reranked.degraded:
                self._degrade(meta, "rerank", reranked.error)
            else:
                rows, rerank_meta = reranked.value
                meta.rerank = rerank_meta
                meta.stage_counts["reranked"] = len(rows)
                if strategy == STRATEGY_HYBRID:
                    strategy = STRATEGY_RERANKED

        if opts.enable_diversity:
            final = self._timed(meta, "diversify", lambda: self.diversity.select(rows, opts.max_results))
        else:
            final = rows[: opts.max_results]
        for idx, row in enumerate(final, start=1):
            row.rank = idx
        return self._finish(meta, final, strategy, started)

    # ------------------------------------------------------------------

    def _fetch(
        self,
        user_id: str,
        filters: CandidateFilters,
        classifier_filtered: bool,
        meta: SearchMetadata,
    ) -> list[Document]:
        documents = self._fetch_once(user_id, filters)
        if not documents and classifier_filtered:
            logger.info("Classifier content-type filter matched nothing; refetching without it")
            meta.filter_relaxed = True
            documents = self._fetch_once(user_id, filters.without_content_types())
        return documents

    def _fetch_once(self, user_id: str, filters: CandidateFilters) -> list[Document]:
        try:
            return list(self.source.fetch(user_id, filters))
        except FocusRecallError:
            raise
        except Exception as exc:
            raise CandidateSourceError(
                "Candidate source failed",
                cause=exc,
                context={"source": type(self.source).__name__},
            ) from exc

    def _score_parallel(
        self,
        query: str,
        documents: Sequence[Document],
        opts: SearchOptions,
    ) -> tuple[StageOutcome[_VectorHits], StageOutcome[list[ScoredCandidate]]]:
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="frec-score")
        try:
            vector_future = executor.submit(contextvars.copy_context().run, self._vector_stage, query, documents, opts)
            keyword_future = executor.submit(contextvars.copy_context().run, self._keyword_stage, query, documents, opts)
            try:
                vector = vector_future.result(timeout=self.settings.stage_timeout_seconds)
            except FutureTimeout:
                vector = StageOutcome(
                    _VectorHits([], None),
                    degraded=True,
                    error=f"vector stage exceeded {self.settings.stage_timeout_seconds}s",
                    elapsed_ms=self.settings.stage_timeout_seconds * 1000.0,
                )
            keyword = keyword_future.result()
        finally:
            # a timed-out embedding call is left to finish in the background
            executor.shutdown(wait=False, cancel_futures=True)
        return vector, keyword

    def _vector_stage(self, query: str, documents: Sequence[Document], opts: SearchOptions) -> StageOutcome[_VectorHits]:
        started = time.perf_counter()
        try:
            query_embedding = self.embedding_provider.embed(query)
            results = rank_by_vector(query_embedding, documents, min_similarity=opts.min_vector_similarity)
        except Exception as exc:
            return self._failed("vector", _VectorHits([], None), exc, started)
        return StageOutcome(_VectorHits(results, list(query_embedding)), elapsed_ms=_elapsed_ms(started))

    def _keyword_stage(
        self,
        query: str,
        documents: Sequence[Document],
        opts: SearchOptions,
    ) -> StageOutcome[list[ScoredCandidate]]:
        started = time.perf_counter()
        scorer = BM25Scorer(
            k1=opts.bm25_k1,
            b=opts.bm25_b,
            position_weight=opts.position_weight,
            proximity_weight=opts.proximity_weight,
            title_boost=opts.title_boost,
        )
        try:
            scored = scorer.score(query, documents, min_score=opts.min_keyword_score, enhanced=opts.enhanced_bm25)
        except Exception as exc:
            return self._failed("keyword", [], exc, started)
        # documents without any query term are not keyword matches
        matches = [item for item in scored if item.keyword_score > 0]
        return StageOutcome(matches, elapsed_ms=_elapsed_ms(started))

    def _rerank(
        self,
        query: str,
        rows: list[RankedDocument],
        opts: SearchOptions,
        query_embedding: list[float] | None,
        now: datetime,
    ) -> StageOutcome[tuple[list[RankedDocument], dict[str, Any]] | None]:
        started = time.perf_counter()
        window = rows[: opts.reranking_candidates]
        by_id = {row.document.id: row for row in window}
        rerank_opts = RerankOptions.from_search(opts, max_results=len(window))
        try:
            results, metadata = self.reranker.rerank(
                query,
                [(row.document, row.fused_score) for row in window],
                rerank_opts,
                query_embedding=query_embedding,
                now=now,
            )
        except Exception as exc:
            return self._failed("rerank", None, exc, started)
        if not results:
            return StageOutcome(None, degraded=True, error="reranker returned no results", elapsed_ms=_elapsed_ms(started))
        reranked = []
        for result in results:
            row = by_id[result.document.id]
            row.score = result.rerank_score
            row.rerank_score = result.rerank_score
            row.confidence = result.confidence
            row.rank = result.rank
            reranked.append(row)
        return StageOutcome((reranked, metadata.to_dict()), elapsed_ms=_elapsed_ms(started))

    @staticmethod
    def _failed(stage: str, value: T, exc: Exception, started: float) -> StageOutcome[T]:
        if not isinstance(exc, FocusRecallError):
            logger.warning("Unexpected %s stage failure", stage, exc_info=True)
        return StageOutcome(value, degraded=True, error=str(exc), elapsed_ms=_elapsed_ms(started))

    @staticmethod
    def _degrade(meta: SearchMetadata, stage: str, error: str | None) -> None:
        meta.degraded.append(stage)
        DEGRADED_STAGES.labels(stage=stage).inc()
        logger.warning(
            "%s stage degraded: %s",
            stage,
            error,
            extra={"ctx_stage": stage},
        )

    @staticmethod
    def _timed(meta: SearchMetadata, stage: str, fn: Callable[[], T]) -> T:
        started = time.perf_counter()
        try:
            return fn()
        finally:
            elapsed = time.perf_counter() - started
            meta.stage_timings_ms[stage] = elapsed * 1000.0
            STAGE_LATENCY.labels(stage=stage).observe(elapsed)

    @staticmethod
    def _finish(
        meta: SearchMetadata,
        documents: list[RankedDocument],
        strategy: str,
        started: float,
    ) -> SearchResult:
        elapsed = time.perf_counter() - started
        meta.strategy = strategy
        meta.stage_counts["final"] = len(documents)
        meta.processing_time_ms = elapsed * 1000.0
        SEARCH_COUNT.labels(strategy=strategy).inc()
        SEARCH_LATENCY.observe(elapsed)
        logger.info(
            "Search finished with %d documents",
            len(documents),
            extra={
                "ctx_strategy": strategy,
                "ctx_degraded": list(meta.degraded),
                "ctx_elapsed_ms": round(meta.processing_time_ms, 2),
            },
        )
        return SearchResult(documents=documents, metadata=meta)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


__all__ = ["SearchEngine", "StageOutcome", "Classifier"]
