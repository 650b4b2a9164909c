"""Search API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from focus_recall.api.dependencies import get_classifier, get_search_engine
from focus_recall.core.errors import CandidateSourceError
from focus_recall.models.dto import ClassifyRequest, ClassifyResponse, SearchRequest, SearchResponse
from focus_recall.retrieval import SearchEngine, content_type_boosts
from focus_recall.retrieval.search import Classifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/search", response_model=SearchResponse, summary="Run a hybrid retrieval query")
def run_search(
    request: SearchRequest,
    engine: SearchEngine = Depends(get_search_engine),
) -> SearchResponse:
    try:
        result = engine.search(request.query, request.user_id, request.overrides())
    except CandidateSourceError as exc:
        logger.warning("Search failed: %s", exc, extra={"ctx_error": exc.error_code})
        raise HTTPException(status_code=503, detail=exc.to_dict()) from exc
    return SearchResponse(**result.to_dict())


@router.post("/classify", response_model=ClassifyResponse, summary="Classify a query's intent")
def classify_query(
    request: ClassifyRequest,
    classifier: Classifier = Depends(get_classifier),
) -> ClassifyResponse:
    classification = classifier.classify(request.query)
    return ClassifyResponse(
        **classification.to_dict(),
        content_type_boosts=content_type_boosts(classification),
    )


__all__ = ["router"]
