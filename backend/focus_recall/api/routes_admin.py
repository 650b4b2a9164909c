"""Administrative routes for Focus Recall."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from focus_recall.api.dependencies import get_app_settings
from focus_recall.core.config import Settings
from focus_recall.core.metrics import metrics_response

router = APIRouter()


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


@router.get("/config", summary="Effective search defaults")
async def get_config(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    return {
        "embedding_backend": settings.embedding_backend,
        "embedding_dim": settings.embedding_dim,
        "ai_classification_enabled": settings.ai_classification_enabled,
        "candidate_batch_size": settings.candidate_batch_size,
        "search": settings.search.model_dump(mode="json"),
    }


__all__ = ["router"]
