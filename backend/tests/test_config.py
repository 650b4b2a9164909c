"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from focus_recall.core.config import SearchOptions, Settings, get_settings
from focus_recall.models.entities import ContentType, TimeWindow


def test_defaults(tmp_path: Path) -> None:
    settings = Settings.from_yaml(tmp_path / "missing.yaml")
    assert settings.db_path == tmp_path / "frec.db"
    assert settings.embedding_backend == "hashed"
    assert settings.search.max_results == 20
    assert settings.search.rrf_k == 60.0


def test_yaml_and_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        """
storage:
  batch_size: 50
embeddings:
  dim: 128
generation:
  ai_classification: true
search:
  max_results: 5
  enable_reranking: true
  content_type_boosts:
    task_aggregate: 2.0
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("FREC_CONFIG", str(config))
    monkeypatch.setenv("FREC_EMBEDDING_DIM", "256")
    settings = get_settings()
    assert settings.candidate_batch_size == 50
    assert settings.embedding_dim == 256
    assert settings.ai_classification_enabled is True
    assert settings.search.max_results == 5
    assert settings.search.enable_reranking is True
    assert settings.search.content_type_boosts == {"task_aggregate": 2.0}


def test_merged_applies_overrides_without_mutating_defaults() -> None:
    defaults = SearchOptions()
    merged = defaults.merged(
        {"max_results": 3, "content_types": ["daily_summary"], "time_window": "week", "enable_diversity": None}
    )
    assert merged.max_results == 3
    assert merged.content_types == [ContentType.DAILY_SUMMARY]
    assert merged.time_window is TimeWindow.WEEK
    assert merged.enable_diversity is True
    assert defaults.max_results == 20
    assert defaults.merged(None) is defaults


def test_merged_accepts_options_instance() -> None:
    merged = SearchOptions(keyword_weight=2.0).merged(SearchOptions(max_results=7))
    assert merged.max_results == 7
    assert merged.keyword_weight == 2.0


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        SearchOptions(max_results=0)
    with pytest.raises(ValidationError):
        SearchOptions().merged({"reranking_model": "gpt"})


def test_filters_from_options() -> None:
    filters = SearchOptions(project_ids=["p1"], chunk_levels=[1]).filters(limit=25)
    assert filters.project_ids == ("p1",)
    assert filters.chunk_levels == (1,)
    assert filters.limit == 25
    assert filters.time_window is TimeWindow.ALL
