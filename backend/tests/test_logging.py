"""Tests for structured logging."""

from __future__ import annotations

import logging

import orjson

from focus_recall.core.config import Settings
from focus_recall.core.logging import JsonFormatter, configure_logging, current_context, log_context
from focus_recall.providers.embeddings import HashedEmbeddingProvider
from focus_recall.retrieval.search import SearchEngine
from focus_recall.sources.memory import InMemoryCandidateSource

from conftest import EMBED_DIM


def _record(message: str = "stage %s degraded", *args) -> logging.LogRecord:
    return logging.LogRecord("focus_recall.test", logging.WARNING, __file__, 1, message, args or ("vector",), None)


def test_json_formatter_copies_context_fields() -> None:
    record = _record()
    record.ctx_stage = "vector"
    record.other = "ignored"
    payload = orjson.loads(JsonFormatter().format(record))
    assert payload["message"] == "stage vector degraded"
    assert payload["level"] == "WARNING"
    assert payload["ctx_stage"] == "vector"
    assert "other" not in payload


def test_log_context_binds_and_unbinds_fields() -> None:
    with log_context(query_id="srch_1"):
        with log_context(user_id="u1"):
            payload = orjson.loads(JsonFormatter().format(_record()))
            assert payload["ctx_query_id"] == "srch_1"
            assert payload["ctx_user_id"] == "u1"
        assert current_context() == {"ctx_query_id": "srch_1"}
    assert current_context() == {}


def test_search_logs_carry_query_id(caplog, marketing_corpus, tmp_path) -> None:
    class _RecordingFilter(logging.Filter):
        def __init__(self) -> None:
            super().__init__()
            self.contexts: list[dict] = []

        def filter(self, record: logging.LogRecord) -> bool:
            self.contexts.append(current_context())
            return True

    engine = SearchEngine(
        InMemoryCandidateSource({"u1": marketing_corpus}),
        HashedEmbeddingProvider(dim=EMBED_DIM),
        settings=Settings(db_path=tmp_path / "x.db", embedding_dim=EMBED_DIM),
    )
    recorder = _RecordingFilter()
    caplog.handler.addFilter(recorder)
    with caplog.at_level(logging.INFO, logger="focus_recall"):
        result = engine.search("marketing tasks", "u1")
    caplog.handler.removeFilter(recorder)
    assert recorder.contexts
    assert all(ctx.get("ctx_query_id") == result.metadata.query_id for ctx in recorder.contexts)


def test_configure_logging_installs_single_handler() -> None:
    root = logging.getLogger()
    previous = root.handlers[:], root.level
    try:
        configure_logging("DEBUG")
        configure_logging("INFO", use_json=False)
        assert len(root.handlers) == 1
        assert root.level == logging.INFO
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        root.handlers, level = previous
        root.setLevel(level)
