"""SQLite management utilities and the read-only SQLite candidate source."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

import orjson

from focus_recall.core.errors import CandidateSourceError
from focus_recall.models.entities import CandidateFilters, ContentType, Document
from focus_recall.utils.time import parse_timestamp, utc_now, window_start

logger = logging.getLogger(__name__)

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA temp_store=MEMORY;",
)

_PROJECT_EXPR = (
    "COALESCE(json_extract(metadata, '$.entities.projectId'), "
    "json_extract(metadata, '$.projectId'), json_extract(metadata, '$.project_id'))"
)
_CHUNK_LEVEL_EXPR = "COALESCE(json_extract(metadata, '$.chunkLevel'), json_extract(metadata, '$.chunk_level'))"


class SQLiteDatabase:
    """Thin wrapper around sqlite3.

    Writable connections get WAL pragmas and create the parent directory;
    read-only connections open an existing file with ``mode=ro``.
    """

    def __init__(self, db_path: Path, read_only: bool = False) -> None:
        self.db_path = db_path.expanduser()
        self.read_only = read_only
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def connect(self) -> sqlite3.Connection:
        with self._lock:
            if self._connection is None:
                if self.read_only:
                    uri = f"file:{self.db_path}?mode=ro"
                    self._connection = sqlite3.connect(uri, uri=True, check_same_thread=False)
                else:
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                    self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
                    for pragma in DEFAULT_PRAGMAS:
                        self._connection.execute(pragma)
                self._connection.row_factory = sqlite3.Row
            return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def executescript(self, script: str) -> None:
        conn = self.connect()
        conn.executescript(script)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        conn = self.connect()
        return conn.execute(sql, params or [])

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        cursor = self.execute(sql, params)
        return cursor.fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        conn = self.connect()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def ensure_schema(self, schema_sql: str | None = None) -> None:
        if schema_sql is None:
            schema_path = Path(__file__).with_name("schema.sql")
            schema_sql = schema_path.read_text(encoding="utf-8")
        self.executescript(schema_sql)


def insert_documents(db: SQLiteDatabase, user_id: str, documents: Iterable[Document]) -> int:
    """Write documents into ``productivity_documents``; used for seeding and tests."""
    rows = [
        (
            doc.id,
            user_id,
            doc.content,
            doc.content_type.value,
            doc.embedding if isinstance(doc.embedding, str) or doc.embedding is None
            else orjson.dumps(list(doc.embedding)).decode("utf-8"),
            orjson.dumps(dict(doc.metadata), default=str).decode("utf-8"),
            doc.created_at.isoformat() if doc.created_at else None,
        )
        for doc in documents
    ]
    with db.transaction() as cur:
        cur.executemany(
            """
            INSERT OR REPLACE INTO productivity_documents
                (id, user_id, content, content_type, embedding, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


class SQLiteCandidateSource:
    """Reads candidate documents for a user; never writes."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def fetch(self, user_id: str, filters: CandidateFilters) -> list[Document]:
        sql, params = self._build_query(user_id, filters)
        try:
            rows = self.db.query(sql, params)
        except sqlite3.Error as exc:
            raise CandidateSourceError(
                "Failed to load candidate documents",
                cause=exc,
                context={"db_path": str(self.db.db_path)},
            ) from exc
        return [self._row_to_document(row) for row in rows]

    @staticmethod
    def _build_query(user_id: str, filters: CandidateFilters) -> tuple[str, list[Any]]:
        clauses = ["user_id = ?"]
        params: list[Any] = [user_id]
        if filters.content_types:
            placeholders = ",".join("?" for _ in filters.content_types)
            clauses.append(f"content_type IN ({placeholders})")
            params.extend(item.value for item in filters.content_types)
        start = window_start(filters.time_window.value, utc_now())
        if start is not None:
            clauses.append("created_at >= ?")
            params.append(start.isoformat())
        if filters.project_ids:
            placeholders = ",".join("?" for _ in filters.project_ids)
            clauses.append(f"{_PROJECT_EXPR} IN ({placeholders})")
            params.extend(filters.project_ids)
        if filters.chunk_levels:
            placeholders = ",".join("?" for _ in filters.chunk_levels)
            clauses.append(f"{_CHUNK_LEVEL_EXPR} IN ({placeholders})")
            params.extend(filters.chunk_levels)
        sql = (
            "SELECT id, content, content_type, embedding, metadata, created_at "
            "FROM productivity_documents WHERE "
            + " AND ".join(clauses)
            + " ORDER BY created_at DESC, id DESC LIMIT ?"
        )
        params.append(filters.limit)
        return sql, params

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        metadata: dict[str, Any] = {}
        if row["metadata"]:
            try:
                loaded = orjson.loads(row["metadata"])
            except orjson.JSONDecodeError:
                logger.warning("Ignoring malformed metadata for document %s", row["id"])
            else:
                if isinstance(loaded, dict):
                    metadata = loaded
        return Document(
            id=row["id"],
            content=row["content"] or "",
            content_type=ContentType.parse(row["content_type"]),
            embedding=row["embedding"],
            metadata=metadata,
            created_at=parse_timestamp(row["created_at"]),
        )


__all__ = ["SQLiteDatabase", "SQLiteCandidateSource", "insert_documents"]
