from __future__ import annotations

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from ..models import Document, DocumentRecord, FtsHit

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;
PRAGMA busy_timeout=5000;

CREATE TABLE IF NOT EXISTS documents (
  id TEXT PRIMARY KEY,
  type TEXT NOT NULL,
  source_file TEXT NOT NULL,
  concepts TEXT NOT NULL DEFAULT '[]',
  created_at INTEGER NOT NULL,
  updated_at INTEGER NOT NULL,
  indexed_at INTEGER NOT NULL,
  project TEXT,
  origin TEXT,
  created_by TEXT,
  superseded_by TEXT,
  superseded_at INTEGER,
  superseded_reason TEXT
);

CREATE INDEX IF NOT EXISTS idx_documents_source ON documents(source_file);
CREATE INDEX IF NOT EXISTS idx_documents_type ON documents(type);
CREATE INDEX IF NOT EXISTS idx_documents_project ON documents(project);

-- Lexical index: FTS5 with Porter stemming
CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
  id UNINDEXED,
  content,
  concepts,
  tokenize='porter unicode61'
);

CREATE TABLE IF NOT EXISTS settings (
  key TEXT PRIMARY KEY,
  value TEXT,
  updated_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS search_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  query TEXT NOT NULL,
  type TEXT,
  mode TEXT,
  project TEXT,
  results_count INTEGER NOT NULL,
  search_time_ms INTEGER NOT NULL,
  result_ids TEXT,
  created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS document_access (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  document_id TEXT NOT NULL,
  access_type TEXT NOT NULL,
  created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_access_document ON document_access(document_id);
"""

_DOC_COLUMNS = (
    "id, type, source_file, concepts, created_at, updated_at, indexed_at, project, origin, "
    "created_by, superseded_by, superseded_at, superseded_reason"
)


def now_ms() -> int:
    return int(time.time() * 1000)


def _category_filter(category: Optional[str]) -> Optional[str]:
    if not category or category == "all":
        return None
    return category


class LibSqlStore:
    """SQLite-backed Document Store with an FTS5 full-text index.

    Holds documents, their full-text entries, key/value settings and the
    search/access audit tables. Writes are single statements; there is no
    transaction spanning this store and the vector index.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def init(self) -> None:
        self._conn.executescript(SCHEMA_SQL)
        # Project ids are compared case-insensitively everywhere else
        self._conn.execute("UPDATE documents SET project = LOWER(project) WHERE project <> LOWER(project)")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upsert_document(self, doc: Document, content: str) -> None:
        """Insert or refresh a document and its full-text entry.

        On conflict only content fields change: `created_at` and `created_by`
        keep their original values, and supersession state is left alone.
        """
        project = doc.project.lower() if doc.project else None
        concepts = list(doc.concepts)
        self._conn.execute(
            """INSERT INTO documents(id, type, source_file, concepts, created_at, updated_at, indexed_at, project, origin, created_by)
               VALUES(?,?,?,?,?,?,?,?,?,?)
               ON CONFLICT(id) DO UPDATE SET
                 type=excluded.type, source_file=excluded.source_file, concepts=excluded.concepts,
                 updated_at=excluded.updated_at, indexed_at=excluded.indexed_at,
                 project=excluded.project, origin=excluded.origin,
                 created_by=COALESCE(documents.created_by, excluded.created_by)
            """,
            (doc.id, doc.category, doc.source_file, json.dumps(concepts), doc.created_at, doc.updated_at,
             doc.indexed_at, project, doc.origin, doc.created_by),
        )
        # FTS upsert: easiest is delete then insert
        self._conn.execute("DELETE FROM notes_fts WHERE id = ?", (doc.id,))
        self._conn.execute("INSERT INTO notes_fts(id, content, concepts) VALUES(?,?,?)",
                           (doc.id, content, " ".join(concepts)))
        self._conn.commit()

    def get_document(self, doc_id: str) -> Optional[DocumentRecord]:
        row = self._conn.execute(f"SELECT {_DOC_COLUMNS} FROM documents WHERE id = ?", (doc_id,)).fetchone()
        return DocumentRecord.from_row(row) if row else None

    def get_documents(self, ids: Sequence[str]) -> dict[str, DocumentRecord]:
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        rows = self._conn.execute(
            f"SELECT {_DOC_COLUMNS} FROM documents WHERE id IN ({placeholders})", list(ids)
        ).fetchall()
        return {r["id"]: DocumentRecord.from_row(r) for r in rows}

    def list_documents(self, category: Optional[str] = None) -> list[DocumentRecord]:
        cat = _category_filter(category)
        if cat:
            rows = self._conn.execute(
                f"SELECT {_DOC_COLUMNS} FROM documents WHERE type = ? ORDER BY id", (cat,)
            ).fetchall()
        else:
            rows = self._conn.execute(f"SELECT {_DOC_COLUMNS} FROM documents ORDER BY id").fetchall()
        return [DocumentRecord.from_row(r) for r in rows]

    def get_content(self, doc_id: str) -> Optional[str]:
        row = self._conn.execute("SELECT content FROM notes_fts WHERE id = ?", (doc_id,)).fetchone()
        return row["content"] if row else None

    def mark_superseded(self, ids: Iterable[str], superseded_by: str, reason: Optional[str],
                        at: Optional[int] = None) -> int:
        """Flag documents as superseded. Rows are never deleted."""
        at = at if at is not None else now_ms()
        updated = 0
        for doc_id in ids:
            cur = self._conn.execute(
                "UPDATE documents SET superseded_by = ?, superseded_at = ?, superseded_reason = ? WHERE id = ?",
                (superseded_by, at, reason, doc_id),
            )
            updated += cur.rowcount
        self._conn.commit()
        return updated

    # ------------------------------------------------------------------
    # Full-text search
    # ------------------------------------------------------------------

    def fts_search(
        self,
        query: str,
        k: int,
        category: Optional[str] = None,
        project: Optional[str] = None,
    ) -> list[FtsHit]:
        """Run an FTS5 MATCH. `query` must already be sanitized.

        With `project` set, only documents of that project or universal
        documents (NULL project) match. Errors from FTS5 propagate.
        """
        params: list[Any] = [query]
        where = "notes_fts MATCH ?"
        cat = _category_filter(category)
        if cat:
            where += " AND d.type = ?"
            params.append(cat)
        if project:
            where += " AND (d.project = ? OR d.project IS NULL)"
            params.append(project.lower())
        params.append(k)

        sql = f"""
        SELECT notes_fts.id AS id, notes_fts.content AS content, notes_fts.rank AS rank
        FROM notes_fts
        JOIN documents d ON notes_fts.id = d.id
        WHERE {where}
        ORDER BY notes_fts.rank
        LIMIT ?
        """
        rows = self._conn.execute(sql, params).fetchall()
        return [FtsHit(id=r["id"], rank=float(r["rank"]), content=r["content"] or "") for r in rows]

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def log_search(self, query: str, category: Optional[str], mode: str, project: Optional[str],
                   results_count: int, search_time_ms: int, result_ids: Sequence[str]) -> None:
        self._conn.execute(
            """INSERT INTO search_log(query, type, mode, project, results_count, search_time_ms, result_ids, created_at)
               VALUES(?,?,?,?,?,?,?,?)""",
            (query, category or "all", mode, project, results_count, search_time_ms,
             json.dumps(list(result_ids)), now_ms()),
        )
        self._conn.commit()

    def log_document_access(self, doc_ids: Sequence[str], access_type: str) -> None:
        ts = now_ms()
        self._conn.executemany(
            "INSERT INTO document_access(document_id, access_type, created_at) VALUES(?,?,?)",
            [(doc_id, access_type, ts) for doc_id in doc_ids],
        )
        self._conn.commit()

    def recent_searches(self, limit: int = 20) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT query, type, mode, project, results_count, search_time_ms, created_at "
            "FROM search_log ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [dict(r) for r in rows]

    def access_counts(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT document_id, COUNT(*) AS n FROM document_access GROUP BY document_id"
        ).fetchall()
        return {r["document_id"]: int(r["n"]) for r in rows}

    def status(self) -> dict[str, Any]:
        docs = self._conn.execute("SELECT COUNT(*) AS n FROM documents").fetchone()["n"]
        superseded = self._conn.execute(
            "SELECT COUNT(*) AS n FROM documents WHERE superseded_by IS NOT NULL"
        ).fetchone()["n"]
        by_type = {
            r["type"]: int(r["n"])
            for r in self._conn.execute("SELECT type, COUNT(*) AS n FROM documents GROUP BY type").fetchall()
        }
        return {"indexed_documents": int(docs), "superseded": int(superseded), "by_category": by_type}
