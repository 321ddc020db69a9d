from __future__ import annotations

import importlib.util
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

import numpy as np

from ..embeddings.base import Embedder
from ..embeddings.sentence_transformers import SentenceTransformersEmbedder
from ..models import VectorHit

logger = logging.getLogger(__name__)

VECTOR_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS note_vectors (
  id TEXT PRIMARY KEY,
  model_id TEXT NOT NULL,
  dims INTEGER NOT NULL,
  vector BLOB NOT NULL,
  content TEXT,
  metadata_json TEXT
);
"""


def _vec_to_blob(vec: np.ndarray) -> bytes:
    vec = np.asarray(vec, dtype=np.float32).ravel()
    return vec.tobytes()


def _blob_to_vec(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


class VectorIndex(Protocol):
    """Semantic nearest-neighbour index.

    Best-effort: callers must check `available()` before querying and treat
    a False answer as "no vector results", not as an error.
    """

    def available(self) -> bool:
        ...

    def query(self, text: str, k: int, where: Optional[dict[str, Any]] = None) -> list[VectorHit]:
        ...

    def upsert(self, ids: Sequence[str], texts: Sequence[str], metadatas: Sequence[dict[str, Any]]) -> None:
        ...

    def delete(self, ids: Sequence[str]) -> None:
        ...


class NumpyVectorIndex:
    """Brute-force cosine index with vectors persisted as float32 blobs.

    Owns its own connection (usable from the retriever's worker thread) and
    serializes access with a lock. Distances are cosine distances in [0, 2].
    """

    def __init__(self, db_path: Path, embedder: Optional[Embedder]) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.embedder = embedder
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(VECTOR_SCHEMA_SQL)
            self._conn.commit()

    def available(self) -> bool:
        if self.embedder is None:
            return False
        if isinstance(self.embedder, SentenceTransformersEmbedder):
            return importlib.util.find_spec("sentence_transformers") is not None
        return True

    def count(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) AS n FROM note_vectors").fetchone()["n"])

    def upsert(self, ids: Sequence[str], texts: Sequence[str], metadatas: Sequence[dict[str, Any]]) -> None:
        if not ids:
            return
        if self.embedder is None:
            raise RuntimeError("Vector index has no embedder configured")
        vectors = self.embedder.embed_texts(texts)
        with self._lock:
            for doc_id, text, meta, vec in zip(ids, texts, metadatas, vectors, strict=True):
                self._conn.execute(
                    """INSERT INTO note_vectors(id, model_id, dims, vector, content, metadata_json)
                       VALUES(?,?,?,?,?,?)
                       ON CONFLICT(id) DO UPDATE SET model_id=excluded.model_id, dims=excluded.dims,
                         vector=excluded.vector, content=excluded.content, metadata_json=excluded.metadata_json
                    """,
                    (doc_id, self.embedder.model_id, int(np.asarray(vec).size), _vec_to_blob(vec), text,
                     json.dumps(meta or {})),
                )
            self._conn.commit()

    def delete(self, ids: Sequence[str]) -> None:
        with self._lock:
            self._conn.executemany("DELETE FROM note_vectors WHERE id = ?", [(i,) for i in ids])
            self._conn.commit()

    def query(self, text: str, k: int, where: Optional[dict[str, Any]] = None) -> list[VectorHit]:
        if self.embedder is None:
            raise RuntimeError("Vector index has no embedder configured")
        q = np.asarray(self.embedder.embed_query(text), dtype=np.float32).ravel()
        qn = np.linalg.norm(q) + 1e-12

        with self._lock:
            rows = self._conn.execute("SELECT id, vector, content, metadata_json FROM note_vectors").fetchall()

        where = where or {}
        scored: list[tuple[float, sqlite3.Row, dict[str, Any]]] = []
        for r in rows:
            meta = json.loads(r["metadata_json"] or "{}")
            if any(meta.get(key) != value for key, value in where.items()):
                continue
            v = _blob_to_vec(r["vector"])
            if v.size != q.size:
                logger.debug(f"Skipping vector {r['id']}: dims {v.size} != query dims {q.size}")
                continue
            vn = np.linalg.norm(v) + 1e-12
            sim = float(np.dot(q, v) / (qn * vn))
            scored.append((1.0 - sim, r, meta))

        scored.sort(key=lambda x: x[0])
        return [
            VectorHit(id=r["id"], distance=dist, content=(r["content"] or "")[:500], metadata=meta)
            for dist, r, meta in scored[:k]
        ]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
