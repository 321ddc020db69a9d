from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import NoteVaultConfig
from ..models import DocumentRecord, ScoredHit, SearchResponse, SearchResult, VectorHit
from ..store.libsql_store import LibSqlStore
from ..store.vector_index import VectorIndex
from .hybrid import HybridRanker, fts_match_expression, normalize_fts_score, vector_distance_to_score

logger = logging.getLogger(__name__)

VALID_MODES = ("hybrid", "fts", "vector")
# Vector candidates fetched per requested slot when a project scope is set;
# the index ranks across all projects and scoping happens after the re-join.
SCOPED_VECTOR_OVERFETCH = 4


@dataclass
class Retriever:
    """Hybrid search over the Document Store's FTS5 index and the vector index.

    The vector index is optional. When it is missing, unavailable or fails,
    search continues on full-text results alone and reports a warning in
    the response metadata. Full-text errors propagate.
    """

    cfg: NoteVaultConfig
    store: LibSqlStore
    vector_index: Optional[VectorIndex] = None
    ranker: HybridRanker = field(init=False)

    def __post_init__(self) -> None:
        self.ranker = HybridRanker(bonus=self.cfg.hybrid_bonus)

    def search(
        self,
        query: str,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        mode: str = "hybrid",
        project: Optional[str] = None,
    ) -> SearchResponse:
        """Search notes.

        Args:
            query: Free-text query; must not be blank.
            category: Document category filter; None or "all" for every category.
            limit: Page size (default: cfg.default_limit).
            offset: Number of merged results to skip.
            mode: "hybrid", "fts" (keywords only) or "vector" (semantic only).
            project: Scope to this project plus universal documents. None
                applies no project filter at all.

        Returns:
            SearchResponse with the requested page, the size of the merged
            candidate set as `total`, and search metadata.
        """
        start = time.time()
        if not query or not query.strip():
            raise ValueError("Query cannot be empty")
        if mode not in VALID_MODES:
            raise ValueError(f"Invalid mode: {mode}. Must be one of {VALID_MODES}.")
        limit = limit or self.cfg.default_limit
        if limit <= 0 or offset < 0:
            raise ValueError(f"Invalid pagination: limit={limit}, offset={offset}")

        project = project.lower() if project else None
        depth = (offset + limit) * 2
        warning: Optional[str] = None

        # Start the vector sub-search first; it runs while FTS5 is queried.
        vec_future: Optional[Future[list[VectorHit]]] = None
        executor: Optional[ThreadPoolExecutor] = None
        if mode != "fts":
            if self.vector_index is None or not self.vector_index.available():
                warning = "Vector search unavailable. Using FTS5 only."
                logger.info("Vector index unavailable; continuing with full-text results")
            else:
                where = {"type": category} if category and category != "all" else None
                executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notevault-vector")
                vec_depth = depth * SCOPED_VECTOR_OVERFETCH if project else depth
                vec_future = executor.submit(self.vector_index.query, query, vec_depth, where)

        try:
            fts_hits: list[ScoredHit] = []
            if mode != "vector":
                safe_query = fts_match_expression(query)
                raw = self.store.fts_search(safe_query, k=depth, category=category, project=project)
                fts_hits = [
                    ScoredHit(id=h.id, score=normalize_fts_score(h.rank, self.cfg.fts_decay), source="fts",
                              content=h.content[:500])
                    for h in raw
                ]

            raw_vec: list[VectorHit] = []
            if vec_future is not None:
                try:
                    raw_vec = vec_future.result()
                except Exception as e:
                    logger.warning(f"Vector search failed: {e}")
                    warning = f"Vector search unavailable: {e}. Using FTS5 only."
                else:
                    if not raw_vec:
                        warning = "Vector search returned no results. Using FTS5 results."
        finally:
            if executor is not None:
                executor.shutdown(wait=False)

        # Re-join vector hits to the store to recover project/category
        docs = self.store.get_documents([h.id for h in fts_hits] + [h.id for h in raw_vec])
        vec_hits = [
            ScoredHit(id=h.id, score=vector_distance_to_score(h.distance), source="vector", content=h.content)
            for h in raw_vec
            if h.id in docs and self._in_scope(docs[h.id], category, project)
        ][:depth]

        merged = self.ranker.merge(fts_hits, vec_hits)
        total = len(merged)
        page = merged[offset:offset + limit]

        results: list[SearchResult] = []
        for m in page:
            doc = docs.get(m.id)
            if doc is None:
                logger.warning(f"Search hit {m.id} has no document record; skipping")
                continue
            results.append(SearchResult(
                id=m.id,
                category=doc.category,
                content=m.content,
                source_file=doc.source_file,
                concepts=doc.concepts,
                project=doc.project,
                score=m.score,
                source=m.source,  # type: ignore[arg-type]
                fts_score=m.fts_score,
                vector_score=m.vector_score,
                superseded_by=doc.superseded_by,
                superseded_reason=doc.superseded_reason,
            ))

        search_time_ms = int((time.time() - start) * 1000)
        metadata: dict[str, Any] = {
            "mode": mode,
            "limit": limit,
            "offset": offset,
            "total": total,
            "project": project,
            "fts_matches": len(fts_hits),
            "vector_matches": len(vec_hits),
            "sources": {
                "fts": sum(1 for r in results if r.source == "fts"),
                "vector": sum(1 for r in results if r.source == "vector"),
                "hybrid": sum(1 for r in results if r.source == "hybrid"),
            },
            "search_time_ms": search_time_ms,
        }
        if warning:
            metadata["warning"] = warning

        logger.info(f"Search {query!r} ({category or 'all'}, {mode}) -> {len(results)} results in {search_time_ms}ms")
        self._record(query, category, mode, project, results, search_time_ms)

        return SearchResponse(results=results, total=total, query=query, metadata=metadata)

    @staticmethod
    def _in_scope(doc: DocumentRecord, category: Optional[str], project: Optional[str]) -> bool:
        if category and category != "all" and doc.category != category:
            return False
        if project and doc.project is not None and doc.project != project:
            return False
        return True

    def _record(self, query: str, category: Optional[str], mode: str, project: Optional[str],
                results: list[SearchResult], search_time_ms: int) -> None:
        ids = [r.id for r in results]
        try:
            self.store.log_search(query, category, mode, project, len(results), search_time_ms, ids)
            if ids:
                self.store.log_document_access(ids, "search")
        except Exception as e:
            logger.error(f"Failed to log search to database: {e}")
