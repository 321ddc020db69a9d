from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Sequence

from ..models import ScoredHit

logger = logging.getLogger(__name__)

# Anything FTS5 could read as syntax: quotes, wildcards, column filters, punctuation
FTS_SPECIAL_CHARS_RE = re.compile(r"[^\w\s]")
# FTS5 operators are only keywords in upper case
FTS_OPERATORS_RE = re.compile(r"\b(?:AND|OR|NOT|NEAR)\b")
_WHITESPACE_RE = re.compile(r"\s+")


def _strip_fts_syntax(query: str) -> str:
    words = FTS_OPERATORS_RE.sub(" ", FTS_SPECIAL_CHARS_RE.sub(" ", query))
    return _WHITESPACE_RE.sub(" ", words).strip()


def sanitize_fts_query(query: str) -> str:
    """Reduce a query to plain words for FTS5.

    Punctuation becomes spaces, upper-case AND/OR/NOT/NEAR are dropped and
    whitespace collapses. If nothing is left, the original query is returned.
    """
    sanitized = _strip_fts_syntax(query)
    if not sanitized:
        logger.warning(f"Query became empty after sanitization: {query!r}")
        return query
    return sanitized


def fts_match_expression(query: str) -> str:
    """MATCH argument for a user query; never an FTS5 syntax error.

    A query with no plain words left is matched as one quoted phrase.
    """
    sanitized = _strip_fts_syntax(query)
    if sanitized:
        return sanitized
    logger.warning(f"Query became empty after sanitization: {query!r}; matching it as a phrase")
    return '"' + query.replace('"', '""') + '"'


def normalize_fts_score(rank: float, decay: float = 0.3) -> float:
    """Map an FTS5 rank (negative, lower is better) onto (0, 1] by exponential decay."""
    return math.exp(-decay * abs(rank))


def vector_distance_to_score(distance: float) -> float:
    """Cosine distance in [0, 2] to a similarity score in [0, 1]."""
    return max(0.0, 1.0 - distance / 2.0)


@dataclass(frozen=True)
class MergedHit:
    id: str
    score: float
    source: str
    content: str
    fts_score: float | None = None
    vector_score: float | None = None


@dataclass
class HybridRanker:
    """Merge/dedupe full-text and vector hits into a single ranked list.

    A document found by one sub-search keeps that score. A document found by
    both scores `min(1, max(fts, vector) + bonus)` and is tagged "hybrid".
    The full merged list is returned; pagination is the caller's job and
    must happen after this sort.
    """

    bonus: float = 0.1

    def merge(self, fts: Sequence[ScoredHit], vec: Sequence[ScoredHit]) -> list[MergedHit]:
        by_id: dict[str, MergedHit] = {}

        for h in fts:
            if h.id in by_id:
                continue
            by_id[h.id] = MergedHit(id=h.id, score=h.score, source="fts", content=h.content, fts_score=h.score)

        for h in vec:
            existing = by_id.get(h.id)
            if existing is None:
                by_id[h.id] = MergedHit(id=h.id, score=h.score, source="vector", content=h.content,
                                        vector_score=h.score)
            elif existing.source == "fts":
                fts_score = existing.fts_score or 0.0
                by_id[h.id] = MergedHit(
                    id=h.id,
                    score=min(1.0, max(fts_score, h.score) + self.bonus),
                    source="hybrid",
                    content=existing.content or h.content,
                    fts_score=fts_score,
                    vector_score=h.score,
                )

        # Ties broken by id so pagination is stable across calls
        return sorted(by_id.values(), key=lambda m: (-m.score, m.id))
