"""Integrity Verifier: compare notes on disk with the Document Store.

Each indexed markdown file is classified as healthy, missing (on disk but
not indexed), drifted (modified after it was last indexed) or orphaned
(indexed but gone from disk). Orphans are only ever flagged as
superseded, never deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_NOTES_DIR
from ..models import VerifyResult
from ..paths import walk_files
from ..store.libsql_store import LibSqlStore, now_ms

logger = logging.getLogger(__name__)

INDEXED_DIRS = ("memory/resonance", "memory/learnings", "memory/retrospectives")
UNTRACKED_DIRS = ("inbox",)

ORPHAN_MARKER = "_verified_orphan"
ORPHAN_REASON = "File missing from disk (verify)"


@dataclass
class _IndexedFile:
    indexed_at: int
    ids: list[str] = field(default_factory=list)


def build_recommendation(missing: int, orphaned: int, drifted: int, fixed_orphans: int = 0) -> str:
    issues = missing + orphaned + drifted
    if issues == 0:
        rec = "Knowledge base is healthy. All files match DB index."
    else:
        parts = []
        if missing:
            parts.append(f"{missing} missing from index")
        if orphaned:
            parts.append(f"{orphaned} orphaned in DB")
        if drifted:
            parts.append(f"{drifted} drifted since last index")
        rec = f"Re-index to fix {issues} issues ({', '.join(parts)})"
    if fixed_orphans:
        rec += f". Flagged {fixed_orphans} orphaned entries as '{ORPHAN_MARKER}'."
    return rec


class IntegrityVerifier:
    def __init__(self, store: LibSqlStore, notes_dir: str = DEFAULT_NOTES_DIR):
        self.store = store
        self.notes_dir = notes_dir

    def _scan(self, root: Path, dirs: tuple[str, ...]) -> dict[str, float]:
        """relative path -> mtime (ms) for markdown files under `dirs`."""
        found: dict[str, float] = {}
        for d in dirs:
            for entry in walk_files(root / self.notes_dir / d, root, suffix=".md"):
                found[entry.relative] = entry.mtime_ms
        return found

    def _indexed(self, category: Optional[str]) -> dict[str, _IndexedFile]:
        # Several rows may share a source file; keep the latest indexed_at
        by_file: dict[str, _IndexedFile] = {}
        for doc in self.store.list_documents(category):
            entry = by_file.get(doc.source_file)
            if entry is None:
                by_file[doc.source_file] = _IndexedFile(indexed_at=doc.indexed_at, ids=[doc.id])
            else:
                entry.ids.append(doc.id)
                entry.indexed_at = max(entry.indexed_at, doc.indexed_at)
        return by_file

    def verify(self, root: Path, category: Optional[str] = None, fix: bool = False) -> VerifyResult:
        """Classify every indexed note under `root`.

        Args:
            root: Working-copy root holding the notes dir.
            category: Restrict the store side to one category (None or "all" for every one).
            fix: Flag orphaned rows as superseded by `_verified_orphan`.
        """
        root = Path(root)
        disk = self._scan(root, INDEXED_DIRS)
        indexed = self._indexed(category)

        healthy: list[str] = []
        missing: list[str] = []
        drifted: list[str] = []
        for rel, mtime_ms in disk.items():
            entry = indexed.get(rel)
            if entry is None:
                missing.append(rel)
            elif mtime_ms > entry.indexed_at:
                drifted.append(rel)
            else:
                healthy.append(rel)

        orphaned = [src for src in indexed if src not in disk]
        untracked = sorted(self._scan(root, UNTRACKED_DIRS))

        fixed = 0
        if fix and orphaned:
            ids = [doc_id for src in orphaned for doc_id in indexed[src].ids]
            fixed = self.store.mark_superseded(ids, ORPHAN_MARKER, ORPHAN_REASON, at=now_ms())
            logger.info(f"Flagged {fixed} orphaned entries as {ORPHAN_MARKER}")

        counts = {
            "healthy": len(healthy),
            "missing": len(missing),
            "orphaned": len(orphaned),
            "drifted": len(drifted),
            "untracked": len(untracked),
        }
        logger.info(
            f"Verify: healthy={counts['healthy']} missing={counts['missing']} "
            f"orphaned={counts['orphaned']} drifted={counts['drifted']}"
        )
        return VerifyResult(
            counts=counts,
            healthy=healthy,
            missing=missing,
            orphaned=orphaned,
            drifted=drifted,
            untracked=untracked,
            recommendation=build_recommendation(len(missing), len(orphaned), len(drifted), fixed),
            fixed_orphans=fixed,
        )
