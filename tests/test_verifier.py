"""
Tests for the Integrity Verifier.
"""

import os
from pathlib import Path

import pytest

from notevault.models import Document
from notevault.store.libsql_store import LibSqlStore
from notevault.verify.verifier import ORPHAN_MARKER, IntegrityVerifier, build_recommendation

INDEXED_AT = 2_000_000  # ms


@pytest.fixture
def store(tmp_path: Path) -> LibSqlStore:
    s = LibSqlStore(tmp_path / "db" / "notevault.db")
    s.init()
    yield s
    s.close()


def note(root: Path, rel: str, mtime_s: float) -> None:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("note\n", encoding="utf-8")
    os.utime(p, (mtime_s, mtime_s))


def index(store: LibSqlStore, doc_id: str, source_file: str, category: str = "learning",
          indexed_at: int = INDEXED_AT) -> None:
    store.upsert_document(
        Document(id=doc_id, category=category, source_file=source_file,
                 created_at=1, updated_at=1, indexed_at=indexed_at),
        "content",
    )


@pytest.fixture
def root(tmp_path: Path, store: LibSqlStore) -> Path:
    """One healthy, one drifted, one missing and one orphaned note."""
    r = tmp_path / "wc"
    note(r, "ψ/memory/learnings/healthy.md", 1_000)    # 1_000_000 ms <= indexed_at
    note(r, "ψ/memory/learnings/drifted.md", 3_000)    # 3_000_000 ms > indexed_at
    note(r, "ψ/memory/resonance/missing.md", 1_000)
    note(r, "ψ/inbox/handoff/todo.md", 1_000)
    note(r, "ψ/memory/learnings/image.png", 1_000)
    index(store, "h", "ψ/memory/learnings/healthy.md")
    index(store, "d", "ψ/memory/learnings/drifted.md")
    index(store, "o", "ψ/memory/retrospectives/gone.md", category="retro")
    return r


class TestClassification:
    """Every indexed note lands in exactly one class."""

    def test_completeness(self, store: LibSqlStore, root: Path):
        """Drifted, missing and orphaned are each found once."""
        res = IntegrityVerifier(store).verify(root)
        assert res.healthy == ["ψ/memory/learnings/healthy.md"]
        assert res.drifted == ["ψ/memory/learnings/drifted.md"]
        assert res.missing == ["ψ/memory/resonance/missing.md"]
        assert res.orphaned == ["ψ/memory/retrospectives/gone.md"]
        assert res.untracked == ["ψ/inbox/handoff/todo.md"]
        assert res.counts == {"healthy": 1, "missing": 1, "orphaned": 1, "drifted": 1, "untracked": 1}
        assert res.fixed_orphans == 0
        assert res.recommendation == (
            "Re-index to fix 3 issues (1 missing from index, 1 orphaned in DB, 1 drifted since last index)"
        )

    def test_read_only_by_default(self, store: LibSqlStore, root: Path):
        """Without fix, nothing in the store changes."""
        IntegrityVerifier(store).verify(root)
        assert store.get_document("o").superseded_by is None

    def test_category_filter(self, store: LibSqlStore, root: Path):
        """Filtering limits the store side; disk files of other categories become missing."""
        res = IntegrityVerifier(store).verify(root, category="retro")
        assert res.orphaned == ["ψ/memory/retrospectives/gone.md"]
        assert res.healthy == []
        assert sorted(res.missing) == [
            "ψ/memory/learnings/drifted.md",
            "ψ/memory/learnings/healthy.md",
            "ψ/memory/resonance/missing.md",
        ]

    def test_latest_indexed_at_wins(self, store: LibSqlStore, tmp_path: Path):
        """Several rows for one file use the newest indexed_at."""
        r = tmp_path / "wc"
        note(r, "ψ/memory/learnings/chunked.md", 3_000)
        index(store, "c1", "ψ/memory/learnings/chunked.md", indexed_at=1_000)
        index(store, "c2", "ψ/memory/learnings/chunked.md", indexed_at=4_000_000)
        res = IntegrityVerifier(store).verify(r)
        assert res.healthy == ["ψ/memory/learnings/chunked.md"]

    def test_symlinks_ignored(self, store: LibSqlStore, tmp_path: Path):
        """Symlinked notes are not scanned."""
        r = tmp_path / "wc"
        target = tmp_path / "elsewhere.md"
        target.write_text("x", encoding="utf-8")
        (r / "ψ/memory/learnings").mkdir(parents=True)
        (r / "ψ/memory/learnings/link.md").symlink_to(target)
        res = IntegrityVerifier(store).verify(r)
        assert res.missing == []

    def test_healthy_tree(self, store: LibSqlStore, tmp_path: Path):
        """No issues yields the healthy recommendation."""
        r = tmp_path / "wc"
        note(r, "ψ/memory/learnings/a.md", 1_000)
        index(store, "a", "ψ/memory/learnings/a.md")
        res = IntegrityVerifier(store).verify(r)
        assert res.recommendation == "Knowledge base is healthy. All files match DB index."


class TestFix:
    """Orphan flagging."""

    def test_fix_flags_orphans(self, store: LibSqlStore, root: Path):
        """Orphans are superseded, never deleted."""
        res = IntegrityVerifier(store).verify(root, fix=True)
        rec = store.get_document("o")
        assert rec is not None
        assert rec.superseded_by == ORPHAN_MARKER
        assert rec.superseded_reason == "File missing from disk (verify)"
        assert rec.superseded_at is not None
        assert res.fixed_orphans == 1
        assert res.recommendation.endswith(f". Flagged 1 orphaned entries as '{ORPHAN_MARKER}'.")
        assert store.get_document("h").superseded_by is None

    def test_fix_flags_every_row_of_a_file(self, store: LibSqlStore, tmp_path: Path):
        """All rows sharing a vanished source file are flagged."""
        index(store, "x1", "ψ/memory/learnings/gone.md")
        index(store, "x2", "ψ/memory/learnings/gone.md")
        res = IntegrityVerifier(store).verify(tmp_path / "empty", fix=True)
        assert res.orphaned == ["ψ/memory/learnings/gone.md"]
        assert res.fixed_orphans == 2
        assert res.to_dict()["fixed_orphans"] == 2


class TestRecommendation:
    """Deterministic recommendation text."""

    def test_partial_counts(self):
        """Only non-zero classes are listed."""
        assert build_recommendation(0, 2, 0) == "Re-index to fix 2 issues (2 orphaned in DB)"

    def test_healthy_with_fix_suffix(self):
        """The fix suffix is appended to any text."""
        assert build_recommendation(0, 0, 0, 3).endswith("Flagged 3 orphaned entries as '_verified_orphan'.")
