"""
Tests for tree walking and empty-directory pruning.
"""

from pathlib import Path

from notevault.paths import prune_empty_dirs, walk_files


def touch(p: Path, text: str = "x") -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p


class TestWalkFiles:
    """Depth-first walk of regular files."""

    def test_relative_posix_paths_sorted(self, tmp_path: Path):
        """Entries are relative to the base, in name order."""
        touch(tmp_path / "ψ/b.md")
        touch(tmp_path / "ψ/a/c.md")
        rels = [e.relative for e in walk_files(tmp_path / "ψ", tmp_path)]
        assert rels == ["ψ/a/c.md", "ψ/b.md"]

    def test_symlinks_skipped(self, tmp_path: Path):
        """Linked files and directories are not followed."""
        real = touch(tmp_path / "outside/real.md")
        touch(tmp_path / "ψ/keep.md")
        (tmp_path / "ψ/file-link.md").symlink_to(real)
        (tmp_path / "ψ/dir-link").symlink_to(tmp_path / "outside", target_is_directory=True)
        rels = [e.relative for e in walk_files(tmp_path / "ψ", tmp_path)]
        assert rels == ["ψ/keep.md"]

    def test_suffix_filter(self, tmp_path: Path):
        """Only matching names are yielded."""
        touch(tmp_path / "a.md")
        touch(tmp_path / "b.png")
        assert [e.relative for e in walk_files(tmp_path, tmp_path, suffix=".md")] == ["a.md"]

    def test_missing_directory(self, tmp_path: Path):
        """A missing directory yields nothing."""
        assert list(walk_files(tmp_path / "nope", tmp_path)) == []

    def test_restartable(self, tmp_path: Path):
        """Each call is a fresh walk."""
        touch(tmp_path / "a.md")
        assert list(walk_files(tmp_path, tmp_path)) == list(walk_files(tmp_path, tmp_path))

    def test_mtime_in_ms(self, tmp_path: Path):
        """Modification times are reported in milliseconds."""
        p = touch(tmp_path / "a.md")
        entry = next(walk_files(tmp_path, tmp_path))
        assert entry.mtime_ms == p.stat().st_mtime_ns / 1_000_000


class TestPruneEmptyDirs:
    """Removing emptied parents."""

    def test_prunes_up_to_stop(self, tmp_path: Path):
        """Empty parents go; the stop directory stays."""
        deep = tmp_path / "a/b/c"
        deep.mkdir(parents=True)
        prune_empty_dirs(deep, tmp_path)
        assert not (tmp_path / "a").exists()
        assert tmp_path.exists()

    def test_stops_at_non_empty(self, tmp_path: Path):
        """A directory with content is kept, as are its parents."""
        touch(tmp_path / "a/keep.md")
        (tmp_path / "a/b").mkdir()
        prune_empty_dirs(tmp_path / "a/b", tmp_path)
        assert not (tmp_path / "a/b").exists()
        assert (tmp_path / "a/keep.md").exists()

    def test_outside_stop_is_untouched(self, tmp_path: Path):
        """Directories not under the stop are never removed."""
        other = tmp_path / "other"
        other.mkdir()
        prune_empty_dirs(other, tmp_path / "vault")
        assert other.exists()
