from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkEntry:
    """A regular file found by `walk_files`.

    `relative` is a POSIX path relative to the walk base; `absolute` is the real path.
    """
    relative: str
    absolute: Path
    mtime_ms: float


def relpath(root: Path, path: Path) -> str:
    return str(path.relative_to(root)).replace("\\", "/")


def walk_files(
    directory: Path,
    base: Path,
    suffix: str | None = None,
    follow_symlinks: bool = False,
) -> Iterator[WalkEntry]:
    """Depth-first walk of regular files under `directory`.

    Symbolic links (files and directories) are skipped unless `follow_symlinks`
    is set, so a previous sync's own output is never re-copied. Entries that
    disappear mid-walk are skipped. A missing `directory` yields nothing.
    Each call starts a fresh walk.
    """
    directory = Path(directory)
    base = Path(base)
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except FileNotFoundError:
        return
    except NotADirectoryError:
        return

    for entry in entries:
        try:
            if entry.is_symlink() and not follow_symlinks:
                continue
            if entry.is_dir(follow_symlinks=follow_symlinks):
                yield from walk_files(Path(entry.path), base, suffix, follow_symlinks)
                continue
            if not entry.is_file(follow_symlinks=follow_symlinks):
                continue
            if suffix and not entry.name.endswith(suffix):
                continue
            st = entry.stat(follow_symlinks=follow_symlinks)
        except FileNotFoundError:
            logger.debug(f"Entry vanished during walk: {entry.path}")
            continue
        p = Path(entry.path)
        yield WalkEntry(relative=relpath(base, p), absolute=p, mtime_ms=st.st_mtime_ns / 1_000_000)


def prune_empty_dirs(directory: Path, stop_at: Path) -> None:
    """Remove `directory` and its parents while empty, stopping before `stop_at`."""
    directory = Path(directory)
    stop_at = Path(stop_at)
    while directory != stop_at and stop_at in directory.parents:
        try:
            directory.rmdir()
        except OSError:
            return
        directory = directory.parent
