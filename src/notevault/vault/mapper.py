"""Local note path <-> shared vault path mapping.

Project-nested categories get the owning project inserted right after the
category prefix, so many working copies can share one vault without their
learnings colliding::

    ψ/memory/learnings/git-safety.md
      -> ψ/memory/learnings/github.com/acme/api/git-safety.md

Universal categories are shared verbatim by every project.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..config import DEFAULT_NOTES_DIR


class CategoryKind(str, Enum):
    NESTED = "nested"
    UNIVERSAL = "universal"


# Ordered: the first matching prefix wins. Prefixes are relative to the notes dir.
DEFAULT_RULES: tuple[tuple[str, CategoryKind], ...] = (
    ("memory/learnings/", CategoryKind.NESTED),
    ("memory/retrospectives/", CategoryKind.NESTED),
    ("inbox/handoff/", CategoryKind.NESTED),
    ("memory/resonance/", CategoryKind.UNIVERSAL),
)


@dataclass(frozen=True)
class PathMapper:
    """Pure mapping between working-copy note paths and vault paths.

    Paths are POSIX strings relative to the working-copy (or vault) root,
    e.g. ``ψ/memory/learnings/x.md``. No method touches the filesystem.
    """

    notes_dir: str = DEFAULT_NOTES_DIR
    rules: tuple[tuple[str, CategoryKind], ...] = field(default=DEFAULT_RULES)

    def prefixes(self, kind: Optional[CategoryKind] = None) -> list[str]:
        return [f"{self.notes_dir}/{p}" for p, k in self.rules if kind is None or k == kind]

    def match(self, path: str) -> Optional[tuple[str, CategoryKind]]:
        """Return (full prefix, kind) of the first rule matching `path`."""
        path = path.replace("\\", "/")
        for rel_prefix, kind in self.rules:
            prefix = f"{self.notes_dir}/{rel_prefix}"
            if path.startswith(prefix):
                return prefix, kind
        return None

    def category_kind(self, path: str) -> Optional[CategoryKind]:
        m = self.match(path)
        return m[1] if m else None

    def is_nested(self, path: str) -> bool:
        return self.category_kind(path) == CategoryKind.NESTED

    def to_vault_path(self, local_path: str, project: Optional[str]) -> str:
        local_path = local_path.replace("\\", "/")
        m = self.match(local_path)
        if m is None or not project:
            return local_path
        prefix, kind = m
        if kind is CategoryKind.UNIVERSAL:
            return local_path
        return f"{prefix}{project}/{local_path[len(prefix):]}"

    def from_vault_path(self, vault_path: str, project: Optional[str]) -> Optional[str]:
        """Inverse of `to_vault_path`.

        Returns None for paths in no known category, and for nested paths
        that do not belong to `project`.
        """
        vault_path = vault_path.replace("\\", "/")
        m = self.match(vault_path)
        if m is None:
            return None
        prefix, kind = m
        if kind is CategoryKind.UNIVERSAL:
            return vault_path
        if not project:
            return None
        rest = vault_path[len(prefix):]
        project_prefix = f"{project}/"
        if not rest.startswith(project_prefix) or len(rest) == len(project_prefix):
            return None
        return prefix + rest[len(project_prefix):]
