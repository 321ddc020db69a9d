from .frontmatter import ensure_frontmatter_project, frontmatter_project
from .git import GitRepo, VaultLocator, parse_git_status
from .mapper import DEFAULT_RULES, CategoryKind, PathMapper
from .migrate import find_note_repos, list_note_repos, migrate
from .project import detect_project, normalize_project
from .sync import VaultSynchronizer

__all__ = [
    "DEFAULT_RULES",
    "CategoryKind",
    "GitRepo",
    "PathMapper",
    "VaultLocator",
    "VaultSynchronizer",
    "detect_project",
    "ensure_frontmatter_project",
    "find_note_repos",
    "frontmatter_project",
    "list_note_repos",
    "migrate",
    "normalize_project",
    "parse_git_status",
]
