"""Bulk-seed the vault from many working copies.

By default every ghq-managed checkout with a notes directory is migrated.
Notes are mapped and tagged exactly as `VaultSynchronizer.sync` does, but
nothing is ever deleted from the vault.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from ..errors import GitCommandError
from ..models import MigrateResult, RepoInfo
from ..paths import walk_files
from .sync import GITKEEP, VaultSynchronizer, copy_note

logger = logging.getLogger(__name__)


def find_note_repos(sync: VaultSynchronizer, repo_paths: Optional[Iterable[Path]] = None) -> list[Path]:
    """Working copies (from `repo_paths` or `ghq list -p`) that have a notes dir."""
    candidates = list(repo_paths) if repo_paths is not None else sync.locator.list_repos()
    found = []
    for p in candidates:
        p = Path(p)
        if (p / sync.notes_dir).is_dir():
            found.append(p)
    return found


def list_note_repos(sync: VaultSynchronizer, repo_paths: Optional[Iterable[Path]] = None) -> list[RepoInfo]:
    """Describe each note repo without copying anything; unknown projects show as "(unknown)"."""
    infos = []
    for repo_path in find_note_repos(sync, repo_paths):
        project = sync.project_for(repo_path) or "(unknown)"
        count = sum(1 for _ in walk_files(repo_path / sync.notes_dir, repo_path))
        infos.append(RepoInfo(repo_path=str(repo_path), project=project, file_count=count))
    return infos


def migrate(
    sync: VaultSynchronizer,
    repo_paths: Optional[Iterable[Path]] = None,
    dry_run: bool = False,
) -> MigrateResult:
    """Copy every discovered working copy's notes into the vault, then commit and push.

    Skips the vault checkout itself and repos whose project cannot be
    detected. A failing commit or push is logged; the copy is kept.
    """
    vault = sync.vault_path()
    repos = find_note_repos(sync, repo_paths)
    result = MigrateResult(repos_found=len(repos), files_copied=0, dry_run=dry_run)
    vault_real = vault.resolve()

    for repo_path in repos:
        if repo_path.resolve() == vault_real:
            result.skipped.append(f"{repo_path} (vault repo itself)")
            continue
        project = sync.project_for(repo_path)
        if not project:
            result.skipped.append(f"{repo_path} (cannot detect project)")
            continue

        file_count = 0
        for entry in walk_files(repo_path / sync.notes_dir, repo_path):
            if entry.absolute.name == GITKEEP:
                continue
            if not dry_run:
                dest = vault / sync.mapper.to_vault_path(entry.relative, project)
                tag = project if entry.relative.endswith(".md") and sync.mapper.is_nested(entry.relative) else None
                try:
                    warning = copy_note(entry.absolute, dest, tag)
                except FileNotFoundError:
                    logger.warning(f"{entry.absolute}: vanished before it could be copied")
                    continue
                if warning:
                    logger.warning(warning)
            file_count += 1

        result.repos.append(RepoInfo(repo_path=str(repo_path), project=project, file_count=file_count))
        result.files_copied += file_count
        logger.info(f"Migrated {file_count} files from {project}")

    if dry_run or result.files_copied == 0:
        return result

    repo = sync.git_factory(vault)
    try:
        repo.add_all()
        if repo.status_counts().total:
            projects = ", ".join(r.project for r in result.repos)
            repo.commit(f"vault migrate: {len(result.repos)} repos ({result.files_copied} files)\n\nProjects: {projects}")
            repo.push()
            result.committed = True
            logger.info("Migration committed and pushed")
    except GitCommandError as e:
        logger.error(f"Git commit/push failed: {e}")

    return result
