"""Vault Synchronizer.

Mirrors a working copy's note tree into a shared git-versioned vault.
Project-nested categories land under the owning project's directory, so a
sync only ever adds, changes or deletes files that belong to the syncing
project (or to the universal categories). Git is the diff engine: no
manifest is kept.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from ..errors import (
    ConfigurationError,
    FrontmatterError,
    GitCommandError,
    ProjectNotDetectedError,
    VaultNotInitializedError,
)
from ..models import GitStatusCounts, InitResult, PullResult, SyncResult, VaultStatus
from ..paths import prune_empty_dirs, walk_files
from ..store.libsql_store import now_ms
from ..store.settings import VAULT_ENABLED, VAULT_LAST_SYNC, VAULT_REPO, SettingsStore
from .frontmatter import ensure_frontmatter_project
from .git import GitRepo, VaultLocator, git_repo_factory
from .mapper import PathMapper
from .project import detect_project

logger = logging.getLogger(__name__)

ProjectDetector = Callable[[Path], Optional[str]]
GitFactory = Callable[[Path], GitRepo]

GITKEEP = ".gitkeep"


def format_ms_iso(ms: Optional[int]) -> Optional[str]:
    if ms is None:
        return None
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_commit_message(counts: GitStatusCounts, project: Optional[str], when: datetime) -> str:
    """`vault sync: <YYYY-MM-DD HH:MM:SS> (+a, ~m, -d) [project]`; zero counts are left out."""
    parts = []
    if counts.added:
        parts.append(f"+{counts.added}")
    if counts.modified:
        parts.append(f"~{counts.modified}")
    if counts.deleted:
        parts.append(f"-{counts.deleted}")
    msg = f"vault sync: {when.strftime('%Y-%m-%d %H:%M:%S')}"
    if parts:
        msg += f" ({', '.join(parts)})"
    if project:
        msg += f" [{project}]"
    return msg


def copy_note(src: Path, dest: Path, tag_project: Optional[str]) -> Optional[str]:
    """Copy one note into place, tagging its front matter with `tag_project`.

    Returns a warning string when the note had to be byte-copied because its
    front matter could not be handled.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    if tag_project is None:
        shutil.copyfile(src, dest)
        return None
    try:
        content = src.read_bytes().decode("utf-8")
        tagged = ensure_frontmatter_project(content, tag_project)
    except (FrontmatterError, UnicodeDecodeError) as e:
        shutil.copyfile(src, dest)
        return f"{src}: copied without project tag ({e})"
    dest.write_bytes(tagged.encode("utf-8"))
    return None


class VaultSynchronizer:
    """init / sync / pull / status against one configured vault.

    Collaborators are injected: `settings` persists the vault configuration,
    `project_detector` maps a working-copy root to its project id,
    `git_factory` opens a repo at a path and `locator` resolves the configured
    vault repo to a local checkout.
    """

    def __init__(
        self,
        settings: SettingsStore,
        mapper: Optional[PathMapper] = None,
        project_detector: ProjectDetector = detect_project,
        git_factory: GitFactory = git_repo_factory,
        locator: Optional[VaultLocator] = None,
    ):
        self.settings = settings
        self.mapper = mapper or PathMapper()
        self.project_detector = project_detector
        self.git_factory = git_factory
        self.locator = locator or VaultLocator()

    @property
    def notes_dir(self) -> str:
        return self.mapper.notes_dir

    def project_for(self, root: Path) -> Optional[str]:
        project = self.project_detector(root)
        return project.lower() if project else None

    def vault_path(self) -> Path:
        repo = self.settings.get(VAULT_REPO)
        if not repo:
            raise VaultNotInitializedError()
        return self.locator.resolve(repo)

    def init_vault(self, repo: str) -> InitResult:
        if not repo or not repo.strip():
            raise ConfigurationError("Vault repo must not be empty")
        path, created = self.locator.ensure(repo)
        self.settings.set(VAULT_REPO, repo)
        self.settings.set_bool(VAULT_ENABLED, True)
        logger.info(f"Vault initialized: {repo} -> {path}")
        return InitResult(repo=repo, vault_path=str(path), created=created)

    def sync(self, root: Path, dry_run: bool = False) -> SyncResult:
        """Mirror `root`'s notes into the vault and commit.

        With `dry_run` the vault working tree is still updated and staged so
        the tally is exact, but nothing is committed or pushed.
        """
        root = Path(root)
        vault = self.vault_path()
        project = self.project_for(root)
        notes = root / self.notes_dir
        if not notes.is_dir():
            raise ConfigurationError(f"{self.notes_dir}/ directory not found at {notes}")

        result = SyncResult(dry_run=dry_run, added=0, modified=0, deleted=0, project=project)

        # 1. Copy every local note to its vault location
        destinations: set[str] = set()
        for entry in walk_files(notes, root):
            dest_rel = self.mapper.to_vault_path(entry.relative, project)
            tag = project if project and entry.relative.endswith(".md") and self.mapper.is_nested(entry.relative) else None
            try:
                warning = copy_note(entry.absolute, vault / dest_rel, tag)
            except FileNotFoundError:
                result.warnings.append(f"{entry.relative}: vanished before it could be copied")
                continue
            if warning:
                logger.warning(warning)
                result.warnings.append(warning)
            destinations.add(dest_rel)
            result.files_written += 1

        # 2. Remove vault files this project owns that no longer exist locally
        vault_notes = vault / self.notes_dir
        for entry in list(walk_files(vault_notes, vault)):
            if entry.relative in destinations:
                continue
            if self.mapper.from_vault_path(entry.relative, project) is None:
                continue
            try:
                entry.absolute.unlink()
            except FileNotFoundError:
                continue
            result.files_removed += 1
            prune_empty_dirs(entry.absolute.parent, vault)

        # 3. Let git compute the diff
        repo = self.git_factory(vault)
        repo.add_all()
        counts = repo.status_counts()
        result.added, result.modified, result.deleted = counts.added, counts.modified, counts.deleted

        if dry_run or counts.total == 0:
            logger.info(f"Sync {'dry run' if dry_run else 'no changes'}: +{counts.added} ~{counts.modified} -{counts.deleted}")
            return result

        # 4. Commit + push
        now = datetime.now(timezone.utc)
        repo.commit(build_commit_message(counts, project, now))
        result.commit_hash = repo.rev_parse_short()
        repo.push()
        self.settings.set(VAULT_LAST_SYNC, str(now_ms()))

        logger.info(f"Synced: +{counts.added} ~{counts.modified} -{counts.deleted} ({result.commit_hash})")
        return result

    def pull(self, root: Path, fetch: bool = False) -> PullResult:
        """Copy this project's nested notes and all universal notes from the vault into `root`."""
        root = Path(root)
        vault = self.vault_path()
        project = self.project_for(root)
        if not project:
            raise ProjectNotDetectedError(root)

        if fetch:
            self.git_factory(vault).pull_ff_only()

        result = PullResult(project=project, files_copied=0)
        for entry in walk_files(vault / self.notes_dir, vault):
            if entry.absolute.name == GITKEEP:
                continue
            local_rel = self.mapper.from_vault_path(entry.relative, project)
            if local_rel is None:
                continue
            dest = root / local_rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            try:
                shutil.copyfile(entry.absolute, dest)
            except FileNotFoundError:
                logger.warning(f"{entry.relative}: vanished before it could be copied")
                continue
            result.files.append(local_rel)
            result.files_copied += 1

        logger.info(f"Pulled {result.files_copied} files for {project}")
        return result

    def status(self, root: Path) -> VaultStatus:
        """Report vault configuration and pending changes. Never mutates anything."""
        repo = self.settings.get(VAULT_REPO)
        enabled = self.settings.get_bool(VAULT_ENABLED)
        if not repo or not enabled:
            return VaultStatus(enabled=False, repo=None, last_sync=None, vault_path=None)

        try:
            last_sync = format_ms_iso(self.settings.get_int(VAULT_LAST_SYNC))
        except ValueError as e:
            logger.warning(f"Ignoring stored last sync time: {e}")
            last_sync = None
        project = self.project_for(Path(root))
        try:
            vault = self.locator.resolve(repo)
        except ConfigurationError as e:
            logger.warning(f"Vault path unavailable: {e}")
            return VaultStatus(enabled=True, repo=repo, last_sync=last_sync, vault_path=None, project=project)

        counts = GitStatusCounts()
        try:
            counts = self.git_factory(vault).status_counts()
        except GitCommandError as e:
            logger.warning(f"git status failed in {vault}: {e}")

        pending = {**asdict(counts), "total": counts.total}
        return VaultStatus(
            enabled=True,
            repo=repo,
            last_sync=last_sync,
            vault_path=str(vault),
            project=project,
            pending=pending,
        )
