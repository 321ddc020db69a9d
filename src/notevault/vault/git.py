"""Thin subprocess wrappers around `git` and `ghq`.

Every command runs with captured output; a non-zero exit becomes a
GitCommandError carrying the command line, exit code and stderr.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import ConfigurationError, GitCommandError
from ..models import GitStatusCounts

logger = logging.getLogger(__name__)


def parse_git_status(porcelain: str) -> GitStatusCounts:
    """Tally `git status --porcelain` lines into added/modified/deleted.

    The two-character status code is classified in order: contains ``A`` or
    is ``??`` -> added; contains ``D`` -> deleted; contains ``M`` or ``R``
    -> modified. Anything else (e.g. ``!!``) is not counted.
    """
    added = modified = deleted = 0
    for line in porcelain.splitlines():
        if not line.strip():
            continue
        code = line[:2]
        if "A" in code or code == "??":
            added += 1
        elif "D" in code:
            deleted += 1
        elif "M" in code or "R" in code:
            modified += 1
    return GitStatusCounts(added=added, modified=modified, deleted=deleted)


def run_command(args: list[str], cwd: Optional[Path] = None, strip: bool = True) -> str:
    """Run a command and return its stdout, stripped unless `strip` is False."""
    logger.debug(f"Running {' '.join(args)} (cwd={cwd})")
    try:
        proc = subprocess.run(args, cwd=cwd, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        raise GitCommandError(args, 127, str(e)) from e
    if proc.returncode != 0:
        raise GitCommandError(args, proc.returncode, proc.stderr)
    return proc.stdout.strip() if strip else proc.stdout.rstrip()


@dataclass
class GitRepo:
    """A git working tree at `path`."""

    path: Path

    def _git(self, *args: str) -> str:
        return run_command(["git", *args], cwd=self.path)

    def add_all(self) -> None:
        self._git("add", "-A")

    def status_porcelain(self) -> str:
        # Leading spaces belong to the status code
        return run_command(["git", "status", "--porcelain"], cwd=self.path, strip=False)

    def status_counts(self) -> GitStatusCounts:
        return parse_git_status(self.status_porcelain())

    def commit(self, message: str) -> None:
        self._git("commit", "-m", message)

    def rev_parse_short(self) -> str:
        return self._git("rev-parse", "--short", "HEAD")

    def push(self) -> None:
        self._git("push")

    def pull_ff_only(self) -> None:
        self._git("pull", "--ff-only")

    def remote_url(self, remote: str = "origin") -> Optional[str]:
        try:
            url = self._git("remote", "get-url", remote)
        except GitCommandError:
            return None
        return url or None


def git_repo_factory(path: Path) -> GitRepo:
    return GitRepo(Path(path))


class VaultLocator:
    """Resolve a configured vault repo to a local checkout.

    `repo` is either a path to an existing local directory or a
    ``ghq``-style repo name (``owner/repo``, ``github.com/owner/repo``).
    """

    def __init__(self, ghq: str = "ghq"):
        self.ghq = ghq

    @staticmethod
    def _local(repo: str) -> Optional[Path]:
        p = Path(repo).expanduser()
        if p.is_dir():
            return p.resolve()
        return None

    def _ghq_lookup(self, repo: str) -> Optional[Path]:
        try:
            out = run_command([self.ghq, "list", "-p", repo])
        except GitCommandError as e:
            logger.debug(f"ghq lookup for {repo} failed: {e}")
            return None
        lines = [l.strip() for l in out.splitlines() if l.strip()]
        return Path(lines[0]) if lines else None

    def resolve(self, repo: str) -> Path:
        """Local checkout of `repo`; ConfigurationError when there is none."""
        path = self._local(repo) or self._ghq_lookup(repo)
        if path is None:
            raise ConfigurationError(f'Vault repo "{repo}" not found locally or via ghq. Run vault-init first.')
        return path

    def ensure(self, repo: str) -> tuple[Path, bool]:
        """Resolve `repo`, cloning it with `ghq get` when absent.

        Returns (path, created).
        """
        path = self._local(repo) or self._ghq_lookup(repo)
        if path is not None:
            return path, False
        if shutil.which(self.ghq) is None:
            raise ConfigurationError(f'Vault repo "{repo}" is not a local directory and ghq is not installed')
        logger.info(f"Cloning vault repo {repo} with ghq")
        run_command([self.ghq, "get", repo])
        return self.resolve(repo), True

    def list_repos(self) -> list[Path]:
        """Every ghq-managed checkout (`ghq list -p`)."""
        if shutil.which(self.ghq) is None:
            raise ConfigurationError("ghq not found. Install ghq or pass repo paths explicitly.")
        out = run_command([self.ghq, "list", "-p"])
        return [Path(l.strip()) for l in out.splitlines() if l.strip()]
