"""Default project detection for a working copy.

A project id is ``host/owner/repo`` (e.g. ``github.com/acme/api``), always
lower-cased. It comes from the ``origin`` remote when there is one, else
from a ghq-style checkout path.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

from .git import GitRepo

logger = logging.getLogger(__name__)

_GITHUB_URL_RE = re.compile(r"^(?:https?://|git@|ssh://git@)?github\.com[:/]([^/]+)/([^/]+?)(?:\.git)?/?$")
_GITHUB_IN_PATH_RE = re.compile(r"github\.com/([^/]+)/([^/]+)")
_SHORT_RE = re.compile(r"^([\w.-]+)/([\w.-]+)$")


def normalize_project(value: Optional[str]) -> Optional[str]:
    """Normalize a remote URL, checkout path or short name to a project id.

    Returns None when nothing project-like can be recovered.
    """
    if not value:
        return None
    value = value.strip()

    m = _GITHUB_URL_RE.match(value)
    if m:
        return f"github.com/{m.group(1)}/{m.group(2)}".lower()

    m = _GITHUB_IN_PATH_RE.search(value)
    if m:
        repo = m.group(2)
        if repo.endswith(".git"):
            repo = repo[:-4]
        return f"github.com/{m.group(1)}/{repo}".lower()

    m = _SHORT_RE.match(value)
    if m:
        return f"github.com/{m.group(1)}/{m.group(2)}".lower()

    return None


def detect_project(root: Path) -> Optional[str]:
    """Project id for the working copy at `root`, or None (universal)."""
    root = Path(root)
    if (root / ".git").exists():
        url = GitRepo(root).remote_url()
        project = normalize_project(url)
        if project:
            return project
        if url:
            logger.debug(f"Unrecognized origin remote for {root}: {url}")
    return normalize_project(str(root.resolve()))
