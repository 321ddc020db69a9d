"""Front-matter tagging for notes copied into the vault.

The only edit ever made is adding a ``project:`` line; existing lines are
never reordered or removed, so a manual edit in the block always wins.
"""

from __future__ import annotations

import re
from typing import Any, Optional

import frontmatter
import yaml

from ..errors import FrontmatterError

FRONTMATTER_DELIMITER = "---"

# Leading block: opening marker, optional body, closing marker on its own line
_BLOCK_RE = re.compile(r"\A---(\r?\n)(?:(.*?)\r?\n)??(---)[ \t]*(?:\r?\n|\Z)", re.DOTALL)

_HANDLER = frontmatter.YAMLHandler()


def split_frontmatter(content: str) -> Optional[tuple[dict[str, Any], re.Match[str]]]:
    """Parse the leading front-matter block, if any.

    Returns None when the note has no block. Raises FrontmatterError when a
    block is present but is not a YAML mapping.
    """
    m = _BLOCK_RE.match(content)
    if m is None:
        return None
    body = m.group(2) or ""
    try:
        data = _HANDLER.load(body) if body.strip() else {}
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Malformed front matter: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError(f"Front matter is not a mapping: {type(data).__name__}")
    return data, m


def ensure_frontmatter_project(content: str, project: str) -> str:
    """Make sure the note's front matter carries a `project` field.

    - no block: a new block holding only `project:` is prepended
    - block without `project`: the line is appended as the block's last line
    - block with `project` (any value): content returned unchanged
    """
    parsed = split_frontmatter(content)
    if parsed is None:
        nl = "\r\n" if "\r\n" in content else "\n"
        return f"{FRONTMATTER_DELIMITER}{nl}project: {project}{nl}{FRONTMATTER_DELIMITER}{nl}{nl}{content}"

    data, m = parsed
    if "project" in data:
        return content

    newline = m.group(1)
    insert_at = m.start(3)  # closing marker
    return content[:insert_at] + f"project: {project}{newline}" + content[insert_at:]


def frontmatter_project(content: str) -> Optional[str]:
    """The `project` value from a note's front matter, or None."""
    try:
        parsed = split_frontmatter(content)
    except FrontmatterError:
        return None
    if parsed is None:
        return None
    value = parsed[0].get("project")
    return str(value) if value is not None else None
