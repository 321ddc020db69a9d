from __future__ import annotations

import hashlib
import re
from datetime import date, datetime

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_DASH_RE = re.compile(r"-+")


def blake2b_hex(data: bytes) -> str:
    h = hashlib.blake2b(digest_size=32)
    h.update(data)
    return h.hexdigest()


def slugify(text: str, max_len: int = 50) -> str:
    """Lowercase ASCII slug built from the first `max_len` characters."""
    s = text[:max_len].lower()
    s = _SLUG_STRIP_RE.sub("", s)
    s = _SLUG_SPACE_RE.sub("-", s)
    s = _SLUG_DASH_RE.sub("-", s)
    return s.strip("-")


def document_id(category: str, source_file: str, created: date | datetime, title: str) -> str:
    """Stable document id: `<category>_<YYYY-MM-DD>_<slug>_<path digest>`.

    The same file indexed twice yields the same id, so re-indexing is an upsert.
    """
    if isinstance(created, datetime):
        created = created.date()
    path_digest = blake2b_hex(source_file.replace("\\", "/").encode("utf-8"))[:8]
    slug = slugify(title) or "untitled"
    return f"{category}_{created.isoformat()}_{slug}_{path_digest}"
