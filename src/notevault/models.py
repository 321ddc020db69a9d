from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Literal, Optional
import json

SearchSource = Literal["fts", "vector", "hybrid"]
SearchMode = Literal["hybrid", "fts", "vector"]


@dataclass(frozen=True)
class Document:
    """A note as written by an indexer or direct-write tool."""
    id: str
    category: str
    source_file: str
    project: Optional[str] = None
    concepts: tuple[str, ...] = ()
    created_at: int = 0
    updated_at: int = 0
    indexed_at: int = 0
    created_by: Optional[str] = None
    origin: Optional[str] = None


def _require(row: Any, key: str, kind: type | tuple[type, ...]) -> Any:
    try:
        value = row[key]
    except (KeyError, IndexError) as e:
        raise ValueError(f"Document row missing field: {key}") from e
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ValueError(f"Document row field {key!r} has invalid value: {value!r}")
    return value


def _optional(row: Any, key: str, kind: type | tuple[type, ...]) -> Any:
    try:
        value = row[key]
    except (KeyError, IndexError):
        return None
    if value is None:
        return None
    if not isinstance(value, kind):
        raise ValueError(f"Document row field {key!r} has invalid value: {value!r}")
    return value


@dataclass(frozen=True)
class DocumentRecord:
    """Validated Document Store row.

    `from_row` fails fast on missing or ill-typed columns instead of coercing.
    """
    id: str
    category: str
    source_file: str
    project: Optional[str]
    concepts: tuple[str, ...]
    created_at: int
    updated_at: int
    indexed_at: int
    created_by: Optional[str] = None
    origin: Optional[str] = None
    superseded_by: Optional[str] = None
    superseded_at: Optional[int] = None
    superseded_reason: Optional[str] = None

    @property
    def superseded(self) -> bool:
        return self.superseded_by is not None

    @staticmethod
    def from_row(row: Any) -> "DocumentRecord":
        raw_concepts = _optional(row, "concepts", str) or "[]"
        try:
            concepts = json.loads(raw_concepts)
        except json.JSONDecodeError as e:
            raise ValueError(f"Document row field 'concepts' is not JSON: {raw_concepts!r}") from e
        if not isinstance(concepts, list) or not all(isinstance(c, str) for c in concepts):
            raise ValueError(f"Document row field 'concepts' must be a list of strings: {raw_concepts!r}")

        doc_id = _require(row, "id", str)
        if not doc_id:
            raise ValueError("Document row has empty id")

        return DocumentRecord(
            id=doc_id,
            category=_require(row, "type", str),
            source_file=_require(row, "source_file", str),
            project=_optional(row, "project", str),
            concepts=tuple(concepts),
            created_at=_require(row, "created_at", int),
            updated_at=_require(row, "updated_at", int),
            indexed_at=_require(row, "indexed_at", int),
            created_by=_optional(row, "created_by", str),
            origin=_optional(row, "origin", str),
            superseded_by=_optional(row, "superseded_by", str),
            superseded_at=_optional(row, "superseded_at", int),
            superseded_reason=_optional(row, "superseded_reason", str),
        )


@dataclass(frozen=True)
class FtsHit:
    id: str
    rank: float
    content: str


@dataclass(frozen=True)
class VectorHit:
    id: str
    distance: float
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoredHit:
    """One sub-search candidate after score normalization."""
    id: str
    score: float
    source: SearchSource
    content: str = ""


@dataclass(frozen=True)
class SearchResult:
    id: str
    category: str
    content: str
    source_file: str
    concepts: tuple[str, ...]
    project: Optional[str]
    score: float
    source: SearchSource
    fts_score: Optional[float] = None
    vector_score: Optional[float] = None
    superseded_by: Optional[str] = None
    superseded_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["concepts"] = list(self.concepts)
        return d


@dataclass
class SearchResponse:
    results: list[SearchResult]
    total: int
    query: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def warning(self) -> Optional[str]:
        return self.metadata.get("warning")

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "total": self.total,
            "query": self.query,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class GitStatusCounts:
    added: int = 0
    modified: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.added + self.modified + self.deleted


@dataclass
class InitResult:
    repo: str
    vault_path: str
    created: bool


@dataclass
class SyncResult:
    dry_run: bool
    added: int
    modified: int
    deleted: int
    project: Optional[str] = None
    files_written: int = 0
    files_removed: int = 0
    commit_hash: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class PullResult:
    project: str
    files_copied: int
    files: list[str] = field(default_factory=list)


@dataclass
class VaultStatus:
    enabled: bool
    repo: Optional[str]
    last_sync: Optional[str]
    vault_path: Optional[str]
    project: Optional[str] = None
    pending: Optional[dict[str, int]] = None


@dataclass
class RepoInfo:
    repo_path: str
    project: str
    file_count: int


@dataclass
class MigrateResult:
    repos_found: int
    files_copied: int
    dry_run: bool
    repos: list[RepoInfo] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    committed: bool = False


@dataclass
class VerifyResult:
    counts: dict[str, int]
    healthy: list[str]
    missing: list[str]
    orphaned: list[str]
    drifted: list[str]
    untracked: list[str]
    recommendation: str
    fixed_orphans: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "counts": self.counts,
            "missing": self.missing,
            "orphaned": self.orphaned,
            "drifted": self.drifted,
            "untracked": self.untracked,
            "recommendation": self.recommendation,
        }
        if self.fixed_orphans:
            out["fixed_orphans"] = self.fixed_orphans
        return out
