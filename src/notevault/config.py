from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import os
import tomllib

DEFAULT_NOTES_DIR = "ψ"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_EMBEDDING_PROVIDERS = ("sentence_transformers", "ollama", "off")


def _expand(p: str) -> str:
    return os.path.expandvars(os.path.expanduser(p))


def _default_data_dir() -> Path:
    return Path(_expand(os.environ.get("NOTEVAULT_DATA_DIR", "~/.notevault")))


@dataclass(frozen=True)
class NoteVaultConfig:
    """Configuration shared by the store, retriever, synchronizer and verifier.

    Instances are passed explicitly to every component; nothing reads a
    module-level config.
    """

    data_dir: Path = field(default_factory=_default_data_dir)
    db_path: Path | None = None

    def __post_init__(self):
        """Convert string paths to Path objects and expand ~ and environment variables."""
        if isinstance(self.data_dir, str):
            object.__setattr__(self, 'data_dir', Path(_expand(self.data_dir)))
        if self.db_path is None:
            object.__setattr__(self, 'db_path', self.data_dir / "notevault.db")
        elif isinstance(self.db_path, str):
            object.__setattr__(self, 'db_path', Path(_expand(self.db_path)))

    # Layout
    notes_dir: str = DEFAULT_NOTES_DIR

    # Retrieval
    default_limit: int = 5
    hybrid_bonus: float = 0.1
    fts_decay: float = 0.3

    # Embeddings / vector index
    embedding_provider: str = "sentence_transformers"  # sentence_transformers|ollama|off
    embedding_model: str = "BAAI/bge-small-en-v1.5"
    embedding_device: str = "cpu"  # cpu|cuda|mps
    embedding_batch_size: int = 32
    ollama_endpoint: str = "http://127.0.0.1:11434/api/embed"
    ollama_timeout_s: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    @staticmethod
    def from_toml(path: str | Path) -> "NoteVaultConfig":
        data = tomllib.loads(Path(path).read_text(encoding="utf-8"))
        return NoteVaultConfig.from_dict(data)

    @staticmethod
    def from_dict(data: dict) -> "NoteVaultConfig":
        store = data.get("store", {})
        layout = data.get("layout", {})
        ret = data.get("retrieval", {})
        emb = data.get("embeddings", {})
        log = data.get("logging", {})

        # Environment variables take precedence over the file
        data_dir = os.environ.get("NOTEVAULT_DATA_DIR") or store.get("data_dir")
        data_dir_path = Path(_expand(data_dir)) if data_dir else _default_data_dir()
        db_path = os.environ.get("NOTEVAULT_DB_PATH") or store.get("db_path")

        notes_dir = str(layout.get("notes_dir", DEFAULT_NOTES_DIR)).strip("/")
        if not notes_dir:
            raise ValueError("Invalid notes_dir: must be a non-empty relative directory name.")

        default_limit = int(ret.get("default_limit", 5))
        if default_limit <= 0 or default_limit > 1000:
            raise ValueError(f"Invalid default_limit: {default_limit}. Must be between 1 and 1000.")

        hybrid_bonus = float(ret.get("hybrid_bonus", 0.1))
        if hybrid_bonus < 0 or hybrid_bonus > 1:
            raise ValueError(f"Invalid hybrid_bonus: {hybrid_bonus}. Must be between 0 and 1.")

        fts_decay = float(ret.get("fts_decay", 0.3))
        if fts_decay <= 0:
            raise ValueError(f"Invalid fts_decay: {fts_decay}. Must be positive.")

        provider = emb.get("provider", "sentence_transformers")
        if provider not in VALID_EMBEDDING_PROVIDERS:
            raise ValueError(f"Invalid embedding provider: {provider}. Must be one of {VALID_EMBEDDING_PROVIDERS}.")

        device = emb.get("device", "cpu")
        valid_devices = ("cpu", "cuda", "mps")
        if device not in valid_devices:
            raise ValueError(f"Invalid device: {device}. Must be one of {valid_devices}.")

        batch_size = int(emb.get("batch_size", 32))
        if batch_size <= 0 or batch_size > 10000:
            raise ValueError(f"Invalid batch_size: {batch_size}. Must be between 1 and 10000.")

        log_level = str(os.environ.get("NOTEVAULT_LOG_LEVEL") or log.get("level", "INFO")).upper()
        if log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {log_level}. Must be one of: {VALID_LOG_LEVELS}")

        return NoteVaultConfig(
            data_dir=data_dir_path,
            db_path=Path(_expand(db_path)) if db_path else None,
            notes_dir=notes_dir,
            default_limit=default_limit,
            hybrid_bonus=hybrid_bonus,
            fts_decay=fts_decay,
            embedding_provider=provider,
            embedding_model=emb.get("model", "BAAI/bge-small-en-v1.5"),
            embedding_device=device,
            embedding_batch_size=batch_size,
            ollama_endpoint=emb.get("ollama_endpoint", "http://127.0.0.1:11434/api/embed"),
            ollama_timeout_s=float(emb.get("ollama_timeout_s", 30.0)),
            log_level=log_level,
            log_file=log.get("file"),
        )


def load_config(path: str | Path | None = None) -> NoteVaultConfig:
    """Load config from a TOML file; a missing file yields defaults (plus env overrides)."""
    if path is not None and Path(path).exists():
        return NoteVaultConfig.from_toml(path)
    return NoteVaultConfig.from_dict({})
