"""notevault: a personal note store with hybrid retrieval, a shared git vault
and an integrity checker.

Public API:
- NoteVaultConfig / load_config
- LibSqlStore, SettingsStore
- Retriever
- PathMapper, VaultSynchronizer
- IntegrityVerifier
"""

from .config import NoteVaultConfig, load_config
from .retrieval.retriever import Retriever
from .store.libsql_store import LibSqlStore
from .store.settings import SettingsStore
from .vault.mapper import PathMapper
from .vault.sync import VaultSynchronizer
from .verify.verifier import IntegrityVerifier

__all__ = [
    "IntegrityVerifier",
    "LibSqlStore",
    "NoteVaultConfig",
    "PathMapper",
    "Retriever",
    "SettingsStore",
    "VaultSynchronizer",
    "load_config",
]
