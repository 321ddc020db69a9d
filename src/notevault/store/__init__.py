from .libsql_store import LibSqlStore, now_ms
from .settings import SettingsStore
from .vector_index import NumpyVectorIndex, VectorIndex

__all__ = ["LibSqlStore", "NumpyVectorIndex", "SettingsStore", "VectorIndex", "now_ms"]
