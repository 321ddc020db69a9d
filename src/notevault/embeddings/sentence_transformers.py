from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence
import threading
import numpy as np


@dataclass
class SentenceTransformersEmbedder:
    """Local sentence-transformers model, loaded on first use.

    Loading is deferred so a store can be opened (and full-text search run)
    without paying for the model or even having the package installed.
    """
    model_id: str
    device: str = "cpu"
    batch_size: int = 32
    use_query_prefix: bool = True
    query_prefix: str = "Represent this sentence for searching relevant passages: "
    dims: int = 0
    _model: Any = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _load(self) -> Any:
        with self._lock:
            if self._model is None:
                # Suppress harmless multiprocessing resource tracker warnings on macOS
                import warnings
                warnings.filterwarnings("ignore", message="resource_tracker: There appear to be.*leaked semaphore")

                from sentence_transformers import SentenceTransformer  # type: ignore
                self._model = SentenceTransformer(self.model_id, device=self.device)
                v = self._model.encode(["dimension_probe"], batch_size=1, convert_to_numpy=True, normalize_embeddings=True)
                self.dims = int(v.shape[1])
        return self._model

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """Embed note bodies (no prefix)."""
        model = self._load()
        return model.encode(list(texts), batch_size=self.batch_size, convert_to_numpy=True, normalize_embeddings=True)

    def embed_query(self, query: str) -> np.ndarray:
        """Embed query with optional instruction prefix for asymmetric retrieval."""
        model = self._load()
        if self.use_query_prefix and self.query_prefix:
            query = self.query_prefix + query
        return model.encode([query], batch_size=1, convert_to_numpy=True, normalize_embeddings=True)[0]
