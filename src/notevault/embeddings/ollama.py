from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence
import json
import logging
import urllib.error
import urllib.request

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class OllamaEmbedder:
    """Local Ollama embeddings endpoint.

    Talks to ``/api/embed`` (batched ``input`` list, ``embeddings`` reply) and
    also accepts the older ``/api/embeddings`` single-``embedding`` reply.
    `timeout_s` bounds every HTTP call; it is the only timeout on the vector path.
    """
    model_id: str
    endpoint: str = "http://127.0.0.1:11434/api/embed"
    timeout_s: float = 30.0
    batch_size: int = 32
    dims: int = 0

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(self.endpoint, data=data, headers={"Content-Type": "application/json"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.URLError as e:
            raise RuntimeError(f"Ollama request to {self.endpoint} failed: {e}") from e

    def _embed(self, texts: list[str]) -> list[list[float]]:
        if self.endpoint.rstrip("/").endswith("/api/embeddings"):
            # Legacy endpoint: one prompt per call
            out = []
            for t in texts:
                reply = self._post({"model": self.model_id, "prompt": t})
                vec = reply.get("embedding")
                if not isinstance(vec, list):
                    raise RuntimeError(f"Unexpected Ollama response: {reply}")
                out.append(vec)
            return out

        reply = self._post({"model": self.model_id, "input": texts})
        vecs = reply.get("embeddings")
        if not isinstance(vecs, list) or len(vecs) != len(texts):
            raise RuntimeError(f"Unexpected Ollama response: {reply}")
        return vecs

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        texts = list(texts)
        vectors: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            vectors.extend(self._embed(texts[i:i + self.batch_size]))
        arr = np.array(vectors, dtype=np.float32)
        if self.dims == 0 and arr.size:
            self.dims = int(arr.shape[1])
            logger.debug(f"Ollama model {self.model_id} produces {self.dims}-dim vectors")
        return arr

    def embed_query(self, query: str) -> np.ndarray:
        return self.embed_texts([query])[0]
