from __future__ import annotations

from typing import Optional

from ..config import NoteVaultConfig
from .base import Embedder
from .ollama import OllamaEmbedder
from .sentence_transformers import SentenceTransformersEmbedder


def build_embedder(cfg: NoteVaultConfig) -> Optional[Embedder]:
    """Embedder selected by config; `None` when the provider is "off"."""
    if cfg.embedding_provider == "sentence_transformers":
        return SentenceTransformersEmbedder(
            model_id=cfg.embedding_model,
            device=cfg.embedding_device,
            batch_size=cfg.embedding_batch_size,
        )
    if cfg.embedding_provider == "ollama":
        return OllamaEmbedder(
            model_id=cfg.embedding_model,
            endpoint=cfg.ollama_endpoint,
            timeout_s=cfg.ollama_timeout_s,
            batch_size=cfg.embedding_batch_size,
        )
    if cfg.embedding_provider == "off":
        return None
    raise ValueError(f"Unknown embedding provider: {cfg.embedding_provider}")


__all__ = ["Embedder", "OllamaEmbedder", "SentenceTransformersEmbedder", "build_embedder"]
