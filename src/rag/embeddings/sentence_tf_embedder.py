# src/rag/embeddings/sentence_tf_embedder.py — v1
"""Sentence Transformers embedding adapter (local inference).

The model is loaded on first use through a LazyResource so concurrent first
calls share one load, and encoding runs in a worker thread to keep the event
loop responsive. Default model: all-MiniLM-L6-v2 (384 dimensions).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from patternsearch.cache.singleflight import LazyResource
from patternsearch.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder(BaseEmbedder):
    """Local embeddings via sentence-transformers."""

    def __init__(
        self,
        model: str = "all-MiniLM-L6-v2",
        dimensions: int = 384,
    ) -> None:
        self._model_name = model
        self._dimensions = dimensions
        self._model: LazyResource[Any] = LazyResource(self._load_model)

    async def _load_model(self) -> Any:
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ImportError(
                "sentence-transformers package required: "
                "pip install sentence-transformers"
            ) from e
        logger.info("Loading sentence-transformers model %s", self._model_name)
        model = await asyncio.to_thread(SentenceTransformer, self._model_name)
        # Update dimensions from loaded model
        self._dimensions = model.get_sentence_embedding_dimension()
        return model

    async def warm_up(self) -> None:
        await self._model.get()

    async def _encode(self, texts: list[str]) -> list[list[float]]:
        model = await self._model.get()
        embeddings = await asyncio.to_thread(
            model.encode, texts, show_progress_bar=False, normalize_embeddings=True
        )
        return [emb.tolist() for emb in embeddings]

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed document texts locally."""
        return await self._encode(texts)

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single query locally."""
        vectors = await self._encode([query])
        return vectors[0]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "sentence_transformers"

    @property
    def model_name(self) -> str:
        return self._model_name
