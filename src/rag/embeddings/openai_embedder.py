# src/rag/embeddings/openai_embedder.py — v1
"""OpenAI embeddings for semantic recall.

Pattern texts are sent in request-sized batches. The output size is only
requested from models that accept it (text-embedding-3-*); older models
always return their native size.
"""

from __future__ import annotations

import logging

from patternsearch.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

# Inputs per embeddings request accepted by the API
MAX_BATCH_SIZE = 2048


class OpenAIEmbedder(BaseEmbedder):
    """Remote embeddings via the OpenAI API (``openai`` extra)."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        dimensions: int = 1536,
        batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._dimensions = dimensions
        self._batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        self.__client = None

    @property
    def _client(self):
        if self.__client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError(
                    "openai package required: pip install openai"
                ) from e
            self.__client = openai.AsyncOpenAI(api_key=self._api_key or "")
        return self.__client

    @property
    def _accepts_dimensions(self) -> bool:
        return self._model.startswith("text-embedding-3")

    async def _create(self, texts: list[str]) -> list[list[float]]:
        kwargs: dict = {"model": self._model}
        if self._accepts_dimensions:
            kwargs["dimensions"] = self._dimensions

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            # The API rejects empty strings
            batch = [t or " " for t in texts[start : start + self._batch_size]]
            response = await self._client.embeddings.create(input=batch, **kwargs)
            vectors.extend(item.embedding for item in response.data)
        logger.debug("Embedded %d texts with %s", len(texts), self._model)
        return vectors

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return await self._create(texts)

    async def embed_query(self, query: str) -> list[float]:
        vectors = await self._create([query])
        return vectors[0]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
