# src/rag/embeddings/base_embedder.py — v1
"""Embedding provider interface for semantic recall.

Documents (pattern title + excerpt) and queries may be embedded
differently by a provider, hence the two entry points. Vectors from
different providers, models or sizes are not comparable: ``signature``
identifies the vector space and scopes persisted embeddings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """A provider turning pattern and query text into vectors."""

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed pattern texts, one vector per input, order preserved."""

    @abstractmethod
    async def embed_query(self, query: str) -> list[float]:
        """Embed a search query."""

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_texts([text])
        return vectors[0]

    async def warm_up(self) -> None:
        """Load models or open clients ahead of the first search."""

    @property
    def signature(self) -> str:
        """``provider::model::dimensions``; equal only for comparable vectors."""
        return f"{self.provider_name}::{self.model_name}::{self.dimensions}"

    @property
    @abstractmethod
    def dimensions(self) -> int: ...

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @property
    @abstractmethod
    def model_name(self) -> str: ...
