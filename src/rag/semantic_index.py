# src/rag/semantic_index.py — v1
"""Embedding-based recall index used when lexical confidence is low.

The index is maintained incrementally: a pattern is embedded only when its
(id, content hash) pair is new, and embeddings are persisted through a
FetchCache so a restart does not re-embed unchanged content.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from patternsearch.cache.fetch_cache import FetchCache
from patternsearch.cache.fingerprint import content_hash
from patternsearch.core.models import Pattern
from patternsearch.core.similarity import cosine_similarities
from patternsearch.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_TTL = 7 * 86_400
EXCERPT_FALLBACK_CHARS = 500


@dataclass(frozen=True)
class SemanticRecallConfig:
    """Activation and indexing thresholds for semantic recall."""

    enabled: bool = False
    min_lexical_score: float = 0.35
    min_relevance_score: int = 70
    embedding_ttl_seconds: float = DEFAULT_EMBEDDING_TTL
    max_entries: int = 5000


@dataclass
class IndexedEmbedding:
    pattern: Pattern
    content_hash: str
    vector: np.ndarray


def pattern_content_hash(pattern: Pattern) -> str:
    """Hash of the text that gets embedded (title + excerpt)."""
    excerpt = pattern.excerpt or pattern.content[:EXCERPT_FALLBACK_CHARS]
    return content_hash(pattern.title + excerpt)


def embedding_text(pattern: Pattern) -> str:
    excerpt = pattern.excerpt or pattern.content[:EXCERPT_FALLBACK_CHARS]
    return f"{pattern.title} {excerpt}".strip()


class SemanticIndex:
    """Vector index over high-quality patterns.

    Args:
        embedder: Embedding provider.
        cache: FetchCache used to persist document embeddings.
        config: Recall thresholds and the index size cap.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        cache: FetchCache,
        config: SemanticRecallConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._cache = cache
        self.config = config or SemanticRecallConfig()
        self._entries: OrderedDict[tuple[str, str], IndexedEmbedding] = OrderedDict()

    @property
    def embedder(self) -> BaseEmbedder:
        return self._embedder

    def __len__(self) -> int:
        return len(self._entries)

    async def index(self, patterns: Sequence[Pattern]) -> None:
        """Bring the index in line with ``patterns``.

        Patterns below ``min_relevance_score`` are skipped and the first
        occurrence of an id wins. Only new (id, content hash) pairs are
        embedded; entries not present in ``patterns`` are evicted.
        """
        eligible: dict[str, Pattern] = {}
        for pattern in patterns:
            if pattern.relevance_score >= self.config.min_relevance_score:
                eligible.setdefault(pattern.id, pattern)
        selected = list(eligible.values())
        if len(selected) > self.config.max_entries:
            selected = sorted(selected, key=lambda p: p.relevance_score, reverse=True)
            selected = selected[: self.config.max_entries]

        if selected:
            # Dimensions are final only once the model is loaded
            await self._embedder.warm_up()

        current: set[tuple[str, str]] = set()
        embedded = 0
        for pattern in selected:
            digest = pattern_content_hash(pattern)
            key = (pattern.id, digest)
            current.add(key)

            existing = self._entries.get(key)
            if existing is not None:
                existing.pattern = pattern
                continue

            vector = await self._cache.get_or_fetch(
                self._cache_key(pattern.id, digest),
                lambda p=pattern: self._embed_document(p),
                self.config.embedding_ttl_seconds,
            )
            self._entries[key] = IndexedEmbedding(
                pattern=pattern,
                content_hash=digest,
                vector=np.asarray(vector, dtype=np.float32),
            )
            embedded += 1

        stale = [key for key in self._entries if key not in current]
        for key in stale:
            del self._entries[key]

        if embedded or stale:
            logger.debug(
                "Semantic index updated: %d added, %d evicted, %d total",
                embedded, len(stale), len(self._entries),
            )

    async def search(self, query: str, limit: int = 10) -> list[Pattern]:
        """Top ``limit`` patterns by cosine similarity to ``query``."""
        if not self._entries or limit <= 0:
            return []

        query_vector = np.asarray(await self._embedder.embed_query(query), dtype=np.float32)
        entries = list(self._entries.values())
        matrix = np.vstack([e.vector for e in entries])
        similarities = cosine_similarities(query_vector, matrix)

        order = np.argsort(-similarities, kind="stable")[:limit]
        return [entries[i].pattern for i in order]

    def clear(self) -> None:
        self._entries.clear()

    async def _embed_document(self, pattern: Pattern) -> list[float]:
        return await self._embedder.embed(embedding_text(pattern))

    def _cache_key(self, pattern_id: str, digest: str) -> str:
        return f"embedding::{self._embedder.signature}::{pattern_id}::{digest}"
