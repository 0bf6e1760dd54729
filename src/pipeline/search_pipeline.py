# src/pipeline/search_pipeline.py — v1
"""Search pipeline: the composition tool handlers run for a pattern query.

  1. IntentCache lookup (hit returns immediately)
  2. Gather patterns from the selected sources (partial failures tolerated)
  3. LexicalIndex ranking
  4. Semantic recall merge when lexical confidence is low
  5. Quality / code filters, then store in the IntentCache

Identical concurrent intents share one execution. Empty results are not
cached so a transient source outage does not pin an empty answer. A recall
provider failure falls back to lexical results only when there are some;
with nothing to fall back on it propagates.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from patternsearch.cache.cache_factory import create_fetch_cache, create_intent_cache
from patternsearch.cache.intent_cache import IntentCache
from patternsearch.cache.models import IntentKey, StorableSearchResult
from patternsearch.config.settings import ConfigurationError, Settings
from patternsearch.core.models import Pattern
from patternsearch.logging.context import set_request_context
from patternsearch.rag.embeddings.base_embedder import BaseEmbedder
from patternsearch.rag.embeddings.embedder_factory import create_embedder
from patternsearch.rag.semantic_index import SemanticIndex, SemanticRecallConfig
from patternsearch.search.lexical_index import LexicalIndex, SearchOptions

logger = logging.getLogger(__name__)

DEFAULT_SEMANTIC_LIMIT = 10


@runtime_checkable
class PatternSource(Protocol):
    """A content feed that yields patterns."""

    name: str

    async def fetch_patterns(self) -> list[Pattern]: ...

    async def search_patterns(self, query: str) -> list[Pattern]: ...


@dataclass
class SearchOutcome:
    patterns: list[Pattern] = field(default_factory=list)
    was_cache_hit: bool = False


async def gather_patterns(
    sources: Sequence[PatternSource], query: str | None = None
) -> list[Pattern]:
    """Collect patterns from every source concurrently.

    With ``query`` the sources' own search is used, otherwise their full
    listing. A failing source is logged and skipped.
    """
    calls = [
        source.search_patterns(query) if query is not None else source.fetch_patterns()
        for source in sources
    ]
    results = await asyncio.gather(*calls, return_exceptions=True)

    patterns: list[Pattern] = []
    for source, result in zip(sources, results):
        if isinstance(result, BaseException):
            logger.warning("Source %s failed: %s", source.name, result)
            continue
        patterns.extend(result)
    return patterns


def should_use_semantic_recall(
    lexical_results: Sequence[Pattern], config: SemanticRecallConfig
) -> bool:
    """True when recall is enabled and lexical results are absent or weak."""
    if not config.enabled:
        return False
    if not lexical_results:
        return True
    best = max(p.relevance_score for p in lexical_results)
    return best / 100 < config.min_lexical_score


def merge_recall_results(
    lexical: Sequence[Pattern],
    semantic: Sequence[Pattern],
    min_relevance_score: int,
) -> list[Pattern]:
    """Lexical results followed by unseen semantic ones, filtered by relevance."""
    seen = {p.id for p in lexical}
    merged = list(lexical)
    for pattern in semantic:
        if pattern.id not in seen:
            seen.add(pattern.id)
            merged.append(pattern)
    return [p for p in merged if p.relevance_score >= min_relevance_score]


class PatternSearchPipeline:
    """Runs intent-cached, lexically ranked searches over pattern sources.

    Usage:
        pipeline = build_pipeline(settings)
        outcome = await pipeline.search(intent, sources, limit=10)
    """

    def __init__(
        self,
        intent_cache: IntentCache,
        lexical_index: LexicalIndex | None = None,
        semantic_index: SemanticIndex | None = None,
        search_options: SearchOptions | None = None,
        semantic_limit: int = DEFAULT_SEMANTIC_LIMIT,
    ) -> None:
        self._intent_cache = intent_cache
        self._lexical = lexical_index or LexicalIndex()
        self._semantic = semantic_index
        self._options = search_options or SearchOptions()
        self._semantic_limit = semantic_limit

    @property
    def intent_cache(self) -> IntentCache:
        return self._intent_cache

    async def search(
        self,
        intent: IntentKey,
        sources: Sequence[PatternSource],
        limit: int | None = None,
    ) -> SearchOutcome:
        """Answer ``intent`` from cache or by running the sources."""
        key = self._intent_cache.build_cache_key(intent)
        set_request_context(intent.tool, intent_key=key[:12])

        cached = await self._intent_cache.get(intent)
        if cached is not None:
            logger.debug("Intent cache hit for %r", intent.query)
            return SearchOutcome(_limit(cached.patterns or [], limit), was_cache_hit=True)

        fetched = await self._intent_cache.fetch(
            intent,
            lambda: self._produce(intent, sources),
            cache_if=lambda result: result.total_count > 0,
        )
        return SearchOutcome(_limit(fetched.patterns or [], limit), was_cache_hit=False)

    async def warm_up(self) -> None:
        """Preload the embedding model when semantic recall is enabled."""
        if self._semantic is not None and self._semantic.config.enabled:
            await self._semantic.embedder.warm_up()

    async def _produce(
        self, intent: IntentKey, sources: Sequence[PatternSource]
    ) -> StorableSearchResult:
        started = time.monotonic()
        selected = _select_sources(intent, sources)
        candidates = await gather_patterns(selected)
        ranked = self._lexical.search(candidates, intent.query, self._options)

        if self._semantic is not None and should_use_semantic_recall(ranked, self._semantic.config):
            ranked = await self._recall(self._semantic, intent.query, candidates, ranked)

        results = [
            p for p in ranked
            if p.relevance_score >= intent.min_quality and (p.has_code or not intent.require_code)
        ]

        logger.info(
            "Search %r: %d candidates from %d sources, %d results in %.3fs",
            intent.query, len(candidates), len(selected), len(results),
            time.monotonic() - started,
        )

        return StorableSearchResult.from_patterns(results)

    async def _recall(
        self,
        semantic_index: SemanticIndex,
        query: str,
        candidates: list[Pattern],
        lexical: list[Pattern],
    ) -> list[Pattern]:
        try:
            await semantic_index.index(candidates)
            semantic = await semantic_index.search(query, self._semantic_limit)
        except (ImportError, ConfigurationError):
            raise
        except Exception as e:
            # An empty answer must not hide a provider outage
            if not lexical:
                raise
            logger.warning("Semantic recall failed for %r: %s", query, e)
            return lexical
        logger.debug("Semantic recall returned %d patterns for %r", len(semantic), query)
        return merge_recall_results(lexical, semantic, semantic_index.config.min_relevance_score)


def _select_sources(
    intent: IntentKey, sources: Sequence[PatternSource]
) -> list[PatternSource]:
    if not intent.sources:
        return list(sources)
    wanted = set(intent.sources)
    return [s for s in sources if s.name in wanted]


def _limit(patterns: list[Pattern], limit: int | None) -> list[Pattern]:
    return list(patterns) if limit is None else list(patterns[:limit])


def build_pipeline(
    settings: Settings | None = None,
    embedder: BaseEmbedder | None = None,
    clock: Callable[[], float] = time.time,
) -> PatternSearchPipeline:
    """Wire a pipeline from Settings.

    The semantic index is created only when recall is enabled; the embedder
    comes from the embedder factory unless one is passed in.
    """
    settings = settings or Settings()

    semantic: SemanticIndex | None = None
    if settings.semantic_recall_enabled:
        config = SemanticRecallConfig(
            enabled=True,
            min_lexical_score=settings.semantic_min_lexical_score,
            min_relevance_score=settings.semantic_min_relevance_score,
            embedding_ttl_seconds=settings.semantic_embedding_ttl,
            max_entries=settings.semantic_max_entries,
        )
        semantic = SemanticIndex(
            embedder or create_embedder(settings),
            create_fetch_cache("semantic-embeddings", settings, clock=clock),
            config,
        )

    return PatternSearchPipeline(
        intent_cache=create_intent_cache(settings, clock=clock),
        semantic_index=semantic,
        search_options=SearchOptions(
            fuzzy=settings.lexical_fuzzy, boost=settings.lexical_boost
        ),
    )
