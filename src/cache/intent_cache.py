# src/cache/intent_cache.py — v1
"""Intent-aware result caching for tool handlers.

Whole query results are memoized by what the caller asked (tool, normalized
query, quality threshold, selected sources, code filter), independent of the
code path that produced them. Identical concurrent asks share one execution.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path

from pydantic import ValidationError

from patternsearch.cache.fetch_cache import CacheWriteError, FetchCache
from patternsearch.cache.fingerprint import source_fingerprint
from patternsearch.cache.models import (
    CachedSearchResult,
    CacheStats,
    IntentKey,
    StorableSearchResult,
)
from patternsearch.cache.singleflight import InflightDeduper
from patternsearch.search.terms import normalize_tokens

logger = logging.getLogger(__name__)

# 12 hours: longer than feed caches, shorter than article caches
DEFAULT_INTENT_TTL = 43_200
DEFAULT_MAX_MEMORY_ENTRIES = 200


class IntentCache:
    """Caches search results by normalized query intent.

    Args:
        cache: Underlying FetchCache. Built from the remaining arguments when
            omitted.
        namespace: Namespace of the default FetchCache.
        cache_root: Root directory of the default FetchCache.
        max_memory_entries: LRU capacity of the default FetchCache.
        default_ttl: TTL in seconds for stored results.
        clock: Epoch-seconds clock shared with the default FetchCache.
    """

    def __init__(
        self,
        cache: FetchCache | None = None,
        *,
        namespace: str = "intent",
        cache_root: Path | str | None = None,
        max_memory_entries: int = DEFAULT_MAX_MEMORY_ENTRIES,
        default_ttl: float = DEFAULT_INTENT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache or FetchCache(
            namespace,
            cache_root=cache_root,
            default_ttl=default_ttl,
            max_memory_entries=max_memory_entries,
            clock=clock,
        )
        self._default_ttl = default_ttl
        self._clock = clock
        self._pending: InflightDeduper[str, CachedSearchResult] = InflightDeduper()
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Key construction
    # ------------------------------------------------------------------

    @staticmethod
    def normalize_query(query: str) -> str:
        """Lower-case, drop stop-words, sort tokens; no stemming."""
        return " ".join(sorted(normalize_tokens(query)))

    @staticmethod
    def source_fingerprint(sources: list[str]) -> str:
        return source_fingerprint(sources)

    def build_cache_key(self, intent: IntentKey) -> str:
        """SHA-256 of ``tool::query::qN::fingerprint[::code]``."""
        parts = [
            intent.tool,
            self.normalize_query(intent.query),
            f"q{intent.min_quality}",
            self.source_fingerprint(intent.sources),
        ]
        if intent.require_code:
            parts.append("code")
        return hashlib.sha256("::".join(parts).encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    async def get(self, intent: IntentKey) -> CachedSearchResult | None:
        """Return the cached result, or None on miss or source fingerprint mismatch."""
        key = self.build_cache_key(intent)
        cached = self._decode(key, await self._cache.get(key))

        if cached is None:
            self._misses += 1
            return None

        if cached.source_fingerprint != self.source_fingerprint(intent.sources):
            logger.debug("Intent %s: source fingerprint changed, treating as miss", key[:12])
            self._misses += 1
            return None

        self._hits += 1
        return cached

    async def set(
        self,
        intent: IntentKey,
        result: StorableSearchResult,
        ttl_seconds: float | None = None,
    ) -> CachedSearchResult:
        """Stamp ``result`` with the source fingerprint and time, then store it."""
        key = self.build_cache_key(intent)
        entry = self._stamp(intent, result)
        await self._cache.set(key, entry.model_dump(mode="json"), self._ttl(ttl_seconds))
        return entry

    async def get_or_fetch(
        self,
        intent: IntentKey,
        producer: Callable[[], Awaitable[StorableSearchResult]],
        ttl_seconds: float | None = None,
        cache_if: Callable[[StorableSearchResult], bool] | None = None,
    ) -> CachedSearchResult:
        """Cached result, or one shared ``producer`` run for concurrent identical intents."""
        cached = await self.get(intent)
        if cached is not None:
            return cached
        return await self.fetch(intent, producer, ttl_seconds, cache_if)

    async def fetch(
        self,
        intent: IntentKey,
        producer: Callable[[], Awaitable[StorableSearchResult]],
        ttl_seconds: float | None = None,
        cache_if: Callable[[StorableSearchResult], bool] | None = None,
    ) -> CachedSearchResult:
        """Run ``producer`` once for concurrent identical intents and store its result.

        Skips the cache lookup; use after a ``get`` miss. The result is not
        stored when ``cache_if`` rejects it, or when ``clear()`` ran while the
        producer was in flight. Write failures are logged, not raised.
        """
        key = self.build_cache_key(intent)

        async def _fetch_and_store() -> CachedSearchResult:
            generation = self._cache.generation
            result = await producer()
            entry = self._stamp(intent, result)
            if cache_if is not None and not cache_if(result):
                return entry
            if generation != self._cache.generation:
                logger.debug("Intent cache cleared during fetch of %s, not storing", key[:12])
                return entry
            try:
                await self._cache.set(key, entry.model_dump(mode="json"), self._ttl(ttl_seconds))
            except CacheWriteError as e:
                logger.warning("Intent cache write failed for %s: %s", key[:12], e)
            return entry

        return await self._pending.run(key, _fetch_and_store)

    async def clear(self) -> None:
        """Clear all cached intents and reset counters."""
        self._pending.clear()
        await self._cache.clear()
        self._hits = 0
        self._misses = 0

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / total if total > 0 else 0.0,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ttl(self, ttl_seconds: float | None) -> float:
        return self._default_ttl if ttl_seconds is None else ttl_seconds

    def _stamp(self, intent: IntentKey, result: StorableSearchResult) -> CachedSearchResult:
        return CachedSearchResult(
            **result.model_dump(exclude={"source_fingerprint", "timestamp"}),
            source_fingerprint=self.source_fingerprint(intent.sources),
            timestamp=self._clock(),
        )

    @staticmethod
    def _decode(key: str, payload: object) -> CachedSearchResult | None:
        if payload is None:
            return None
        try:
            return CachedSearchResult.model_validate(payload)
        except ValidationError as e:
            logger.warning("Discarding undecodable intent entry %s: %s", key[:12], e)
            return None
