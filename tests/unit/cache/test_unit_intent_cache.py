# tests/unit/cache/test_unit_intent_cache.py — v1
"""Tests for cache/intent_cache.py — key construction, fingerprints, stats, single-flight."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from patternsearch.cache.fetch_cache import FetchCache
from patternsearch.cache.intent_cache import IntentCache
from patternsearch.cache.models import CachedSearchResult, IntentKey, StorableSearchResult


@pytest.fixture
def intent_cache(cache_root, clock) -> IntentCache:
    return IntentCache(cache_root=cache_root, clock=clock)


@pytest.fixture
def intent() -> IntentKey:
    return IntentKey(tool="get_pattern", query="swiftui navigation", min_quality=60, sources=["a", "b"])


def _result(*ids: str) -> StorableSearchResult:
    return StorableSearchResult(
        pattern_ids=list(ids), scores={i: 80 for i in ids}, total_count=len(ids)
    )


class TestNormalizeQuery:
    def test_sorted_without_stopwords(self):
        assert IntentCache.normalize_query("How to use the SwiftUI Navigation") == "navigation swiftui use"

    def test_no_stemming(self):
        assert IntentCache.normalize_query("testing reducers") == "reducers testing"

    def test_punctuation_removed(self):
        assert IntentCache.normalize_query("async/await, actors!") == "actors async await"


class TestBuildCacheKey:
    def test_sha256_hex(self, intent_cache, intent):
        key = intent_cache.build_cache_key(intent)
        assert len(key) == 64

    def test_deterministic(self, intent_cache, intent):
        assert intent_cache.build_cache_key(intent) == intent_cache.build_cache_key(intent)

    def test_source_order_irrelevant(self, intent_cache, intent):
        swapped = intent.model_copy(update={"sources": ["b", "a"]})
        assert intent_cache.build_cache_key(intent) == intent_cache.build_cache_key(swapped)

    def test_query_token_order_irrelevant(self, intent_cache, intent):
        reordered = intent.model_copy(update={"query": "Navigation SwiftUI"})
        assert intent_cache.build_cache_key(intent) == intent_cache.build_cache_key(reordered)

    @pytest.mark.parametrize(
        "update",
        [
            {"tool": "search_patterns"},
            {"query": "swiftui animation"},
            {"min_quality": 70},
            {"sources": ["a"]},
            {"require_code": True},
        ],
    )
    def test_single_field_change_changes_key(self, intent_cache, intent, update):
        assert intent_cache.build_cache_key(intent) != intent_cache.build_cache_key(
            intent.model_copy(update=update)
        )


class TestGetSet:
    @pytest.mark.asyncio
    async def test_miss_then_hit(self, intent_cache, intent):
        assert await intent_cache.get(intent) is None
        await intent_cache.set(intent, _result("p1", "p2"))
        cached = await intent_cache.get(intent)
        assert isinstance(cached, CachedSearchResult)
        assert cached.pattern_ids == ["p1", "p2"]
        assert cached.source_fingerprint == IntentCache.source_fingerprint(["a", "b"])

    @pytest.mark.asyncio
    async def test_swapped_sources_hit_subset_misses(self, intent_cache, intent):
        await intent_cache.set(intent, _result("p1"))
        assert await intent_cache.get(intent.model_copy(update={"sources": ["b", "a"]})) is not None
        assert await intent_cache.get(intent.model_copy(update={"sources": ["a"]})) is None

    @pytest.mark.asyncio
    async def test_timestamp_from_clock(self, intent_cache, intent, clock):
        entry = await intent_cache.set(intent, _result("p1"))
        assert entry.timestamp == clock()

    @pytest.mark.asyncio
    async def test_expires_after_default_ttl(self, intent_cache, intent, clock):
        await intent_cache.set(intent, _result("p1"))
        clock.advance(43_199)
        assert await intent_cache.get(intent) is not None
        clock.advance(1)
        assert await intent_cache.get(intent) is None

    @pytest.mark.asyncio
    async def test_explicit_ttl(self, intent_cache, intent, clock):
        await intent_cache.set(intent, _result("p1"), ttl_seconds=60)
        clock.advance(61)
        assert await intent_cache.get(intent) is None

    @pytest.mark.asyncio
    async def test_fingerprint_mismatch_is_miss(self, cache_root, clock, intent):
        backing = FetchCache("intent", cache_root=cache_root, clock=clock)
        cache = IntentCache(backing, clock=clock)
        key = cache.build_cache_key(intent)
        stored = CachedSearchResult(pattern_ids=["p1"], source_fingerprint="000000000000")
        await backing.set(key, stored.model_dump(mode="json"))
        assert await cache.get(intent) is None

    @pytest.mark.asyncio
    async def test_legacy_entry_without_fingerprint_is_miss(self, cache_root, clock, intent):
        backing = FetchCache("intent", cache_root=cache_root, clock=clock)
        cache = IntentCache(backing, clock=clock)
        await backing.set(cache.build_cache_key(intent), {"pattern_ids": ["p1"], "scores": {}, "total_count": 1})
        assert await cache.get(intent) is None
        assert cache.get_stats().misses == 1

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_miss(self, cache_root, clock, intent):
        backing = FetchCache("intent", cache_root=cache_root, clock=clock)
        cache = IntentCache(backing, clock=clock)
        await backing.set(cache.build_cache_key(intent), "garbage")
        assert await cache.get(intent) is None

    @pytest.mark.asyncio
    async def test_patterns_round_trip(self, intent_cache, intent, sample_patterns):
        await intent_cache.set(intent, StorableSearchResult.from_patterns(sample_patterns))
        cached = await intent_cache.get(intent)
        assert cached.patterns == sample_patterns
        assert cached.scores["pointfree-testing"] == 90


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_hits_and_misses(self, intent_cache, intent):
        await intent_cache.get(intent)
        await intent_cache.set(intent, _result("p1"))
        await intent_cache.get(intent)
        await intent_cache.get(intent)
        stats = intent_cache.get_stats()
        assert (stats.hits, stats.misses) == (2, 1)
        assert stats.hit_rate == pytest.approx(2 / 3)

    def test_empty_stats(self, intent_cache):
        stats = intent_cache.get_stats()
        assert (stats.hits, stats.misses, stats.hit_rate) == (0, 0, 0.0)

    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, intent_cache, intent):
        await intent_cache.set(intent, _result("p1"))
        await intent_cache.get(intent)
        await intent_cache.get(intent.model_copy(update={"query": "other"}))

        await intent_cache.clear()

        stats = intent_cache.get_stats()
        assert (stats.hits, stats.misses, stats.hit_rate) == (0, 0, 0.0)
        assert await intent_cache.get(intent) is None


class TestGetOrFetch:
    @pytest.mark.asyncio
    async def test_concurrent_identical_intents_run_once(self, intent_cache, intent):
        calls = 0
        release = asyncio.Event()

        async def producer():
            nonlocal calls
            calls += 1
            await release.wait()
            return _result("p1", "p2")

        tasks = [
            asyncio.create_task(intent_cache.get_or_fetch(intent, producer)) for _ in range(5)
        ]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 1
        assert all(r.pattern_ids == ["p1", "p2"] for r in results)

    @pytest.mark.asyncio
    async def test_distinct_intents_are_independent(self, intent_cache, intent):
        other = intent.model_copy(update={"require_code": True})
        a, b = await asyncio.gather(
            intent_cache.get_or_fetch(intent, AsyncMock(return_value=_result("p1"))),
            intent_cache.get_or_fetch(other, AsyncMock(return_value=_result("p9"))),
        )
        assert a.pattern_ids == ["p1"]
        assert b.pattern_ids == ["p9"]

    @pytest.mark.asyncio
    async def test_result_is_cached(self, intent_cache, intent):
        producer = AsyncMock(return_value=_result("p1"))
        await intent_cache.get_or_fetch(intent, producer)
        await intent_cache.get_or_fetch(intent, producer)
        assert producer.await_count == 1

    @pytest.mark.asyncio
    async def test_producer_failure_propagates(self, intent_cache, intent):
        with pytest.raises(RuntimeError):
            await intent_cache.get_or_fetch(intent, AsyncMock(side_effect=RuntimeError("boom")))
        assert await intent_cache.get(intent) is None

    @pytest.mark.asyncio
    async def test_cache_if_rejection_returns_without_storing(self, intent_cache, intent):
        producer = AsyncMock(return_value=_result())
        result = await intent_cache.get_or_fetch(
            intent, producer, cache_if=lambda r: r.total_count > 0
        )
        assert result.pattern_ids == []
        assert await intent_cache.get(intent) is None

        await intent_cache.get_or_fetch(intent, producer, cache_if=lambda r: r.total_count > 0)
        assert producer.await_count == 2

    @pytest.mark.asyncio
    async def test_fetch_running_across_clear_is_not_stored(self, intent_cache, intent):
        started = asyncio.Event()
        release = asyncio.Event()

        async def producer():
            started.set()
            await release.wait()
            return _result("stale")

        task = asyncio.create_task(intent_cache.get_or_fetch(intent, producer))
        await started.wait()
        await intent_cache.clear()
        release.set()

        assert (await task).pattern_ids == ["stale"]
        assert await intent_cache.get(intent) is None
