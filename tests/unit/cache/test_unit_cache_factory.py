# tests/unit/cache/test_unit_cache_factory.py — v1
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

import pytest

from patternsearch.cache.cache_factory import (
    create_cache_store,
    create_fetch_cache,
    create_intent_cache,
)
from patternsearch.cache.json_store import JsonCacheStore
from patternsearch.cache.models import IntentKey, StorableSearchResult
from patternsearch.config.settings import Settings


@pytest.fixture
def settings(cache_root) -> Settings:
    return Settings(_env_file=None, cache_root=cache_root, cache_default_ttl=100, intent_cache_ttl=50)


class TestCacheFactory:
    def test_store_per_namespace(self, settings, cache_root):
        store = create_cache_store("feeds", settings)
        assert isinstance(store, JsonCacheStore)
        assert store.root == cache_root / "feeds"

    @pytest.mark.asyncio
    async def test_fetch_cache_uses_configured_ttl(self, settings, clock):
        cache = create_fetch_cache("feeds", settings, clock=clock)
        await cache.set("k", "v")
        clock.advance(100)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_intent_cache_uses_intent_ttl(self, settings, clock):
        cache = create_intent_cache(settings, clock=clock)
        intent = IntentKey(tool="search_patterns", query="combine")
        await cache.set(intent, StorableSearchResult(pattern_ids=["p1"]))
        clock.advance(49)
        assert await cache.get(intent) is not None
        clock.advance(1)
        assert await cache.get(intent) is None

    def test_intent_cache_namespace(self, settings, cache_root):
        create_intent_cache(settings)
        assert (cache_root / "intent").is_dir()
