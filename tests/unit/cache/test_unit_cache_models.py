# tests/unit/cache/test_unit_cache_models.py — v1
"""Tests for cache/models.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from patternsearch.cache.models import (
    CachedSearchResult,
    CacheEntry,
    Hit,
    IntentKey,
    Miss,
    Stale,
    StorableSearchResult,
)


class TestCacheEntry:
    def test_liveness_boundary(self):
        entry = CacheEntry(key="k", payload=1, written_at=100.0, ttl_seconds=10.0)
        assert entry.expires_at() == 110.0
        assert entry.is_live(109.9)
        assert not entry.is_live(110.0)

    def test_json_round_trip(self):
        entry = CacheEntry(key="k", payload={"a": [1, 2]}, written_at=1.0, ttl_seconds=2.0)
        assert CacheEntry.model_validate_json(entry.model_dump_json()) == entry


class TestLookupTags:
    def test_variants_are_distinguishable(self):
        entry = CacheEntry(key="k", payload="v", written_at=0.0, ttl_seconds=1.0)
        results = [Hit("v", entry), Stale("v", entry), Miss()]
        assert [type(r).__name__ for r in results] == ["Hit", "Stale", "Miss"]


class TestIntentKey:
    def test_defaults(self):
        intent = IntentKey(tool="search_patterns", query="combine")
        assert intent.min_quality == 60
        assert intent.sources == []
        assert intent.require_code is False

    def test_frozen(self):
        intent = IntentKey(tool="t", query="q")
        with pytest.raises(ValidationError):
            intent.query = "other"  # type: ignore[misc]


class TestSearchResults:
    def test_from_patterns(self, sample_patterns):
        result = StorableSearchResult.from_patterns(sample_patterns)
        assert result.pattern_ids == [p.id for p in sample_patterns]
        assert result.total_count == 4
        assert result.scores["swiftlee-combine"] == 55

    def test_from_patterns_without_bodies(self, sample_patterns):
        result = StorableSearchResult.from_patterns(sample_patterns, include_patterns=False)
        assert result.patterns is None

    def test_cached_result_accepts_missing_fingerprint(self):
        cached = CachedSearchResult.model_validate({"pattern_ids": ["p1"]})
        assert cached.source_fingerprint is None
        assert cached.timestamp == 0.0
