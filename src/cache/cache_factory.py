# src/cache/cache_factory.py — v2
"""Factories for cache instantiation from Settings."""

from __future__ import annotations

import time
from collections.abc import Callable

from patternsearch.cache.base_cache_store import BaseCacheStore
from patternsearch.cache.fetch_cache import FetchCache
from patternsearch.cache.intent_cache import IntentCache
from patternsearch.cache.json_store import JsonCacheStore
from patternsearch.config.settings import Settings


def create_cache_store(namespace: str, settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the file store backing one cache namespace.

    Args:
        namespace: Sub-directory of the cache root.
        settings: Application settings. Defaults apply when omitted.

    Returns:
        Configured BaseCacheStore implementation.
    """
    settings = settings or Settings()
    return JsonCacheStore(
        settings.cache_root.expanduser() / namespace,
        hash_threshold=settings.cache_key_hash_threshold,
    )


def create_fetch_cache(
    namespace: str,
    settings: Settings | None = None,
    clock: Callable[[], float] = time.time,
) -> FetchCache:
    """FetchCache for ``namespace`` with the configured TTL and memory size."""
    settings = settings or Settings()
    return FetchCache(
        namespace,
        store=create_cache_store(namespace, settings),
        default_ttl=settings.cache_default_ttl,
        max_memory_entries=settings.cache_max_memory_entries,
        clock=clock,
    )


def create_intent_cache(
    settings: Settings | None = None,
    clock: Callable[[], float] = time.time,
) -> IntentCache:
    """IntentCache over its own ``intent`` namespace."""
    settings = settings or Settings()
    cache = FetchCache(
        "intent",
        store=create_cache_store("intent", settings),
        default_ttl=settings.intent_cache_ttl,
        max_memory_entries=settings.intent_cache_max_memory_entries,
        clock=clock,
    )
    return IntentCache(cache, default_ttl=settings.intent_cache_ttl, clock=clock)
