# src/cache/fetch_cache.py — v1
"""Generic TTL key/value cache: in-memory LRU hot layer over a persistent store.

Every component that fetches or computes something expensive (feeds,
articles, embeddings, whole search results) goes through a FetchCache.
Concurrent misses for the same key are coalesced into one producer call.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

from patternsearch.cache.base_cache_store import BaseCacheStore, CacheStoreError
from patternsearch.cache.json_store import JsonCacheStore
from patternsearch.cache.models import CacheEntry, CacheLookup, Hit, HttpMeta, Miss, Stale
from patternsearch.cache.singleflight import InflightDeduper

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_TTL = 86_400
DEFAULT_MAX_MEMORY_ENTRIES = 500
DEFAULT_CACHE_ROOT = Path("~/.swift-patterns/cache")


class CacheWriteError(Exception):
    """Raised when a value could not be persisted to the backing store."""


class FetchCache:
    """TTL cache with an LRU memory layer, a file layer and single-flight fetches.

    Args:
        namespace: Isolates this cache's records (one directory per namespace).
        store: Backing store. Defaults to a JsonCacheStore under
            ``cache_root / namespace``.
        cache_root: Root directory for the default store.
        default_ttl: TTL in seconds used when a call does not pass one.
        max_memory_entries: Capacity of the in-memory LRU layer.
        clock: Returns the current time in epoch seconds (injectable for tests).
    """

    def __init__(
        self,
        namespace: str = "default",
        *,
        store: BaseCacheStore | None = None,
        cache_root: Path | str | None = None,
        default_ttl: float = DEFAULT_TTL,
        max_memory_entries: int = DEFAULT_MAX_MEMORY_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_memory_entries < 1:
            raise ValueError("max_memory_entries must be >= 1")
        self.namespace = namespace
        if store is None:
            root = Path(cache_root if cache_root is not None else DEFAULT_CACHE_ROOT)
            store = JsonCacheStore(root.expanduser() / namespace)
        self._store = store
        self._default_ttl = default_ttl
        self._max_memory_entries = max_memory_entries
        self._clock = clock
        self._memory: OrderedDict[str, CacheEntry] = OrderedDict()
        self._inflight: InflightDeduper[str, Any] = InflightDeduper()
        self._generation = 0

    @property
    def generation(self) -> int:
        """Incremented by every clear(); fetches started before it do not store."""
        return self._generation

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def lookup(self, key: str) -> CacheLookup:
        """Tagged lookup: Hit for a live entry, Stale for an expired one, else Miss."""
        now = self._clock()

        entry = self._memory.get(key)
        if entry is not None:
            if entry.is_live(now):
                self._memory.move_to_end(key)
                return Hit(entry.payload, entry)
            del self._memory[key]

        stored = await self._store.get(key)
        if stored is None:
            return Miss()
        if not stored.is_live(now):
            return Stale(stored.payload, stored)

        self._remember(stored)
        return Hit(stored.payload, stored)

    async def get(self, key: str) -> Any | None:
        """Return the live value for ``key``, or None when absent or expired."""
        result = await self.lookup(key)
        if isinstance(result, Hit):
            return result.value
        return None

    async def get_stale(self, key: str) -> CacheEntry | None:
        """Return the stored record even if expired (for conditional revalidation)."""
        entry = self._memory.get(key)
        if entry is not None:
            return entry
        return await self._store.get(key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
        http_meta: HttpMeta | None = None,
    ) -> None:
        """Store ``value`` in memory and on disk, stamped with the current time.

        Raises:
            CacheWriteError: The backing store rejected the record. The memory
                layer has already been updated.
        """
        entry = CacheEntry(
            key=key,
            payload=value,
            written_at=self._clock(),
            ttl_seconds=self._default_ttl if ttl_seconds is None else ttl_seconds,
            http_meta=http_meta,
        )
        self._remember(entry)
        try:
            await self._store.put(entry)
        except CacheStoreError as e:
            raise CacheWriteError(str(e)) from e

    async def refresh_ttl(self, key: str, ttl_seconds: float | None = None) -> None:
        """Restamp an existing entry so it is live again; unknown keys are ignored."""
        entry = await self.get_stale(key)
        if entry is None:
            return
        await self.set(key, entry.payload, ttl_seconds, entry.http_meta)

    async def get_or_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[V]],
        ttl_seconds: float | None = None,
    ) -> V:
        """Return the cached value or compute it once for all concurrent callers.

        Producer exceptions propagate to every waiter and nothing is cached.
        A failure to persist the produced value is logged, not raised.
        A value whose fetch straddles clear() is returned but not stored.
        """
        result = await self.lookup(key)
        if isinstance(result, Hit):
            return result.value

        async def _fetch_and_store() -> V:
            # Another execution may have stored the value while we were queued.
            again = await self.lookup(key)
            if isinstance(again, Hit):
                return again.value
            generation = self._generation
            value = await producer()
            if generation != self._generation:
                logger.debug("Cache %s cleared during fetch of %s, not storing", self.namespace, key)
                return value
            try:
                await self.set(key, value, ttl_seconds)
            except CacheWriteError as e:
                logger.warning("Cache write failed for %s/%s: %s", self.namespace, key, e)
            return value

        return await self._inflight.run(key, _fetch_and_store)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def delete(self, key: str) -> None:
        self._memory.pop(key, None)
        await self._store.delete(key)

    async def clear_expired(self) -> int:
        """Remove expired (and unreadable) records; return how many were removed."""
        now = self._clock()
        removed: set[str] = set()

        for key, entry in list(self._memory.items()):
            if not entry.is_live(now):
                del self._memory[key]
                removed.add(key)

        removed.update(await self._store.sweep_expired(now))

        if removed:
            logger.debug("Cleared %d expired entries from %s", len(removed), self.namespace)
        return len(removed)

    async def clear(self) -> None:
        """Remove every entry, including in-flight coalescing state."""
        self._generation += 1
        self._memory.clear()
        self._inflight.clear()
        await self._store.clear()

    def _remember(self, entry: CacheEntry) -> None:
        self._memory[entry.key] = entry
        self._memory.move_to_end(entry.key)
        while len(self._memory) > self._max_memory_entries:
            self._memory.popitem(last=False)
