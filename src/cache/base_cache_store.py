# src/cache/base_cache_store.py — v1
"""Abstract cache store interface (the persistent layer under FetchCache)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from patternsearch.cache.models import CacheEntry


class CacheStoreError(Exception):
    """Raised when a store cannot persist or remove a record."""


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends.

    Reads never raise: unreadable records are reported as ``None``.
    Writes raise CacheStoreError.
    """

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve the record stored for a key."""

    @abstractmethod
    async def put(self, entry: CacheEntry) -> None:
        """Store a record under ``entry.key``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a record."""

    @abstractmethod
    async def sweep_expired(self, now: float) -> list[str]:
        """Remove expired and unreadable records, return their identifiers."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record of this store."""
