# src/cache/singleflight.py — v1
"""In-flight request coalescing ("single-flight") for asyncio.

InflightDeduper collapses concurrent calls for the same key into one
execution; every caller observes that execution's outcome. LazyResource
builds on it to hold a resource that is initialized exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
T = TypeVar("T")


class InflightDeduper(Generic[K, V]):
    """Map from key to the single shared execution currently running for it."""

    def __init__(self) -> None:
        self._inflight: dict[K, asyncio.Future[V]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def run(self, key: K, task: Callable[[], Awaitable[V]]) -> V:
        """Run ``task`` for ``key`` unless an execution is already in flight.

        Later callers await the same execution. Success and failure are both
        delivered to every caller; the map entry is removed once the
        execution settles, so the next call after a failure starts afresh.
        The shared execution is shielded: a cancelled caller stops waiting
        but does not cancel the work other callers depend on.
        """
        existing = self._inflight.get(key)
        if existing is not None:
            logger.debug("Joining in-flight execution for %r", key)
            return await asyncio.shield(existing)

        future = asyncio.ensure_future(self._execute(key, task))
        self._inflight[key] = future
        return await asyncio.shield(future)

    async def _execute(self, key: K, task: Callable[[], Awaitable[V]]) -> V:
        try:
            return await task()
        finally:
            # Only drop our own entry; clear() may have let a newer one in.
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def clear(self) -> None:
        """Forget in-flight executions; running work completes unobserved by new callers."""
        self._inflight.clear()


class LazyResource(Generic[T]):
    """Explicit once-initialized resource holder.

    Concurrent first accesses coalesce into one call of ``factory``. A failed
    initialization is not remembered; the next access retries.
    """

    _KEY = "init"

    def __init__(self, factory: Callable[[], Awaitable[T]]) -> None:
        self._factory = factory
        self._value: T | None = None
        self._ready = False
        self._deduper: InflightDeduper[str, T] = InflightDeduper()

    @property
    def ready(self) -> bool:
        return self._ready

    async def get(self) -> T:
        if self._ready:
            return self._value  # type: ignore[return-value]
        return await self._deduper.run(self._KEY, self._initialize)

    async def _initialize(self) -> T:
        value = await self._factory()
        self._value = value
        self._ready = True
        return value

    def reset(self) -> None:
        """Drop the held value so the next access re-initializes."""
        self._value = None
        self._ready = False
