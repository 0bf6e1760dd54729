# tests/unit/cache/test_unit_singleflight.py — v1
"""Tests for cache/singleflight.py — InflightDeduper and LazyResource."""

from __future__ import annotations

import asyncio

import pytest

from patternsearch.cache.singleflight import InflightDeduper, LazyResource


class TestInflightDeduper:
    @pytest.mark.asyncio
    async def test_entry_removed_after_success(self):
        deduper: InflightDeduper[str, int] = InflightDeduper()

        async def task():
            return 1

        assert await deduper.run("k", task) == 1
        assert "k" not in deduper
        assert len(deduper) == 0

    @pytest.mark.asyncio
    async def test_entry_present_while_running(self):
        deduper: InflightDeduper[str, int] = InflightDeduper()
        release = asyncio.Event()

        async def task():
            await release.wait()
            return 1

        runner = asyncio.create_task(deduper.run("k", task))
        await asyncio.sleep(0)
        assert "k" in deduper
        release.set()
        await runner
        assert "k" not in deduper

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_work(self):
        deduper: InflightDeduper[str, str] = InflightDeduper()
        release = asyncio.Event()

        async def task():
            await release.wait()
            return "done"

        first = asyncio.create_task(deduper.run("k", task))
        second = asyncio.create_task(deduper.run("k", task))
        await asyncio.sleep(0)
        first.cancel()
        release.set()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first

    @pytest.mark.asyncio
    async def test_clear_lets_new_execution_start(self):
        deduper: InflightDeduper[str, str] = InflightDeduper()
        release = asyncio.Event()
        calls = 0

        async def task():
            nonlocal calls
            calls += 1
            await release.wait()
            return "v"

        first = asyncio.create_task(deduper.run("k", task))
        await asyncio.sleep(0)
        deduper.clear()
        second = asyncio.create_task(deduper.run("k", task))
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(first, second)

        assert calls == 2
        assert len(deduper) == 0


class TestLazyResource:
    @pytest.mark.asyncio
    async def test_concurrent_first_access_initializes_once(self):
        calls = 0

        async def factory():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return object()

        resource = LazyResource(factory)
        values = await asyncio.gather(*(resource.get() for _ in range(5)))

        assert calls == 1
        assert all(v is values[0] for v in values)
        assert resource.ready

    @pytest.mark.asyncio
    async def test_failed_initialization_is_retried(self):
        attempts = 0

        async def factory():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise OSError("model download failed")
            return "model"

        resource = LazyResource(factory)
        with pytest.raises(OSError):
            await resource.get()
        assert not resource.ready
        assert await resource.get() == "model"

    @pytest.mark.asyncio
    async def test_reset(self):
        calls = 0

        async def factory():
            nonlocal calls
            calls += 1
            return calls

        resource = LazyResource(factory)
        assert await resource.get() == 1
        resource.reset()
        assert await resource.get() == 2
