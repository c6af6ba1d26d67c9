"""Tests for the event-loop channel pools."""

import asyncio
import time

import pytest

from quarry_common.testing import requires_package
from quarry_pool.exceptions import (
    ConfigError,
    EventLoopMismatchError,
    PoolClosedError,
    PoolExhaustedError,
)
from quarry_pool.pooling import AsyncioChannelPool, UvloopChannelPool


@pytest.fixture
def make_pool(make_config, factory):
    pools = []

    def _make(**overrides):
        overrides.setdefault("strategy", "asyncio")
        overrides.setdefault("preheat", False)
        pool = AsyncioChannelPool(make_config(**overrides), factory)
        pools.append(pool)
        return pool

    yield _make
    for pool in pools:
        pool.close()


class TestRuntimeDetection:
    def test_requires_running_loop(self, make_config, factory):
        with pytest.raises(ConfigError, match="requires a running asyncio event loop"):
            AsyncioChannelPool(make_config(strategy="asyncio"), factory)
        assert factory.created == []

    def test_runtime_available_outside_loop(self):
        assert AsyncioChannelPool.runtime_available() is False
        assert UvloopChannelPool.runtime_available() is False

    @pytest.mark.asyncio
    async def test_runtime_available_inside_loop(self):
        assert AsyncioChannelPool.runtime_available() is True

    @pytest.mark.asyncio
    async def test_uvloop_pool_rejects_plain_asyncio_loop(self, make_config, factory):
        if type(asyncio.get_running_loop()).__module__.startswith("uvloop"):
            pytest.skip("running on uvloop")
        with pytest.raises(ConfigError, match="uvloop"):
            UvloopChannelPool(make_config(strategy="uvloop"), factory)

    def test_loop_mismatch(self, make_config, factory):
        loop = asyncio.new_event_loop()
        try:

            async def build():
                return AsyncioChannelPool(make_config(strategy="asyncio", preheat=False), factory)

            pool = loop.run_until_complete(build())
            with pytest.raises(EventLoopMismatchError):
                asyncio.run(pool.acquire())

            conn = loop.run_until_complete(pool.acquire())
            # releasing with no loop running is allowed
            pool.release(conn)
            assert pool.stats().idle_connections == 1
            pool.close()
        finally:
            loop.close()


class TestAcquireRelease:
    @pytest.mark.asyncio
    async def test_preheat(self, make_pool, factory):
        pool = make_pool(preheat=True, max_size=5, max_idle=3)
        stats = pool.stats()
        assert stats.idle_connections == 2
        assert stats.current_connections == 2
        assert stats.is_concurrent is True
        assert await pool.acquire() is factory.created[0]

    @pytest.mark.asyncio
    async def test_counters_return_to_baseline(self, make_pool):
        pool = make_pool(max_size=4, max_idle=4)
        held = [await pool.acquire() for _ in range(4)]
        for conn in held:
            pool.release(conn)
        stats = pool.stats()
        assert (stats.current_connections, stats.idle_connections) == (4, 4)
        again = [await pool.acquire() for _ in range(4)]
        assert set(again) == set(held)
        for conn in again:
            pool.release(conn)
        assert pool.stats().current_connections == 4

    @pytest.mark.asyncio
    async def test_exhaustion_after_timeout(self, make_pool):
        pool = make_pool(max_size=1, max_idle=1, acquire_timeout_seconds=0.05)
        await pool.acquire()
        started = time.monotonic()
        with pytest.raises(PoolExhaustedError) as exc_info:
            await pool.acquire()
        assert time.monotonic() - started >= 0.04
        assert exc_info.value.context["timeout_seconds"] == 0.05

    @pytest.mark.asyncio
    async def test_waiter_receives_released_connection(self, make_pool):
        pool = make_pool(max_size=1, max_idle=1, acquire_timeout_seconds=1.0)
        conn = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0.01)
        assert not waiter.done()
        pool.release(conn)
        assert await waiter is conn

    @pytest.mark.asyncio
    async def test_timeout_creates_when_capacity_freed(self, make_pool, factory):
        pool = make_pool(max_size=1, max_idle=1, acquire_timeout_seconds=0.05)
        conn = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0.01)
        factory.broken.add(conn)
        pool.release(conn)  # discarded, frees the slot without waking the waiter
        replacement = await waiter
        assert replacement is not conn
        assert pool.stats().current_connections == 1

    @pytest.mark.asyncio
    async def test_scenario_max3_idle2(self, make_pool):
        pool = make_pool(max_size=3, max_idle=2)
        a, b, c = await pool.acquire(), await pool.acquire(), await pool.acquire()
        with pytest.raises(PoolExhaustedError):
            await pool.acquire()
        for conn in (a, b, c):
            pool.release(conn)
        stats = pool.stats()
        assert (stats.current_connections, stats.idle_connections) == (2, 2)
        assert c.closed

    @pytest.mark.asyncio
    async def test_invalid_idle_connection_is_replaced(self, make_pool, factory):
        pool = make_pool(preheat=True, max_size=3, max_idle=2)
        first, second = factory.created
        factory.broken.add(first)
        assert await pool.acquire() is second
        assert first in factory.discarded
        assert pool.stats().current_connections == 1

    @pytest.mark.asyncio
    async def test_repeated_invalid_connections_exhaust(self, make_pool, factory):
        pool = make_pool(preheat=True, max_size=2, max_idle=2)
        factory.broken.update(factory.created)
        with pytest.raises(PoolExhaustedError, match="failed validation"):
            await pool.acquire()
        assert pool.stats().current_connections == 0

    @pytest.mark.asyncio
    async def test_release_rolls_back(self, make_pool):
        pool = make_pool(max_size=1, max_idle=1)
        conn = await pool.acquire()
        conn.execute("CREATE TABLE t (x INTEGER)")
        conn.execute("INSERT INTO t VALUES (1)")
        pool.release(conn)
        assert not conn.in_transaction

    @pytest.mark.asyncio
    async def test_double_release_is_ignored(self, make_pool):
        pool = make_pool(max_size=2, max_idle=2)
        conn = await pool.acquire()
        pool.release(conn)
        pool.release(conn)
        stats = pool.stats()
        assert (stats.current_connections, stats.idle_connections) == (1, 1)
        assert not conn.closed


class TestIdleEviction:
    @pytest.mark.asyncio
    async def test_expired_connections_are_evicted(self, make_pool, factory):
        pool = make_pool(max_size=3, max_idle=3, idle_timeout_seconds=0.05)
        a, b = await pool.acquire(), await pool.acquire()
        pool.release(a)
        await asyncio.sleep(0.1)
        pool.release(b)
        stats = pool.stats()
        assert (stats.current_connections, stats.idle_connections) == (1, 1)
        assert a in factory.discarded
        assert await pool.acquire() is b

    @pytest.mark.asyncio
    async def test_interval_throttles_eviction(self, make_pool):
        pool = make_pool(
            max_size=3, max_idle=3, idle_timeout_seconds=0.05, eviction_interval_seconds=60
        )
        a, b, c = await pool.acquire(), await pool.acquire(), await pool.acquire()
        pool.release(a)
        await asyncio.sleep(0.1)
        pool.release(b)
        assert a.closed
        await asyncio.sleep(0.1)
        pool.release(c)
        assert not b.closed
        assert pool.stats().idle_connections == 2


class TestClose:
    @pytest.mark.asyncio
    async def test_close(self, make_pool, factory):
        pool = make_pool(preheat=True, max_size=3, max_idle=2)
        idle = list(factory.created)
        pool.close()
        assert all(conn.closed for conn in idle)
        assert pool.stats().current_connections == 0
        with pytest.raises(PoolClosedError):
            await pool.acquire()

    @pytest.mark.asyncio
    async def test_waiter_sees_close(self, make_pool):
        pool = make_pool(max_size=1, max_idle=1, acquire_timeout_seconds=0.05)
        conn = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0.01)
        pool.close()
        with pytest.raises(PoolClosedError):
            await waiter
        pool.release(conn)
        assert conn.closed


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_tasks_never_exceed_max_size(self, make_pool):
        pool = make_pool(max_size=3, max_idle=2, acquire_timeout_seconds=1.0)
        in_use = set()
        peak = 0

        async def worker():
            nonlocal peak
            for _ in range(5):
                conn = await pool.acquire()
                in_use.add(conn)
                peak = max(peak, len(in_use))
                await asyncio.sleep(0.001)
                in_use.discard(conn)
                pool.release(conn)

        await asyncio.gather(*(worker() for _ in range(10)))
        assert peak <= 3
        stats = pool.stats()
        assert stats.current_connections == stats.idle_connections
        assert stats.idle_connections <= 2

    @pytest.mark.asyncio
    async def test_scoped_connection(self, make_pool):
        pool = make_pool(max_size=1, max_idle=1)
        async with pool.connection() as conn:
            assert conn.query("SELECT 1 AS one") == [{"one": 1}]
            assert pool.stats().extra["checked_out"] == 1
        assert pool.stats().extra["checked_out"] == 0
        assert pool.stats().idle_connections == 1


@requires_package("uvloop")
class TestUvloop:
    def test_uvloop_pool_on_uvloop(self, make_config, factory):
        import uvloop

        loop = uvloop.new_event_loop()
        try:

            async def exercise():
                pool = UvloopChannelPool(make_config(strategy="uvloop"), factory)
                conn = await pool.acquire()
                pool.release(conn)
                stats = pool.stats()
                pool.close()
                return stats

            stats = loop.run_until_complete(exercise())
        finally:
            loop.close()
        assert stats.strategy == "uvloop"
        assert stats.extra["loop"] == "Loop"
        assert (stats.current_connections, stats.idle_connections) == (2, 2)
