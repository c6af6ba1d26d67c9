"""Tests for the pool factory and strategy registry."""

import pytest

from quarry_pool.exceptions import ConfigError
from quarry_pool.pooling import (
    AsyncioChannelPool,
    BoundedArrayPool,
    BoundedQueuePool,
    PoolFactory,
    SingleConnectionPool,
    StrategyRegistry,
)


@pytest.fixture
def pool_factory():
    return PoolFactory()


@pytest.mark.parametrize(
    "strategy, expected",
    [
        ("single", SingleConnectionPool),
        ("queue", BoundedQueuePool),
        ("array", BoundedArrayPool),
        ("roadstar", SingleConnectionPool),
        ("sync", BoundedQueuePool),
        ("QUEUE", BoundedQueuePool),
    ],
)
def test_creates_sync_strategies(pool_factory, make_config, factory, strategy, expected):
    pool = pool_factory.create(make_config(strategy=strategy), factory)
    try:
        assert type(pool) is expected
        assert pool.factory is factory
    finally:
        pool.close()


def test_unknown_strategy(pool_factory, make_config):
    with pytest.raises(ConfigError, match="unknown strategy 'swoole'") as exc_info:
        pool_factory.create(make_config(strategy="swoole"))
    assert exc_info.value.context == {"strategy": "swoole"}


@pytest.mark.parametrize("strategy", ["asyncio", "uvloop"])
def test_channel_strategy_falls_back_outside_loop(pool_factory, make_config, factory, strategy):
    pool = pool_factory.create(make_config(strategy=strategy), factory)
    try:
        assert isinstance(pool, BoundedArrayPool)
        assert pool.fallback_for == strategy
        assert pool.stats().extra["fallback_for"] == strategy
    finally:
        pool.close()


@pytest.mark.asyncio
async def test_asyncio_strategy_inside_loop(pool_factory, make_config, factory):
    pool = pool_factory.create(make_config(strategy="asyncio"), factory)
    try:
        assert isinstance(pool, AsyncioChannelPool)
        assert pool.is_concurrent()
    finally:
        pool.close()


def test_default_connection_factory(pool_factory, make_config):
    pool = pool_factory.create(make_config(strategy="queue", preheat=False))
    try:
        conn = pool.acquire()
        assert conn.query("SELECT 1 AS one") == [{"one": 1}]
        pool.release(conn)
    finally:
        pool.close()


def test_strategy_info(pool_factory):
    info = pool_factory.strategy_info("asyncio")
    assert info["concurrent"] is True
    assert info["fallback"] == "array"
    assert pool_factory.strategy_info("roadstar") == {"alias_for": "single"}
    assert pool_factory.strategy_info("nope") == {}


def test_custom_registry(make_config, factory):
    registry = StrategyRegistry()
    registry.register("fifo", BoundedQueuePool, metadata={"description": "custom"})
    pool = PoolFactory(registry).create(make_config(strategy="fifo"), factory)
    try:
        assert isinstance(pool, BoundedQueuePool)
    finally:
        pool.close()
