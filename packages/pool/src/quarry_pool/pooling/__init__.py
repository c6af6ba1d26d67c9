"""Connection pooling strategies."""

from .array import BoundedArrayPool
from .base import AsyncPool, PoolBase, PoolStats, SyncPool
from .channel import AsyncioChannelPool, ChannelPool, UvloopChannelPool
from .factory import PoolFactory, StrategyRegistry, strategies
from .queue import BoundedQueuePool
from .single import SingleConnectionPool

__all__ = [
    "PoolStats",
    "PoolBase",
    "SyncPool",
    "AsyncPool",
    "SingleConnectionPool",
    "BoundedQueuePool",
    "BoundedArrayPool",
    "ChannelPool",
    "AsyncioChannelPool",
    "UvloopChannelPool",
    "PoolFactory",
    "StrategyRegistry",
    "strategies",
]
