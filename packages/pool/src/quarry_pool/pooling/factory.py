"""Pool factory: turns a strategy tag into a pool instance."""

from __future__ import annotations

import logging
from typing import Any, Type

from quarry_common import Registry

from ..connection import ConnectionFactory
from ..exceptions import ConfigError
from .array import BoundedArrayPool
from .base import PoolBase
from .channel import AsyncioChannelPool, ChannelPool, UvloopChannelPool
from .queue import BoundedQueuePool
from .single import SingleConnectionPool

logger = logging.getLogger(__name__)


class StrategyRegistry(Registry[Type[PoolBase]]):
    """Registry of pool strategy classes and their metadata."""

    def __init__(self) -> None:
        super().__init__("pool_strategies", enable_metrics=True)
        self._register_builtin_strategies()

    def _register_builtin_strategies(self) -> None:
        self.register(
            "single",
            SingleConnectionPool,
            metadata={
                "description": "One lazily opened connection, reused and reset between uses",
                "concurrent": False,
                "waits": False,
            },
        )
        self.register(
            "queue",
            BoundedQueuePool,
            metadata={
                "description": "FIFO idle queue, fails immediately when exhausted",
                "concurrent": False,
                "waits": False,
            },
        )
        self.register(
            "array",
            BoundedArrayPool,
            metadata={
                "description": "Thread-safe bounded pool with idle-timeout eviction",
                "concurrent": False,
                "waits": False,
            },
        )
        self.register(
            "asyncio",
            AsyncioChannelPool,
            metadata={
                "description": "Channel pool for a running asyncio event loop",
                "concurrent": True,
                "waits": True,
                "fallback": "array",
            },
        )
        self.register(
            "uvloop",
            UvloopChannelPool,
            metadata={
                "description": "Channel pool for a running uvloop event loop",
                "concurrent": True,
                "waits": True,
                "fallback": "array",
                "requires_install": True,
            },
        )
        # Aliases
        self.register("roadstar", SingleConnectionPool, metadata={"alias_for": "single"})
        self.register("sync", BoundedQueuePool, metadata={"alias_for": "queue"})


strategies = StrategyRegistry()


class PoolFactory:
    """Creates pools from :class:`~quarry_pool.config.PoolConfig` objects.

    Channel strategies need a running event loop of the right kind. When
    there is none, the factory builds a :class:`BoundedArrayPool` instead,
    which reports the strategy it stands in for in its stats.

    Example:
        ```python
        pool = PoolFactory().create(PoolConfig("sqlite:///app.db", strategy="queue"))
        ```
    """

    def __init__(self, registry: StrategyRegistry | None = None):
        self.registry = registry or strategies

    def create(
        self, config, connection_factory: ConnectionFactory | None = None
    ) -> PoolBase:
        """Create a pool for the configured strategy.

        Args:
            config: Pool configuration
            connection_factory: Factory the pool opens connections through

        Returns:
            New pool

        Raises:
            ConfigError: If the strategy is unknown
            ConnectionFailedError: If preheating the pool fails
        """
        strategy = config.strategy.lower()
        if not self.registry.has(strategy):
            raise ConfigError(
                f"unknown strategy '{config.strategy}'. "
                f"Available strategies: {', '.join(sorted(self.registry.list_keys()))}",
                context={"strategy": config.strategy},
            )
        pool_class = self.registry.get(strategy)

        if issubclass(pool_class, ChannelPool) and not pool_class.runtime_available():
            logger.info(
                f"No running {pool_class.runtime} event loop, "
                f"using array pool in place of {strategy}"
            )
            return BoundedArrayPool(config, connection_factory, fallback_for=strategy)

        logger.debug(f"Creating {strategy} pool for {config.connection_string}")
        return pool_class(config, connection_factory)

    def strategy_info(self, strategy: str) -> dict[str, Any]:
        """Registry metadata for a strategy, empty if it is unknown."""
        metrics = self.registry.get_metrics(strategy.lower())
        return metrics.get("metadata", {})


__all__ = ["StrategyRegistry", "PoolFactory", "strategies"]
