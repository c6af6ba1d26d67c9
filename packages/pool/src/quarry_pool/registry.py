"""Named pool registry.

The registry is an ordinary object created by the application's composition
root and handed to whatever needs pools. :func:`get_registry` returns one
shared instance for code that has no way to receive it explicitly.

Example:
    ```python
    registry = PoolRegistry()
    registry.initialize(load_config("quarry.yaml"))
    try:
        with registry.connection() as conn:
            conn.query("SELECT * FROM users")
    finally:
        registry.close_all()
    ```
"""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, TypeVar

from quarry_common import NotFoundError, Registry

from .config import DatabaseConfig
from .connection import Connection, ConnectionFactory
from .exceptions import PoolNotFoundError
from .pooling.base import PoolBase
from .pooling.factory import PoolFactory

logger = logging.getLogger(__name__)

R = TypeVar("R")


class PoolRegistry(Registry[PoolBase]):
    """Maps pool names to pools and remembers the default name."""

    def __init__(
        self,
        pool_factory: PoolFactory | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        super().__init__("pools")
        self.pool_factory = pool_factory or PoolFactory()
        self.connection_factory = connection_factory
        self._default: str | None = None

    def register(  # type: ignore[override]
        self, name: str, pool: PoolBase, allow_overwrite: bool = False
    ) -> None:
        """Register a pool under a name."""
        super().register(name, pool, allow_overwrite=allow_overwrite)
        logger.debug(f"Registered pool '{name}' ({pool.strategy})")

    def get(self, name: str) -> PoolBase:
        """Look up a pool.

        Raises:
            PoolNotFoundError: If no pool has that name
        """
        try:
            return super().get(name)
        except NotFoundError:
            raise PoolNotFoundError(name, self.list_keys()) from None

    def set_default(self, name: str) -> None:
        """Make a registered pool the default.

        Raises:
            PoolNotFoundError: If no pool has that name
        """
        with self._lock:
            if not self.has(name):
                raise PoolNotFoundError(name, self.list_keys())
            self._default = name

    def get_default(self) -> str | None:
        """Name of the default pool, if one is set."""
        return self._default

    def default_pool(self) -> PoolBase:
        """The default pool.

        Raises:
            PoolNotFoundError: If no default is set
        """
        name = self._default
        if name is None:
            raise PoolNotFoundError("<default>", self.list_keys())
        return self.get(name)

    def _resolve(self, name: str | None) -> PoolBase:
        return self.default_pool() if name is None else self.get(name)

    def initialize(self, config: DatabaseConfig) -> None:
        """Build, register and default every configured pool.

        All or nothing: if any pool fails to build, the ones already built are
        closed and unregistered before the error propagates.
        """
        built: list[str] = []
        try:
            for name, pool_config in config.pools.items():
                pool = self.pool_factory.create(pool_config, self.connection_factory)
                try:
                    self.register(name, pool)
                except Exception:
                    pool.close()
                    raise
                built.append(name)
            self.set_default(config.default_name)
        except Exception:
            logger.error(f"Pool initialization failed, closing {len(built)} pool(s) already built")
            for name in built:
                pool = self.unregister(name)
                try:
                    pool.close()
                except Exception as e:
                    logger.error(f"Error closing pool '{name}': {e}")
            raise
        logger.info(f"Initialized {len(built)} pool(s), default '{self._default}'")

    def close_all(self) -> None:
        """Close every pool and empty the registry.

        A pool that fails to close is logged and skipped.
        """
        with self._lock:
            pools = self.items()
            self.clear()
            self._default = None
        for name, pool in pools:
            try:
                pool.close()
            except Exception as e:
                logger.error(f"Error closing pool '{name}': {e}")
        logger.info(f"Closed {len(pools)} pool(s)")

    def stats(self) -> dict[str, dict[str, Any]]:
        """Stats for every pool, keyed by name."""
        return {name: pool.stats().to_dict() for name, pool in self.items()}

    def connection(self, name: str | None = None) -> Any:
        """Scoped connection from a pool (the default when ``name`` is None).

        Use with ``with`` for synchronous pools, ``async with`` for
        asynchronous ones.
        """
        return self._resolve(name).connection()

    def execute_with_pool(
        self, callback: Callable[[Connection], R], name: str | None = None
    ) -> R:
        """Run ``callback`` with a checked-out connection, always releasing it."""
        pool = self._resolve(name)
        if pool.is_concurrent():
            raise TypeError(
                f"Pool '{name or self._default}' acquires asynchronously, "
                "use execute_with_pool_async()"
            )
        connection = pool.acquire()
        try:
            return callback(connection)
        finally:
            pool.release(connection)

    async def execute_with_pool_async(
        self,
        callback: Callable[[Connection], R | Awaitable[R]],
        name: str | None = None,
    ) -> R:
        """Async counterpart of :meth:`execute_with_pool`.

        Works with any pool; ``callback`` may be a plain function or a coroutine
        function.
        """
        pool = self._resolve(name)
        if pool.is_concurrent():
            connection = await pool.acquire()
        else:
            connection = pool.acquire()
        try:
            result = callback(connection)
            if inspect.isawaitable(result):
                result = await result
            return result  # type: ignore[return-value]
        finally:
            pool.release(connection)


_registry: PoolRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> PoolRegistry:
    """The shared process-wide registry, created on first use."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = PoolRegistry()
    return _registry


def reset_registry() -> None:
    """Close every pool in the shared registry and forget it."""
    global _registry
    with _registry_lock:
        registry, _registry = _registry, None
    if registry is not None:
        registry.close_all()


__all__ = ["PoolRegistry", "get_registry", "reset_registry"]
