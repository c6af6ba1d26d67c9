"""Base classes shared by every pooling strategy."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from ..connection import Connection, ConnectionFactory
from ..exceptions import ConnectionInvalidError, PoolClosedError
from ..scope import ConnectionScope

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ..config import PoolConfig


logger = logging.getLogger(__name__)


@dataclass
class PoolStats:
    """Point-in-time snapshot of a pool's counters."""

    strategy: str
    current_connections: int
    idle_connections: int
    max_size: int
    max_idle: int
    idle_timeout_seconds: float
    uptime_seconds: float
    is_concurrent: bool
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        extra = data.pop("extra")
        data.update(extra)
        return data


class PoolBase(ABC):
    """State and helpers common to synchronous and asynchronous pools.

    Subclasses own their idle set; the base tracks the ``current`` counter,
    which connections are checked out, and the closed flag. ``_lock`` guards
    all of it and is never held while a connection is being opened.
    """

    strategy: ClassVar[str]
    concurrent: ClassVar[bool] = False

    def __init__(self, config: PoolConfig, connection_factory: ConnectionFactory | None = None):
        self.config = config
        self.factory = connection_factory or ConnectionFactory()
        self._lock = threading.Lock()
        self._current = 0
        self._in_use: set[Connection] = set()
        self._closed = False
        self._created_at = time.monotonic()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_connections(self) -> int:
        return self._current

    @property
    @abstractmethod
    def idle_connections(self) -> int:
        """Number of connections waiting in the idle set."""
        ...

    def is_concurrent(self) -> bool:
        """True for strategies that cooperate with an event loop."""
        return self.concurrent

    def stats(self) -> PoolStats:
        return PoolStats(
            strategy=self.strategy,
            current_connections=self.current_connections,
            idle_connections=self.idle_connections,
            max_size=self.config.max_size,
            max_idle=self.config.max_idle,
            idle_timeout_seconds=self.config.idle_timeout_seconds,
            uptime_seconds=time.monotonic() - self._created_at,
            is_concurrent=self.is_concurrent(),
            extra=self._stats_extra(),
        )

    def _stats_extra(self) -> dict[str, Any]:
        return {}

    def _check_open(self) -> None:
        if self._closed:
            raise PoolClosedError(self.strategy)

    def _open_reserved(self) -> Connection:
        """Open a connection for capacity already counted in ``_current``.

        The reservation is returned if the connection cannot be opened.
        """
        try:
            connection = self.factory.create(self.config.connection_string)
        except Exception:
            with self._lock:
                # close() already zeroed the counter
                if not self._closed:
                    self._current -= 1
            raise
        logger.debug(f"{self.strategy} pool opened connection ({self._current}/{self.config.max_size})")
        return connection

    def _preheat_connections(self) -> list[Connection]:
        """Open ``min(2, max_idle)`` connections and count them.

        Raises:
            ConnectionFailedError: If any of them cannot be opened; the ones
                already opened are closed first
        """
        if not self.config.preheat:
            return []
        opened: list[Connection] = []
        try:
            for _ in range(min(2, self.config.max_idle)):
                opened.append(self.factory.create(self.config.connection_string))
        except Exception:
            for connection in opened:
                self.factory.discard(connection)
            raise
        self._current += len(opened)
        return opened

    def _checkout(self, connection: Connection) -> Connection:
        with self._lock:
            self._in_use.add(connection)
        return connection

    def _checkout_idle(self, connection: Connection) -> Connection:
        """Check out a connection taken from the idle set.

        Raises:
            ConnectionInvalidError: If it fails validation; the caller
                discards it and tries again
        """
        if not self.factory.validate(connection):
            raise ConnectionInvalidError(
                f"Idle connection in {self.strategy} pool failed validation",
                context={"strategy": self.strategy},
            )
        return self._checkout(connection)

    def _claim(self, connection: Connection) -> bool:
        """Take back a connection being released.

        Returns:
            True if the pool handed it out and it has not been released yet.
            Anything else is logged; a handle the pool does not hold is closed.
        """
        with self._lock:
            if connection in self._in_use:
                self._in_use.discard(connection)
                return True
            owned_idle = self._holds_idle(connection)

        logger.warning(
            f"{self.strategy} pool got back a connection it did not hand out "
            f"or that was already released: {connection!r}"
        )
        if not owned_idle:
            self.factory.discard(connection)
        return False

    @abstractmethod
    def _holds_idle(self, connection: Connection) -> bool:
        """True if the connection currently sits in the idle set."""
        ...

    def _discard_counted(self, connection: Connection, reason: str) -> None:
        with self._lock:
            if not self._closed:
                self._current -= 1
        logger.debug(f"{self.strategy} pool discarding connection: {reason}")
        self.factory.discard(connection)

    def _release_after_close(self, connection: Connection) -> None:
        logger.debug(f"{self.strategy} pool is closed, discarding released connection")
        self.factory.discard(connection)

    def release(self, connection: Connection) -> None:
        """Return a checked-out connection to the pool."""
        if not self._claim(connection):
            return
        if self._closed:
            self._release_after_close(connection)
            return
        self._release(connection)

    @abstractmethod
    def _release(self, connection: Connection) -> None:
        """Reset, validate and re-queue or discard a claimed connection."""
        ...

    @abstractmethod
    def _drain_idle(self) -> list[Connection]:
        """Remove and return every idle connection."""
        ...

    def close(self) -> None:
        """Discard idle connections and reset the counters.

        Connections still checked out are closed when they come back.
        """
        if self._closed:
            return
        with self._lock:
            self._closed = True
            idle = self._drain_idle()
            self._current = 0
        for connection in idle:
            self.factory.discard(connection)
        logger.info(f"Closed {self.strategy} pool ({len(idle)} idle connection(s) discarded)")

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.config.connection_string} "
            f"current={self._current} idle={self.idle_connections}>"
        )


class SyncPool(PoolBase):
    """Pool whose ``acquire`` is a plain (possibly thread-blocking) call.

    Example:
        ```python
        with pool.connection() as conn:
            conn.query("SELECT * FROM users")
        ```
    """

    @abstractmethod
    def acquire(self) -> Connection:
        """Check out a connection.

        Raises:
            PoolClosedError: If the pool was closed
            PoolExhaustedError: If no connection can be handed out
            ConnectionFailedError: If a new connection cannot be opened
        """
        ...

    def connection(self) -> ConnectionScope:
        """Acquire a connection wrapped in a scope that releases it on exit."""
        return ConnectionScope(self)

    def __enter__(self) -> SyncPool:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class AsyncPool(PoolBase):
    """Pool whose ``acquire`` suspends the calling task instead of a thread.

    ``release``, ``stats`` and ``close`` stay synchronous; none of them wait.

    Example:
        ```python
        async with pool.connection() as conn:
            conn.query("SELECT * FROM users")
        ```
    """

    concurrent = True

    @abstractmethod
    async def acquire(self) -> Connection:
        """Check out a connection, waiting a bounded time for one to free up."""
        ...

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Connection]:
        """Acquire a connection for the duration of an ``async with`` block."""
        scope = await ConnectionScope.open(self)
        try:
            yield scope.get_connection()
        finally:
            scope.release()

    async def __aenter__(self) -> AsyncPool:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["PoolStats", "PoolBase", "SyncPool", "AsyncPool"]
