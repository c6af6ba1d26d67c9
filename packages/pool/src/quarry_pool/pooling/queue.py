"""Bounded FIFO queue pool for sequential or thread-parallel callers."""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any

from ..connection import Connection
from ..exceptions import ConnectionInvalidError, PoolExhaustedError
from .base import SyncPool

logger = logging.getLogger(__name__)


class BoundedQueuePool(SyncPool):
    """FIFO idle queue bounded by ``max_idle`` with at most ``max_size`` connections.

    ``acquire`` never waits: when every connection is checked out it fails
    with :class:`PoolExhaustedError` straight away.

    Example:
        ```python
        pool = BoundedQueuePool(PoolConfig("sqlite:///app.db", strategy="queue", max_size=5))
        conn = pool.acquire()
        try:
            conn.execute("INSERT INTO events (name) VALUES (?)", ("login",))
            conn.commit()
        finally:
            pool.release(conn)
        ```
    """

    strategy = "queue"

    def __init__(self, config, connection_factory=None):
        super().__init__(config, connection_factory)
        # (connection, monotonic time it went idle)
        self._idle: deque[tuple[Connection, float]] = deque()
        now = time.monotonic()
        self._idle.extend((connection, now) for connection in self._preheat_connections())
        logger.info(
            f"Created {self.strategy} pool for {config.connection_string} "
            f"(max_size={config.max_size}, max_idle={config.max_idle})"
        )

    @property
    def idle_connections(self) -> int:
        return len(self._idle)

    def acquire(self) -> Connection:
        invalid = 0
        while True:
            with self._lock:
                self._check_open()
                if self._idle:
                    connection, _ = self._idle.popleft()
                elif self._current < self.config.max_size:
                    self._current += 1
                    connection = None
                else:
                    raise PoolExhaustedError(
                        f"No available connections in {self.strategy} pool",
                        strategy=self.strategy,
                        max_size=self.config.max_size,
                        current=self._current,
                    )

            if connection is None:
                return self._checkout(self._open_reserved())

            try:
                return self._checkout_idle(connection)
            except ConnectionInvalidError as e:
                self._discard_counted(connection, str(e))
            invalid += 1
            if invalid >= self.config.max_size:
                raise PoolExhaustedError(
                    f"{invalid} idle connections in a row failed validation",
                    strategy=self.strategy,
                    attempts=invalid,
                )

    def _release(self, connection: Connection) -> None:
        self.factory.reset(connection)
        if not self.factory.validate(connection):
            self._discard_counted(connection, "failed validation on release")
            return
        self._requeue(connection)

    def _requeue(self, connection: Connection) -> None:
        with self._lock:
            if not self._closed and len(self._idle) < self.config.max_idle:
                self._idle.append((connection, time.monotonic()))
                return
            if not self._closed:
                self._current -= 1
        logger.debug(f"{self.strategy} pool idle set is full, discarding connection")
        self.factory.discard(connection)

    def _holds_idle(self, connection: Connection) -> bool:
        return any(idle is connection for idle, _ in self._idle)

    def _drain_idle(self) -> list[Connection]:
        drained = [connection for connection, _ in self._idle]
        self._idle.clear()
        return drained

    def _stats_extra(self) -> dict[str, Any]:
        return {"checked_out": len(self._in_use)}
