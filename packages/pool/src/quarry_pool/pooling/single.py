"""Single-connection pool."""

from __future__ import annotations

import logging
from typing import Any

from ..connection import Connection
from .base import SyncPool

logger = logging.getLogger(__name__)


class SingleConnectionPool(SyncPool):
    """Reuses one lazily opened connection.

    Meant for callers that never run concurrently against the pool, such as a
    request thread sharing one session. Nested acquisitions hand out the same
    handle; the connection is reset only when the last holder releases it, so
    an outer transaction survives an inner scope.
    """

    strategy = "single"

    def __init__(self, config, connection_factory=None):
        super().__init__(config, connection_factory)
        self._connection: Connection | None = None
        self._holders = 0

    @property
    def idle_connections(self) -> int:
        return 1 if self._connection is not None and self._holders == 0 else 0

    @property
    def current_connections(self) -> int:
        return 1 if self._connection is not None and not self._closed else 0

    def acquire(self) -> Connection:
        with self._lock:
            self._check_open()
            connection = self._connection
            if connection is not None and self._holders > 0:
                self._holders += 1
                return connection

        if connection is not None and not self.factory.validate(connection):
            with self._lock:
                stale = self._connection is connection and self._holders == 0
                if stale:
                    self._connection = None
            if stale:
                logger.debug("Single pool connection failed validation, reopening")
                self.factory.discard(connection)
            connection = None

        if connection is None:
            connection = self.factory.create(self.config.connection_string)

        with self._lock:
            if self._connection is None:
                self._connection = connection
            shared = self._connection
            self._holders += 1
        if shared is not connection:
            # another caller opened one first
            self.factory.discard(connection)
        return shared

    def _claim(self, connection: Connection) -> bool:
        # only the last holder's release resets the connection
        with self._lock:
            if connection is self._connection:
                if self._holders == 0:
                    logger.warning("Single pool connection released more times than acquired")
                    return False
                self._holders -= 1
                return self._holders == 0

        logger.warning(f"Single pool dropping a connection it does not track: {connection!r}")
        self.factory.discard(connection)
        return False

    def _release(self, connection: Connection) -> None:
        self.factory.reset(connection)

    def _release_after_close(self, connection: Connection) -> None:
        with self._lock:
            if connection is self._connection:
                self._connection = None
        super()._release_after_close(connection)

    def _holds_idle(self, connection: Connection) -> bool:
        return connection is self._connection and self._holders == 0

    def _drain_idle(self) -> list[Connection]:
        # a held connection is closed when its last holder releases it
        if self._connection is None or self._holders > 0:
            return []
        connection, self._connection = self._connection, None
        return [connection]

    def stats(self):
        stats = super().stats()
        stats.max_size = 1
        stats.max_idle = 1
        return stats

    def _stats_extra(self) -> dict[str, Any]:
        connection = self._connection
        in_transaction = False
        if connection is not None and not connection.closed:
            try:
                in_transaction = connection.in_transaction
            except Exception as e:
                logger.debug(f"Could not read transaction state: {e}")
        return {
            "has_connection": connection is not None,
            "in_transaction": in_transaction,
            "holders": self._holders,
        }
