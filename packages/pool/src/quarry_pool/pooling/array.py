"""Bounded array pool: the thread-safe stand-in for the channel pools."""

from __future__ import annotations

import logging
import time
from typing import Any

from ..connection import Connection
from .queue import BoundedQueuePool

logger = logging.getLogger(__name__)


class IdleEviction:
    """Drops idle connections that sat unused for too long or went stale.

    Shared by the array pool and the channel pools. A pass runs at most once
    per ``eviction_interval_seconds``; with an interval of 0 every release
    runs one.
    """

    def __init__(self, pool: Any):
        self.pool = pool
        self._last_run = float("-inf")

    def due(self, now: float) -> bool:
        return now - self._last_run >= self.pool.config.eviction_interval_seconds

    def sweep(
        self, entries: list[tuple[Connection, float]], now: float
    ) -> tuple[list[tuple[Connection, float]], list[Connection]]:
        """Split idle entries into those to keep and those to discard.

        Args:
            entries: (connection, time it went idle) pairs
            now: Current ``time.monotonic()`` value

        Returns:
            (kept entries, expired or stale connections)
        """
        self._last_run = now
        timeout = self.pool.config.idle_timeout_seconds
        kept: list[tuple[Connection, float]] = []
        dropped: list[Connection] = []
        for connection, idle_since in entries:
            if now - idle_since >= timeout or not self.pool.factory.validate(connection):
                dropped.append(connection)
            else:
                kept.append((connection, idle_since))
        return kept, dropped


class BoundedArrayPool(BoundedQueuePool):
    """Bounded pool with idle-timeout eviction, safe to share between threads.

    Capacity rules are the same as the channel pools, without waiting:
    exhaustion fails immediately. :class:`PoolFactory` picks this pool when a
    channel strategy is configured but no event loop is running;
    ``fallback_for`` then names the strategy it replaces.
    """

    strategy = "array"

    def __init__(self, config, connection_factory=None, fallback_for: str | None = None):
        self.fallback_for = fallback_for
        super().__init__(config, connection_factory)
        self._eviction = IdleEviction(self)

    def _release(self, connection: Connection) -> None:
        self.factory.reset(connection)
        if not self.factory.validate(connection):
            self._discard_counted(connection, "failed validation on release")
            return
        self._evict_idle()
        self._requeue(connection)

    def _evict_idle(self) -> None:
        now = time.monotonic()
        with self._lock:
            if not self._eviction.due(now) or not self._idle:
                return
            # validated outside the lock; the entries stay counted in _current
            entries = list(self._idle)
            self._idle.clear()

        kept, dropped = self._eviction.sweep(entries, now)

        with self._lock:
            if self._closed:
                dropped.extend(connection for connection, _ in kept)
            else:
                room = max(self.config.max_idle - len(self._idle), 0)
                dropped.extend(connection for connection, _ in kept[room:])
                self._current -= len(dropped)
                # entries released meanwhile are newer, keep them behind
                self._idle.extendleft(reversed(kept[:room]))
        for connection in dropped:
            self.factory.discard(connection)
        if dropped:
            logger.debug(f"{self.strategy} pool evicted {len(dropped)} idle connection(s)")

    def _stats_extra(self) -> dict[str, Any]:
        extra = super()._stats_extra()
        extra["fallback_for"] = self.fallback_for
        return extra
