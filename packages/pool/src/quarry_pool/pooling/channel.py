"""Channel pools for callers running as tasks on an event loop.

The idle set is an ``asyncio.Queue`` sized to ``max_size``. ``acquire`` waits
on it for at most ``acquire_timeout_seconds``; everything else runs between
suspension points, so the counters need no lock against other tasks.

Two siblings differ only in the runtime they require:

- :class:`AsyncioChannelPool` needs any running asyncio event loop
- :class:`UvloopChannelPool` needs a running loop provided by uvloop
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, ClassVar

from ..connection import Connection
from ..exceptions import (
    ConfigError,
    ConnectionInvalidError,
    EventLoopMismatchError,
    PoolExhaustedError,
)
from .array import IdleEviction
from .base import AsyncPool

logger = logging.getLogger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ChannelPool(AsyncPool):
    """Base for the event-loop channel pools.

    The pool is bound to the loop it was created on. It must be constructed
    from inside that loop (in a coroutine or callback); use
    :class:`~quarry_pool.pooling.factory.PoolFactory` to fall back to a
    thread-safe pool automatically when no loop is running.
    """

    runtime: ClassVar[str]

    def __init__(self, config, connection_factory=None):
        loop = _running_loop()
        if loop is None or not self.supports_loop(loop):
            raise ConfigError(
                f"{self.strategy} pool requires a running {self.runtime} event loop",
                context={"strategy": self.strategy, "runtime": self.runtime},
            )
        super().__init__(config, connection_factory)
        self._loop = loop
        self._channel: asyncio.Queue[Connection] = asyncio.Queue(maxsize=config.max_size)
        self._idle_since: dict[Connection, float] = {}
        self._eviction = IdleEviction(self)

        for connection in self._preheat_connections():
            self._push(connection)
        logger.info(
            f"Created {self.strategy} pool for {config.connection_string} "
            f"(max_size={config.max_size}, max_idle={config.max_idle}, "
            f"loop={type(loop).__name__})"
        )

    @classmethod
    def supports_loop(cls, loop: asyncio.AbstractEventLoop) -> bool:
        """True if the pool can run on the given event loop."""
        return True

    @classmethod
    def runtime_available(cls) -> bool:
        """True when called from inside a loop this pool can run on."""
        loop = _running_loop()
        return loop is not None and cls.supports_loop(loop)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def idle_connections(self) -> int:
        return self._channel.qsize()

    def _check_loop(self, required: bool = True) -> None:
        loop = _running_loop()
        if loop is None and not required:
            return
        if loop is not self._loop:
            raise EventLoopMismatchError(self.strategy)

    def _push(self, connection: Connection, idle_since: float | None = None) -> None:
        self._idle_since[connection] = time.monotonic() if idle_since is None else idle_since
        self._channel.put_nowait(connection)

    def _pop_nowait(self) -> Connection:
        connection = self._channel.get_nowait()
        self._idle_since.pop(connection, None)
        return connection

    def _create(self) -> Connection:
        with self._lock:
            self._current += 1
        return self._checkout(self._open_reserved())

    async def acquire(self) -> Connection:
        """Check out a connection.

        A new connection is opened right away while the channel is empty and
        there is room; otherwise the call waits up to
        ``acquire_timeout_seconds`` for a release.

        Raises:
            PoolClosedError: If the pool was closed, including while waiting
            PoolExhaustedError: If the wait timed out at full capacity, or
                ``max_size`` idle connections in a row failed validation
            EventLoopMismatchError: If awaited from a loop other than the pool's
        """
        self._check_loop()
        timeout = self.config.acquire_timeout_seconds
        invalid = 0
        while True:
            self._check_open()
            if self._channel.empty() and self._current < self.config.max_size:
                return self._create()

            try:
                connection = await asyncio.wait_for(self._channel.get(), timeout)
            except asyncio.TimeoutError:
                self._check_open()
                if self._current < self.config.max_size:
                    return self._create()
                raise PoolExhaustedError(
                    f"No available connections in {self.strategy} pool after {timeout}s",
                    strategy=self.strategy,
                    max_size=self.config.max_size,
                    timeout_seconds=timeout,
                ) from None
            self._idle_since.pop(connection, None)

            if self._closed:
                self.factory.discard(connection)
                continue
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

    def release(self, connection: Connection) -> None:
        # may run from a scope finalizer after the loop has stopped
        self._check_loop(required=False)
        super().release(connection)

    def _release(self, connection: Connection) -> None:
        self.factory.reset(connection)
        if not self.factory.validate(connection):
            self._discard_counted(connection, "failed validation on release")
            return

        self._evict_idle()

        if self._channel.qsize() < self.config.max_idle:
            self._push(connection)
        else:
            self._discard_counted(connection, "idle set is full")

    def _evict_idle(self) -> None:
        now = time.monotonic()
        if self._channel.empty() or not self._eviction.due(now):
            return

        entries = []
        while not self._channel.empty():
            connection = self._channel.get_nowait()
            entries.append((connection, self._idle_since.pop(connection, now)))

        kept, dropped = self._eviction.sweep(entries, now)
        for connection, idle_since in kept:
            self._push(connection, idle_since)
        for connection in dropped:
            self._discard_counted(connection, "idle timeout or failed validation")

    def _holds_idle(self, connection: Connection) -> bool:
        return connection in self._idle_since

    def _drain_idle(self) -> list[Connection]:
        drained = []
        while not self._channel.empty():
            drained.append(self._pop_nowait())
        return drained

    def _stats_extra(self) -> dict[str, Any]:
        return {
            "checked_out": len(self._in_use),
            "acquire_timeout_seconds": self.config.acquire_timeout_seconds,
            "loop": type(self._loop).__name__,
        }


class AsyncioChannelPool(ChannelPool):
    """Channel pool for any running asyncio event loop."""

    strategy = "asyncio"
    runtime = "asyncio"


class UvloopChannelPool(ChannelPool):
    """Channel pool that requires the uvloop event loop implementation."""

    strategy = "uvloop"
    runtime = "uvloop"

    @classmethod
    def supports_loop(cls, loop: asyncio.AbstractEventLoop) -> bool:
        return type(loop).__module__.split(".")[0] == "uvloop"


__all__ = ["ChannelPool", "AsyncioChannelPool", "UvloopChannelPool"]
