"""Scoped acquisition: a guard that releases its connection exactly once."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import UseAfterReleaseError

if TYPE_CHECKING:
    from .connection import Connection


logger = logging.getLogger(__name__)


class ConnectionScope:
    """Wraps one checked-out connection and gives it back to its pool.

    The connection is released at most once: by an explicit ``release()``,
    on exit from a ``with`` / ``async with`` block, or when the scope is
    garbage collected, whichever comes first.

    A synchronous pool is acquired from in the constructor; if acquisition
    fails the exception propagates and no scope exists. Asynchronous pools
    use :meth:`open`.

    Example:
        ```python
        with ConnectionScope(pool) as conn:
            conn.execute("UPDATE users SET active = 1")

        scope = await ConnectionScope.open(async_pool)
        try:
            scope.get_connection().query("SELECT 1")
        finally:
            scope.release()
        ```
    """

    def __init__(self, pool: Any, connection: Connection | None = None):
        self._released = True
        if connection is None:
            if pool.is_concurrent():
                raise TypeError(
                    f"{type(pool).__name__} acquires asynchronously, "
                    "use 'await ConnectionScope.open(pool)'"
                )
            connection = pool.acquire()
        self._pool = pool
        self._connection = connection
        self._released = False

    @classmethod
    async def open(cls, pool: Any) -> ConnectionScope:
        """Acquire from an asynchronous pool and wrap the connection."""
        return cls(pool, await pool.acquire())

    @property
    def pool(self) -> Any:
        return self._pool

    @property
    def released(self) -> bool:
        return self._released

    def get_connection(self) -> Connection:
        """The wrapped connection.

        Raises:
            UseAfterReleaseError: If the scope has been released
        """
        if self._released:
            raise UseAfterReleaseError()
        return self._connection

    def release(self) -> None:
        """Give the connection back to the pool; later calls do nothing."""
        if self._released:
            return
        self._released = True
        self._pool.release(self._connection)

    def __enter__(self) -> Connection:
        return self.get_connection()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    async def __aenter__(self) -> Connection:
        return self.get_connection()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __del__(self) -> None:
        # also runs at interpreter teardown
        try:
            self.release()
        except Exception as e:
            logger.error(f"Error releasing connection from collected scope: {e}")

    def __repr__(self) -> str:
        state = "released" if self._released else "active"
        return f"<ConnectionScope {state} pool={type(self._pool).__name__}>"
