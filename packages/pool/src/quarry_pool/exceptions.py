"""Custom exceptions for the quarry_pool package.

This module defines exception types for the pooling runtime,
built on the common exception framework from quarry_common.
"""

from __future__ import annotations

from typing import Any

from quarry_common import (
    ConcurrencyError,
    ConfigurationError,
    NotFoundError,
    OperationError,
    QuarryError,
    ResourceError,
)

# Short alias used throughout the package and by configuration callers
ConfigError = ConfigurationError


class ConnectionFailedError(ResourceError):
    """Raised when the backend driver cannot open a connection."""

    def __init__(self, dialect: str, message: str):
        self.dialect = dialect
        super().__init__(
            f"Failed to connect to {dialect} database: {message}", context={"dialect": dialect}
        )


class PoolExhaustedError(ResourceError):
    """Raised when a pool cannot hand out a connection.

    Callers may retry later; the pool never retries on their behalf beyond
    replacing connections that failed validation.
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message, context=context)


class ConnectionInvalidError(ResourceError):
    """Raised internally when an idle connection fails its liveness probe."""

    pass


class PoolClosedError(OperationError):
    """Raised when acquiring from a pool that has been closed."""

    def __init__(self, strategy: str):
        self.strategy = strategy
        super().__init__(
            f"Cannot acquire from a closed {strategy} pool", context={"strategy": strategy}
        )


class UseAfterReleaseError(OperationError):
    """Raised when a connection scope is used after it released its connection."""

    def __init__(self) -> None:
        super().__init__("Connection has already been released")


class PoolNotFoundError(NotFoundError):
    """Raised when a pool name is not registered."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = available or []
        super().__init__(
            f"Pool '{name}' is not registered",
            context={"name": name, "available": self.available},
        )


class EventLoopMismatchError(ConcurrencyError):
    """Raised when a loop-bound pool is used from a different event loop."""

    def __init__(self, strategy: str):
        super().__init__(
            f"{strategy} pool is bound to a different event loop",
            context={"strategy": strategy},
        )


__all__ = [
    "QuarryError",
    "ConfigError",
    "ConnectionFailedError",
    "PoolExhaustedError",
    "ConnectionInvalidError",
    "PoolClosedError",
    "UseAfterReleaseError",
    "PoolNotFoundError",
    "EventLoopMismatchError",
]
