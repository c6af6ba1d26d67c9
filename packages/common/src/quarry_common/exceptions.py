"""Common exception hierarchy for all quarry packages.

Every quarry package raises exceptions rooted at :class:`QuarryError`. Each
exception carries an optional context dictionary so callers and log lines can
see which pool, URI or limit was involved without parsing the message.

Example:
    ```python
    from quarry_common.exceptions import ResourceError

    raise ResourceError(
        "Failed to acquire database connection",
        context={"pool": "primary", "max_size": 10, "current": 10},
    )

    try:
        operation()
    except QuarryError as e:
        logger.error(f"Error: {e}")
        if e.context:
            logger.error(f"Context: {e.context}")
    ```

Package-Specific Extensions:
    ```python
    class PoolExhaustedError(ResourceError):
        '''Raised when a pool has no connection to hand out.'''
        def __init__(self, pool: str, max_size: int):
            super().__init__(
                f"Pool '{pool}' exhausted",
                context={"pool": pool, "max_size": max_size},
            )
    ```
"""

from typing import Any, Dict


class QuarryError(Exception):
    """Base exception for all quarry packages.

    Attributes:
        context: Dictionary containing contextual information about the error
        details: Alias for context

    Args:
        message: Human-readable error message
        context: Optional dictionary with error context (pool names, limits, etc.)
        details: Alternative to context (both are supported)

    Example:
        ```python
        error = QuarryError(
            "Operation failed",
            context={"operation": "acquire", "pool": "primary"}
        )
        str(error)
        # 'Operation failed'
        error.context
        # {'operation': 'acquire', 'pool': 'primary'}
        ```
    """

    def __init__(
        self,
        message: str,
        context: Dict[str, Any] | None = None,
        details: Dict[str, Any] | None = None,
    ):
        """Initialize the exception with optional context.

        Args:
            message: Error message
            context: Optional context dictionary
            details: Optional details dictionary (takes precedence over context)
        """
        super().__init__(message)
        self.context = details or context or {}
        self.details = self.context


class ConfigurationError(QuarryError):
    """Raised when configuration is invalid or missing.

    Use this exception for configuration-related errors including:
    - Missing required configuration
    - Invalid configuration values
    - Configuration file not found
    - Unsupported options (unknown scheme, unknown strategy)

    Example:
        ```python
        raise ConfigurationError(
            "Pool configuration missing",
            context={"pool": "primary", "available_pools": ["read", "write"]}
        )
        ```
    """

    pass


class ResourceError(QuarryError):
    """Raised when resource operations fail.

    Use this exception for resource management failures including:
    - Resource acquisition failures
    - Connection errors
    - Resource pool exhaustion

    Example:
        ```python
        raise ResourceError(
            "Failed to acquire database connection",
            context={"pool_size": 10, "active_connections": 10, "timeout": 0.5}
        )
        ```
    """

    pass


class NotFoundError(QuarryError):
    """Raised when a requested item is not found.

    Use this exception when looking up items by name or key and they don't
    exist, for example an unregistered pool name.
    """

    pass


class OperationError(QuarryError):
    """Raised when an operation fails.

    Use this exception for operation failures that don't fit other categories,
    such as using a resource after it was closed or released.
    """

    pass


class ConcurrencyError(QuarryError):
    """Raised when concurrent operation conflicts occur.

    Use this exception for concurrency-related failures such as using an
    event-loop-bound resource from a different loop.
    """

    pass


__all__ = [
    "QuarryError",
    "ConfigurationError",
    "ResourceError",
    "NotFoundError",
    "OperationError",
    "ConcurrencyError",
]
