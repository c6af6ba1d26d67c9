"""Connection pooling runtime for database clients.

Named, independently configured pools behind a registry, a scoped
acquisition guard, and interchangeable pooling strategies:

- ``single``: one lazily opened connection, reused
- ``queue``: bounded FIFO pool for sequential or threaded callers
- ``array``: bounded pool with idle-timeout eviction
- ``asyncio`` / ``uvloop``: channel pools for tasks on an event loop

Example:
    ```python
    from quarry_pool import PoolRegistry, load_config

    registry = PoolRegistry()
    registry.initialize(load_config("quarry.yaml"))

    with registry.connection("primary") as conn:
        rows = conn.query("SELECT id, name FROM users WHERE active = ?", (1,))

    registry.close_all()
    ```
"""

from .config import DatabaseConfig, DatabaseConfigBuilder, PoolConfig, load_config, save_config
from .connection import (
    Connection,
    ConnectionFactory,
    MySQLConnection,
    PostgresConnection,
    SQLiteConnection,
    Statement,
)
from .dsn import ConnectionString
from .exceptions import (
    ConfigError,
    ConnectionFailedError,
    EventLoopMismatchError,
    PoolClosedError,
    PoolExhaustedError,
    PoolNotFoundError,
    QuarryError,
    UseAfterReleaseError,
)
from .pooling import (
    AsyncioChannelPool,
    AsyncPool,
    BoundedArrayPool,
    BoundedQueuePool,
    ChannelPool,
    PoolBase,
    PoolFactory,
    PoolStats,
    SingleConnectionPool,
    SyncPool,
    UvloopChannelPool,
)
from .registry import PoolRegistry, get_registry, reset_registry
from .scope import ConnectionScope

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Configuration
    "PoolConfig",
    "DatabaseConfig",
    "DatabaseConfigBuilder",
    "load_config",
    "save_config",
    # Connections
    "ConnectionString",
    "Connection",
    "Statement",
    "SQLiteConnection",
    "PostgresConnection",
    "MySQLConnection",
    "ConnectionFactory",
    # Pools
    "PoolStats",
    "PoolBase",
    "SyncPool",
    "AsyncPool",
    "SingleConnectionPool",
    "BoundedQueuePool",
    "BoundedArrayPool",
    "ChannelPool",
    "AsyncioChannelPool",
    "UvloopChannelPool",
    "PoolFactory",
    "ConnectionScope",
    "PoolRegistry",
    "get_registry",
    "reset_registry",
    # Errors
    "QuarryError",
    "ConfigError",
    "ConnectionFailedError",
    "PoolExhaustedError",
    "PoolClosedError",
    "UseAfterReleaseError",
    "PoolNotFoundError",
    "EventLoopMismatchError",
]
