"""Pool and database configuration.

A configuration file names one or more pools and, optionally, the default one:

```yaml
pools:
  primary:
    strategy: queue
    max_size: 5
    max_idle: 3
    idle_timeout_seconds: 30
    backend_uri: ${DATABASE_URL:sqlite:///database.sqlite}
  reports:
    strategy: single
    backend_uri: postgresql://reader@db/reports
default: primary
```

Older spellings (``connections``/``default_connection``, ``pool_strategy``,
``max_pool_size``, ``idle_timeout``, ``connection_config.database_url``) and
camelCase keys are accepted as well.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import yaml  # type: ignore[import-untyped]

from .dsn import ConnectionString
from .exceptions import ConfigError
from .substitution import VariableSubstitution

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = "single"
DEFAULT_MAX_SIZE = 20
DEFAULT_MAX_IDLE = 10
DEFAULT_IDLE_TIMEOUT = 30.0
DEFAULT_ACQUIRE_TIMEOUT = 0.5

# canonical field -> accepted keys, in lookup order
_ALIASES: Dict[str, tuple[str, ...]] = {
    "strategy": ("strategy", "pool_strategy", "poolStrategy"),
    "max_size": ("max_size", "max_pool_size", "maxSize", "maxPoolSize"),
    "max_idle": ("max_idle", "max_idle_connections", "maxIdle"),
    "idle_timeout_seconds": ("idle_timeout_seconds", "idle_timeout", "idleTimeoutSeconds"),
    "backend_uri": ("backend_uri", "connection_uri", "connectionURI", "database_url"),
    "acquire_timeout_seconds": ("acquire_timeout_seconds", "acquire_timeout", "acquireTimeoutSeconds"),
    "preheat": ("preheat",),
    "eviction_interval_seconds": ("eviction_interval_seconds", "evictionIntervalSeconds"),
}


def _pick(data: Dict[str, Any], field_name: str) -> Any:
    for key in _ALIASES[field_name]:
        if key in data:
            return data[key]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class PoolConfig:
    """Configuration for a single connection pool.

    Attributes:
        backend_uri: Backend URI, parsed (and rejected if malformed) at construction
        strategy: Pooling strategy tag ("single", "queue", "array", "asyncio", "uvloop")
        max_size: Upper bound on checked-out plus idle connections
        max_idle: Upper bound on idle connections kept for reuse
        idle_timeout_seconds: Idle connections older than this are evicted
        acquire_timeout_seconds: How long a channel pool waits for a free connection
        preheat: Open ``min(2, max_idle)`` connections when the pool is created
        eviction_interval_seconds: Minimum time between idle eviction passes,
            0 runs a pass on every release
    """

    backend_uri: str
    strategy: str = DEFAULT_STRATEGY
    max_size: int = DEFAULT_MAX_SIZE
    max_idle: int = DEFAULT_MAX_IDLE
    idle_timeout_seconds: float = DEFAULT_IDLE_TIMEOUT
    acquire_timeout_seconds: float = DEFAULT_ACQUIRE_TIMEOUT
    preheat: bool = True
    eviction_interval_seconds: float = 0.0
    connection_string: ConnectionString = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.strategy, str) or not self.strategy:
            raise ConfigError("strategy must not be empty", context={"strategy": self.strategy})
        if not isinstance(self.max_size, int) or self.max_size < 1:
            raise ConfigError(
                "max_size must be at least 1", context={"max_size": self.max_size}
            )
        if not isinstance(self.max_idle, int) or self.max_idle < 0:
            raise ConfigError(
                "max_idle cannot be negative", context={"max_idle": self.max_idle}
            )
        if self.max_idle > self.max_size:
            raise ConfigError(
                "max_idle cannot be greater than max_size",
                context={"max_idle": self.max_idle, "max_size": self.max_size},
            )
        for name in ("idle_timeout_seconds", "acquire_timeout_seconds", "eviction_interval_seconds"):
            value = getattr(self, name)
            if not _is_number(value):
                raise ConfigError(
                    f"{name} must be a number of seconds, got {type(value).__name__}",
                    context={name: value},
                )
        if self.idle_timeout_seconds < 0:
            raise ConfigError(
                "idle_timeout_seconds cannot be negative",
                context={"idle_timeout_seconds": self.idle_timeout_seconds},
            )
        if self.acquire_timeout_seconds <= 0:
            raise ConfigError(
                "acquire_timeout_seconds must be positive",
                context={"acquire_timeout_seconds": self.acquire_timeout_seconds},
            )
        if self.eviction_interval_seconds < 0:
            raise ConfigError(
                "eviction_interval_seconds cannot be negative",
                context={"eviction_interval_seconds": self.eviction_interval_seconds},
            )
        object.__setattr__(self, "connection_string", ConnectionString.parse(self.backend_uri))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PoolConfig:
        """Create from a configuration dictionary.

        Unknown keys are ignored. When ``max_idle`` is absent it defaults to
        ``min(10, max_size)`` so a small pool needs no extra setting.

        Raises:
            ConfigError: If a value is invalid or no backend URI is given
        """
        if not isinstance(data, dict):
            raise ConfigError(
                f"Pool configuration must be a mapping, got {type(data).__name__}"
            )

        values: Dict[str, Any] = {}
        for name in _ALIASES:
            value = _pick(data, name)
            if value is not None:
                values[name] = value

        if "backend_uri" not in values and isinstance(data.get("connection_config"), dict):
            nested = _pick(data["connection_config"], "backend_uri")
            if nested is not None:
                values["backend_uri"] = nested

        if "backend_uri" not in values:
            raise ConfigError(
                "Pool configuration requires backend_uri",
                context={"keys": sorted(data)},
            )

        max_size = values.get("max_size", DEFAULT_MAX_SIZE)
        if "max_idle" not in values and isinstance(max_size, int):
            values["max_idle"] = min(DEFAULT_MAX_IDLE, max(max_size, 0))

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("connection_string", None)
        return data


@dataclass(frozen=True)
class DatabaseConfig:
    """Named pool configurations plus the default pool name.

    Attributes:
        pools: Pool name -> configuration, at least one entry
        default: Name of the default pool; the first pool when omitted
    """

    pools: Dict[str, PoolConfig]
    default: str | None = None

    def __post_init__(self) -> None:
        if not self.pools:
            raise ConfigError("At least one pool must be configured")
        if self.default is not None and self.default not in self.pools:
            raise ConfigError(
                f"Default pool '{self.default}' not found in pools",
                context={"default": self.default, "pools": list(self.pools)},
            )

    @property
    def default_name(self) -> str:
        """The default pool name, resolved."""
        return self.default if self.default is not None else next(iter(self.pools))

    def get(self, name: str) -> PoolConfig:
        if name not in self.pools:
            raise ConfigError(
                f"Pool '{name}' not found", context={"name": name, "pools": list(self.pools)}
            )
        return self.pools[name]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DatabaseConfig:
        """Create from a configuration dictionary.

        Raises:
            ConfigError: If the mapping is malformed or any pool is invalid
        """
        if not isinstance(data, dict):
            raise ConfigError(
                f"Database configuration must be a mapping, got {type(data).__name__}"
            )
        raw_pools = data.get("pools", data.get("connections"))
        if not isinstance(raw_pools, dict):
            raise ConfigError("Configuration requires a 'pools' mapping", context={"keys": sorted(data)})

        pools = {}
        for name, pool_data in raw_pools.items():
            try:
                pools[str(name)] = PoolConfig.from_dict(pool_data)
            except ConfigError as e:
                e.context.setdefault("pool", name)
                raise

        return cls(pools=pools, default=data.get("default", data.get("default_connection")))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"pools": {name: pool.to_dict() for name, pool in self.pools.items()}}
        if self.default is not None:
            data["default"] = self.default
        return data


class DatabaseConfigBuilder:
    """Fluent builder for :class:`DatabaseConfig`.

    Example:
        ```python
        config = (
            DatabaseConfigBuilder()
            .add_pool("primary", PoolConfig("sqlite:///app.db", strategy="queue"))
            .add_pool("cache", {"backend_uri": "sqlite::memory:"})
            .set_default("primary")
            .build()
        )
        ```
    """

    def __init__(self) -> None:
        self._pools: Dict[str, PoolConfig] = {}
        self._default: str | None = None

    def add_pool(self, name: str, config: PoolConfig | Dict[str, Any]) -> DatabaseConfigBuilder:
        if isinstance(config, dict):
            config = PoolConfig.from_dict(config)
        self._pools[name] = config
        return self

    def set_default(self, name: str) -> DatabaseConfigBuilder:
        self._default = name
        return self

    def build(self) -> DatabaseConfig:
        return DatabaseConfig(pools=dict(self._pools), default=self._default)


def _read_file(path: Path) -> Any:
    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in [".yaml", ".yml"]:
            return yaml.safe_load(f) or {}
        elif suffix == ".json":
            return json.load(f)
    raise ConfigError(f"Unsupported file format: {suffix}", context={"path": str(path)})


def load_config(
    path: Union[str, Path], environ: Dict[str, str] | None = None
) -> DatabaseConfig:
    """Load a database configuration from a YAML or JSON file.

    Environment references (``${VAR}``, ``${VAR:default}``) in values are
    substituted before validation.

    Args:
        path: Path to a ``.yaml``, ``.yml`` or ``.json`` file
        environ: Variables to substitute from, ``os.environ`` by default

    Returns:
        Validated database configuration

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", context={"path": str(path)})

    try:
        data = _read_file(path)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse {path}: {e}", context={"path": str(path)}) from e

    data = VariableSubstitution(environ).substitute(data)
    config = DatabaseConfig.from_dict(data)
    logger.debug(f"Loaded {len(config.pools)} pool(s) from {path}")
    return config


def save_config(config: DatabaseConfig | Dict[str, Any], path: Union[str, Path]) -> None:
    """Write a configuration to YAML or JSON, chosen by file extension."""
    path = Path(path)
    data = config.to_dict() if isinstance(config, DatabaseConfig) else config
    suffix = path.suffix.lower()
    if suffix not in [".yaml", ".yml", ".json"]:
        raise ConfigError(
            f"Cannot determine format from extension: {suffix}", context={"path": str(path)}
        )
    with open(path, "w", encoding="utf-8") as f:
        if suffix == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


__all__ = [
    "PoolConfig",
    "DatabaseConfig",
    "DatabaseConfigBuilder",
    "load_config",
    "save_config",
]
