"""Generic registry pattern for managing named items.

This module provides a reusable, thread-safe registry that packages extend to
manage collections of named items (pools, pool strategies, etc.).

Example:
    ```python
    from quarry_common.registry import Registry

    class StrategyRegistry(Registry[type]):
        def __init__(self):
            super().__init__("strategies", enable_metrics=True)

    registry = StrategyRegistry()
    registry.register("queue", BoundedQueuePool, metadata={"concurrent": False})
    pool_class = registry.get("queue")
    ```
"""

import threading
import time
from typing import (
    Any,
    Dict,
    Generic,
    List,
    TypeVar,
)

from quarry_common.exceptions import NotFoundError, OperationError

T = TypeVar("T")


class Registry(Generic[T]):
    """Base registry for managing named items with optional metrics.

    This is a thread-safe registry that manages a collection of items by
    unique keys. All reads and writes go through a re-entrant lock, so
    subclasses may call back into the registry while holding it.

    Attributes:
        name: Name of the registry (for logging/debugging)

    Args:
        name: Name for this registry instance
        enable_metrics: Whether to track registration metrics

    Example:
        ```python
        registry = Registry[str]("my_registry")
        registry.register("key1", "value1")
        registry.get("key1")
        # 'value1'
        registry.count()
        # 1
        ```
    """

    def __init__(self, name: str, enable_metrics: bool = False):
        """Initialize the registry.

        Args:
            name: Registry name for identification
            enable_metrics: Enable metrics tracking
        """
        self._name = name
        self._items: Dict[str, T] = {}
        self._lock = threading.RLock()
        self._metrics: Dict[str, Dict[str, Any]] | None = {} if enable_metrics else None

    @property
    def name(self) -> str:
        """Get registry name."""
        return self._name

    def register(
        self,
        key: str,
        item: T,
        metadata: Dict[str, Any] | None = None,
        allow_overwrite: bool = False,
    ) -> None:
        """Register an item by key.

        Args:
            key: Unique identifier for the item
            item: Item to register
            metadata: Optional metadata about the item
            allow_overwrite: Whether to allow overwriting existing items

        Raises:
            OperationError: If item already exists and allow_overwrite is False
        """
        with self._lock:
            if not allow_overwrite and key in self._items:
                raise OperationError(
                    f"Item '{key}' already registered in {self._name}",
                    context={"key": key, "registry": self._name},
                )

            self._items[key] = item

            if self._metrics is not None:
                self._metrics[key] = {
                    "registered_at": time.time(),
                    "metadata": metadata or {},
                }

    def unregister(self, key: str) -> T:
        """Unregister and return an item by key.

        Args:
            key: Key of item to unregister

        Returns:
            The unregistered item

        Raises:
            NotFoundError: If item not found
        """
        with self._lock:
            if key not in self._items:
                raise NotFoundError(
                    f"Item not found: {key}",
                    context={"key": key, "registry": self._name},
                )

            item = self._items.pop(key)

            if self._metrics is not None and key in self._metrics:
                del self._metrics[key]

            return item

    def get(self, key: str) -> T:
        """Get an item by key.

        Args:
            key: Key of item to retrieve

        Returns:
            The registered item

        Raises:
            NotFoundError: If item not found
        """
        with self._lock:
            if key not in self._items:
                raise NotFoundError(
                    f"Item not found: {key}",
                    context={"key": key, "registry": self._name, "available_keys": list(self._items.keys())},
                )
            return self._items[key]

    def has(self, key: str) -> bool:
        """Check if item exists."""
        with self._lock:
            return key in self._items

    def list_keys(self) -> List[str]:
        """List all registered keys."""
        with self._lock:
            return list(self._items.keys())

    def items(self) -> List[tuple[str, T]]:
        """Get all key-item pairs.

        Returns:
            List of (key, item) tuples, a snapshot taken under the lock
        """
        with self._lock:
            return list(self._items.items())

    def count(self) -> int:
        """Get count of registered items."""
        with self._lock:
            return len(self._items)

    def clear(self) -> None:
        """Clear all items from registry."""
        with self._lock:
            self._items.clear()
            if self._metrics is not None:
                self._metrics.clear()

    def get_metrics(self, key: str | None = None) -> Dict[str, Any]:
        """Get registration metrics.

        Args:
            key: Optional specific key to get metrics for

        Returns:
            Metrics dictionary

        Example:
            ```python
            metrics = registry.get_metrics("queue")
            print(metrics["metadata"])
            # {'description': 'FIFO idle queue ...'}
            ```
        """
        with self._lock:
            if self._metrics is None:
                return {}

            if key:
                return self._metrics.get(key, {})

            return dict(self._metrics)

    def __len__(self) -> int:
        """Get number of registered items using len()."""
        return self.count()

    def __contains__(self, key: str) -> bool:
        """Check if item exists using 'in' operator."""
        return self.has(key)


__all__ = ["Registry"]
