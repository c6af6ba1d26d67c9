"""Common utilities and base classes for quarry packages.

This package provides shared functionality used across all quarry packages:

- **Exceptions**: Unified exception hierarchy with context support
- **Registry**: Thread-safe registry pattern for managing named items
- **Testing**: Availability checks and pytest markers

Example:
    ```python
    from quarry_common import QuarryError, Registry

    raise QuarryError("Something went wrong", context={"details": "here"})

    registry = Registry[MyType]("my_registry")
    registry.register("key", my_item)
    ```
"""

from quarry_common.exceptions import (
    ConcurrencyError,
    ConfigurationError,
    NotFoundError,
    OperationError,
    QuarryError,
    ResourceError,
)
from quarry_common.registry import Registry
from quarry_common.testing import (
    get_test_database_url,
    is_package_available,
    requires_database,
    requires_package,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "QuarryError",
    "ConfigurationError",
    "ResourceError",
    "NotFoundError",
    "OperationError",
    "ConcurrencyError",
    # Registry
    "Registry",
    # Testing
    "is_package_available",
    "get_test_database_url",
    "requires_package",
    "requires_database",
]
