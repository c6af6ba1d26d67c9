"""Test utilities for quarry packages.

This module provides availability checks and pytest markers for tests that
need an optional database driver or event loop implementation.

Example:
    ```python
    from quarry_common.testing import requires_package

    @requires_package("psycopg2")
    def test_postgres_adapter():
        ...
    ```
"""

import importlib.util
import os
from typing import Any


def is_package_available(package_name: str) -> bool:
    """Check if a Python package is available.

    Args:
        package_name: Name of the package to check

    Returns:
        True if package can be imported, False otherwise
    """
    return importlib.util.find_spec(package_name) is not None


def get_test_database_url(dialect: str) -> str | None:
    """Get the database URL used by integration tests for a dialect.

    Reads ``QUARRY_TEST_POSTGRESQL_URL`` / ``QUARRY_TEST_MYSQL_URL``.

    Args:
        dialect: "postgresql" or "mysql"

    Returns:
        The configured URL, or None when the integration database is not configured
    """
    return os.getenv(f"QUARRY_TEST_{dialect.upper()}_URL")


# Pytest Markers


try:
    import pytest

    def requires_package(package_name: str) -> Any:
        """Create a skip marker for a required package.

        Args:
            package_name: Name of the required package

        Returns:
            pytest.mark.skipif marker
        """
        return pytest.mark.skipif(
            not is_package_available(package_name),
            reason=f"{package_name} not installed",
        )

    def requires_database(dialect: str) -> Any:
        """Create a skip marker for tests that need a live database.

        Args:
            dialect: "postgresql" or "mysql"

        Returns:
            pytest.mark.skipif marker
        """
        return pytest.mark.skipif(
            get_test_database_url(dialect) is None,
            reason=f"QUARRY_TEST_{dialect.upper()}_URL not configured",
        )

except ImportError:
    # pytest not installed - provide placeholder markers
    def requires_package(package_name: str) -> Any:  # type: ignore
        return None

    def requires_database(dialect: str) -> Any:  # type: ignore
        return None


__all__ = [
    "is_package_available",
    "get_test_database_url",
    "requires_package",
    "requires_database",
]
