"""Tests for testing utilities."""

from quarry_common.testing import (
    get_test_database_url,
    is_package_available,
    requires_database,
    requires_package,
)


class TestPackageAvailability:
    """Tests for package availability checks."""

    def test_installed_package(self):
        assert is_package_available("yaml") is True

    def test_missing_package(self):
        assert is_package_available("definitely_not_a_real_package_xyz") is False


class TestDatabaseUrls:
    """Tests for integration database lookups."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("QUARRY_TEST_POSTGRESQL_URL", "postgresql://u@localhost/test")
        assert get_test_database_url("postgresql") == "postgresql://u@localhost/test"

    def test_missing_url(self, monkeypatch):
        monkeypatch.delenv("QUARRY_TEST_MYSQL_URL", raising=False)
        assert get_test_database_url("mysql") is None


class TestMarkers:
    """Tests for the skip markers."""

    def test_requires_package_skips_missing(self):
        marker = requires_package("definitely_not_a_real_package_xyz")
        assert marker.args == (True,)
        assert "not installed" in marker.kwargs["reason"]

    def test_requires_package_runs_installed(self):
        marker = requires_package("yaml")
        assert marker.args == (False,)

    def test_requires_database(self, monkeypatch):
        monkeypatch.delenv("QUARRY_TEST_MYSQL_URL", raising=False)
        marker = requires_database("mysql")
        assert marker.args == (True,)
        assert "QUARRY_TEST_MYSQL_URL" in marker.kwargs["reason"]
