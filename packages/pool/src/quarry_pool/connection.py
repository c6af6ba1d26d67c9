"""Backend connections and the factory that creates, probes and resets them.

Every raw driver connection is wrapped in a :class:`Connection` adapter so the
pools only ever talk to one interface: ``query``, ``prepare``, ``execute``,
``commit``, ``rollback``, ``in_transaction`` and ``close``. One adapter exists
per dialect; the driver module is imported when the first connection for that
dialect is opened.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar, Sequence

from .dsn import MEMORY, ConnectionString
from .exceptions import ConfigError, ConnectionFailedError

logger = logging.getLogger(__name__)


class Statement:
    """A prepared statement bound to one connection.

    DB-API drivers have no explicit prepare step, so the statement keeps the
    SQL and runs it through a fresh cursor on each ``execute``.
    """

    def __init__(self, connection: Connection, sql: str):
        self.connection = connection
        self.sql = sql
        self._cursor: Any = None

    def execute(self, params: Sequence[Any] | dict[str, Any] = ()) -> Statement:
        """Run the statement with the given parameters."""
        if self._cursor is not None:
            self._cursor.close()
        self._cursor = self.connection.raw.cursor()
        self._cursor.execute(self.sql, params)
        return self

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount if self._cursor is not None else -1

    def fetchone(self) -> dict[str, Any] | None:
        row = self._cursor.fetchone()
        if row is None:
            return None
        return self.connection._row_to_dict(self._cursor, row)

    def fetchall(self) -> list[dict[str, Any]]:
        return [self.connection._row_to_dict(self._cursor, row) for row in self._cursor.fetchall()]

    def close(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None


class Connection(ABC):
    """Adapter around one backend session.

    Attributes:
        raw: The underlying DB-API connection
        url: Parsed connection string this session was opened with
    """

    dialect: ClassVar[str]
    placeholder: ClassVar[str] = "%s"

    def __init__(self, raw: Any, url: ConnectionString):
        self.raw = raw
        self.url = url
        self.closed = False

    @classmethod
    @abstractmethod
    def open(cls, url: ConnectionString) -> Connection:
        """Open a new session for the given connection string."""
        ...

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """True if the session has an open transaction."""
        ...

    def initialize(self) -> None:
        """Apply per-dialect session settings right after connecting."""
        pass

    def query(self, sql: str, params: Sequence[Any] | dict[str, Any] = ()) -> list[dict[str, Any]]:
        """Run a statement and return all rows as dictionaries."""
        statement = self.prepare(sql).execute(params)
        try:
            return statement.fetchall()
        finally:
            statement.close()

    def prepare(self, sql: str) -> Statement:
        """Prepare a statement for (repeated) execution."""
        return Statement(self, sql)

    def execute(self, sql: str, params: Sequence[Any] | dict[str, Any] = ()) -> int:
        """Run a statement and return the number of affected rows."""
        statement = self.prepare(sql).execute(params)
        try:
            return statement.rowcount
        finally:
            statement.close()

    def ping(self) -> None:
        """Run a trivial query, leaving the transaction state as it was."""
        was_idle = not self.in_transaction
        self.query("SELECT 1")
        if was_idle and self.in_transaction:
            self.rollback()

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.raw.close()

    def _row_to_dict(self, cursor: Any, row: Any) -> dict[str, Any]:
        if isinstance(row, dict):
            return row
        columns = [column[0] for column in cursor.description]
        return dict(zip(columns, row))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.url} closed={self.closed}>"


class SQLiteConnection(Connection):
    """SQLite session backed by the standard library ``sqlite3`` module."""

    dialect = "sqlite"
    placeholder = "?"

    @classmethod
    def open(cls, url: ConnectionString) -> SQLiteConnection:
        path = url.database
        if path != MEMORY:
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        raw = sqlite3.connect(
            path,
            timeout=float(url.options.get("timeout", 5.0)),
            # pooled connections move between threads, never used by two at once
            check_same_thread=False,
        )
        return cls(raw, url)

    def initialize(self) -> None:
        self.raw.execute("PRAGMA foreign_keys = ON")

    @property
    def in_transaction(self) -> bool:
        return bool(self.raw.in_transaction)


class PostgresConnection(Connection):
    """PostgreSQL session backed by ``psycopg2``."""

    dialect = "postgresql"

    @classmethod
    def open(cls, url: ConnectionString) -> PostgresConnection:
        import psycopg2

        return cls(psycopg2.connect(**url.connect_kwargs()), url)

    def initialize(self) -> None:
        self.execute("SET TIME ZONE 'UTC'")
        # SET opens a transaction in psycopg2's default mode
        self.raw.commit()

    @property
    def in_transaction(self) -> bool:
        from psycopg2.extensions import TRANSACTION_STATUS_IDLE

        return self.raw.get_transaction_status() != TRANSACTION_STATUS_IDLE


class MySQLConnection(Connection):
    """MySQL session backed by ``pymysql``."""

    dialect = "mysql"

    @classmethod
    def open(cls, url: ConnectionString) -> MySQLConnection:
        import pymysql

        return cls(pymysql.connect(**url.connect_kwargs()), url)

    def initialize(self) -> None:
        self.execute("SET time_zone = '+00:00'")

    @property
    def in_transaction(self) -> bool:
        from pymysql.constants import SERVER_STATUS

        return bool(self.raw.server_status & SERVER_STATUS.SERVER_STATUS_IN_TRANS)


class ConnectionFactory:
    """Creates, probes, resets and discards backend connections.

    Pools hold one factory and route every connection lifecycle step through
    it, so alternative adapters (or test doubles) can be plugged in per pool.

    Example:
        ```python
        factory = ConnectionFactory()
        conn = factory.create("sqlite:///:memory:")
        assert factory.validate(conn)
        factory.reset(conn)
        factory.discard(conn)
        ```
    """

    adapters: ClassVar[dict[str, type[Connection]]] = {
        "sqlite": SQLiteConnection,
        "postgresql": PostgresConnection,
        "mysql": MySQLConnection,
    }

    def create(self, url: str | ConnectionString) -> Connection:
        """Open a new connection.

        Args:
            url: Backend URI or an already parsed connection string

        Returns:
            A connected, initialised adapter

        Raises:
            ConfigError: If the URI is malformed or the dialect is unsupported
            ConnectionFailedError: If the driver cannot connect
        """
        parsed = url if isinstance(url, ConnectionString) else ConnectionString.parse(url)
        adapter = self.adapters.get(parsed.dialect)
        if adapter is None:
            raise ConfigError(
                f"No connection adapter for dialect: {parsed.dialect}",
                context={"dialect": parsed.dialect, "available": sorted(self.adapters)},
            )

        try:
            connection = adapter.open(parsed)
        except ImportError as e:
            raise ConfigError(
                f"Driver for {parsed.dialect} is not installed: {e}",
                context={"dialect": parsed.dialect},
            ) from e
        except Exception as e:
            raise ConnectionFailedError(parsed.dialect, str(e)) from e

        try:
            connection.initialize()
        except Exception as e:
            self.discard(connection)
            raise ConnectionFailedError(parsed.dialect, f"session setup failed: {e}") from e

        logger.debug(f"Opened {parsed.dialect} connection to {parsed}")
        return connection

    def validate(self, connection: Connection) -> bool:
        """Liveness probe; never raises.

        Returns:
            True if ``SELECT 1`` succeeds on the connection
        """
        if connection.closed:
            return False
        try:
            connection.ping()
            return True
        except Exception as e:
            logger.debug(f"Connection failed validation: {e}")
            return False

    def reset(self, connection: Connection) -> None:
        """Roll back an open transaction, swallowing rollback errors."""
        try:
            if connection.in_transaction:
                connection.rollback()
        except Exception as e:
            logger.debug(f"Rollback during reset failed: {e}")

    def discard(self, connection: Connection) -> None:
        """Close a connection that is leaving the pool for good."""
        try:
            connection.close()
        except Exception as e:
            logger.debug(f"Error closing discarded connection: {e}")


__all__ = [
    "Connection",
    "Statement",
    "SQLiteConnection",
    "PostgresConnection",
    "MySQLConnection",
    "ConnectionFactory",
]
