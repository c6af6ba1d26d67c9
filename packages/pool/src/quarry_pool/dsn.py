"""Connection URI parsing.

A backend URI has the form ``scheme://[user[:pass]@]host[:port]/database[?opts]``.
The scheme selects the dialect, which in turn supplies the default port and
the DSN shape handed to the driver. SQLite URIs carry a file path instead of
a host:

- ``sqlite:///relative/path.db`` and ``sqlite:////absolute/path.db``
- ``sqlite:///:memory:``, ``sqlite::memory:`` and ``sqlite://`` for an
  in-memory database
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl, unquote, urlsplit

from .exceptions import ConfigError

MEMORY = ":memory:"

SCHEME_ALIASES = {
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "pgsql": "postgresql",
    "mysql": "mysql",
}

DEFAULT_PORTS = {
    "sqlite": 0,
    "postgresql": 5432,
    "mysql": 3306,
}

_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")


def _redact(password: str) -> str:
    return "***" if password else ""


def _option_value(value: str) -> Any:
    # drivers expect numbers for timeouts and ports passed as query options
    for convert in (int, float):
        try:
            return convert(value)
        except ValueError:
            continue
    return value


@dataclass(frozen=True)
class ConnectionString:
    """Parsed backend URI.

    Attributes:
        dialect: Canonical dialect name ("sqlite", "postgresql" or "mysql")
        host: Host name (empty for SQLite)
        port: Port number (0 for SQLite)
        database: Database name, or file path for SQLite
        username: User name, empty when absent
        password: Password, empty when absent
        options: Query-string options passed through to the driver
    """

    dialect: str
    host: str = ""
    port: int = 0
    database: str = ""
    username: str = ""
    password: str = ""
    options: dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, url: str) -> ConnectionString:
        """Parse a backend URI.

        No I/O happens here; a malformed URI fails before any connection attempt.

        Args:
            url: Backend URI

        Returns:
            Parsed connection string

        Raises:
            ConfigError: If the URI is malformed or the scheme is not supported
        """
        if not isinstance(url, str) or not url.strip():
            raise ConfigError("Database URL must be a non-empty string", context={"url": url})

        url = url.strip()
        if url in ("sqlite::memory:", "sqlite://"):
            return cls(dialect="sqlite", database=MEMORY)

        scheme, sep, rest = url.partition("://")
        if not sep or not _SCHEME_PATTERN.match(scheme):
            raise ConfigError(f"Invalid database URL: {url}", context={"url": url})

        dialect = SCHEME_ALIASES.get(scheme.lower())
        if dialect is None:
            raise ConfigError(
                f"Unsupported database driver: {scheme}",
                context={"scheme": scheme, "supported": sorted(SCHEME_ALIASES)},
            )

        if dialect == "sqlite":
            return cls._parse_sqlite(rest, url)
        return cls._parse_network(dialect, url)

    @classmethod
    def _parse_sqlite(cls, rest: str, url: str) -> ConnectionString:
        # "sqlite:///path" leaves "/path" after the "://"; the leading slash
        # separates the (empty) authority from the path
        if rest and not rest.startswith("/"):
            raise ConfigError(
                f"SQLite URLs take no host: {url}",
                context={"url": url, "expected": "sqlite:///path/to/file.db"},
            )
        path, _, query = rest[1:].partition("?")
        path = unquote(path)
        return cls(
            dialect="sqlite",
            database=path or MEMORY,
            options=dict(parse_qsl(query)),
        )

    @classmethod
    def _parse_network(cls, dialect: str, url: str) -> ConnectionString:
        try:
            parsed = urlsplit(url)
            port = parsed.port
        except ValueError as e:
            raise ConfigError(f"Invalid database URL: {url}", context={"url": url}) from e

        database = unquote(parsed.path[1:]) if parsed.path and len(parsed.path) > 1 else ""
        return cls(
            dialect=dialect,
            host=parsed.hostname or "localhost",
            port=port or DEFAULT_PORTS[dialect],
            database=database,
            username=unquote(parsed.username or ""),
            password=unquote(parsed.password or ""),
            options=dict(parse_qsl(parsed.query)),
        )

    @property
    def is_memory(self) -> bool:
        """True for an in-memory SQLite database."""
        return self.dialect == "sqlite" and self.database == MEMORY

    @property
    def dsn(self) -> str:
        """Dialect-specific DSN string.

        - SQLite: ``sqlite:<path>``
        - PostgreSQL: libpq keyword/value string accepted by psycopg2
        - MySQL: ``mysql:host=..;port=..;dbname=..;charset=utf8mb4``
        """
        if self.dialect == "sqlite":
            return f"sqlite:{self.database}"
        if self.dialect == "postgresql":
            parts = [f"host={self.host}", f"port={self.port}", f"dbname={self.database}"]
            if self.username:
                parts.append(f"user={self.username}")
            if self.password:
                parts.append(f"password={self.password}")
            return " ".join(parts)
        charset = self.options.get("charset", "utf8mb4")
        return f"mysql:host={self.host};port={self.port};dbname={self.database};charset={charset}"

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the network drivers (psycopg2, pymysql)."""
        kwargs: dict[str, Any] = {"host": self.host, "port": self.port}
        if self.dialect == "postgresql":
            kwargs["dbname"] = self.database
        else:
            kwargs["database"] = self.database
            kwargs["charset"] = "utf8mb4"
        if self.username:
            kwargs["user"] = self.username
        if self.password:
            kwargs["password"] = self.password
        kwargs.update((key, _option_value(value)) for key, value in self.options.items())
        return kwargs

    def to_url(self, redact: bool = False) -> str:
        """Rebuild the URI.

        Args:
            redact: Replace the password with ``***``

        Returns:
            URI string
        """
        if self.dialect == "sqlite":
            url = f"sqlite:///{self.database}"
        else:
            password = _redact(self.password) if redact else self.password
            auth = ""
            if self.username:
                auth = f"{self.username}:{password}@" if password else f"{self.username}@"
            port = f":{self.port}" if self.port else ""
            url = f"{self.dialect}://{auth}{self.host}{port}/{self.database}"
        if self.options:
            url += "?" + "&".join(f"{k}={v}" for k, v in self.options.items())
        return url

    def __str__(self) -> str:
        return self.to_url(redact=True)
