import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ClassVar

import psycopg
from psycopg_pool import ConnectionPool

from bookmarks_worker.config.settings import Settings


def build_conninfo(settings: Settings) -> str:
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )


class Database(ABC):
    """Connection provider shared by the repositories of one engine."""

    dialect: ClassVar[str]

    @abstractmethod
    @contextmanager
    def connection(self) -> Generator[Any, None, None]:
        """Yield a connection. Caller manages commit/rollback."""

    @abstractmethod
    def close(self) -> None:
        """Release every resource held by this database."""


class PostgresDatabase(Database):
    """PostgreSQL access through a psycopg connection pool."""

    dialect = "postgres"

    def __init__(self, conninfo: str, min_size: int = 1, max_size: int = 10) -> None:
        self._pool: ConnectionPool | None = ConnectionPool(
            conninfo, min_size=min_size, max_size=max_size, open=True
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresDatabase":
        return cls(build_conninfo(settings))

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection[Any], None, None]:
        if self._pool is None:
            raise RuntimeError("Connection pool is closed.")
        with self._pool.connection() as conn:
            yield conn

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None


class SqliteDatabase(Database):
    """SQLite file database; one short-lived connection per unit of work."""

    dialect = "sqlite"

    def __init__(self, path: Path, busy_timeout_seconds: float = 10.0) -> None:
        self._path = path
        self._busy_timeout_seconds = busy_timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqliteDatabase":
        return cls(settings.db_path)

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._path, timeout=self._busy_timeout_seconds)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def close(self) -> None:
        """Connections are closed per unit of work; nothing is pooled."""
