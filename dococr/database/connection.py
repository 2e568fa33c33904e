from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from dococr.config.settings import Settings

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def build_conninfo(settings: Settings) -> str:
    """Build a libpq connection string from settings."""
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )


class Database:
    """Owns the connection pool shared by repositories and the queue client.

    Constructed once by the entry point and passed to every component that
    needs the state store.
    """

    def __init__(self, conninfo: str, max_size: int = 10) -> None:
        self._pool: ConnectionPool | None = ConnectionPool(
            conninfo, min_size=1, max_size=max_size, open=False
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(build_conninfo(settings), max_size=settings.db_pool_max_size)

    def open(self, wait_timeout: float | None = None) -> None:
        """Open the pool. If wait_timeout is set, fail fast when the DB is unreachable."""
        if self._pool is None:
            raise RuntimeError("Database already closed")
        self._pool.open()
        if wait_timeout is not None:
            self._pool.wait(timeout=wait_timeout)

    def close(self) -> None:
        """Close the pool."""
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection[Any], None, None]:
        """Yield a connection from the pool. Caller manages commit/rollback."""
        if self._pool is None:
            raise RuntimeError("Connection pool not initialized. Call open() first.")
        with self._pool.connection() as conn:
            yield conn

    def apply_schema(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        schema_sql = SCHEMA_PATH.read_text()
        with self.connection() as conn:
            conn.execute(schema_sql)  # type: ignore[arg-type]
            conn.commit()
