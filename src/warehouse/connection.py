"""
PostgreSQL access for the import stores

Every Postgres-backed store borrows connections from one
DatabaseConnectionPool; a connection is held only for a single statement or
a single batch transaction.
"""
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from psycopg import Cursor, OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass
class DatabaseSettings:
    """
    Where and as whom to connect.

    Unset values fall back to DB_HOST, DB_PORT, DB_NAME, DB_USER and
    DB_PASSWORD; the password has no default.
    """

    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = None
    connect_timeout: float = 30.0

    def __post_init__(self) -> None:
        self.host = self.host or os.getenv("DB_HOST", "localhost")
        self.port = self.port or int(os.getenv("DB_PORT", "5432"))
        self.database = self.database or os.getenv("DB_NAME", "unclaimed_properties")
        self.user = self.user or os.getenv("DB_USER", "postgres")
        self.password = self.password or os.getenv("DB_PASSWORD")

        if not self.password:
            raise ValueError(
                "No database password configured; set DB_PASSWORD or pass password="
            )

    @property
    def conninfo(self) -> str:
        return make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.database,
            user=self.user,
            password=self.password,
            connect_timeout=int(self.connect_timeout),
        )

    @property
    def label(self) -> str:
        """host:port/database, safe to log."""
        return f"{self.host}:{self.port}/{self.database}"


class DatabaseConnectionPool:
    """
    Bounded psycopg pool returning dict rows.

    Stores use fetch_all() for reads, execute() for single statements and
    transaction() when several statements must commit together.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        min_size: int = 1,
        max_size: int = 4,
        timeout: float = 30.0,
    ) -> None:
        """
        Connection arguments left as None are read from DB_* environment
        variables (see DatabaseSettings).

        Raises:
            ValueError: If no password is configured
        """
        self.settings = DatabaseSettings(host, port, database, user, password, timeout)
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self._pool: ConnectionPool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the pool, waiting until min_size connections are established.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        for attempt in range(1, max_retries + 1):
            pool = ConnectionPool(
                conninfo=self.settings.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                pool.open(wait=True, timeout=self.timeout)
            except Exception as e:
                # PoolTimeout when no connection could be established
                pool.close()
                if attempt == max_retries:
                    raise OperationalError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e
                logger.warning(f"Database connection attempt {attempt}/{max_retries} failed: {e}")
                time.sleep(retry_delay)
                continue

            self._pool = pool
            logger.info(f"Connected to {self.settings.label}")
            return

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self):
        """
        Borrow a connection; it is rolled back if the block raises.

        Raises:
            RuntimeError: If pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[Cursor]:
        """
        Cursor whose statements commit together when the block exits cleanly.

        Yields:
            psycopg.Cursor returning dict rows
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                yield cur
            conn.commit()

    def fetch_all(self, query, params: tuple | dict | None = None) -> list[dict[str, Any]]:
        """Run a SELECT (str or psycopg.sql.Composable) and return every row."""
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()

    def execute(self, command, params: tuple | dict | None = None) -> int:
        """
        Run one INSERT/UPDATE/DELETE/DDL statement in its own transaction

        Returns:
            Number of rows affected
        """
        with self.transaction() as cur:
            cur.execute(command, params)
            return cur.rowcount

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
