"""
PostgreSQL access for the dataset stores

Stores borrow connections from a psycopg_pool ConnectionPool. Work that
must be atomic (creating a submission with its staged rows, a live edit,
a promotion) runs inside ``DatabaseConnectionPool.transaction``; the
yielded connection is handed to every store method taking ``conn`` so
all statements share one transaction.
"""
import os
import time
from contextlib import contextmanager
from typing import Iterator

from psycopg import Connection, Cursor, IsolationLevel, OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from pydantic import BaseModel, Field

from src.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseConfig(BaseModel):
    """Connection parameters for the dataset database."""

    host: str = "localhost"
    port: int = Field(5432, gt=0)
    database: str = "datasets"
    user: str = "pipeline"
    password: str = Field(..., min_length=1)
    min_size: int = Field(1, ge=0)
    max_size: int = Field(10, gt=0)
    timeout: float = Field(30.0, gt=0)

    @classmethod
    def from_env(cls, **overrides) -> "DatabaseConfig":
        """
        Build a config from DB_* env vars; non-None overrides win.

        Raises:
            ValueError: If no password is given and DB_PASSWORD is unset
        """
        values = {
            "host": os.getenv("DB_HOST", "localhost"),
            "port": int(os.getenv("DB_PORT", "5432")),
            "database": os.getenv("DB_NAME", "datasets"),
            "user": os.getenv("DB_USER", "pipeline"),
            "password": os.getenv("DB_PASSWORD"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        if not values.get("password"):
            raise ValueError("Database password missing: set DB_PASSWORD or pass password=")
        return cls(**values)

    def conninfo(self) -> str:
        return make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.database,
            user=self.user,
            password=self.password,
            connect_timeout=int(self.timeout),
        )

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


class DatabaseConnectionPool:
    """
    Pool of psycopg connections returning dictionary rows.

    Usage:
        with DatabaseConnectionPool(password="...") as pool:
            with pool.transaction(IsolationLevel.SERIALIZABLE) as conn:
                ...
    """

    def __init__(self, config: DatabaseConfig | None = None, **overrides) -> None:
        """
        Args:
            config: Connection parameters; built from env vars when omitted
            **overrides: Individual DatabaseConfig fields (host, port, ...)
        """
        self.config = config or DatabaseConfig.from_env(**overrides)
        self._pool: ConnectionPool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self, attempts: int = 3, backoff: float = 2.0) -> None:
        """
        Open the pool, waiting until ``min_size`` connections are ready.

        A pool that failed to open cannot be reused, so each attempt
        builds a fresh one.

        Raises:
            OperationalError: If the database stays unreachable
        """
        if self._pool is not None:
            return

        for attempt in range(1, attempts + 1):
            pool = ConnectionPool(
                conninfo=self.config.conninfo(),
                min_size=self.config.min_size,
                max_size=self.config.max_size,
                timeout=self.config.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                pool.open(wait=True, timeout=self.config.timeout)
            except OperationalError as e:
                pool.close()
                logger.warning(
                    f"Could not reach {self.config.describe()} (attempt {attempt}/{attempts}): {e}"
                )
                if attempt == attempts:
                    raise
                time.sleep(backoff * attempt)
                continue

            self._pool = pool
            logger.info(f"Connection pool ready for {self.config.describe()}")
            return

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self) -> Iterator[Connection]:
        """
        Borrow a connection. The pool commits it when the block exits
        cleanly and rolls it back otherwise.

        Raises:
            RuntimeError: If the pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open; call open() first")
        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def get_cursor(self, conn: Connection | None = None) -> Iterator[Cursor]:
        """Cursor on ``conn`` when given (joining its transaction), else on a pooled connection."""
        if conn is None:
            with self.get_connection() as pooled, pooled.cursor() as cur:
                yield cur
        else:
            with conn.cursor() as cur:
                yield cur

    @contextmanager
    def transaction(self, isolation_level: IsolationLevel | None = None) -> Iterator[Connection]:
        """
        Run a block as one transaction.

        Args:
            isolation_level: e.g. IsolationLevel.SERIALIZABLE for promotion;
                the server default applies when omitted

        Yields:
            The connection owning the transaction
        """
        with self.get_connection() as conn:
            conn.isolation_level = isolation_level
            try:
                with conn.transaction():
                    yield conn
            finally:
                # connections go back to the pool with the default level
                conn.isolation_level = None

    def execute_query(self, query: str, params: tuple | dict | None = None) -> list[dict]:
        with self.get_cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def execute_command(self, command: str, params: tuple | dict | None = None) -> int:
        """Run a write statement in its own transaction; returns the affected row count."""
        with self.transaction() as conn, conn.cursor() as cur:
            cur.execute(command, params)
            return cur.rowcount

    def __enter__(self) -> "DatabaseConnectionPool":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
