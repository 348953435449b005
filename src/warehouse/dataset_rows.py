"""
Authoritative dataset storage.

Rows are append-only and keyed by (dataset_id, row_index). Appends are
serialized per dataset with a transaction-scoped advisory lock so the
next free row_index is read and used without interleaving.
"""

import json
import math
from typing import List, Sequence, Tuple
from uuid import UUID, uuid4

from psycopg import Connection

from src.core.models.dataset_row import DataPreview, DatasetRow
from src.core.models.record import Record, utc_now
from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)


class DatasetNotFoundError(LookupError):
    """Raised when a dataset ID does not exist."""

    def __init__(self, dataset_id: UUID):
        self.dataset_id = dataset_id
        super().__init__(f"Dataset {dataset_id} not found")


class DatasetRowStore:
    """
    Dataset rows and the per-dataset row counter.

    Handles:
    - Creating datasets
    - Locking a dataset for an append
    - Reading the current max row_index
    - Bulk inserting promoted rows
    - Paged, searchable reads
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize dataset row store.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def create_dataset(self, name: str, description: str | None = None) -> UUID:
        dataset_id = uuid4()
        self.pool.execute_command(
            "INSERT INTO datasets (id, name, description) VALUES (%s, %s, %s)",
            (dataset_id, name, description),
        )
        logger.info(f"Created dataset '{name}' ({dataset_id})")
        return dataset_id

    def get_row_count(self, dataset_id: UUID, conn: Connection | None = None) -> int:
        """
        Stored row count of a dataset.

        Raises:
            DatasetNotFoundError: If the dataset does not exist
        """
        with self.pool.get_cursor(conn) as cur:
            cur.execute("SELECT row_count FROM datasets WHERE id = %s", (dataset_id,))
            row = cur.fetchone()
        if row is None:
            raise DatasetNotFoundError(dataset_id)
        return row["row_count"]

    def lock_dataset(self, conn: Connection, dataset_id: UUID) -> None:
        """Take the dataset's append lock; released when the transaction ends."""
        with conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s::text))", (str(dataset_id),))

    def get_max_row_index(self, conn: Connection, dataset_id: UUID) -> int | None:
        """Highest row_index in the dataset, or None when it has no rows."""
        with conn.cursor() as cur:
            cur.execute(
                "SELECT MAX(row_index) AS max_index FROM dataset_data WHERE dataset_id = %s",
                (dataset_id,),
            )
            row = cur.fetchone()
        return row["max_index"]

    def insert_rows(
        self,
        conn: Connection,
        dataset_id: UUID,
        rows: Sequence[Tuple[int, Record]],
        created_by: str | None = None,
    ) -> int:
        """
        Insert ``(row_index, data)`` pairs.

        A row_index already taken in the dataset violates the unique
        constraint and aborts the transaction.

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0
        now = utc_now()
        with conn.cursor() as cur:
            cur.executemany(
                """
                INSERT INTO dataset_data (dataset_id, row_index, data, version, created_by, created_at, updated_at)
                VALUES (%s, %s, %s, 1, %s, %s, %s)
                """,
                [(dataset_id, row_index, json.dumps(data), created_by, now, now) for row_index, data in rows],
            )
        return len(rows)

    def update_row_count(self, conn: Connection, dataset_id: UUID) -> int:
        """Recount the dataset's rows and store the result."""
        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE datasets
                SET row_count = (SELECT COUNT(*) FROM dataset_data WHERE dataset_id = %s),
                    updated_at = NOW()
                WHERE id = %s
                RETURNING row_count
                """,
                (dataset_id, dataset_id),
            )
            row = cur.fetchone()
        if row is None:
            raise DatasetNotFoundError(dataset_id)
        return row["row_count"]

    def query_rows(
        self,
        dataset_id: UUID,
        search: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> DataPreview:
        """
        Page through a dataset in row_index order.

        Args:
            dataset_id: Dataset ID
            search: Case-insensitive substring matched against the row's JSON text
            page: 1-based page number
            page_size: Rows per page
        """
        where = "WHERE dataset_id = %s"
        params: List = [dataset_id]
        if search:
            where += " AND data::text ILIKE %s"
            params.append(f"%{search}%")

        with self.pool.get_cursor() as cur:
            cur.execute(f"SELECT COUNT(*) AS total FROM dataset_data {where}", params)
            total = cur.fetchone()["total"]
            cur.execute(
                f"""
                SELECT dataset_id, row_index, data, version, created_by, created_at
                FROM dataset_data
                {where}
                ORDER BY row_index
                LIMIT %s OFFSET %s
                """,
                params + [page_size, (page - 1) * page_size],
            )
            rows = cur.fetchall()

        return DataPreview(
            rows=[DatasetRow(**row) for row in rows],
            total_rows=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )
