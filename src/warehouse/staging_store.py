"""
Staging row storage.

Staging rows live until their submission is promoted or deleted. Writes
always run inside the caller's transaction.
"""

import json
from typing import Iterable, List, Sequence
from uuid import UUID

from psycopg import Connection

from src.core.models.record import Record
from src.core.models.staging_row import RowStatus, StagingRow
from src.core.models.validation_result import FieldValidationError

from .connection import DatabaseConnectionPool

_STAGING_COLUMNS = "id, submission_id, row_index, data, validation_status, validation_errors, created_at"


class StagingRowNotFoundError(LookupError):
    """Raised when a staging row ID does not exist."""

    def __init__(self, staging_row_id: UUID):
        self.staging_row_id = staging_row_id
        super().__init__(f"Staging row {staging_row_id} not found")


class StagingStore:
    """Reads and writes data_submission_staging rows."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def insert_rows(self, conn: Connection, rows: Sequence[StagingRow]) -> int:
        """
        Insert staging rows in one batch.

        Every row must already carry its submission_id.

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0
        with conn.cursor() as cur:
            cur.executemany(
                f"""
                INSERT INTO data_submission_staging ({_STAGING_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                [
                    (
                        row.id,
                        row.submission_id,
                        row.row_index,
                        json.dumps(row.data),
                        row.validation_status,
                        self._errors_json(row.validation_errors),
                        row.created_at,
                    )
                    for row in rows
                ],
            )
        return len(rows)

    def get_rows(self, submission_id: UUID, limit: int, offset: int = 0) -> List[StagingRow]:
        """One page of a submission's staging rows in row_index order."""
        rows = self.pool.execute_query(
            f"""
            SELECT {_STAGING_COLUMNS}
            FROM data_submission_staging
            WHERE submission_id = %s
            ORDER BY row_index
            LIMIT %s OFFSET %s
            """,
            (submission_id, limit, offset),
        )
        return [self._row_to_staging(row) for row in rows]

    def count_rows(self, submission_id: UUID) -> int:
        rows = self.pool.execute_query(
            "SELECT COUNT(*) AS total FROM data_submission_staging WHERE submission_id = %s",
            (submission_id,),
        )
        return rows[0]["total"]

    def get_all(self, conn: Connection, submission_id: UUID) -> List[StagingRow]:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {_STAGING_COLUMNS}
                FROM data_submission_staging
                WHERE submission_id = %s
                ORDER BY row_index
                """,
                (submission_id,),
            )
            rows = cur.fetchall()
        return [self._row_to_staging(row) for row in rows]

    def get_row(self, conn: Connection, staging_row_id: UUID) -> StagingRow | None:
        with conn.cursor() as cur:
            cur.execute(
                f"SELECT {_STAGING_COLUMNS} FROM data_submission_staging WHERE id = %s",
                (staging_row_id,),
            )
            row = cur.fetchone()
        return self._row_to_staging(row) if row else None

    def get_promotable_rows(
        self,
        conn: Connection,
        submission_id: UUID,
        statuses: Iterable[RowStatus] = ("valid",),
    ) -> List[StagingRow]:
        """Rows whose status is in ``statuses``, in row_index order."""
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {_STAGING_COLUMNS}
                FROM data_submission_staging
                WHERE submission_id = %s AND validation_status = ANY(%s)
                ORDER BY row_index
                """,
                (submission_id, list(statuses)),
            )
            rows = cur.fetchall()
        return [self._row_to_staging(row) for row in rows]

    def update_row(
        self,
        conn: Connection,
        staging_row_id: UUID,
        data: Record,
        validation_status: RowStatus,
        validation_errors: Sequence[FieldValidationError],
    ) -> None:
        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE data_submission_staging
                SET data = %s, validation_status = %s, validation_errors = %s
                WHERE id = %s
                """,
                (json.dumps(data), validation_status, self._errors_json(validation_errors), staging_row_id),
            )

    @staticmethod
    def _errors_json(errors: Sequence[FieldValidationError]) -> str:
        return json.dumps([e.model_dump(mode="json") for e in errors])

    @staticmethod
    def _row_to_staging(row: dict) -> StagingRow:
        return StagingRow(
            id=row["id"],
            submission_id=row["submission_id"],
            row_index=row["row_index"],
            data=row["data"],
            validation_status=row["validation_status"],
            validation_errors=[FieldValidationError(**e) for e in row["validation_errors"] or []],
            created_at=row["created_at"],
        )
