"""
Submission storage.

Methods that take ``conn`` first must run inside a transaction opened by
the caller; the others borrow a pooled connection.
"""

import json
from datetime import datetime
from typing import List
from uuid import UUID

from psycopg import Connection

from src.core.models.submission import Submission, SubmissionStatus
from src.core.models.validation_result import ValidationSummary
from src.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

_SUBMISSION_COLUMNS = """
    id, dataset_id, submitted_by, file_name, file_path, file_size, row_count,
    status, validation_results, admin_notes, reviewed_by, reviewed_at,
    submitted_at, applied_at
"""


class SubmissionNotFoundError(LookupError):
    """Raised when a submission ID does not exist."""

    def __init__(self, submission_id: UUID):
        self.submission_id = submission_id
        super().__init__(f"Submission {submission_id} not found")


class SubmissionStore:
    """Reads and writes data_submissions rows."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def create(self, conn: Connection, submission: Submission) -> Submission:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO data_submissions ({_SUBMISSION_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    submission.id,
                    submission.dataset_id,
                    submission.submitted_by,
                    submission.file_name,
                    submission.file_path,
                    submission.file_size,
                    submission.row_count,
                    submission.status.value,
                    self._summary_json(submission.validation_results),
                    submission.admin_notes,
                    submission.reviewed_by,
                    submission.reviewed_at,
                    submission.submitted_at,
                    submission.applied_at,
                ),
            )
        logger.info(f"Created submission {submission.id} for dataset {submission.dataset_id}")
        return submission

    def get(self, submission_id: UUID, conn: Connection | None = None) -> Submission | None:
        with self.pool.get_cursor(conn) as cur:
            cur.execute(
                f"SELECT {_SUBMISSION_COLUMNS} FROM data_submissions WHERE id = %s",
                (submission_id,),
            )
            row = cur.fetchone()
        return self._row_to_submission(row) if row else None

    def get_for_update(self, conn: Connection, submission_id: UUID) -> Submission | None:
        """Read a submission and lock its row until the transaction ends."""
        with conn.cursor() as cur:
            cur.execute(
                f"SELECT {_SUBMISSION_COLUMNS} FROM data_submissions WHERE id = %s FOR UPDATE",
                (submission_id,),
            )
            row = cur.fetchone()
        return self._row_to_submission(row) if row else None

    def list_pending(self) -> List[Submission]:
        """Submissions awaiting a review decision, oldest first."""
        rows = self.pool.execute_query(
            f"""
            SELECT {_SUBMISSION_COLUMNS}
            FROM data_submissions
            WHERE status IN (%s, %s)
            ORDER BY submitted_at ASC
            """,
            (SubmissionStatus.PENDING.value, SubmissionStatus.UNDER_REVIEW.value),
        )
        return [self._row_to_submission(row) for row in rows]

    def list_by_dataset(self, dataset_id: UUID) -> List[Submission]:
        rows = self.pool.execute_query(
            f"""
            SELECT {_SUBMISSION_COLUMNS}
            FROM data_submissions
            WHERE dataset_id = %s
            ORDER BY submitted_at DESC
            """,
            (dataset_id,),
        )
        return [self._row_to_submission(row) for row in rows]

    def update_review(
        self,
        conn: Connection,
        submission_id: UUID,
        status: SubmissionStatus,
        reviewed_by: str,
        admin_notes: str | None,
        reviewed_at: datetime,
    ) -> None:
        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE data_submissions
                SET status = %s, reviewed_by = %s, admin_notes = %s, reviewed_at = %s
                WHERE id = %s
                """,
                (status.value, reviewed_by, admin_notes, reviewed_at, submission_id),
            )

    def update_validation_summary(self, conn: Connection, submission_id: UUID, summary: ValidationSummary) -> None:
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE data_submissions SET validation_results = %s WHERE id = %s",
                (self._summary_json(summary), submission_id),
            )

    def mark_applied(self, conn: Connection, submission_id: UUID, applied_at: datetime) -> None:
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE data_submissions SET status = %s, applied_at = %s WHERE id = %s",
                (SubmissionStatus.APPLIED.value, applied_at, submission_id),
            )

    @staticmethod
    def _summary_json(summary: ValidationSummary | None) -> str | None:
        return json.dumps(summary.to_dict()) if summary is not None else None

    @staticmethod
    def _row_to_submission(row: dict) -> Submission:
        data = dict(row)
        if data["validation_results"] is not None:
            data["validation_results"] = ValidationSummary.model_validate(data["validation_results"])
        return Submission(**data)
