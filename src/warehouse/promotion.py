"""
Atomic promotion of an approved submission into its dataset.

One promotion is one SERIALIZABLE transaction:

1. Take the dataset's append lock
2. Lock the submission row and check it is approved
3. Read max(row_index) and append every eligible staging row at
   ``max_index + 1 + staging_row_index``
4. Refresh the dataset row count and mark the submission applied

Either every step commits or none does. Serialization failures are
retried with a fresh transaction.
"""

import time
from typing import List
from uuid import UUID

from psycopg import IsolationLevel
from psycopg.errors import SerializationFailure

from src.core.models.dataset_row import PromotionResult
from src.core.models.record import utc_now
from src.core.models.staging_row import RowStatus
from src.core.models.submission import InvalidStatusTransitionError, SubmissionStatus
from src.core.settings import PromotionSettings
from src.observability.logger import get_logger, log_operation
from src.observability.metrics import (
    increment_counter,
    promotion_duration_seconds,
    promotion_retries_total,
    record_promotion,
    track_duration,
)

from .connection import DatabaseConnectionPool
from .dataset_rows import DatasetRowStore
from .staging_store import StagingStore
from .submission_store import SubmissionNotFoundError, SubmissionStore

logger = get_logger(__name__)


class SubmissionAlreadyAppliedError(Exception):
    """Raised when promotion is requested for a submission already applied."""

    def __init__(self, submission_id: UUID):
        self.submission_id = submission_id
        super().__init__(f"Submission {submission_id} has already been applied")


class PromotionService:
    """
    Moves approved staging rows into the authoritative dataset.

    Safe to call concurrently: promotions of one submission are ordered by
    the submission row lock, and promotions into one dataset by the
    dataset's advisory lock.
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        submissions: SubmissionStore,
        staging: StagingStore,
        rows: DatasetRowStore,
        settings: PromotionSettings | None = None,
    ):
        """
        Initialize promotion service.

        Args:
            pool: Database connection pool
            submissions: Submission store
            staging: Staging row store
            rows: Dataset row store
            settings: Retry and eligibility settings
        """
        self.pool = pool
        self.submissions = submissions
        self.staging = staging
        self.rows = rows
        self.settings = settings or PromotionSettings()

    @property
    def eligible_statuses(self) -> List[RowStatus]:
        if self.settings.include_warning_rows:
            return ["valid", "warning"]
        return ["valid"]

    def promote(self, submission_id: UUID) -> PromotionResult:
        """
        Promote an approved submission.

        Returns:
            PromotionResult with the appended row_index range

        Raises:
            SubmissionNotFoundError: If the submission does not exist
            SubmissionAlreadyAppliedError: If it was promoted before
            InvalidStatusTransitionError: If it is not approved
            SerializationFailure: If every retry conflicted
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._promote_once(submission_id)
            except SerializationFailure:
                if attempt >= self.settings.max_retries:
                    logger.error(f"Promotion of submission {submission_id} failed after {attempt} attempts")
                    raise
                logger.warning(
                    f"Serialization conflict promoting submission {submission_id}, "
                    f"retrying ({attempt}/{self.settings.max_retries})"
                )
                increment_counter(promotion_retries_total, 1, dataset_id=self._dataset_label(submission_id))
                time.sleep(self.settings.retry_delay * attempt)

    def _promote_once(self, submission_id: UUID) -> PromotionResult:
        with log_operation("Promoting submission", logger=logger, submission_id=submission_id):
            with self.pool.transaction(IsolationLevel.SERIALIZABLE) as conn:
                # a submission never changes dataset, so a plain read finds the lock key
                current = self.submissions.get(submission_id, conn)
                if current is None:
                    raise SubmissionNotFoundError(submission_id)
                self.rows.lock_dataset(conn, current.dataset_id)

                submission = self.submissions.get_for_update(conn, submission_id)
                if submission is None:
                    raise SubmissionNotFoundError(submission_id)
                if submission.status == SubmissionStatus.APPLIED:
                    raise SubmissionAlreadyAppliedError(submission_id)
                if submission.status != SubmissionStatus.APPROVED:
                    raise InvalidStatusTransitionError(submission_id, submission.status, SubmissionStatus.APPLIED)

                dataset_id = submission.dataset_id
                try:
                    with track_duration(promotion_duration_seconds, dataset_id=str(dataset_id)):
                        max_index = self.rows.get_max_row_index(conn, dataset_id)
                        base_index = (max_index if max_index is not None else -1) + 1

                        staged = self.staging.get_promotable_rows(conn, submission_id, self.eligible_statuses)
                        appended = [(base_index + row.row_index, row.data) for row in staged]
                        self.rows.insert_rows(conn, dataset_id, appended, created_by=submission.submitted_by)
                        row_count = self.rows.update_row_count(conn, dataset_id)

                        applied_at = utc_now()
                        self.submissions.mark_applied(conn, submission_id, applied_at)
                except Exception:
                    record_promotion(str(dataset_id), 0, success=False)
                    raise

        record_promotion(str(dataset_id), len(appended))
        logger.info(
            f"Promoted {len(appended)} rows from submission {submission_id} into dataset {dataset_id}"
        )
        return PromotionResult(
            submission_id=submission_id,
            dataset_id=dataset_id,
            rows_promoted=len(appended),
            first_row_index=appended[0][0] if appended else None,
            last_row_index=appended[-1][0] if appended else None,
            dataset_row_count=row_count,
            applied_at=applied_at,
        )

    def _dataset_label(self, submission_id: UUID) -> str:
        submission = self.submissions.get(submission_id)
        return str(submission.dataset_id) if submission else "unknown"
