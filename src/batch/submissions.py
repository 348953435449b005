"""
Submission lifecycle: submit, review, live edit and promotion.

SubmissionService ties the validator to the stores. Every multi-row write
runs in one transaction so a submission and its staging rows, or an edit
and the refreshed summary, appear together or not at all.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List
from uuid import UUID

from src.core.models import (
    DatasetSchema,
    PromotionResult,
    Record,
    StagingRow,
    Submission,
    SubmissionStatus,
    ValidationSummary,
)
from src.core.models.record import utc_now
from src.core.models.submission import EDITABLE_STATUSES, REVIEW_DECISIONS
from src.core.settings import PipelineSettings
from src.observability.logger import get_logger, log_operation
from src.utils.validation import (
    InputValidationError,
    validate_actor,
    validate_file_path,
    validate_page,
    validate_page_size,
    validate_uuid,
)
from src.warehouse.connection import DatabaseConnectionPool
from src.warehouse.dataset_rows import DatasetRowStore
from src.warehouse.promotion import PromotionService
from src.warehouse.rule_store import BusinessRuleStore
from src.warehouse.schema_mgmt import SchemaStore
from src.warehouse.staging_store import StagingRowNotFoundError, StagingStore
from src.warehouse.submission_store import SubmissionNotFoundError, SubmissionStore

from .pipeline import SubmissionValidator

logger = get_logger(__name__)


class SchemaNotFoundError(LookupError):
    """Raised when a dataset has no accepted schema yet."""

    def __init__(self, dataset_id: UUID):
        self.dataset_id = dataset_id
        super().__init__(f"Dataset {dataset_id} has no schema")


class SubmissionNotEditableError(Exception):
    """Raised when a staging row is edited after review has concluded."""

    def __init__(self, submission_id: UUID, status: SubmissionStatus):
        self.submission_id = submission_id
        self.status = status
        super().__init__(f"Submission {submission_id} is '{status.value}' and can no longer be edited")


@dataclass
class SubmissionOutcome:
    """
    Result of submitting a file.

    ``submission`` is None when the headers did not match the schema; the
    summary then carries the header errors.
    """

    submission: Submission | None
    summary: ValidationSummary
    staging_rows: List[StagingRow] = field(default_factory=list)


@dataclass
class ReviewOutcome:
    submission: Submission
    promotion: PromotionResult | None = None


@dataclass
class StagingPage:
    rows: List[StagingRow]
    total_rows: int
    page: int
    page_size: int


class SubmissionService:
    """
    Entry point for contributor and reviewer operations.

    Usage:
        service = SubmissionService(pool, settings=load_settings())
        outcome = service.submit_file(dataset_id, "upload.csv", "alice")
        service.review(outcome.submission.id, "approved", "admin")
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        schemas: SchemaStore | None = None,
        rules: BusinessRuleStore | None = None,
        submissions: SubmissionStore | None = None,
        staging: StagingStore | None = None,
        promotion: PromotionService | None = None,
        settings: PipelineSettings | None = None,
    ):
        """
        Initialize submission service.

        Stores default to Postgres-backed instances on ``pool``.
        """
        self.pool = pool
        self.settings = settings or PipelineSettings()
        self.schemas = schemas or SchemaStore(pool)
        self.rules = rules or BusinessRuleStore(pool)
        self.submissions = submissions or SubmissionStore(pool)
        self.staging = staging or StagingStore(pool)
        self.promotion = promotion or PromotionService(
            pool,
            self.submissions,
            self.staging,
            DatasetRowStore(pool),
            self.settings.promotion,
        )
        self.validator = SubmissionValidator(self.settings.validation)

    def submit_file(self, dataset_id: UUID | str, file_path: str | Path, submitted_by: str) -> SubmissionOutcome:
        """
        Validate an upload and stage it as a pending submission.

        Args:
            dataset_id: Target dataset
            file_path: CSV upload
            submitted_by: Contributor identity

        Returns:
            SubmissionOutcome; no submission is created when the headers
            do not match the schema

        Raises:
            SchemaNotFoundError: If the dataset has no schema
            SubmissionParseError: If the file cannot be parsed
        """
        dataset_id = validate_uuid(dataset_id, "dataset_id")
        submitted_by = validate_actor(submitted_by, "submitted_by")
        path = Path(validate_file_path(str(file_path)))

        schema = self._require_schema(dataset_id)
        rules = self.rules.get_active_rules(dataset_id)
        summary, staging_rows = self.validator.validate_file(path, schema, rules)

        if not summary.header_valid:
            logger.warning(f"Upload {path.name} for dataset {dataset_id} not staged: header mismatch")
            return SubmissionOutcome(submission=None, summary=summary)

        submission = Submission(
            dataset_id=dataset_id,
            submitted_by=submitted_by,
            file_name=path.name,
            file_path=str(path),
            file_size=os.path.getsize(path),
            row_count=summary.total_rows,
            validation_results=summary,
        )
        staging_rows = [row.model_copy(update={"submission_id": submission.id}) for row in staging_rows]

        with log_operation("Staging submission", logger=logger, submission_id=submission.id, dataset_id=dataset_id):
            with self.pool.transaction() as conn:
                self.submissions.create(conn, submission)
                self.staging.insert_rows(conn, staging_rows)

        return SubmissionOutcome(submission=submission, summary=summary, staging_rows=staging_rows)

    def review(
        self,
        submission_id: UUID | str,
        status: SubmissionStatus | str,
        reviewed_by: str,
        admin_notes: str | None = None,
    ) -> ReviewOutcome:
        """
        Record a review decision; an approval triggers promotion.

        A failed promotion leaves the submission approved and re-raises;
        ``promote`` can be called again later.

        Raises:
            InputValidationError: If ``status`` is not a reviewer decision
            SubmissionNotFoundError: If the submission does not exist
            InvalidStatusTransitionError: If the state machine forbids the move
        """
        submission_id = validate_uuid(submission_id, "submission_id")
        reviewed_by = validate_actor(reviewed_by, "reviewed_by")
        try:
            decision = SubmissionStatus(status)
        except ValueError as e:
            raise InputValidationError(f"Unknown submission status: {status!r}") from e
        if decision not in REVIEW_DECISIONS:
            raise InputValidationError(f"'{decision.value}' is not a review decision")

        reviewed_at = utc_now()
        with self.pool.transaction() as conn:
            current = self.submissions.get_for_update(conn, submission_id)
            if current is None:
                raise SubmissionNotFoundError(submission_id)
            reviewed = current.transition_to(decision).model_copy(
                update={"reviewed_by": reviewed_by, "admin_notes": admin_notes, "reviewed_at": reviewed_at}
            )
            self.submissions.update_review(conn, submission_id, decision, reviewed_by, admin_notes, reviewed_at)

        logger.info(f"Submission {submission_id} moved to '{decision.value}' by {reviewed_by}")

        if decision != SubmissionStatus.APPROVED:
            return ReviewOutcome(submission=reviewed)

        result = self.promotion.promote(submission_id)
        applied = reviewed.model_copy(update={"status": SubmissionStatus.APPLIED, "applied_at": result.applied_at})
        return ReviewOutcome(submission=applied, promotion=result)

    def promote(self, submission_id: UUID | str) -> PromotionResult:
        return self.promotion.promote(validate_uuid(submission_id, "submission_id"))

    def get_submission(self, submission_id: UUID | str) -> Submission:
        submission_id = validate_uuid(submission_id, "submission_id")
        submission = self.submissions.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    def list_pending(self) -> List[Submission]:
        return self.submissions.list_pending()

    def list_by_dataset(self, dataset_id: UUID | str) -> List[Submission]:
        """Every submission for a dataset, whatever its status."""
        return self.submissions.list_by_dataset(validate_uuid(dataset_id, "dataset_id"))

    def get_staging_rows(
        self,
        submission_id: UUID | str,
        page: int = 1,
        page_size: int | None = None,
    ) -> StagingPage:
        """One page of a submission's staged rows, in upload order."""
        submission_id = validate_uuid(submission_id, "submission_id")
        page = validate_page(page)
        page_size = validate_page_size(
            page_size or self.settings.staging.default_page_size,
            self.settings.staging.max_page_size,
        )
        rows = self.staging.get_rows(submission_id, limit=page_size, offset=(page - 1) * page_size)
        return StagingPage(
            rows=rows,
            total_rows=self.staging.count_rows(submission_id),
            page=page,
            page_size=page_size,
        )

    def update_staging_row(self, staging_row_id: UUID | str, record: Record) -> StagingRow:
        """
        Apply a live edit to one staged row and revalidate the submission.

        The edited values are merged over the row's current data. Row and
        business rules are re-run over every staged row of the submission,
        since an edit can create or clear a duplicate elsewhere. Rows whose
        outcome changed are written back with the edited row and the
        refreshed summary, all in one transaction.

        Returns:
            The edited row with its new validation outcome

        Raises:
            StagingRowNotFoundError: If the row does not exist
            SubmissionNotEditableError: If review has concluded
        """
        staging_row_id = validate_uuid(staging_row_id, "staging_row_id")

        with self.pool.transaction() as conn:
            target = self.staging.get_row(conn, staging_row_id)
            if target is None:
                raise StagingRowNotFoundError(staging_row_id)

            submission = self.submissions.get_for_update(conn, target.submission_id)
            if submission is None:
                raise SubmissionNotFoundError(target.submission_id)
            if submission.status not in EDITABLE_STATUSES:
                raise SubmissionNotEditableError(submission.id, submission.status)

            schema = self._require_schema(submission.dataset_id, conn)
            rules = self.rules.get_active_rules(submission.dataset_id, conn)

            staged = self.staging.get_all(conn, submission.id)
            records = [
                {**row.data, **record} if row.id == staging_row_id else row.data
                for row in staged
            ]
            summary, revalidated = self.validator.revalidate(records, schema, rules)
            if submission.validation_results is not None:
                summary.header_errors = list(submission.validation_results.header_errors)

            edited: StagingRow | None = None
            changed = 0
            for old, new in zip(staged, revalidated):
                is_target = old.id == staging_row_id
                if (
                    is_target
                    or old.validation_status != new.validation_status
                    or old.validation_errors != new.validation_errors
                ):
                    self.staging.update_row(conn, old.id, new.data, new.validation_status, new.validation_errors)
                    changed += 1
                if is_target:
                    edited = new.model_copy(
                        update={
                            "id": old.id,
                            "submission_id": old.submission_id,
                            "row_index": old.row_index,
                            "created_at": old.created_at,
                        }
                    )

            self.submissions.update_validation_summary(conn, submission.id, summary)

        logger.info(
            f"Edited staging row {staging_row_id} of submission {submission.id}: "
            f"{changed} rows rewritten, {summary.invalid_rows} invalid remaining"
        )
        return edited

    def _require_schema(self, dataset_id: UUID, conn=None) -> DatasetSchema:
        schema = self.schemas.get_schema(dataset_id, conn)
        if schema is None:
            raise SchemaNotFoundError(dataset_id)
        return schema
